from __future__ import annotations

import pytest
from httpx import AsyncClient

from conftest import MEMBER_EMAIL, create_board, login_admin, login_member, register, user_id


@pytest.mark.anyio
async def test_create_board_with_default_columns(client: AsyncClient) -> None:
  headers = await login_admin(client)
  board = await create_board(client, headers, tags=["eng"])
  assert [c["title"] for c in board["columns"]] == ["To Do", "In Progress", "Done"]
  assert [c["position"] for c in board["columns"]] == [0, 1, 2]
  assert board["visibility"] == "private"
  assert board["settings"]["defaultTaskPriority"] == "medium"
  assert [m["role"] for m in board["members"]] == ["owner"]
  assert board["stats"]["totalTasks"] == 0


@pytest.mark.anyio
async def test_create_board_with_custom_columns(client: AsyncClient) -> None:
  headers = await login_admin(client)
  board = await create_board(
    client,
    headers,
    columns=[{"title": "Later", "position": 2}, {"title": "Now", "position": 0, "wipLimit": 2}, {"title": "Next", "position": 1}],
  )
  assert [c["title"] for c in board["columns"]] == ["Now", "Next", "Later"]
  assert board["columns"][0]["wipLimit"] == 2


@pytest.mark.anyio
async def test_board_color_validation(client: AsyncClient) -> None:
  headers = await login_admin(client)
  res = await client.post("/boards", json={"title": "Bad", "backgroundColor": "red"}, headers=headers)
  assert res.status_code == 400
  assert res.json()["errors"][0]["field"] == "backgroundColor"


@pytest.mark.anyio
async def test_list_boards_filters_and_pagination(client: AsyncClient) -> None:
  headers = await login_admin(client)
  await create_board(client, headers, title="Alpha", tags=["eng"])
  await create_board(client, headers, title="Beta", tags=["ops"], description="pager duty")
  archived = await create_board(client, headers, title="Gamma")
  await client.patch(f"/boards/{archived['id']}/archive", json={"archived": True}, headers=headers)

  res = await client.get("/boards", params={"sortBy": "title", "sortOrder": "asc"}, headers=headers)
  assert res.status_code == 200, res.text
  assert [b["title"] for b in res.json()["data"]] == ["Alpha", "Beta"]
  assert res.json()["pagination"]["total"] == 2

  res = await client.get("/boards", params={"includeArchived": "true", "limit": 2, "page": 2, "sortBy": "title", "sortOrder": "asc"}, headers=headers)
  assert [b["title"] for b in res.json()["data"]] == ["Gamma"]
  assert res.json()["pagination"]["hasPrevPage"] is True

  res = await client.get("/boards", params={"tags": "ops"}, headers=headers)
  assert [b["title"] for b in res.json()["data"]] == ["Beta"]

  res = await client.get("/boards", params={"search": "pager"}, headers=headers)
  assert [b["title"] for b in res.json()["data"]] == ["Beta"]


@pytest.mark.anyio
async def test_search_does_not_leak_other_users_boards(client: AsyncClient) -> None:
  admin = await login_admin(client)
  member = await login_member(client)
  await create_board(client, admin, title="Secret roadmap")
  res = await client.get("/boards", params={"search": "roadmap"}, headers=member)
  assert res.status_code == 200
  assert res.json()["data"] == []


@pytest.mark.anyio
async def test_private_board_visibility_and_public_listing(client: AsyncClient) -> None:
  admin = await login_admin(client)
  member = await login_member(client)
  private = await create_board(client, admin, title="Private")
  public = await create_board(client, admin, title="Open", visibility="public", tags=["oss"])

  denied = await client.get(f"/boards/{private['id']}", headers=member)
  assert denied.status_code == 403
  assert denied.json()["message"] == "Access denied"

  ok = await client.get(f"/boards/{public['id']}", headers=member)
  assert ok.status_code == 200, ok.text
  assert set(ok.json()["data"]["tasksByColumn"].keys()) == {c["id"] for c in public["columns"]}

  listed = await client.get("/boards/public", params={"tags": "oss"}, headers=member)
  assert [b["id"] for b in listed.json()["data"]] == [public["id"]]

  assert (await client.get("/boards/does-not-exist", headers=admin)).status_code == 404


@pytest.mark.anyio
async def test_update_requires_edit_rights(client: AsyncClient) -> None:
  admin = await login_admin(client)
  member = await login_member(client)
  board = await create_board(client, admin)
  mid = await user_id(MEMBER_EMAIL)
  await client.post(f"/boards/{board['id']}/members", json={"userId": mid, "role": "member"}, headers=admin)

  res = await client.patch(f"/boards/{board['id']}", json={"title": "Nope"}, headers=member)
  assert res.status_code == 403

  await client.patch(f"/boards/{board['id']}/members/{mid}", json={"role": "admin"}, headers=admin)
  res = await client.patch(
    f"/boards/{board['id']}", json={"title": "Renamed", "settings": {"enableWipLimits": True}}, headers=member
  )
  assert res.status_code == 200, res.text
  data = res.json()["data"]
  assert data["title"] == "Renamed"
  assert data["settings"]["enableWipLimits"] is True
  assert data["settings"]["defaultTaskPriority"] == "medium"


@pytest.mark.anyio
async def test_delete_board_rules(client: AsyncClient) -> None:
  admin = await login_admin(client)
  member = await login_member(client)
  board = await create_board(client, admin, visibility="public")

  assert (await client.delete(f"/boards/{board['id']}", headers=member)).status_code == 403

  task = await client.post("/tasks", json={"title": "Live", "boardId": board["id"]}, headers=admin)
  assert task.status_code == 201, task.text
  blocked = await client.delete(f"/boards/{board['id']}", headers=admin)
  assert blocked.status_code == 400

  await client.delete(f"/tasks/{task.json()['data']['id']}", headers=admin)
  res = await client.delete(f"/boards/{board['id']}", headers=admin)
  assert res.status_code == 200, res.text
  assert (await client.get(f"/boards/{board['id']}", headers=admin)).status_code == 404


@pytest.mark.anyio
async def test_archive_and_unarchive(client: AsyncClient) -> None:
  headers = await login_admin(client)
  board = await create_board(client, headers)
  res = await client.patch(f"/boards/{board['id']}/archive", json={"archived": True}, headers=headers)
  assert res.status_code == 200, res.text
  assert res.json()["data"]["isArchived"] is True
  assert res.json()["data"]["archivedAt"] is not None

  res = await client.patch(f"/boards/{board['id']}/archive", json={"archived": False}, headers=headers)
  assert res.json()["data"]["isArchived"] is False
  assert res.json()["data"]["archivedBy"] is None


@pytest.mark.anyio
async def test_duplicate_board_with_tasks_and_members(client: AsyncClient) -> None:
  admin = await login_admin(client)
  board = await create_board(client, admin, visibility="team")
  mid = await user_id(MEMBER_EMAIL)
  await client.post(f"/boards/{board['id']}/members", json={"userId": mid, "role": "viewer"}, headers=admin)
  col = board["columns"][1]["id"]
  for title in ("one", "two"):
    r = await client.post("/tasks", json={"title": title, "boardId": board["id"], "columnId": col}, headers=admin)
    assert r.status_code == 201, r.text

  res = await client.post(
    f"/boards/{board['id']}/duplicate", json={"includeTasks": True, "includeMembers": True}, headers=admin
  )
  assert res.status_code == 201, res.text
  copy = res.json()["data"]
  assert copy["id"] != board["id"]
  assert copy["title"] == "Sprint (copy)"
  assert copy["visibility"] == "private"
  assert {c["id"] for c in copy["columns"]}.isdisjoint({c["id"] for c in board["columns"]})
  assert {m["userId"]: m["role"] for m in copy["members"]}[mid] == "viewer"
  assert copy["stats"]["totalTasks"] == 2

  detail = (await client.get(f"/boards/{copy['id']}", headers=admin)).json()["data"]
  copied_col = detail["columns"][1]
  tasks = detail["tasksByColumn"][copied_col["id"]]
  assert [t["title"] for t in tasks] == ["one", "two"]
  assert copied_col["taskIds"] == [t["id"] for t in tasks]
  assert [t["position"] for t in tasks] == [0, 1]


@pytest.mark.anyio
async def test_viewer_duplicate_does_not_copy_members(client: AsyncClient) -> None:
  admin = await login_admin(client)
  member = await login_member(client)
  board = await create_board(client, admin, visibility="public")
  other = await register(client, "Other", "other@example.com")
  oid = (await client.get("/auth/profile", headers=other)).json()["data"]["id"]
  await client.post(f"/boards/{board['id']}/members", json={"userId": oid}, headers=admin)

  res = await client.post(f"/boards/{board['id']}/duplicate", json={"includeMembers": True}, headers=member)
  assert res.status_code == 201, res.text
  copy = res.json()["data"]
  mid = await user_id(MEMBER_EMAIL)
  assert copy["owner"] == mid
  assert [m["userId"] for m in copy["members"]] == [mid]


@pytest.mark.anyio
async def test_board_stats(client: AsyncClient) -> None:
  headers = await login_admin(client)
  board = await create_board(client, headers)
  t1 = (await client.post("/tasks", json={"title": "a", "boardId": board["id"], "priority": "high"}, headers=headers)).json()["data"]
  await client.post("/tasks", json={"title": "b", "boardId": board["id"]}, headers=headers)
  await client.patch(f"/tasks/{t1['id']}/status", json={"status": "completed"}, headers=headers)

  res = await client.get(f"/boards/{board['id']}/stats", params={"period": "week"}, headers=headers)
  assert res.status_code == 200, res.text
  data = res.json()["data"]
  assert data["totalTasks"] == 2
  assert data["tasksByStatus"] == {"completed": 1, "pending": 1}
  assert data["tasksByPriority"] == {"high": 1, "medium": 1}
  assert data["completionRate"] == 50
  assert data["board"]["columnCount"] == 3
  assert len(data["recentActivity"]) == 2

  stats = (await client.get(f"/boards/{board['id']}", headers=headers)).json()["data"]["stats"]
  assert (stats["totalTasks"], stats["completedTasks"], stats["activeTasks"]) == (2, 1, 1)


@pytest.mark.anyio
async def test_board_stats_custom_period_accepts_naive_dates(client: AsyncClient) -> None:
  headers = await login_admin(client)
  board = await create_board(client, headers)
  await client.post("/tasks", json={"title": "a", "boardId": board["id"]}, headers=headers)

  res = await client.get(
    f"/boards/{board['id']}/stats",
    params={"startDate": "2020-01-01T00:00:00", "endDate": "2099-01-01T00:00:00"},
    headers=headers,
  )
  assert res.status_code == 200, res.text
  data = res.json()["data"]
  assert data["period"] == "custom"
  assert data["periodStart"].startswith("2020-01-01T00:00:00")
  assert len(data["recentActivity"]) == 1

  past = await client.get(
    f"/boards/{board['id']}/stats", params={"startDate": "2020-01-01T00:00:00", "endDate": "2020-02-01T00:00:00"}, headers=headers
  )
  assert past.status_code == 200, past.text
  assert past.json()["data"]["recentActivity"] == []
  assert past.json()["data"]["totalTasks"] == 1


@pytest.mark.anyio
async def test_members_add_update_remove(client: AsyncClient) -> None:
  admin = await login_admin(client)
  board = await create_board(client, admin)
  mid = await user_id(MEMBER_EMAIL)
  owner_id = board["owner"]

  res = await client.post(f"/boards/{board['id']}/members", json={"userId": mid}, headers=admin)
  assert res.status_code == 201, res.text
  dup = await client.post(f"/boards/{board['id']}/members", json={"userId": mid}, headers=admin)
  assert dup.status_code == 400
  assert dup.json()["message"] == "User is already a member of this board"
  missing = await client.post(f"/boards/{board['id']}/members", json={"userId": "nobody"}, headers=admin)
  assert missing.status_code == 404

  owner_change = await client.patch(f"/boards/{board['id']}/members/{owner_id}", json={"role": "viewer"}, headers=admin)
  assert owner_change.status_code == 400
  owner_remove = await client.delete(f"/boards/{board['id']}/members/{owner_id}", headers=admin)
  assert owner_remove.status_code == 400
  stranger = await client.delete(f"/boards/{board['id']}/members/nobody", headers=admin)
  assert stranger.status_code == 404
  assert stranger.json()["message"] == "Member not found"

  res = await client.delete(f"/boards/{board['id']}/members/{mid}", headers=admin)
  assert res.status_code == 200, res.text
  assert [m["userId"] for m in res.json()["data"]["members"]] == [owner_id]
