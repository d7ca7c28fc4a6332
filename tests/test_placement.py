from __future__ import annotations

import pytest
from httpx import AsyncClient

from conftest import MEMBER_EMAIL, create_board, login_admin, login_member, user_id
from taskboard.boards.placement import is_permutation, splice, without


async def _task(client: AsyncClient, headers: dict, board_id: str, column_id: str, title: str) -> dict:
  res = await client.post("/tasks", json={"title": title, "boardId": board_id, "columnId": column_id}, headers=headers)
  assert res.status_code == 201, res.text
  return res.json()["data"]


async def _detail(client: AsyncClient, headers: dict, board_id: str) -> dict:
  res = await client.get(f"/boards/{board_id}", headers=headers)
  assert res.status_code == 200, res.text
  return res.json()["data"]


def _assert_consistent(detail: dict) -> None:
  for col in detail["columns"]:
    tasks = detail["tasksByColumn"][col["id"]]
    by_id = {t["id"]: t for t in tasks}
    assert sorted(by_id) == sorted(col["taskIds"])
    for idx, tid in enumerate(col["taskIds"]):
      assert by_id[tid]["columnId"] == col["id"]
      assert by_id[tid]["position"] == idx


@pytest.mark.anyio
async def test_splice_clamps_and_dedupes() -> None:
  assert splice(["a", "b", "c"], "a", 99) == ["b", "c", "a"]
  assert splice(["a", "b"], "x", -3) == ["x", "a", "b"]
  assert splice(["a", "b", "c"], "c", 0) == ["c", "a", "b"]
  assert without(["a", "b"], "a") == ["b"]


@pytest.mark.anyio
async def test_is_permutation() -> None:
  assert is_permutation(["a", "b"], ["b", "a"])
  assert not is_permutation(["a", "b"], ["a", "a"])
  assert not is_permutation(["a", "b"], ["a"])
  assert not is_permutation(["a", "b"], ["a", "c"])


@pytest.mark.anyio
async def test_move_task_between_columns_maps_status(client: AsyncClient) -> None:
  headers = await login_admin(client)
  board = await create_board(client, headers)
  todo, doing, done = (c["id"] for c in board["columns"])
  a = await _task(client, headers, board["id"], todo, "a")
  b = await _task(client, headers, board["id"], todo, "b")
  c = await _task(client, headers, board["id"], doing, "c")

  res = await client.patch(
    f"/boards/{board['id']}/tasks/{a['id']}/move", json={"targetColumnId": doing, "targetPosition": 0}, headers=headers
  )
  assert res.status_code == 200, res.text
  moved = res.json()["data"]
  assert moved["columnId"] == doing and moved["position"] == 0
  assert moved["status"] == "in-progress"

  detail = await _detail(client, headers, board["id"])
  _assert_consistent(detail)
  cols = {col["id"]: col for col in detail["columns"]}
  assert cols[todo]["taskIds"] == [b["id"]]
  assert cols[doing]["taskIds"] == [a["id"], c["id"]]

  res = await client.patch(
    f"/boards/{board['id']}/tasks/{c['id']}/move", json={"targetColumnId": done, "targetPosition": 10}, headers=headers
  )
  assert res.json()["data"]["status"] == "completed"
  assert res.json()["data"]["position"] == 0
  _assert_consistent(await _detail(client, headers, board["id"]))


@pytest.mark.anyio
async def test_move_within_same_column(client: AsyncClient) -> None:
  headers = await login_admin(client)
  board = await create_board(client, headers)
  todo = board["columns"][0]["id"]
  ids = [(await _task(client, headers, board["id"], todo, t))["id"] for t in ("a", "b", "c")]

  res = await client.patch(
    f"/boards/{board['id']}/tasks/{ids[2]}/move",
    json={"sourceColumnId": todo, "targetColumnId": todo, "targetPosition": 0},
    headers=headers,
  )
  assert res.status_code == 200, res.text
  detail = await _detail(client, headers, board["id"])
  _assert_consistent(detail)
  assert detail["columns"][0]["taskIds"] == [ids[2], ids[0], ids[1]]


@pytest.mark.anyio
async def test_wip_limit_blocks_entering_moves_and_creates(client: AsyncClient) -> None:
  headers = await login_admin(client)
  board = await create_board(
    client, headers, columns=[{"title": "To Do"}, {"title": "In Progress", "wipLimit": 1}, {"title": "Done", "wipLimit": 0}]
  )
  todo, doing, done = (c["id"] for c in board["columns"])
  a = await _task(client, headers, board["id"], todo, "a")
  b = await _task(client, headers, board["id"], doing, "b")

  full = await client.post("/tasks", json={"title": "x", "boardId": board["id"], "columnId": doing}, headers=headers)
  assert full.status_code == 400
  assert full.json()["message"] == "Target column has reached WIP limit of 1"

  blocked = await client.patch(
    f"/boards/{board['id']}/tasks/{a['id']}/move", json={"targetColumnId": doing, "targetPosition": 0}, headers=headers
  )
  assert blocked.status_code == 400
  assert blocked.json()["message"] == "Target column has reached WIP limit of 1"

  # Reordering inside a full column is not an entering move.
  same = await client.patch(
    f"/boards/{board['id']}/tasks/{b['id']}/move", json={"targetColumnId": doing, "targetPosition": 0}, headers=headers
  )
  assert same.status_code == 200, same.text

  # A limit of 0 means unlimited.
  unlimited = await client.patch(
    f"/boards/{board['id']}/tasks/{a['id']}/move", json={"targetColumnId": done, "targetPosition": 0}, headers=headers
  )
  assert unlimited.status_code == 200, unlimited.text
  _assert_consistent(await _detail(client, headers, board["id"]))


@pytest.mark.anyio
async def test_wip_limit_uses_actual_column_not_claimed_source(client: AsyncClient) -> None:
  headers = await login_admin(client)
  board = await create_board(client, headers, columns=[{"title": "A"}, {"title": "B", "wipLimit": 1}])
  col_a, col_b = (c["id"] for c in board["columns"])
  a = await _task(client, headers, board["id"], col_a, "a")
  await _task(client, headers, board["id"], col_b, "b")

  res = await client.patch(
    f"/boards/{board['id']}/tasks/{a['id']}/move",
    json={"sourceColumnId": col_b, "targetColumnId": col_b, "targetPosition": 0},
    headers=headers,
  )
  assert res.status_code == 400
  assert res.json()["message"] == "Target column has reached WIP limit of 1"

  detail = await _detail(client, headers, board["id"])
  _assert_consistent(detail)
  assert len({col["id"]: col["taskIds"] for col in detail["columns"]}[col_b]) == 1


@pytest.mark.anyio
async def test_move_unknown_column_or_task(client: AsyncClient) -> None:
  headers = await login_admin(client)
  board = await create_board(client, headers)
  todo = board["columns"][0]["id"]
  a = await _task(client, headers, board["id"], todo, "a")

  res = await client.patch(f"/boards/{board['id']}/tasks/{a['id']}/move", json={"targetColumnId": "nope"}, headers=headers)
  assert res.status_code == 404
  res = await client.patch(f"/boards/{board['id']}/tasks/nope/move", json={"targetColumnId": todo}, headers=headers)
  assert res.status_code == 404


@pytest.mark.anyio
async def test_non_member_cannot_move(client: AsyncClient) -> None:
  admin = await login_admin(client)
  member = await login_member(client)
  board = await create_board(client, admin, visibility="public")
  todo, doing, _ = (c["id"] for c in board["columns"])
  a = await _task(client, admin, board["id"], todo, "a")

  res = await client.patch(f"/boards/{board['id']}/tasks/{a['id']}/move", json={"targetColumnId": doing}, headers=member)
  assert res.status_code == 403

  await client.post(f"/boards/{board['id']}/members", json={"userId": await user_id(MEMBER_EMAIL), "role": "member"}, headers=admin)
  res = await client.patch(f"/boards/{board['id']}/tasks/{a['id']}/move", json={"targetColumnId": doing}, headers=member)
  assert res.status_code == 403

  await client.patch(f"/boards/{board['id']}/members/{await user_id(MEMBER_EMAIL)}", json={"role": "admin"}, headers=admin)
  res = await client.patch(f"/boards/{board['id']}/tasks/{a['id']}/move", json={"targetColumnId": doing}, headers=member)
  assert res.status_code == 200, res.text


@pytest.mark.anyio
async def test_move_task_to_another_board(client: AsyncClient) -> None:
  headers = await login_admin(client)
  src = await create_board(client, headers, title="Source")
  dst = await create_board(client, headers, title="Target")
  a = await _task(client, headers, src["id"], src["columns"][0]["id"], "a")
  target_col = dst["columns"][1]["id"]

  res = await client.post(
    f"/boards/{dst['id']}/move-task", json={"taskId": a["id"], "targetColumnId": target_col, "position": 0}, headers=headers
  )
  assert res.status_code == 200, res.text
  assert res.json()["data"]["boardId"] == dst["id"]
  assert res.json()["data"]["columnId"] == target_col

  src_detail = await _detail(client, headers, src["id"])
  assert all(col["taskIds"] == [] for col in src_detail["columns"])
  assert src_detail["stats"]["totalTasks"] == 0
  dst_detail = await _detail(client, headers, dst["id"])
  _assert_consistent(dst_detail)
  assert dst_detail["stats"]["totalTasks"] == 1


@pytest.mark.anyio
async def test_bulk_move(client: AsyncClient) -> None:
  headers = await login_admin(client)
  board = await create_board(client, headers)
  todo, doing, done = (c["id"] for c in board["columns"])
  a = await _task(client, headers, board["id"], todo, "a")
  b = await _task(client, headers, board["id"], todo, "b")
  c = await _task(client, headers, board["id"], doing, "c")

  res = await client.patch(
    f"/boards/{board['id']}/bulk-move",
    json={
      "moves": [
        {"taskId": a["id"], "targetColumnId": done, "targetPosition": 0},
        {"taskId": b["id"], "targetColumnId": done, "targetPosition": 0},
        {"taskId": c["id"], "targetColumnId": todo, "targetPosition": 0},
      ]
    },
    headers=headers,
  )
  assert res.status_code == 200, res.text
  data = res.json()["data"]
  assert [t["id"] for t in data["tasks"]] == [a["id"], b["id"], c["id"]]
  # No status mapping on bulk moves.
  assert {t["status"] for t in data["tasks"]} == {"pending"}

  detail = await _detail(client, headers, board["id"])
  _assert_consistent(detail)
  cols = {col["id"]: col for col in detail["columns"]}
  assert cols[done]["taskIds"] == [b["id"], a["id"]]
  assert cols[todo]["taskIds"] == [c["id"]]
  assert cols[doing]["taskIds"] == []


@pytest.mark.anyio
async def test_bulk_move_rejects_foreign_tasks_and_wip(client: AsyncClient) -> None:
  headers = await login_admin(client)
  board = await create_board(client, headers, columns=[{"title": "A"}, {"title": "B", "wipLimit": 1}])
  col_a, col_b = (c["id"] for c in board["columns"])
  a = await _task(client, headers, board["id"], col_a, "a")
  b = await _task(client, headers, board["id"], col_a, "b")

  missing = await client.patch(
    f"/boards/{board['id']}/bulk-move", json={"moves": [{"taskId": "nope", "targetColumnId": col_b}]}, headers=headers
  )
  assert missing.status_code == 404
  assert missing.json()["message"] == "Some tasks not found or not on this board"

  over = await client.patch(
    f"/boards/{board['id']}/bulk-move",
    json={"moves": [{"taskId": a["id"], "targetColumnId": col_b}, {"taskId": b["id"], "targetColumnId": col_b}]},
    headers=headers,
  )
  assert over.status_code == 400
  assert over.json()["message"] == 'Column "B" has reached WIP limit'

  # The failed batch is rolled back as a whole.
  detail = await _detail(client, headers, board["id"])
  _assert_consistent(detail)
  assert {col["id"]: col["taskIds"] for col in detail["columns"]}[col_b] == []

  await _task(client, headers, board["id"], col_b, "c")
  claimed = await client.patch(
    f"/boards/{board['id']}/bulk-move",
    json={"moves": [{"taskId": a["id"], "sourceColumnId": col_b, "targetColumnId": col_b}]},
    headers=headers,
  )
  assert claimed.status_code == 400
  assert claimed.json()["message"] == 'Column "B" has reached WIP limit'


@pytest.mark.anyio
async def test_reorder_tasks_in_column(client: AsyncClient) -> None:
  headers = await login_admin(client)
  board = await create_board(client, headers)
  todo = board["columns"][0]["id"]
  ids = [(await _task(client, headers, board["id"], todo, t))["id"] for t in ("a", "b", "c")]

  bad = await client.patch(
    f"/boards/{board['id']}/columns/{todo}/reorder-tasks", json={"taskOrder": [ids[0], ids[0], ids[1]]}, headers=headers
  )
  assert bad.status_code == 400
  assert bad.json()["message"] == "Invalid task order provided"

  res = await client.patch(
    f"/boards/{board['id']}/columns/{todo}/reorder-tasks", json={"taskOrder": list(reversed(ids))}, headers=headers
  )
  assert res.status_code == 200, res.text
  assert res.json()["data"]["taskIds"] == list(reversed(ids))
  _assert_consistent(await _detail(client, headers, board["id"]))
