from __future__ import annotations

import pytest
from httpx import AsyncClient

from conftest import MEMBER_EMAIL, MEMBER_PASSWORD, login_admin, login_member, user_id


@pytest.mark.anyio
async def test_users_routes_require_admin(client: AsyncClient) -> None:
  headers = await login_member(client)
  res = await client.get("/users", headers=headers)
  assert res.status_code == 403
  assert res.json()["message"] == "Forbidden: insufficient role"


@pytest.mark.anyio
async def test_admin_lists_users_with_pagination(client: AsyncClient) -> None:
  headers = await login_admin(client)
  res = await client.get("/users", params={"page": 1, "limit": 1}, headers=headers)
  assert res.status_code == 200, res.text
  body = res.json()
  assert len(body["data"]) == 1
  assert body["pagination"] == {
    "page": 1,
    "limit": 1,
    "total": 2,
    "totalPages": 2,
    "hasNextPage": True,
    "hasPrevPage": False,
  }


@pytest.mark.anyio
async def test_limit_above_100_is_rejected(client: AsyncClient) -> None:
  headers = await login_admin(client)
  res = await client.get("/users", params={"limit": 500}, headers=headers)
  assert res.status_code == 400
  assert res.json()["message"] == "Validation error"


@pytest.mark.anyio
async def test_admin_create_search_update_and_stats(client: AsyncClient) -> None:
  headers = await login_admin(client)
  created = await client.post(
    "/users", json={"name": "Grace Hopper", "email": "grace@example.com", "password": "secret123", "role": "admin"}, headers=headers
  )
  assert created.status_code == 201, created.text
  grace = created.json()["data"]
  assert grace["role"] == "admin"

  dup = await client.post("/users", json={"name": "G", "email": "grace@example.com", "password": "secret123"}, headers=headers)
  assert dup.status_code == 400

  found = await client.get("/users/search", params={"q": "hopper"}, headers=headers)
  assert found.status_code == 200, found.text
  assert [u["id"] for u in found.json()["data"]] == [grace["id"]]

  upd = await client.put(f"/users/{grace['id']}", json={"name": "Grace B. Hopper", "isActive": False}, headers=headers)
  assert upd.status_code == 200, upd.text
  assert upd.json()["data"]["active"] is False

  stats = await client.get("/users/stats", headers=headers)
  assert stats.status_code == 200, stats.text
  data = stats.json()["data"]
  assert data["totalUsers"] == 3
  assert data["activeUsers"] == 2
  assert data["adminUsers"] == 2
  assert data["newUsersThisMonth"] == 3


@pytest.mark.anyio
async def test_soft_delete_blocks_login_and_revokes_refresh(client: AsyncClient) -> None:
  member_login = await client.post("/auth/login", json={"email": MEMBER_EMAIL, "password": MEMBER_PASSWORD})
  refresh = member_login.json()["data"]["refreshToken"]
  access = member_login.json()["data"]["token"]

  headers = await login_admin(client)
  mid = await user_id(MEMBER_EMAIL)
  res = await client.delete(f"/users/{mid}", headers=headers)
  assert res.status_code == 200, res.text

  assert (await client.get(f"/users/{mid}", headers=headers)).status_code == 404
  assert (await client.post("/auth/login", json={"email": MEMBER_EMAIL, "password": MEMBER_PASSWORD})).status_code == 401
  assert (await client.post("/auth/refresh", json={"refreshToken": refresh})).status_code == 401
  assert (await client.get("/auth/profile", headers={"Authorization": f"Bearer {access}"})).status_code == 401


@pytest.mark.anyio
async def test_admin_cannot_delete_self(client: AsyncClient) -> None:
  headers = await login_admin(client)
  me = (await client.get("/auth/profile", headers=headers)).json()["data"]
  res = await client.delete(f"/users/{me['id']}", headers=headers)
  assert res.status_code == 400
