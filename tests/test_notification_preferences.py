from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from conftest import ADMIN_EMAIL, MEMBER_EMAIL, create_board, login_admin, login_member, outbox, user_id
from taskboard.db import SessionLocal
from taskboard.models import Task
from taskboard.notifications.events import dispatch_due_notifications_once


@pytest.mark.anyio
async def test_notification_preferences_roundtrip(client: AsyncClient) -> None:
  member = await login_member(client)

  res = await client.get("/notifications/preferences", headers=member)
  assert res.status_code == 200, res.text
  assert res.json()["data"] == {
    "emailEnabled": True,
    "assignments": True,
    "completions": True,
    "dueSoon": True,
    "overdue": True,
    "invitations": True,
  }

  res = await client.patch("/notifications/preferences", json={"assignments": False, "dueSoon": False}, headers=member)
  assert res.status_code == 200, res.text
  data = res.json()["data"]
  assert data["assignments"] is False and data["dueSoon"] is False
  assert data["overdue"] is True

  again = await client.get("/notifications/preferences", headers=member)
  assert again.json()["data"]["assignments"] is False

  bad = await client.patch("/notifications/preferences", json={"assignments": "sometimes"}, headers=member)
  assert bad.status_code == 400

  assert (await client.get("/notifications/preferences")).status_code == 401


@pytest.mark.anyio
async def test_assignment_email_respects_preference(client: AsyncClient) -> None:
  admin = await login_admin(client)
  member = await login_member(client)
  mid = await user_id(MEMBER_EMAIL)
  await client.patch("/notifications/preferences", json={"assignments": False}, headers=member)

  res = await client.post("/tasks", json={"title": "Quiet", "assignedTo": mid}, headers=admin)
  assert res.status_code == 201, res.text
  assert outbox() == []

  await client.patch("/notifications/preferences", json={"assignments": True}, headers=member)
  await client.post("/tasks", json={"title": "Loud", "assignedTo": mid}, headers=admin)
  assert [m.subject for m in outbox()] == ["New task assigned: Loud"]


@pytest.mark.anyio
async def test_email_master_switch_blocks_completion_and_invitation(client: AsyncClient) -> None:
  admin = await login_admin(client)
  member = await login_member(client)
  mid = await user_id(MEMBER_EMAIL)
  await client.patch("/notifications/preferences", json={"emailEnabled": False}, headers=admin)
  await client.patch("/notifications/preferences", json={"invitations": False}, headers=member)

  task = (await client.post("/tasks", json={"title": "Done soon", "assignedTo": mid}, headers=admin)).json()["data"]
  email_count = len(outbox())
  res = await client.patch(f"/tasks/{task['id']}/status", json={"status": "completed"}, headers=member)
  assert res.status_code == 200, res.text
  assert all(m.to != ADMIN_EMAIL for m in outbox())
  assert len(outbox()) == email_count

  board = await create_board(client, admin)
  res = await client.post(f"/boards/{board['id']}/invite", json={"userId": mid}, headers=admin)
  assert res.status_code == 201, res.text
  assert len(outbox()) == email_count


@pytest.mark.anyio
async def test_due_notifications_respect_preferences_but_still_stamp(client: AsyncClient) -> None:
  member = await login_member(client)
  await client.patch("/notifications/preferences", json={"overdue": False}, headers=member)
  now = datetime.now(timezone.utc)
  late = (await client.post(
    "/tasks", json={"title": "Late", "dueDate": (now - timedelta(hours=1)).isoformat()}, headers=member
  )).json()["data"]

  async with SessionLocal() as db:
    assert await dispatch_due_notifications_once(db, now=now) == 0
  assert outbox() == []

  async with SessionLocal() as db:
    t = (await db.execute(select(Task).where(Task.id == late["id"]))).scalar_one()
  assert t.status == "overdue"
  assert t.overdue_notified_at is not None
