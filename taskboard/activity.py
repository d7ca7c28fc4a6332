from __future__ import annotations

from typing import Any

from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.models import Activity


async def write_activity(
  db: AsyncSession,
  *,
  action: str,
  board_id: str | None = None,
  task_id: str | None = None,
  actor_id: str | None = None,
  details: dict[str, Any] | None = None,
) -> Activity:
  ev = Activity(
    board_id=board_id,
    task_id=task_id,
    actor_id=actor_id,
    action=action,
    details=jsonable_encoder(details or {}),
  )
  db.add(ev)
  return ev
