"""
Recurring task generation.

A recurring task is the first occurrence of a series. ``next_occurrence_at``
holds the due date of the next instance; the background pass creates that
instance once it falls within ``recurring_lead_hours`` and advances the
pointer. Instances are ordinary tasks linked back through ``parent_task_id``.
"""

from __future__ import annotations

import calendar
import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.activity import write_activity
from taskboard.boards.placement import renumber, wip_exceeded
from taskboard.boards.service import list_columns, refresh_board_stats
from taskboard.config import settings
from taskboard.models import Subtask, Task, as_utc

logger = logging.getLogger(__name__)


def _add_months(dt: datetime, months: int, day: int | None = None) -> datetime:
  y, mo = divmod(dt.month - 1 + months, 12)
  year = dt.year + y
  month = mo + 1
  last = calendar.monthrange(year, month)[1]
  return dt.replace(year=year, month=month, day=min(day or dt.day, last))


def _end_date(recurrence: dict[str, Any]) -> datetime | None:
  raw = recurrence.get("endDate")
  if not raw:
    return None
  dt = raw if isinstance(raw, datetime) else datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
  return as_utc(dt)


def next_due_date(recurrence: dict[str, Any] | None, current: datetime | None) -> datetime | None:
  """Due date following ``current``, or None once the series has ended."""
  if not recurrence or not current:
    return None
  current = as_utc(current)
  interval = int(recurrence.get("interval") or 1)
  frequency = recurrence.get("frequency")
  if frequency == "daily":
    nxt = current + timedelta(days=interval)
  elif frequency == "weekly":
    nxt = current + timedelta(weeks=interval)
  elif frequency == "monthly":
    nxt = _add_months(current, interval, recurrence.get("dayOfMonth"))
  elif frequency == "yearly":
    nxt = _add_months(current, 12 * interval)
  else:
    return None
  end = _end_date(recurrence)
  if end is not None and nxt > end:
    return None
  return nxt


def arm_recurrence(t: Task, recurrence: dict[str, Any] | None) -> None:
  """Attach (or clear) a recurrence on a task and point it at its next occurrence."""
  if not recurrence:
    t.is_recurring = False
    t.recurrence = None
    t.next_occurrence_at = None
    return
  t.is_recurring = True
  t.recurrence = recurrence
  t.next_occurrence_at = next_due_date(recurrence, t.due_date)


def _series_finished(parent: Task) -> bool:
  limit = (parent.recurrence or {}).get("maxOccurrences")
  return bool(limit) and (parent.occurrence_count or 0) >= int(limit)


async def _spawn_instance(db: AsyncSession, parent: Task, due: datetime) -> Task | None:
  column = None
  if parent.board_id:
    columns = await list_columns(db, parent.board_id)
    column = columns[0] if columns else None
    if column is not None and wip_exceeded(column, entering=True):
      logger.warning("recurring task %s deferred: column %s is at its WIP limit", parent.id, column.id)
      return None

  instance = Task(
    title=parent.title,
    description=parent.description,
    status="pending",
    priority=parent.priority,
    due_date=due,
    assigned_to_id=parent.assigned_to_id,
    created_by_id=parent.created_by_id,
    board_id=parent.board_id,
    labels=list(parent.labels or []),
    attachments=list(parent.attachments or []),
    parent_task_id=parent.id,
  )
  db.add(instance)
  await db.flush()

  sres = await db.execute(select(Subtask).where(Subtask.task_id == parent.id).order_by(Subtask.position.asc()))
  for s in sres.scalars().all():
    db.add(Subtask(task_id=instance.id, title=s.title, status="pending", position=s.position))

  if column is not None:
    column.task_ids = [*(column.task_ids or []), instance.id]
    await renumber(db, [column])
  await write_activity(
    db,
    action="recurring_task_generated",
    board_id=instance.board_id,
    task_id=instance.id,
    actor_id=parent.created_by_id,
    details={"parentTask": parent.id, "occurrence": (parent.occurrence_count or 0) + 1},
  )
  return instance


async def generate_recurring_tasks_once(db: AsyncSession, *, now: datetime | None = None, limit: int = 100) -> int:
  now = now or datetime.now(timezone.utc)
  horizon = now + timedelta(hours=settings.recurring_lead_hours)
  res = await db.execute(
    select(Task)
    .where(
      Task.is_deleted.is_(False),
      Task.is_recurring.is_(True),
      Task.next_occurrence_at.is_not(None),
      Task.next_occurrence_at <= horizon,
    )
    .order_by(Task.next_occurrence_at.asc())
    .limit(int(limit))
  )
  created = 0
  boards: set[str] = set()
  for parent in res.scalars().all():
    if _series_finished(parent):
      parent.next_occurrence_at = None
      continue
    due = as_utc(parent.next_occurrence_at)
    instance = await _spawn_instance(db, parent, due)
    if instance is None:
      continue
    created += 1
    if instance.board_id:
      boards.add(instance.board_id)
    parent.occurrence_count = (parent.occurrence_count or 0) + 1
    parent.next_occurrence_at = None if _series_finished(parent) else next_due_date(parent.recurrence, due)

  for board_id in boards:
    await refresh_board_stats(db, board_id)
  await db.commit()
  if created:
    logger.info("recurring task instances created: %d", created)
  return created
