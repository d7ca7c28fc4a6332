"""
Task placement inside board columns.

A column's ``task_ids`` list is the authoritative order. Every task referenced
by a column carries the same ``column_id`` and a ``position`` equal to its
index in that list; all writers here splice the list first and then rewrite
positions for every touched column in one pass.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.activity import write_activity
from taskboard.boards.service import (
  MANAGER_ROLES,
  can_view,
  column_out,
  get_board_or_404,
  get_column_or_404,
  get_membership,
  list_columns,
  refresh_board_stats,
  task_out,
)
from taskboard.errors import ForbiddenError, NotFoundError, ValidationError
from taskboard.models import Board, BoardColumn, BoardMember, Task, User, utcnow
from taskboard.schemas import BulkMoveIn, ColumnOut, MoveTaskIn, TaskMoveIn, TaskOrderIn, TaskOut

STATUS_BY_COLUMN_TITLE = {
  "To Do": "pending",
  "In Progress": "in-progress",
  "Done": "completed",
  "Completed": "completed",
}


def splice(ids: list[str], task_id: str, index: int) -> list[str]:
  """Return a new list with task_id moved to index (clamped to the list bounds)."""
  out = [i for i in ids if i != task_id]
  idx = max(0, min(int(index), len(out)))
  out.insert(idx, task_id)
  return out


def without(ids: list[str], task_id: str) -> list[str]:
  return [i for i in ids if i != task_id]


def is_permutation(current: list[str], proposed: list[str]) -> bool:
  if len(current) != len(proposed) or len(set(proposed)) != len(proposed):
    return False
  return set(current) == set(proposed)


def wip_exceeded(column: BoardColumn, *, entering: bool) -> bool:
  # A limit of 0 or None means unlimited.
  if not entering or not column.wip_limit:
    return False
  return len(column.task_ids or []) >= column.wip_limit


async def renumber(db: AsyncSession, columns: list[BoardColumn]) -> None:
  ids = [tid for c in columns for tid in (c.task_ids or [])]
  if not ids:
    return
  res = await db.execute(select(Task).where(Task.id.in_(ids)))
  by_id = {t.id: t for t in res.scalars().all()}
  for c in columns:
    for idx, tid in enumerate(c.task_ids or []):
      t = by_id.get(tid)
      if t is not None:
        t.column_id = c.id
        t.position = idx


async def _require_member(db: AsyncSession, board_id: str, user: User) -> tuple[Board, BoardMember | None]:
  b = await get_board_or_404(db, board_id)
  m = await get_membership(db, board_id, user.id)
  if b.owner_id != user.id and m is None:
    raise ForbiddenError("Access denied")
  return b, m


def _can_move(board: Board, membership: BoardMember | None, task: Task, user: User) -> bool:
  if task.created_by_id == user.id or board.owner_id == user.id:
    return True
  return membership is not None and membership.role in MANAGER_ROLES


async def _board_task_or_404(db: AsyncSession, board_id: str, task_id: str) -> Task:
  res = await db.execute(select(Task).where(Task.id == task_id, Task.board_id == board_id, Task.is_deleted.is_(False)))
  t = res.scalar_one_or_none()
  if not t:
    raise NotFoundError("Task not found")
  return t


async def move_task(db: AsyncSession, board_id: str, task_id: str, payload: TaskMoveIn, user: User) -> TaskOut:
  try:
    b, m = await _require_member(db, board_id, user)
    columns = {c.id: c for c in await list_columns(db, board_id)}
    target = columns.get(payload.targetColumnId)
    source_id = payload.sourceColumnId
    if not target or (source_id and source_id not in columns):
      raise NotFoundError("Column not found")

    t = await _board_task_or_404(db, board_id, task_id)
    if not _can_move(b, m, t, user):
      raise ForbiddenError("Access denied")

    source_id = source_id or t.column_id
    if wip_exceeded(target, entering=t.id not in (target.task_ids or [])):
      raise ValidationError(f"Target column has reached WIP limit of {target.wip_limit}")

    touched: dict[str, BoardColumn] = {target.id: target}
    for cid in {source_id, t.column_id}:
      if cid and cid != target.id and cid in columns:
        columns[cid].task_ids = without(columns[cid].task_ids or [], t.id)
        touched[cid] = columns[cid]
    from_title = columns[source_id].title if source_id in columns else None
    target.task_ids = splice(target.task_ids or [], t.id, payload.targetPosition)
    await renumber(db, list(touched.values()))

    new_status = STATUS_BY_COLUMN_TITLE.get(target.title)
    if new_status:
      t.status = new_status
    b.last_activity_at = utcnow()
    await write_activity(
      db,
      action="task_moved",
      board_id=board_id,
      task_id=t.id,
      actor_id=user.id,
      details={"taskTitle": t.title, "fromColumn": from_title, "toColumn": target.title, "position": t.position},
    )
    await refresh_board_stats(db, board_id)
    await db.commit()
  except Exception:
    await db.rollback()
    raise
  return task_out(t)


async def move_task_to_board(db: AsyncSession, board_id: str, payload: MoveTaskIn, user: User) -> TaskOut:
  """Place any task (possibly from another board, or none) into a column of this board."""
  try:
    b = await get_board_or_404(db, board_id)
    m = await get_membership(db, board_id, user.id)
    if not can_view(b, user.id, m):
      raise ForbiddenError("Access denied")
    target = await get_column_or_404(db, board_id, payload.targetColumnId)

    res = await db.execute(select(Task).where(Task.id == payload.taskId, Task.is_deleted.is_(False)))
    t = res.scalar_one_or_none()
    if not t:
      raise NotFoundError("Task not found")
    if not _can_move(b, m, t, user):
      raise ForbiddenError("Access denied")
    if wip_exceeded(target, entering=t.id not in (target.task_ids or [])):
      raise ValidationError(f"Target column has reached WIP limit of {target.wip_limit}")

    old_board_id = t.board_id
    touched = [target]
    if t.column_id and t.column_id != target.id:
      ores = await db.execute(select(BoardColumn).where(BoardColumn.id == t.column_id))
      old = ores.scalar_one_or_none()
      if old is not None:
        old.task_ids = without(old.task_ids or [], t.id)
        touched.append(old)

    target.task_ids = splice(target.task_ids or [], t.id, payload.position)
    t.board_id = board_id
    await renumber(db, touched)
    b.last_activity_at = utcnow()
    await write_activity(
      db,
      action="task_moved",
      board_id=board_id,
      task_id=t.id,
      actor_id=user.id,
      details={"fromBoardId": old_board_id, "toColumn": target.title, "position": t.position},
    )
    await refresh_board_stats(db, board_id)
    if old_board_id and old_board_id != board_id:
      await refresh_board_stats(db, old_board_id)
    await db.commit()
  except Exception:
    await db.rollback()
    raise
  return task_out(t)


async def bulk_move_tasks(db: AsyncSession, board_id: str, payload: BulkMoveIn, user: User) -> dict[str, Any]:
  try:
    b, m = await _require_member(db, board_id, user)
    ids = [mv.taskId for mv in payload.moves]
    res = await db.execute(select(Task).where(Task.id.in_(ids), Task.board_id == board_id, Task.is_deleted.is_(False)))
    tasks = {t.id: t for t in res.scalars().all()}
    if len(tasks) != len(ids):
      raise NotFoundError("Some tasks not found or not on this board")
    for t in tasks.values():
      if not _can_move(b, m, t, user):
        raise ForbiddenError("Access denied for one or more tasks")

    columns = {c.id: c for c in await list_columns(db, board_id)}
    touched: dict[str, BoardColumn] = {}
    for mv in payload.moves:
      t = tasks[mv.taskId]
      source_id = mv.sourceColumnId or t.column_id
      target = columns.get(mv.targetColumnId)
      if target is None or (mv.sourceColumnId and mv.sourceColumnId not in columns):
        continue
      if wip_exceeded(target, entering=t.id not in (target.task_ids or [])):
        raise ValidationError(f'Column "{target.title}" has reached WIP limit')
      for cid in {source_id, t.column_id}:
        if cid and cid != target.id and cid in columns:
          columns[cid].task_ids = without(columns[cid].task_ids or [], t.id)
          touched[cid] = columns[cid]
      target.task_ids = splice(target.task_ids or [], t.id, mv.targetPosition)
      # Keep the in-memory column_id current so later moves of the same task see it.
      t.column_id = target.id
      touched[target.id] = target

    await renumber(db, list(touched.values()))
    b.last_activity_at = utcnow()
    await write_activity(db, action="tasks_bulk_moved", board_id=board_id, actor_id=user.id, details={"count": len(payload.moves)})
    await db.commit()
  except Exception:
    await db.rollback()
    raise
  return {
    "tasks": [task_out(tasks[i]) for i in dict.fromkeys(ids)],
    "columns": [column_out(c) for c in sorted(touched.values(), key=lambda c: c.position)],
  }


async def reorder_tasks_in_column(
  db: AsyncSession, board_id: str, column_id: str, payload: TaskOrderIn, user: User
) -> ColumnOut:
  b, _ = await _require_member(db, board_id, user)
  column = await get_column_or_404(db, board_id, column_id)
  if not is_permutation(list(column.task_ids or []), payload.taskOrder):
    raise ValidationError("Invalid task order provided")
  column.task_ids = list(payload.taskOrder)
  await renumber(db, [column])
  b.last_activity_at = utcnow()
  await db.commit()
  return column_out(column)
