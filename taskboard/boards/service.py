from __future__ import annotations

import calendar
import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.activity import write_activity
from taskboard.errors import ForbiddenError, NotFoundError, ValidationError
from taskboard.models import (
  DEFAULT_BOARD_SETTINGS,
  Activity,
  Board,
  BoardColumn,
  BoardInvitation,
  BoardMember,
  Comment,
  Subtask,
  Task,
  User,
  as_utc,
  utcnow,
)
from taskboard.schemas import (
  BoardCreateIn,
  BoardDetailOut,
  BoardDuplicateIn,
  BoardOut,
  BoardStatsOut,
  BoardUpdateIn,
  ColumnIn,
  ColumnOut,
  ColumnReorderIn,
  ColumnUpdateIn,
  MemberOut,
  TaskOut,
)

logger = logging.getLogger(__name__)

MANAGER_ROLES = ("owner", "admin")
DEFAULT_COLUMNS = ("To Do", "In Progress", "Done")
BOARD_SORT_FIELDS = {
  "title": Board.title,
  "createdAt": Board.created_at,
  "updatedAt": Board.updated_at,
  "lastActivity": Board.last_activity_at,
}


# --- access ---


async def get_board_or_404(db: AsyncSession, board_id: str) -> Board:
  res = await db.execute(select(Board).where(Board.id == board_id))
  b = res.scalar_one_or_none()
  if not b:
    raise NotFoundError("Board not found")
  return b


async def get_membership(db: AsyncSession, board_id: str, user_id: str) -> BoardMember | None:
  res = await db.execute(select(BoardMember).where(BoardMember.board_id == board_id, BoardMember.user_id == user_id))
  return res.scalar_one_or_none()


def can_view(board: Board, user_id: str, membership: BoardMember | None) -> bool:
  if board.visibility == "public":
    return True
  if board.visibility == "team" and bool((board.settings or {}).get("allowGuestView")):
    return True
  return board.owner_id == user_id or membership is not None


def can_edit(board: Board, user_id: str, membership: BoardMember | None) -> bool:
  if board.owner_id == user_id:
    return True
  return membership is not None and membership.role in MANAGER_ROLES


async def require_view(db: AsyncSession, board_id: str, user: User) -> tuple[Board, BoardMember | None]:
  b = await get_board_or_404(db, board_id)
  m = await get_membership(db, board_id, user.id)
  if not can_view(b, user.id, m):
    raise ForbiddenError("Access denied")
  return b, m


async def require_edit(db: AsyncSession, board_id: str, user: User) -> tuple[Board, BoardMember | None]:
  b = await get_board_or_404(db, board_id)
  m = await get_membership(db, board_id, user.id)
  if not can_edit(b, user.id, m):
    raise ForbiddenError("Access denied")
  return b, m


# --- loading / output ---


async def list_columns(db: AsyncSession, board_id: str) -> list[BoardColumn]:
  res = await db.execute(
    select(BoardColumn).where(BoardColumn.board_id == board_id).order_by(BoardColumn.position.asc(), BoardColumn.created_at.asc())
  )
  return list(res.scalars().all())


async def get_column_or_404(db: AsyncSession, board_id: str, column_id: str) -> BoardColumn:
  res = await db.execute(select(BoardColumn).where(BoardColumn.id == column_id, BoardColumn.board_id == board_id))
  c = res.scalar_one_or_none()
  if not c:
    raise NotFoundError("Column not found")
  return c


def column_out(c: BoardColumn) -> ColumnOut:
  return ColumnOut(
    id=c.id,
    title=c.title,
    position=c.position,
    color=c.color,
    wipLimit=c.wip_limit,
    isCollapsed=c.is_collapsed,
    taskIds=list(c.task_ids or []),
  )


def member_out(m: BoardMember) -> MemberOut:
  return MemberOut(userId=m.user_id, role=m.role, addedAt=as_utc(m.added_at), addedBy=m.added_by_id)


def task_out(t: Task) -> TaskOut:
  return TaskOut(
    id=t.id,
    title=t.title,
    description=t.description or "",
    status=t.status,
    priority=t.priority,
    dueDate=as_utc(t.due_date),
    assignedTo=t.assigned_to_id,
    createdBy=t.created_by_id,
    boardId=t.board_id,
    columnId=t.column_id,
    position=t.position,
    labels=list(t.labels or []),
    attachments=list(t.attachments or []),
    isRecurring=bool(t.is_recurring),
    recurrence=t.recurrence,
    nextOccurrence=as_utc(t.next_occurrence_at),
    occurrenceCount=t.occurrence_count or 0,
    parentTask=t.parent_task_id,
    createdAt=as_utc(t.created_at),
    updatedAt=as_utc(t.updated_at),
  )


def _board_out(b: Board, columns: list[BoardColumn], members: list[BoardMember]) -> BoardOut:
  return BoardOut(
    id=b.id,
    title=b.title,
    description=b.description or "",
    owner=b.owner_id,
    visibility=b.visibility,
    settings={**DEFAULT_BOARD_SETTINGS, **(b.settings or {})},
    tags=list(b.tags or []),
    backgroundColor=b.background_color,
    isArchived=b.is_archived,
    archivedAt=as_utc(b.archived_at),
    archivedBy=b.archived_by_id,
    stats=BoardStatsOut(
      totalTasks=b.total_tasks,
      completedTasks=b.completed_tasks,
      activeTasks=b.active_tasks,
      lastActivity=as_utc(b.last_activity_at),
    ),
    columns=[column_out(c) for c in columns],
    members=[member_out(m) for m in members],
    createdAt=as_utc(b.created_at),
    updatedAt=as_utc(b.updated_at),
  )


async def boards_out(db: AsyncSession, boards: list[Board]) -> list[BoardOut]:
  if not boards:
    return []
  ids = [b.id for b in boards]
  cres = await db.execute(
    select(BoardColumn).where(BoardColumn.board_id.in_(ids)).order_by(BoardColumn.position.asc(), BoardColumn.created_at.asc())
  )
  mres = await db.execute(select(BoardMember).where(BoardMember.board_id.in_(ids)).order_by(BoardMember.added_at.asc()))
  cols: dict[str, list[BoardColumn]] = {i: [] for i in ids}
  mems: dict[str, list[BoardMember]] = {i: [] for i in ids}
  for c in cres.scalars().all():
    cols[c.board_id].append(c)
  for m in mres.scalars().all():
    mems[m.board_id].append(m)
  return [_board_out(b, cols[b.id], mems[b.id]) for b in boards]


async def board_out(db: AsyncSession, board: Board) -> BoardOut:
  return (await boards_out(db, [board]))[0]


async def refresh_board_stats(db: AsyncSession, board_id: str | None) -> None:
  if not board_id:
    return
  await db.flush()
  res = await db.execute(
    select(Task.status, func.count()).where(Task.board_id == board_id, Task.is_deleted.is_(False)).group_by(Task.status)
  )
  counts = {status: n for status, n in res.all()}
  b = (await db.execute(select(Board).where(Board.id == board_id))).scalar_one_or_none()
  if not b:
    return
  b.total_tasks = sum(counts.values())
  b.completed_tasks = counts.get("completed", 0)
  b.active_tasks = b.total_tasks - b.completed_tasks
  b.last_activity_at = utcnow()


# --- boards ---


def merged_settings(current: dict[str, Any] | None, patch: Any) -> dict[str, Any]:
  merged = {**DEFAULT_BOARD_SETTINGS, **(current or {})}
  if patch is not None:
    merged.update(patch.model_dump(exclude_none=True))
  return merged


async def create_board(db: AsyncSession, payload: BoardCreateIn, user: User) -> BoardOut:
  try:
    b = Board(
      title=payload.title.strip(),
      description=payload.description,
      owner_id=user.id,
      visibility=payload.visibility,
      settings=merged_settings(None, payload.settings),
      tags=[t.strip() for t in payload.tags if t.strip()],
      background_color=payload.backgroundColor,
    )
    db.add(b)
    await db.flush()

    specs = payload.columns or [ColumnIn(title=t) for t in DEFAULT_COLUMNS]
    ordered = sorted(enumerate(specs), key=lambda p: (p[1].position if p[1].position is not None else p[0], p[0]))
    for idx, (_, spec) in enumerate(ordered):
      db.add(
        BoardColumn(
          board_id=b.id,
          title=spec.title.strip(),
          position=idx,
          color=spec.color,
          wip_limit=spec.wipLimit,
          is_collapsed=spec.isCollapsed,
          task_ids=[],
        )
      )
    db.add(BoardMember(board_id=b.id, user_id=user.id, role="owner", added_by_id=user.id))
    await write_activity(db, action="board_created", board_id=b.id, actor_id=user.id, details={"title": b.title})
    await db.commit()
  except Exception:
    await db.rollback()
    raise
  return await board_out(db, b)


def _matches_search(b: Board, needle: str) -> bool:
  n = needle.lower()
  if n in (b.title or "").lower() or n in (b.description or "").lower():
    return True
  return any(n in (t or "").lower() for t in (b.tags or []))


def _has_any_tag(b: Board, tags: list[str]) -> bool:
  return bool(set(b.tags or []) & set(tags))


async def list_boards(
  db: AsyncSession,
  user: User,
  *,
  page: int = 1,
  limit: int = 20,
  visibility: str | None = None,
  include_archived: bool = False,
  tags: list[str] | None = None,
  search: str | None = None,
  sort_by: str = "lastActivity",
  sort_order: str = "desc",
) -> tuple[list[BoardOut], int]:
  member_boards = select(BoardMember.board_id).where(BoardMember.user_id == user.id)
  q = select(Board).where(or_(Board.owner_id == user.id, Board.id.in_(member_boards)))
  if not include_archived:
    q = q.where(Board.is_archived.is_(False))
  if visibility:
    q = q.where(Board.visibility == visibility)
  col = BOARD_SORT_FIELDS.get(sort_by, Board.last_activity_at)
  q = q.order_by(col.asc() if sort_order == "asc" else col.desc(), Board.id.asc())

  res = await db.execute(q)
  rows = list(res.scalars().all())
  # Tags live in a JSON column, so tag and search filters run here rather than in SQL.
  if tags:
    rows = [b for b in rows if _has_any_tag(b, tags)]
  if search and search.strip():
    rows = [b for b in rows if _matches_search(b, search.strip())]

  total = len(rows)
  start = (page - 1) * limit
  return await boards_out(db, rows[start : start + limit]), total


async def list_public_boards(
  db: AsyncSession, *, page: int = 1, limit: int = 20, tags: list[str] | None = None
) -> tuple[list[BoardOut], int]:
  res = await db.execute(
    select(Board)
    .where(Board.visibility == "public", Board.is_archived.is_(False))
    .order_by(Board.last_activity_at.desc(), Board.created_at.desc())
  )
  rows = list(res.scalars().all())
  if tags:
    rows = [b for b in rows if _has_any_tag(b, tags)]
  total = len(rows)
  start = (page - 1) * limit
  return await boards_out(db, rows[start : start + limit]), total


async def get_board_detail(db: AsyncSession, board_id: str, user: User) -> BoardDetailOut:
  b, _ = await require_view(db, board_id, user)
  out = await board_out(db, b)
  res = await db.execute(
    select(Task)
    .where(Task.board_id == board_id, Task.is_deleted.is_(False))
    .order_by(Task.position.asc(), Task.created_at.asc())
  )
  by_column: dict[str, list[TaskOut]] = {c.id: [] for c in out.columns}
  for t in res.scalars().all():
    key = t.column_id if t.column_id in by_column else "unassigned"
    by_column.setdefault(key, []).append(task_out(t))
  return BoardDetailOut(**out.model_dump(), tasksByColumn=by_column)


async def update_board(db: AsyncSession, board_id: str, payload: BoardUpdateIn, user: User) -> BoardOut:
  b, _ = await require_edit(db, board_id, user)
  if payload.title is not None:
    b.title = payload.title.strip()
  if payload.description is not None:
    b.description = payload.description
  if payload.visibility is not None:
    b.visibility = payload.visibility
  if payload.settings is not None:
    b.settings = merged_settings(b.settings, payload.settings)
  if payload.tags is not None:
    b.tags = [t.strip() for t in payload.tags if t.strip()]
  if payload.backgroundColor is not None:
    b.background_color = payload.backgroundColor
  b.last_activity_at = utcnow()
  await write_activity(db, action="board_updated", board_id=b.id, actor_id=user.id, details=payload.model_dump(exclude_none=True))
  await db.commit()
  return await board_out(db, b)


async def delete_board(db: AsyncSession, board_id: str, user: User) -> None:
  try:
    b = await get_board_or_404(db, board_id)
    if b.owner_id != user.id:
      raise ForbiddenError("Only the board owner can delete the board")
    live = (
      await db.execute(select(func.count()).select_from(Task).where(Task.board_id == board_id, Task.is_deleted.is_(False)))
    ).scalar_one()
    if live > 0:
      raise ValidationError("Cannot delete board with existing tasks. Please move or delete all tasks first.")

    await db.execute(delete(Activity).where(Activity.board_id == board_id))
    # Soft-deleted tasks still reference the board and its columns.
    dead = select(Task.id).where(Task.board_id == board_id, Task.is_deleted.is_(True))
    await db.execute(update(Task).where(Task.parent_task_id.in_(dead)).values(parent_task_id=None))
    await db.execute(delete(Subtask).where(Subtask.task_id.in_(dead)))
    await db.execute(delete(Comment).where(Comment.task_id.in_(dead)))
    await db.execute(delete(Task).where(Task.board_id == board_id, Task.is_deleted.is_(True)))
    await db.execute(delete(BoardInvitation).where(BoardInvitation.board_id == board_id))
    await db.execute(delete(BoardMember).where(BoardMember.board_id == board_id))
    await db.execute(delete(BoardColumn).where(BoardColumn.board_id == board_id))
    await db.execute(delete(Board).where(Board.id == board_id))
    await db.commit()
  except Exception:
    await db.rollback()
    raise
  logger.info("board %s deleted by %s", board_id, user.id)


async def archive_board(db: AsyncSession, board_id: str, archived: bool, user: User) -> BoardOut:
  b, _ = await require_edit(db, board_id, user)
  b.is_archived = archived
  if archived:
    b.archived_at = utcnow()
    b.archived_by_id = user.id
  else:
    b.archived_at = None
    b.archived_by_id = None
  await write_activity(db, action="board_archived" if archived else "board_unarchived", board_id=b.id, actor_id=user.id)
  await db.commit()
  return await board_out(db, b)


async def duplicate_board(db: AsyncSession, board_id: str, payload: BoardDuplicateIn, user: User) -> BoardOut:
  src, m = await require_view(db, board_id, user)
  try:
    copy = Board(
      title=(payload.title or f"{src.title} (copy)")[:200],
      description=src.description,
      owner_id=user.id,
      visibility="private",
      settings=merged_settings(src.settings, None),
      tags=list(src.tags or []),
      background_color=src.background_color,
    )
    db.add(copy)
    await db.flush()

    column_map: dict[str, BoardColumn] = {}
    for c in await list_columns(db, src.id):
      nc = BoardColumn(
        board_id=copy.id,
        title=c.title,
        position=c.position,
        color=c.color,
        wip_limit=c.wip_limit,
        is_collapsed=c.is_collapsed,
        task_ids=[],
      )
      db.add(nc)
      column_map[c.id] = nc
    await db.flush()

    db.add(BoardMember(board_id=copy.id, user_id=user.id, role="owner", added_by_id=user.id))
    if payload.includeMembers and can_edit(src, user.id, m):
      mres = await db.execute(select(BoardMember).where(BoardMember.board_id == src.id, BoardMember.user_id != user.id))
      for sm in mres.scalars().all():
        # The source owner becomes an admin on a board owned by someone else.
        role = "admin" if sm.role == "owner" else sm.role
        db.add(BoardMember(board_id=copy.id, user_id=sm.user_id, role=role, added_by_id=user.id))

    if payload.includeTasks:
      tres = await db.execute(
        select(Task).where(Task.board_id == src.id, Task.is_deleted.is_(False)).order_by(Task.position.asc(), Task.created_at.asc())
      )
      per_column: dict[str, tuple[BoardColumn, list[Task]]] = {}
      for t in tres.scalars().all():
        target = column_map.get(t.column_id) if t.column_id else None
        nt = Task(
          title=t.title,
          description=t.description,
          status=t.status,
          priority=t.priority,
          due_date=t.due_date,
          labels=list(t.labels or []),
          attachments=list(t.attachments or []),
          board_id=copy.id,
          column_id=target.id if target else None,
          position=t.position,
          created_by_id=user.id,
        )
        db.add(nt)
        if target:
          per_column.setdefault(target.id, (target, []))[1].append(nt)
      await db.flush()
      for col, tasks in per_column.values():
        for idx, nt in enumerate(tasks):
          nt.position = idx
        col.task_ids = [nt.id for nt in tasks]
      await refresh_board_stats(db, copy.id)

    await write_activity(db, action="board_duplicated", board_id=copy.id, actor_id=user.id, details={"sourceBoardId": src.id})
    await db.commit()
  except Exception:
    await db.rollback()
    raise
  await db.refresh(copy)
  return await board_out(db, copy)


def _months_ago(now: datetime, months: int) -> datetime:
  y, mo = divmod(now.month - 1 - months, 12)
  year = now.year + y
  month = mo + 1
  day = min(now.day, calendar.monthrange(year, month)[1])
  return now.replace(year=year, month=month, day=day)


def period_bounds(period: str, start: datetime | None = None, end: datetime | None = None) -> tuple[datetime, datetime]:
  if start and end:
    return as_utc(start), as_utc(end)
  now = datetime.now(timezone.utc)
  if period == "week":
    return now - timedelta(days=7), now
  if period == "quarter":
    return _months_ago(now, 3), now
  if period == "year":
    return _months_ago(now, 12), now
  return _months_ago(now, 1), now


async def board_stats(
  db: AsyncSession,
  board_id: str,
  user: User,
  *,
  period: str = "month",
  start: datetime | None = None,
  end: datetime | None = None,
) -> dict[str, Any]:
  b, _ = await require_view(db, board_id, user)
  since, until = period_bounds(period, start, end)

  res = await db.execute(select(Task).where(Task.board_id == board_id, Task.is_deleted.is_(False)))
  tasks = list(res.scalars().all())

  by_status: dict[str, int] = {}
  by_priority: dict[str, int] = {}
  by_column: dict[str, int] = {}
  by_assignee: dict[str, int] = {}
  for t in tasks:
    by_status[t.status] = by_status.get(t.status, 0) + 1
    by_priority[t.priority] = by_priority.get(t.priority, 0) + 1
    key = t.column_id or "unassigned"
    by_column[key] = by_column.get(key, 0) + 1
    if t.assigned_to_id:
      by_assignee[t.assigned_to_id] = by_assignee.get(t.assigned_to_id, 0) + 1

  assignees: list[dict[str, Any]] = []
  if by_assignee:
    ures = await db.execute(select(User).where(User.id.in_(list(by_assignee.keys()))))
    for u in ures.scalars().all():
      assignees.append({"userId": u.id, "name": u.name, "email": u.email, "count": by_assignee[u.id]})
    assignees.sort(key=lambda a: (-a["count"], a["name"]))

  in_period = [t for t in tasks if since <= as_utc(t.created_at) <= until]
  completed = sum(1 for t in in_period if t.status == "completed")
  recent = sorted(in_period, key=lambda t: as_utc(t.updated_at), reverse=True)[:10]

  columns = await list_columns(db, board_id)
  mcount = (await db.execute(select(func.count()).select_from(BoardMember).where(BoardMember.board_id == board_id))).scalar_one()
  return {
    "totalTasks": len(tasks),
    "tasksByStatus": by_status,
    "tasksByPriority": by_priority,
    "tasksByColumn": by_column,
    "tasksByAssignee": assignees,
    "recentActivity": [
      {"id": t.id, "title": t.title, "status": t.status, "createdAt": as_utc(t.created_at), "updatedAt": as_utc(t.updated_at)}
      for t in recent
    ],
    "completionRate": round(completed / len(in_period) * 100) if in_period else 0,
    "period": period if not (start and end) else "custom",
    "periodStart": since,
    "periodEnd": until,
    "board": {"id": b.id, "title": b.title, "memberCount": mcount, "columnCount": len(columns)},
  }


# --- columns ---


async def add_column(db: AsyncSession, board_id: str, payload: ColumnIn, user: User) -> BoardOut:
  b, _ = await require_edit(db, board_id, user)
  columns = await list_columns(db, board_id)
  pos = len(columns) if payload.position is None else min(payload.position, len(columns))
  for c in columns:
    if c.position >= pos:
      c.position += 1
  c = BoardColumn(
    board_id=board_id,
    title=payload.title.strip(),
    position=pos,
    color=payload.color,
    wip_limit=payload.wipLimit,
    is_collapsed=payload.isCollapsed,
    task_ids=[],
  )
  db.add(c)
  b.last_activity_at = utcnow()
  await write_activity(db, action="column_added", board_id=board_id, actor_id=user.id, details={"title": c.title, "position": pos})
  await db.commit()
  return await board_out(db, b)


async def update_column(db: AsyncSession, board_id: str, column_id: str, payload: ColumnUpdateIn, user: User) -> BoardOut:
  b, _ = await require_edit(db, board_id, user)
  columns = await list_columns(db, board_id)
  target = next((c for c in columns if c.id == column_id), None)
  if not target:
    raise NotFoundError("Column not found")

  if payload.position is not None and payload.position != target.position:
    new_pos = min(payload.position, len(columns) - 1)
    old_pos = target.position
    for c in columns:
      if c.id == target.id:
        continue
      if old_pos < new_pos and old_pos < c.position <= new_pos:
        c.position -= 1
      elif new_pos < old_pos and new_pos <= c.position < old_pos:
        c.position += 1
    target.position = new_pos

  if payload.title is not None:
    target.title = payload.title.strip()
  if payload.color is not None:
    target.color = payload.color
  if "wipLimit" in payload.model_fields_set:
    target.wip_limit = payload.wipLimit
  if payload.isCollapsed is not None:
    target.is_collapsed = payload.isCollapsed
  b.last_activity_at = utcnow()
  await db.commit()
  return await board_out(db, b)


async def remove_column(db: AsyncSession, board_id: str, column_id: str, user: User) -> BoardOut:
  try:
    b, _ = await require_edit(db, board_id, user)
    columns = await list_columns(db, board_id)
    target = next((c for c in columns if c.id == column_id), None)
    if not target:
      raise NotFoundError("Column not found")
    live = (
      await db.execute(
        select(func.count()).select_from(Task).where(Task.column_id == column_id, Task.is_deleted.is_(False))
      )
    ).scalar_one()
    if live > 0:
      raise ValidationError("Cannot delete column with existing tasks. Please move all tasks first.")

    await db.execute(update(Task).where(Task.column_id == column_id).values(column_id=None))
    await db.delete(target)
    for c in columns:
      if c.id != column_id and c.position > target.position:
        c.position -= 1
    b.last_activity_at = utcnow()
    await write_activity(db, action="column_removed", board_id=board_id, actor_id=user.id, details={"title": target.title})
    await db.commit()
  except Exception:
    await db.rollback()
    raise
  return await board_out(db, b)


async def reorder_columns(db: AsyncSession, board_id: str, payload: ColumnReorderIn, user: User) -> BoardOut:
  b, _ = await require_edit(db, board_id, user)
  columns = await list_columns(db, board_id)
  by_id = {c.id: c for c in columns}
  wanted = {item.columnId: item.position for item in payload.columns if item.columnId in by_id}
  ordered = sorted(columns, key=lambda c: (wanted.get(c.id, c.position), c.id not in wanted))
  for idx, c in enumerate(ordered):
    c.position = idx
  b.last_activity_at = utcnow()
  await db.commit()
  return await board_out(db, b)


# --- members ---


async def add_member(db: AsyncSession, board_id: str, member_user_id: str, role: str, user: User) -> BoardOut:
  b, _ = await require_edit(db, board_id, user)
  ures = await db.execute(select(User).where(User.id == member_user_id, User.is_deleted.is_(False)))
  if not ures.scalar_one_or_none():
    raise NotFoundError("User not found")
  if member_user_id == b.owner_id or await get_membership(db, board_id, member_user_id):
    raise ValidationError("User is already a member of this board")
  db.add(BoardMember(board_id=board_id, user_id=member_user_id, role=role, added_by_id=user.id))
  await write_activity(db, action="member_added", board_id=board_id, actor_id=user.id, details={"userId": member_user_id, "role": role})
  await db.commit()
  return await board_out(db, b)


async def update_member_role(db: AsyncSession, board_id: str, member_user_id: str, role: str, user: User) -> BoardOut:
  b, _ = await require_edit(db, board_id, user)
  if member_user_id == b.owner_id:
    raise ValidationError("Cannot change owner role")
  m = await get_membership(db, board_id, member_user_id)
  if not m:
    raise ValidationError("User is not a member of this board")
  m.role = role
  await write_activity(db, action="member_role_changed", board_id=board_id, actor_id=user.id, details={"userId": member_user_id, "role": role})
  await db.commit()
  return await board_out(db, b)


async def remove_member(db: AsyncSession, board_id: str, member_user_id: str, user: User) -> BoardOut:
  b, _ = await require_edit(db, board_id, user)
  if member_user_id == b.owner_id:
    raise ValidationError("Cannot remove the board owner")
  if await get_membership(db, board_id, member_user_id) is None:
    raise NotFoundError("Member not found")
  await db.execute(delete(BoardMember).where(BoardMember.board_id == board_id, BoardMember.user_id == member_user_id))
  await write_activity(db, action="member_removed", board_id=board_id, actor_id=user.id, details={"userId": member_user_id})
  await db.commit()
  return await board_out(db, b)
