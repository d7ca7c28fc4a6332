from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import String, cast, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.activity import write_activity
from taskboard.boards.placement import renumber, wip_exceeded, without
from taskboard.boards.service import (
  can_view,
  get_board_or_404,
  get_membership,
  list_columns,
  refresh_board_stats,
  task_out,
)
from taskboard.errors import ForbiddenError, NotFoundError, ValidationError
from taskboard.models import Activity, BoardColumn, Comment, Subtask, Task, User, as_utc, utcnow
from taskboard.notifications.events import notify_task_assigned, notify_task_completed
from taskboard.tasks.recurring import arm_recurrence
from taskboard.schemas import (
  ActivityOut,
  CommentOut,
  SubtaskOut,
  TaskCreateIn,
  TaskDetailOut,
  TaskOut,
  TaskUpdateIn,
)

logger = logging.getLogger(__name__)

TASK_SORT_FIELDS = {
  "createdAt": Task.created_at,
  "updatedAt": Task.updated_at,
  "dueDate": Task.due_date,
  "priority": Task.priority,
  "status": Task.status,
  "title": Task.title,
}


def _subtask_out(s: Subtask) -> SubtaskOut:
  return SubtaskOut(id=s.id, taskId=s.task_id, title=s.title, status=s.status, position=s.position)


def _comment_out(c: Comment) -> CommentOut:
  return CommentOut(id=c.id, taskId=c.task_id, user=c.author_id, text=c.body, createdAt=as_utc(c.created_at))


def _activity_out(a: Activity) -> ActivityOut:
  return ActivityOut(
    id=a.id,
    taskId=a.task_id,
    boardId=a.board_id,
    actorId=a.actor_id,
    action=a.action,
    details=a.details or {},
    createdAt=as_utc(a.created_at),
  )


def is_owner_or_assignee(task: Task, user: User) -> bool:
  return user.role == "admin" or task.created_by_id == user.id or task.assigned_to_id == user.id


async def get_task_or_404(db: AsyncSession, task_id: str) -> Task:
  res = await db.execute(select(Task).where(Task.id == task_id, Task.is_deleted.is_(False)))
  t = res.scalar_one_or_none()
  if not t:
    raise NotFoundError("Task not found")
  return t


async def require_task_view(db: AsyncSession, task_id: str, user: User) -> Task:
  t = await get_task_or_404(db, task_id)
  if is_owner_or_assignee(t, user):
    return t
  if t.board_id:
    b = await get_board_or_404(db, t.board_id)
    if can_view(b, user.id, await get_membership(db, b.id, user.id)):
      return t
  raise ForbiddenError("Forbidden")


async def require_task_modify(db: AsyncSession, task_id: str, user: User) -> Task:
  t = await get_task_or_404(db, task_id)
  if not is_owner_or_assignee(t, user):
    raise ForbiddenError("Forbidden")
  return t


async def _check_assignee(db: AsyncSession, user_id: str | None) -> None:
  if not user_id:
    return
  res = await db.execute(select(User.id).where(User.id == user_id, User.is_deleted.is_(False)))
  if res.scalar_one_or_none() is None:
    raise ValidationError("Assigned user not found")


async def task_detail(db: AsyncSession, t: Task) -> TaskDetailOut:
  sres = await db.execute(select(Subtask).where(Subtask.task_id == t.id).order_by(Subtask.position.asc()))
  cres = await db.execute(select(Comment).where(Comment.task_id == t.id).order_by(Comment.created_at.asc()))
  return TaskDetailOut(
    **task_out(t).model_dump(),
    subtasks=[_subtask_out(s) for s in sres.scalars().all()],
    comments=[_comment_out(c) for c in cres.scalars().all()],
  )


async def create_task(db: AsyncSession, payload: TaskCreateIn, user: User) -> TaskOut:
  await _check_assignee(db, payload.assignedTo)
  priority = payload.priority
  column: BoardColumn | None = None
  if payload.boardId:
    b = await get_board_or_404(db, payload.boardId)
    m = await get_membership(db, b.id, user.id)
    if b.owner_id != user.id and (m is None or m.role == "viewer"):
      raise ForbiddenError("Access denied")
    columns = await list_columns(db, b.id)
    if payload.columnId:
      column = next((c for c in columns if c.id == payload.columnId), None)
      if column is None:
        raise NotFoundError("Column not found")
    elif columns:
      column = columns[0]
    if column is not None and wip_exceeded(column, entering=True):
      raise ValidationError(f"Target column has reached WIP limit of {column.wip_limit}")
    priority = priority or (b.settings or {}).get("defaultTaskPriority") or "medium"

  t = Task(
    title=payload.title.strip(),
    description=payload.description,
    status=payload.status,
    priority=priority or "medium",
    due_date=payload.dueDate,
    assigned_to_id=payload.assignedTo,
    created_by_id=user.id,
    labels=[lb.strip() for lb in payload.labels if lb.strip()],
    attachments=[],
    board_id=payload.boardId,
  )
  db.add(t)
  if payload.recurrence:
    arm_recurrence(t, payload.recurrence.model_dump(mode="json"))
  await db.flush()
  if column is not None:
    column.task_ids = [*(column.task_ids or []), t.id]
    await renumber(db, [column])
  await write_activity(db, action="task_created", board_id=t.board_id, task_id=t.id, actor_id=user.id, details={"title": t.title})
  await refresh_board_stats(db, t.board_id)
  await db.commit()
  await notify_task_assigned(db, t, user)
  return task_out(t)


async def list_tasks(
  db: AsyncSession,
  user: User,
  *,
  status: str | None = None,
  priority: str | None = None,
  assigned_to: str | None = None,
  created_by: str | None = None,
  board_id: str | None = None,
  due_from: datetime | None = None,
  due_to: datetime | None = None,
  q: str | None = None,
  page: int = 1,
  limit: int = 10,
  sort_by: str = "createdAt",
  sort_order: str = "desc",
) -> tuple[list[TaskOut], int]:
  conds: list[Any] = [Task.is_deleted.is_(False)]
  if status:
    conds.append(Task.status == status)
  if priority:
    conds.append(Task.priority == priority)
  if assigned_to:
    conds.append(Task.assigned_to_id == assigned_to)
  if created_by:
    conds.append(Task.created_by_id == created_by)
  if board_id:
    conds.append(Task.board_id == board_id)
  if due_from:
    conds.append(Task.due_date >= due_from)
  if due_to:
    conds.append(Task.due_date <= due_to)
  if q and q.strip():
    like = f"%{q.strip()}%"
    conds.append(or_(Task.title.ilike(like), Task.description.ilike(like), cast(Task.labels, String).ilike(like)))
  if user.role != "admin":
    conds.append(or_(Task.created_by_id == user.id, Task.assigned_to_id == user.id))

  total = (await db.execute(select(func.count()).select_from(Task).where(*conds))).scalar_one()
  col = TASK_SORT_FIELDS.get(sort_by, Task.created_at)
  res = await db.execute(
    select(Task)
    .where(*conds)
    .order_by(col.asc() if sort_order == "asc" else col.desc(), Task.id.asc())
    .offset((page - 1) * limit)
    .limit(limit)
  )
  return [task_out(t) for t in res.scalars().all()], int(total)


async def update_task(db: AsyncSession, task_id: str, payload: TaskUpdateIn, user: User) -> TaskOut:
  t = await require_task_modify(db, task_id, user)
  fields = payload.model_fields_set
  before = {"status": t.status, "priority": t.priority, "assignedTo": t.assigned_to_id, "dueDate": as_utc(t.due_date)}

  if "assignedTo" in fields:
    await _check_assignee(db, payload.assignedTo)
    t.assigned_to_id = payload.assignedTo
  if payload.title is not None:
    t.title = payload.title.strip()
  if payload.description is not None:
    t.description = payload.description
  if payload.status is not None:
    t.status = payload.status
  if payload.priority is not None:
    t.priority = payload.priority
  if payload.labels is not None:
    t.labels = [lb.strip() for lb in payload.labels if lb.strip()]
  if "dueDate" in fields and payload.dueDate != before["dueDate"]:
    t.due_date = payload.dueDate
    t.due_soon_notified_at = None
    t.overdue_notified_at = None
    if t.is_recurring and not t.occurrence_count and "recurrence" not in fields:
      arm_recurrence(t, t.recurrence)
  if "recurrence" in fields:
    if payload.recurrence and not t.due_date:
      raise ValidationError("Recurring tasks require a due date")
    arm_recurrence(t, payload.recurrence.model_dump(mode="json") if payload.recurrence else None)

  await write_activity(
    db,
    action="task_updated",
    board_id=t.board_id,
    task_id=t.id,
    actor_id=user.id,
    details={"before": before, "updates": payload.model_dump(exclude_unset=True)},
  )
  await refresh_board_stats(db, t.board_id)
  await db.commit()
  if t.assigned_to_id and t.assigned_to_id != before["assignedTo"]:
    await notify_task_assigned(db, t, user)
  if t.status == "completed" and before["status"] != "completed":
    await notify_task_completed(db, t, user)
  return task_out(t)


async def update_task_status(db: AsyncSession, task_id: str, status: str, user: User) -> TaskOut:
  t = await require_task_modify(db, task_id, user)
  from_status = t.status
  t.status = status
  await write_activity(
    db, action="task_status_updated", board_id=t.board_id, task_id=t.id, actor_id=user.id, details={"from": from_status, "to": status}
  )
  await refresh_board_stats(db, t.board_id)
  await db.commit()
  if status == "completed" and from_status != "completed":
    await notify_task_completed(db, t, user)
  return task_out(t)


async def delete_task(db: AsyncSession, task_id: str, user: User) -> None:
  t = await get_task_or_404(db, task_id)
  if user.role != "admin" and t.created_by_id != user.id:
    raise ForbiddenError("Forbidden")
  t.is_deleted = True
  t.deleted_at = utcnow()
  t.deleted_by_id = user.id
  if t.column_id:
    cres = await db.execute(select(BoardColumn).where(BoardColumn.id == t.column_id))
    c = cres.scalar_one_or_none()
    if c is not None:
      c.task_ids = without(c.task_ids or [], t.id)
      await renumber(db, [c])
  await write_activity(db, action="task_deleted", board_id=t.board_id, task_id=t.id, actor_id=user.id)
  await refresh_board_stats(db, t.board_id)
  await db.commit()


async def add_comment(db: AsyncSession, task_id: str, text: str, user: User) -> TaskDetailOut:
  t = await require_task_view(db, task_id, user)
  db.add(Comment(task_id=t.id, author_id=user.id, body=text.strip()))
  await write_activity(db, action="comment_added", board_id=t.board_id, task_id=t.id, actor_id=user.id, details={"text": text})
  await db.commit()
  return await task_detail(db, t)


async def add_attachment(db: AsyncSession, task_id: str, url: str, user: User) -> TaskDetailOut:
  t = await require_task_modify(db, task_id, user)
  t.attachments = [*(t.attachments or []), url]
  await write_activity(db, action="attachment_added", board_id=t.board_id, task_id=t.id, actor_id=user.id, details={"url": url})
  await db.commit()
  return await task_detail(db, t)


async def add_subtask(db: AsyncSession, task_id: str, title: str, user: User) -> TaskDetailOut:
  t = await require_task_modify(db, task_id, user)
  res = await db.execute(select(func.max(Subtask.position)).where(Subtask.task_id == t.id))
  max_pos = res.scalar_one()
  pos = (max_pos + 1) if max_pos is not None else 0
  db.add(Subtask(task_id=t.id, title=title.strip(), status="pending", position=pos))
  await write_activity(db, action="subtask_added", board_id=t.board_id, task_id=t.id, actor_id=user.id, details={"title": title})
  await db.commit()
  return await task_detail(db, t)


async def update_subtask(
  db: AsyncSession, task_id: str, subtask_id: str, *, title: str | None, status: str | None, user: User
) -> TaskDetailOut:
  t = await require_task_modify(db, task_id, user)
  res = await db.execute(select(Subtask).where(Subtask.id == subtask_id, Subtask.task_id == t.id))
  s = res.scalar_one_or_none()
  if not s:
    raise NotFoundError("Subtask not found")
  if title is not None:
    s.title = title.strip()
  if status is not None:
    s.status = status
  await write_activity(
    db,
    action="subtask_updated",
    board_id=t.board_id,
    task_id=t.id,
    actor_id=user.id,
    details={"subId": s.id, "title": title, "status": status},
  )
  await db.commit()
  return await task_detail(db, t)


async def task_activity(db: AsyncSession, task_id: str, user: User, *, page: int = 1, limit: int = 10) -> tuple[list[ActivityOut], int]:
  t = await require_task_view(db, task_id, user)
  total = (await db.execute(select(func.count()).select_from(Activity).where(Activity.task_id == t.id))).scalar_one()
  res = await db.execute(
    select(Activity)
    .where(Activity.task_id == t.id)
    .order_by(Activity.created_at.desc(), Activity.id.desc())
    .offset((page - 1) * limit)
    .limit(limit)
  )
  return [_activity_out(a) for a in res.scalars().all()], int(total)
