from __future__ import annotations

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.deps import get_current_user, get_db
from taskboard.models import User
from taskboard.responses import created, envelope, paginated
from taskboard.schemas import (
  AttachmentCreateIn,
  CommentCreateIn,
  SortOrder,
  SubtaskCreateIn,
  SubtaskUpdateIn,
  TaskCreateIn,
  TaskPriority,
  TaskStatus,
  TaskStatusIn,
  TaskUpdateIn,
)
from taskboard.tasks import service as tasks

router = APIRouter(prefix="/tasks", tags=["tasks"])

TaskSortField = Literal["createdAt", "updatedAt", "dueDate", "priority", "status", "title"]


@router.post("", status_code=201)
async def create_task(payload: TaskCreateIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
  return created(await tasks.create_task(db, payload, user), "Task created successfully")


@router.get("")
async def list_tasks(
  status: TaskStatus | None = None,
  priority: TaskPriority | None = None,
  assignedTo: str | None = None,
  createdBy: str | None = None,
  boardId: str | None = None,
  dueFrom: datetime | None = None,
  dueTo: datetime | None = None,
  q: str | None = Query(default=None, max_length=200),
  page: int = Query(default=1, ge=1),
  limit: int = Query(default=10, ge=1, le=100),
  sortBy: TaskSortField = "createdAt",
  sortOrder: SortOrder = "desc",
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  items, total = await tasks.list_tasks(
    db,
    user,
    status=status,
    priority=priority,
    assigned_to=assignedTo,
    created_by=createdBy,
    board_id=boardId,
    due_from=dueFrom,
    due_to=dueTo,
    q=q,
    page=page,
    limit=limit,
    sort_by=sortBy,
    sort_order=sortOrder,
  )
  return paginated(items, page=page, limit=limit, total=total, message="Tasks retrieved successfully")


@router.get("/{task_id}")
async def get_task(task_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  t = await tasks.require_task_view(db, task_id, user)
  return envelope(await tasks.task_detail(db, t), "Task retrieved successfully")


@router.patch("/{task_id}")
async def update_task(
  task_id: str, payload: TaskUpdateIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)
) -> dict:
  return envelope(await tasks.update_task(db, task_id, payload, user), "Task updated successfully")


@router.patch("/{task_id}/status")
async def update_task_status(
  task_id: str, payload: TaskStatusIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)
) -> dict:
  return envelope(await tasks.update_task_status(db, task_id, payload.status, user), "Task status updated successfully")


@router.delete("/{task_id}")
async def delete_task(task_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  await tasks.delete_task(db, task_id, user)
  return envelope(None, "Task deleted successfully")


@router.post("/{task_id}/comments", status_code=201)
async def add_comment(
  task_id: str, payload: CommentCreateIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)
):
  return created(await tasks.add_comment(db, task_id, payload.text, user), "Comment added")


@router.post("/{task_id}/attachments", status_code=201)
async def add_attachment(
  task_id: str, payload: AttachmentCreateIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)
):
  return created(await tasks.add_attachment(db, task_id, payload.url, user), "Attachment added")


@router.post("/{task_id}/subtasks", status_code=201)
async def add_subtask(
  task_id: str, payload: SubtaskCreateIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)
):
  return created(await tasks.add_subtask(db, task_id, payload.title, user), "Subtask added")


@router.patch("/{task_id}/subtasks/{subtask_id}")
async def update_subtask(
  task_id: str,
  subtask_id: str,
  payload: SubtaskUpdateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  out = await tasks.update_subtask(db, task_id, subtask_id, title=payload.title, status=payload.status, user=user)
  return envelope(out, "Subtask updated")


@router.get("/{task_id}/activity")
async def task_activity(
  task_id: str,
  page: int = Query(default=1, ge=1),
  limit: int = Query(default=10, ge=1, le=100),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  items, total = await tasks.task_activity(db, task_id, user, page=page, limit=limit)
  return paginated(items, page=page, limit=limit, total=total, message="Activity retrieved successfully")
