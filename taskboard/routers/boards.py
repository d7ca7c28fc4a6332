from __future__ import annotations

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.boards import placement
from taskboard.boards import service as boards
from taskboard.deps import get_current_user, get_db
from taskboard.models import User
from taskboard.responses import created, envelope, paginated
from taskboard.schemas import (
  BoardArchiveIn,
  BoardCreateIn,
  BoardDuplicateIn,
  BoardUpdateIn,
  BoardVisibility,
  BulkMoveIn,
  ColumnIn,
  ColumnReorderIn,
  ColumnUpdateIn,
  MemberAddIn,
  MemberRoleIn,
  MoveTaskIn,
  SortOrder,
  TaskMoveIn,
  TaskOrderIn,
)

router = APIRouter(prefix="/boards", tags=["boards"])

BoardSortField = Literal["title", "createdAt", "updatedAt", "lastActivity"]


@router.post("", status_code=201)
async def create_board(payload: BoardCreateIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
  out = await boards.create_board(db, payload, user)
  return created(out, "Board created successfully")


@router.get("")
async def list_boards(
  page: int = Query(default=1, ge=1),
  limit: int = Query(default=20, ge=1, le=100),
  visibility: BoardVisibility | None = None,
  includeArchived: bool = False,
  tags: list[str] | None = Query(default=None),
  search: str | None = Query(default=None, max_length=100),
  sortBy: BoardSortField = "lastActivity",
  sortOrder: SortOrder = "desc",
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  items, total = await boards.list_boards(
    db,
    user,
    page=page,
    limit=limit,
    visibility=visibility,
    include_archived=includeArchived,
    tags=tags,
    search=search,
    sort_by=sortBy,
    sort_order=sortOrder,
  )
  return paginated(items, page=page, limit=limit, total=total, message="Boards retrieved successfully")


@router.get("/public")
async def list_public_boards(
  page: int = Query(default=1, ge=1),
  limit: int = Query(default=20, ge=1, le=100),
  tags: list[str] | None = Query(default=None),
  _: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  items, total = await boards.list_public_boards(db, page=page, limit=limit, tags=tags)
  return paginated(items, page=page, limit=limit, total=total, message="Public boards retrieved successfully")


@router.get("/{board_id}")
async def get_board(board_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  return envelope(await boards.get_board_detail(db, board_id, user), "Board retrieved successfully")


@router.patch("/{board_id}")
async def update_board(
  board_id: str, payload: BoardUpdateIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)
) -> dict:
  return envelope(await boards.update_board(db, board_id, payload, user), "Board updated successfully")


@router.delete("/{board_id}")
async def delete_board(board_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  await boards.delete_board(db, board_id, user)
  return envelope(None, "Board deleted successfully")


@router.patch("/{board_id}/archive")
async def archive_board(
  board_id: str, payload: BoardArchiveIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)
) -> dict:
  out = await boards.archive_board(db, board_id, payload.archived, user)
  return envelope(out, "Board archived successfully" if payload.archived else "Board unarchived successfully")


@router.post("/{board_id}/duplicate", status_code=201)
async def duplicate_board(
  board_id: str, payload: BoardDuplicateIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)
):
  out = await boards.duplicate_board(db, board_id, payload, user)
  return created(out, "Board duplicated successfully")


@router.get("/{board_id}/stats")
async def board_stats(
  board_id: str,
  period: Literal["week", "month", "quarter", "year"] = "month",
  startDate: datetime | None = None,
  endDate: datetime | None = None,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  data = await boards.board_stats(db, board_id, user, period=period, start=startDate, end=endDate)
  return envelope(data, "Board statistics retrieved successfully")


# --- columns ---


@router.post("/{board_id}/columns", status_code=201)
async def add_column(board_id: str, payload: ColumnIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
  out = await boards.add_column(db, board_id, payload, user)
  return created(out, "Column added successfully")


# Registered before /columns/{column_id} so "reorder" is not taken as an id.
@router.patch("/{board_id}/columns/reorder")
async def reorder_columns(
  board_id: str, payload: ColumnReorderIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)
) -> dict:
  return envelope(await boards.reorder_columns(db, board_id, payload, user), "Columns reordered successfully")


@router.patch("/{board_id}/columns/{column_id}")
async def update_column(
  board_id: str,
  column_id: str,
  payload: ColumnUpdateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  return envelope(await boards.update_column(db, board_id, column_id, payload, user), "Column updated successfully")


@router.delete("/{board_id}/columns/{column_id}")
async def remove_column(
  board_id: str, column_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)
) -> dict:
  return envelope(await boards.remove_column(db, board_id, column_id, user), "Column removed successfully")


@router.patch("/{board_id}/columns/{column_id}/reorder-tasks")
async def reorder_tasks_in_column(
  board_id: str,
  column_id: str,
  payload: TaskOrderIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  out = await placement.reorder_tasks_in_column(db, board_id, column_id, payload, user)
  return envelope(out, "Tasks reordered successfully")


# --- members ---


@router.post("/{board_id}/members", status_code=201)
async def add_member(board_id: str, payload: MemberAddIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
  out = await boards.add_member(db, board_id, payload.userId, payload.role, user)
  return created(out, "Member added successfully")


@router.patch("/{board_id}/members/{member_id}")
async def update_member_role(
  board_id: str,
  member_id: str,
  payload: MemberRoleIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  out = await boards.update_member_role(db, board_id, member_id, payload.role, user)
  return envelope(out, "Member role updated successfully")


@router.delete("/{board_id}/members/{member_id}")
async def remove_member(
  board_id: str, member_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)
) -> dict:
  return envelope(await boards.remove_member(db, board_id, member_id, user), "Member removed successfully")


# --- task placement ---


@router.post("/{board_id}/move-task")
async def move_task_to_board(
  board_id: str, payload: MoveTaskIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)
) -> dict:
  out = await placement.move_task_to_board(db, board_id, payload, user)
  return envelope(out, "Task moved to board successfully")


@router.patch("/{board_id}/tasks/{task_id}/move")
async def move_task(
  board_id: str,
  task_id: str,
  payload: TaskMoveIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  return envelope(await placement.move_task(db, board_id, task_id, payload, user), "Task moved successfully")


@router.patch("/{board_id}/bulk-move")
async def bulk_move_tasks(
  board_id: str, payload: BulkMoveIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)
) -> dict:
  out = await placement.bulk_move_tasks(db, board_id, payload, user)
  return envelope(out, f"{len(out['tasks'])} tasks moved successfully")
