from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
  return datetime.now(timezone.utc)


def as_utc(dt: datetime | None) -> datetime | None:
  # SQLite hands back naive datetimes even for timezone-aware columns.
  if dt is None:
    return None
  if dt.tzinfo is None:
    return dt.replace(tzinfo=timezone.utc)
  return dt.astimezone(timezone.utc)


def _uuid() -> str:
  return str(uuid.uuid4())


DEFAULT_BOARD_SETTINGS: dict[str, Any] = {
  "allowGuestView": False,
  "requireApprovalForJoin": True,
  "defaultTaskPriority": "medium",
  "enableWipLimits": False,
  "autoArchiveCompleted": False,
  "autoArchiveDays": 30,
}


class Base(DeclarativeBase):
  pass


class User(Base):
  __tablename__ = "users"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
  name: Mapped[str] = mapped_column(String(50), nullable=False)
  password_hash: Mapped[str] = mapped_column(String, nullable=False)
  role: Mapped[str] = mapped_column(String(16), nullable=False, default="user")
  active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
  is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  deleted_by_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
  last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  notification_prefs: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class RefreshToken(Base):
  __tablename__ = "refresh_tokens"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
  jti: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
  revoked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  replaced_by_jti: Mapped[str | None] = mapped_column(String(64), nullable=True)
  created_by_ip: Mapped[str | None] = mapped_column(String, nullable=True)
  user_agent: Mapped[str | None] = mapped_column(String, nullable=True)
  expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Board(Base):
  __tablename__ = "boards"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  title: Mapped[str] = mapped_column(String(200), nullable=False)
  description: Mapped[str] = mapped_column(String(1000), nullable=False, default="")
  owner_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
  visibility: Mapped[str] = mapped_column(String(16), nullable=False, default="private")
  settings: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=lambda: dict(DEFAULT_BOARD_SETTINGS))
  tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
  background_color: Mapped[str] = mapped_column(String(7), nullable=False, default="#ffffff")
  is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  archived_by_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
  total_tasks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  completed_tasks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  active_tasks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  last_activity_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class BoardMember(Base):
  __tablename__ = "board_members"
  __table_args__ = (UniqueConstraint("board_id", "user_id", name="uq_board_member"),)

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  board_id: Mapped[str] = mapped_column(String(36), ForeignKey("boards.id"), nullable=False, index=True)
  user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
  role: Mapped[str] = mapped_column(String(16), nullable=False, default="member")
  added_by_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
  added_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class BoardColumn(Base):
  __tablename__ = "board_columns"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  board_id: Mapped[str] = mapped_column(String(36), ForeignKey("boards.id"), nullable=False, index=True)
  title: Mapped[str] = mapped_column(String(100), nullable=False)
  position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  color: Mapped[str] = mapped_column(String(7), nullable=False, default="#3498db")
  wip_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
  is_collapsed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  # Ordered task ids; the authoritative order of the column.
  task_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Task(Base):
  __tablename__ = "tasks"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  title: Mapped[str] = mapped_column(String(200), nullable=False)
  description: Mapped[str] = mapped_column(Text, nullable=False, default="")
  status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending", index=True)
  priority: Mapped[str] = mapped_column(String(16), nullable=False, default="medium")
  due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
  assigned_to_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("users.id"), nullable=True, index=True)
  created_by_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
  board_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("boards.id"), nullable=True, index=True)
  column_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("board_columns.id"), nullable=True, index=True)
  position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  labels: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
  attachments: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
  is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
  deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  deleted_by_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
  due_soon_notified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  overdue_notified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
  recurrence: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
  next_occurrence_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
  occurrence_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  parent_task_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("tasks.id"), nullable=True, index=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Subtask(Base):
  __tablename__ = "subtasks"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  task_id: Mapped[str] = mapped_column(String(36), ForeignKey("tasks.id"), nullable=False, index=True)
  title: Mapped[str] = mapped_column(String(200), nullable=False)
  status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
  position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Comment(Base):
  __tablename__ = "comments"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  task_id: Mapped[str] = mapped_column(String(36), ForeignKey("tasks.id"), nullable=False, index=True)
  author_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)
  body: Mapped[str] = mapped_column(Text, nullable=False)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class Activity(Base):
  __tablename__ = "activities"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  board_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
  task_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
  actor_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
  action: Mapped[str] = mapped_column(String(64), nullable=False)
  details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)


class BoardInvitation(Base):
  __tablename__ = "board_invitations"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  board_id: Mapped[str] = mapped_column(String(36), ForeignKey("boards.id"), nullable=False, index=True)
  invited_by_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)
  invited_user_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("users.id"), nullable=True, index=True)
  email: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
  role: Mapped[str] = mapped_column(String(16), nullable=False, default="member")
  status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending", index=True)
  token: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
  message: Mapped[str | None] = mapped_column(String(500), nullable=True)
  invite_type: Mapped[str] = mapped_column(String(16), nullable=False, default="direct")
  created_ip: Mapped[str | None] = mapped_column(String, nullable=True)
  user_agent: Mapped[str | None] = mapped_column(String, nullable=True)
  expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
  accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  declined_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
