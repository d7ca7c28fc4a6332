from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator


_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_HEX_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

TaskStatus = Literal["pending", "in-progress", "completed", "overdue"]
TaskPriority = Literal["low", "medium", "high"]
BoardVisibility = Literal["private", "team", "public"]
MemberRole = Literal["owner", "admin", "member", "viewer"]
InviteRole = Literal["admin", "member", "viewer"]
SortOrder = Literal["asc", "desc"]


def _parse_dt_utc(value: object) -> object:
  if value is None:
    return None
  if isinstance(value, datetime):
    dt = value
  elif isinstance(value, str):
    s = value.strip()
    if not s:
      return None
    if _DATE_ONLY_RE.fullmatch(s):
      dt = datetime.fromisoformat(s)
    else:
      dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
  else:
    return value

  if dt.tzinfo is None:
    return dt.replace(tzinfo=timezone.utc)
  return dt.astimezone(timezone.utc)


def _normalize_email(value: object) -> object:
  if not isinstance(value, str):
    return value
  v = value.strip().lower()
  if not _EMAIL_RE.fullmatch(v):
    raise ValueError("Please provide a valid email")
  return v


def _check_color(value: str | None) -> str | None:
  if value is not None and not _HEX_COLOR_RE.fullmatch(value):
    raise ValueError("Color must be a valid hex color")
  return value


# --- auth / users ---


class UserOut(BaseModel):
  id: str
  name: str
  email: str
  role: Literal["user", "admin"]
  active: bool
  lastLogin: datetime | None = None
  createdAt: datetime
  updatedAt: datetime


class RegisterIn(BaseModel):
  name: str = Field(min_length=1, max_length=50)
  email: str = Field(min_length=3, max_length=255)
  password: str = Field(min_length=6, max_length=200)
  role: Literal["user", "admin"] | None = None

  @field_validator("email", mode="before")
  @classmethod
  def _email(cls, v: object) -> object:
    return _normalize_email(v)


class LoginIn(BaseModel):
  email: str = Field(min_length=3, max_length=255)
  password: str = Field(min_length=1, max_length=200)

  @field_validator("email", mode="before")
  @classmethod
  def _email(cls, v: object) -> object:
    return v.strip().lower() if isinstance(v, str) else v


class RefreshIn(BaseModel):
  refreshToken: str = Field(min_length=1)


class LogoutIn(BaseModel):
  refreshToken: str | None = None


class ProfileUpdateIn(BaseModel):
  name: str | None = Field(default=None, min_length=1, max_length=50)
  email: str | None = Field(default=None, min_length=3, max_length=255)

  @field_validator("email", mode="before")
  @classmethod
  def _email(cls, v: object) -> object:
    return _normalize_email(v)


class ChangePasswordIn(BaseModel):
  currentPassword: str = Field(min_length=1, max_length=200)
  newPassword: str = Field(min_length=6, max_length=200)


class NotificationPreferencesOut(BaseModel):
  emailEnabled: bool
  assignments: bool
  completions: bool
  dueSoon: bool
  overdue: bool
  invitations: bool


class NotificationPreferencesIn(BaseModel):
  emailEnabled: bool | None = None
  assignments: bool | None = None
  completions: bool | None = None
  dueSoon: bool | None = None
  overdue: bool | None = None
  invitations: bool | None = None


class UserCreateIn(RegisterIn):
  pass


class UserUpdateIn(BaseModel):
  name: str | None = Field(default=None, min_length=1, max_length=50)
  email: str | None = Field(default=None, min_length=3, max_length=255)
  role: Literal["user", "admin"] | None = None
  isActive: bool | None = None

  @field_validator("email", mode="before")
  @classmethod
  def _email(cls, v: object) -> object:
    return _normalize_email(v)


# --- tasks ---


RecurrenceFrequency = Literal["daily", "weekly", "monthly", "yearly"]


class RecurrenceIn(BaseModel):
  frequency: RecurrenceFrequency
  interval: int = Field(default=1, ge=1, le=365)
  dayOfMonth: int | None = Field(default=None, ge=1, le=31)
  endDate: datetime | None = None
  maxOccurrences: int | None = Field(default=None, ge=1, le=1000)

  @field_validator("endDate", mode="before")
  @classmethod
  def _end_date_to_utc(cls, v: object) -> object:
    return _parse_dt_utc(v)


class TaskOut(BaseModel):
  id: str
  title: str
  description: str
  status: TaskStatus
  priority: TaskPriority
  dueDate: datetime | None
  assignedTo: str | None
  createdBy: str
  boardId: str | None
  columnId: str | None
  position: int
  labels: list[str]
  attachments: list[str]
  isRecurring: bool = False
  recurrence: dict[str, Any] | None = None
  nextOccurrence: datetime | None = None
  occurrenceCount: int = 0
  parentTask: str | None = None
  createdAt: datetime
  updatedAt: datetime


class SubtaskOut(BaseModel):
  id: str
  taskId: str
  title: str
  status: Literal["pending", "completed"]
  position: int


class CommentOut(BaseModel):
  id: str
  taskId: str
  user: str
  text: str
  createdAt: datetime


class TaskDetailOut(TaskOut):
  subtasks: list[SubtaskOut] = []
  comments: list[CommentOut] = []


class ActivityOut(BaseModel):
  id: str
  taskId: str | None
  boardId: str | None
  actorId: str | None
  action: str
  details: dict[str, Any]
  createdAt: datetime


class TaskCreateIn(BaseModel):
  title: str = Field(min_length=1, max_length=200)
  description: str = Field(default="", max_length=5000)
  status: TaskStatus = "pending"
  priority: TaskPriority | None = None
  dueDate: datetime | None = None
  assignedTo: str | None = None
  labels: list[str] = []
  boardId: str | None = None
  columnId: str | None = None
  recurrence: RecurrenceIn | None = None

  @field_validator("dueDate", mode="before")
  @classmethod
  def _due_date_to_utc(cls, v: object) -> object:
    return _parse_dt_utc(v)

  @model_validator(mode="after")
  def _column_needs_board(self) -> "TaskCreateIn":
    if self.columnId and not self.boardId:
      raise ValueError("columnId requires boardId")
    if self.recurrence and not self.dueDate:
      raise ValueError("Recurring tasks require a due date")
    return self


class TaskUpdateIn(BaseModel):
  title: str | None = Field(default=None, min_length=1, max_length=200)
  description: str | None = Field(default=None, max_length=5000)
  status: TaskStatus | None = None
  priority: TaskPriority | None = None
  dueDate: datetime | None = None
  assignedTo: str | None = None
  labels: list[str] | None = None
  recurrence: RecurrenceIn | None = None

  @field_validator("dueDate", mode="before")
  @classmethod
  def _due_date_to_utc(cls, v: object) -> object:
    return _parse_dt_utc(v)


class TaskStatusIn(BaseModel):
  status: TaskStatus


class CommentCreateIn(BaseModel):
  text: str = Field(min_length=1, max_length=2000)


class AttachmentCreateIn(BaseModel):
  url: str = Field(min_length=1, max_length=2000)

  @field_validator("url")
  @classmethod
  def _url(cls, v: str) -> str:
    if not re.match(r"^https?://", v.strip()):
      raise ValueError("Attachment must be an http(s) URL")
    return v.strip()


class SubtaskCreateIn(BaseModel):
  title: str = Field(min_length=1, max_length=200)


class SubtaskUpdateIn(BaseModel):
  title: str | None = Field(default=None, min_length=1, max_length=200)
  status: Literal["pending", "completed"] | None = None


# --- boards ---


class BoardSettingsIn(BaseModel):
  allowGuestView: bool | None = None
  requireApprovalForJoin: bool | None = None
  defaultTaskPriority: TaskPriority | None = None
  enableWipLimits: bool | None = None
  autoArchiveCompleted: bool | None = None
  autoArchiveDays: int | None = Field(default=None, ge=1, le=365)


class ColumnIn(BaseModel):
  title: str = Field(min_length=1, max_length=100)
  position: int | None = Field(default=None, ge=0)
  color: str = "#3498db"
  wipLimit: int | None = Field(default=None, ge=0)
  isCollapsed: bool = False

  @field_validator("color")
  @classmethod
  def _color(cls, v: str) -> str:
    return _check_color(v)


class ColumnUpdateIn(BaseModel):
  title: str | None = Field(default=None, min_length=1, max_length=100)
  position: int | None = Field(default=None, ge=0)
  color: str | None = None
  wipLimit: int | None = Field(default=None, ge=0)
  isCollapsed: bool | None = None

  @field_validator("color")
  @classmethod
  def _color(cls, v: str | None) -> str | None:
    return _check_color(v)


class ColumnOut(BaseModel):
  id: str
  title: str
  position: int
  color: str
  wipLimit: int | None
  isCollapsed: bool
  taskIds: list[str]


class MemberOut(BaseModel):
  userId: str
  role: MemberRole
  addedAt: datetime
  addedBy: str | None


class BoardStatsOut(BaseModel):
  totalTasks: int
  completedTasks: int
  activeTasks: int
  lastActivity: datetime


class BoardOut(BaseModel):
  id: str
  title: str
  description: str
  owner: str
  visibility: BoardVisibility
  settings: dict[str, Any]
  tags: list[str]
  backgroundColor: str
  isArchived: bool
  archivedAt: datetime | None
  archivedBy: str | None
  stats: BoardStatsOut
  columns: list[ColumnOut]
  members: list[MemberOut]
  createdAt: datetime
  updatedAt: datetime


class BoardDetailOut(BoardOut):
  tasksByColumn: dict[str, list[TaskOut]]


class BoardCreateIn(BaseModel):
  title: str = Field(min_length=1, max_length=200)
  description: str = Field(default="", max_length=1000)
  visibility: BoardVisibility = "private"
  columns: list[ColumnIn] | None = None
  settings: BoardSettingsIn | None = None
  tags: list[str] = []
  backgroundColor: str = "#ffffff"

  @field_validator("backgroundColor")
  @classmethod
  def _color(cls, v: str) -> str:
    return _check_color(v)


class BoardUpdateIn(BaseModel):
  title: str | None = Field(default=None, min_length=1, max_length=200)
  description: str | None = Field(default=None, max_length=1000)
  visibility: BoardVisibility | None = None
  settings: BoardSettingsIn | None = None
  tags: list[str] | None = None
  backgroundColor: str | None = None

  @field_validator("backgroundColor")
  @classmethod
  def _color(cls, v: str | None) -> str | None:
    return _check_color(v)


class BoardArchiveIn(BaseModel):
  archived: bool = True


class BoardDuplicateIn(BaseModel):
  title: str | None = Field(default=None, min_length=1, max_length=200)
  includeTasks: bool = False
  includeMembers: bool = False


class ColumnOrderItem(BaseModel):
  columnId: str
  position: int = Field(ge=0)


class ColumnReorderIn(BaseModel):
  columns: list[ColumnOrderItem] = Field(min_length=1)


class MemberAddIn(BaseModel):
  userId: str
  role: InviteRole = "member"


class MemberRoleIn(BaseModel):
  role: InviteRole


class MoveTaskIn(BaseModel):
  taskId: str
  targetColumnId: str
  position: int = Field(default=0, ge=0)


class TaskMoveIn(BaseModel):
  sourceColumnId: str | None = None
  targetColumnId: str
  sourcePosition: int | None = Field(default=None, ge=0)
  targetPosition: int = Field(default=0, ge=0)


class BulkMoveItem(BaseModel):
  taskId: str
  sourceColumnId: str | None = None
  targetColumnId: str
  targetPosition: int = Field(default=0, ge=0)


class BulkMoveIn(BaseModel):
  moves: list[BulkMoveItem] = Field(min_length=1, max_length=50)


class TaskOrderIn(BaseModel):
  taskOrder: list[str]


# --- sharing ---


class InviteIn(BaseModel):
  email: str | None = None
  userId: str | None = None
  role: InviteRole = "member"
  message: str | None = Field(default=None, max_length=500)

  @field_validator("email", mode="before")
  @classmethod
  def _email(cls, v: object) -> object:
    return _normalize_email(v)

  @model_validator(mode="after")
  def _one_target(self) -> "InviteIn":
    if bool(self.email) == bool(self.userId):
      raise ValueError("Provide either email or userId")
    return self


class SharingLinkIn(BaseModel):
  role: InviteRole = "viewer"
  # milliseconds, 1 second .. 30 days
  expiresIn: int = Field(default=7 * 24 * 3600 * 1000, ge=1000, le=30 * 24 * 3600 * 1000)


class PermissionsIn(BaseModel):
  visibility: BoardVisibility | None = None
  settings: BoardSettingsIn | None = None


class InvitationOut(BaseModel):
  id: str
  boardId: str
  invitedBy: str
  invitedUser: str | None
  email: str | None
  role: InviteRole
  status: Literal["pending", "accepted", "declined", "expired", "cancelled"]
  token: str | None = None
  message: str | None
  inviteType: Literal["direct", "email", "link"]
  expiresAt: datetime
  acceptedAt: datetime | None
  declinedAt: datetime | None
  createdAt: datetime
