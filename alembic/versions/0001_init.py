"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def _id(name: str = "id", *args, **kw) -> sa.Column:
  return sa.Column(name, sa.String(36), *args, **kw)


def _timestamps(updated: bool = True) -> list[sa.Column]:
  cols = [sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)]
  if updated:
    cols.append(sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False))
  return cols


def upgrade() -> None:
  op.create_table(
    "users",
    _id(primary_key=True),
    sa.Column("email", sa.String(255), nullable=False),
    sa.Column("name", sa.String(50), nullable=False),
    sa.Column("password_hash", sa.String(), nullable=False),
    sa.Column("role", sa.String(16), nullable=False),
    sa.Column("active", sa.Boolean(), nullable=False),
    sa.Column("is_deleted", sa.Boolean(), nullable=False),
    sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    _id("deleted_by_id", nullable=True),
    sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
    *_timestamps(),
  )
  op.create_index("ix_users_email", "users", ["email"], unique=True)

  op.create_table(
    "refresh_tokens",
    _id(primary_key=True),
    _id("user_id", sa.ForeignKey("users.id"), nullable=False),
    sa.Column("jti", sa.String(64), nullable=False),
    sa.Column("revoked", sa.Boolean(), nullable=False),
    sa.Column("replaced_by_jti", sa.String(64), nullable=True),
    sa.Column("created_by_ip", sa.String(), nullable=True),
    sa.Column("user_agent", sa.String(), nullable=True),
    sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    *_timestamps(),
  )
  op.create_index("ix_refresh_tokens_user_id", "refresh_tokens", ["user_id"], unique=False)
  op.create_index("ix_refresh_tokens_jti", "refresh_tokens", ["jti"], unique=True)
  op.create_index("ix_refresh_tokens_expires_at", "refresh_tokens", ["expires_at"], unique=False)

  op.create_table(
    "boards",
    _id(primary_key=True),
    sa.Column("title", sa.String(200), nullable=False),
    sa.Column("description", sa.String(1000), nullable=False),
    _id("owner_id", sa.ForeignKey("users.id"), nullable=False),
    sa.Column("visibility", sa.String(16), nullable=False),
    sa.Column("settings", sa.JSON(), nullable=False),
    sa.Column("tags", sa.JSON(), nullable=False),
    sa.Column("background_color", sa.String(7), nullable=False),
    sa.Column("is_archived", sa.Boolean(), nullable=False),
    sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
    _id("archived_by_id", nullable=True),
    sa.Column("total_tasks", sa.Integer(), nullable=False),
    sa.Column("completed_tasks", sa.Integer(), nullable=False),
    sa.Column("active_tasks", sa.Integer(), nullable=False),
    sa.Column("last_activity_at", sa.DateTime(timezone=True), nullable=False),
    *_timestamps(),
  )
  op.create_index("ix_boards_owner_id", "boards", ["owner_id"], unique=False)

  op.create_table(
    "board_members",
    _id(primary_key=True),
    _id("board_id", sa.ForeignKey("boards.id"), nullable=False),
    _id("user_id", sa.ForeignKey("users.id"), nullable=False),
    sa.Column("role", sa.String(16), nullable=False),
    _id("added_by_id", nullable=True),
    sa.Column("added_at", sa.DateTime(timezone=True), nullable=False),
    sa.UniqueConstraint("board_id", "user_id", name="uq_board_member"),
  )
  op.create_index("ix_board_members_board_id", "board_members", ["board_id"], unique=False)
  op.create_index("ix_board_members_user_id", "board_members", ["user_id"], unique=False)

  op.create_table(
    "board_columns",
    _id(primary_key=True),
    _id("board_id", sa.ForeignKey("boards.id"), nullable=False),
    sa.Column("title", sa.String(100), nullable=False),
    sa.Column("position", sa.Integer(), nullable=False),
    sa.Column("color", sa.String(7), nullable=False),
    sa.Column("wip_limit", sa.Integer(), nullable=True),
    sa.Column("is_collapsed", sa.Boolean(), nullable=False),
    sa.Column("task_ids", sa.JSON(), nullable=False),
    *_timestamps(),
  )
  op.create_index("ix_board_columns_board_id", "board_columns", ["board_id"], unique=False)

  op.create_table(
    "tasks",
    _id(primary_key=True),
    sa.Column("title", sa.String(200), nullable=False),
    sa.Column("description", sa.Text(), nullable=False),
    sa.Column("status", sa.String(16), nullable=False),
    sa.Column("priority", sa.String(16), nullable=False),
    sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
    _id("assigned_to_id", sa.ForeignKey("users.id"), nullable=True),
    _id("created_by_id", sa.ForeignKey("users.id"), nullable=False),
    _id("board_id", sa.ForeignKey("boards.id"), nullable=True),
    _id("column_id", sa.ForeignKey("board_columns.id"), nullable=True),
    sa.Column("position", sa.Integer(), nullable=False),
    sa.Column("labels", sa.JSON(), nullable=False),
    sa.Column("attachments", sa.JSON(), nullable=False),
    sa.Column("is_deleted", sa.Boolean(), nullable=False),
    sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    _id("deleted_by_id", nullable=True),
    sa.Column("due_soon_notified_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("overdue_notified_at", sa.DateTime(timezone=True), nullable=True),
    *_timestamps(),
  )
  for col in ("status", "due_date", "assigned_to_id", "created_by_id", "board_id", "column_id", "is_deleted"):
    op.create_index(f"ix_tasks_{col}", "tasks", [col], unique=False)

  op.create_table(
    "subtasks",
    _id(primary_key=True),
    _id("task_id", sa.ForeignKey("tasks.id"), nullable=False),
    sa.Column("title", sa.String(200), nullable=False),
    sa.Column("status", sa.String(16), nullable=False),
    sa.Column("position", sa.Integer(), nullable=False),
    *_timestamps(),
  )
  op.create_index("ix_subtasks_task_id", "subtasks", ["task_id"], unique=False)

  op.create_table(
    "comments",
    _id(primary_key=True),
    _id("task_id", sa.ForeignKey("tasks.id"), nullable=False),
    _id("author_id", sa.ForeignKey("users.id"), nullable=False),
    sa.Column("body", sa.Text(), nullable=False),
    *_timestamps(updated=False),
  )
  op.create_index("ix_comments_task_id", "comments", ["task_id"], unique=False)

  op.create_table(
    "activities",
    _id(primary_key=True),
    _id("board_id", nullable=True),
    _id("task_id", nullable=True),
    _id("actor_id", nullable=True),
    sa.Column("action", sa.String(64), nullable=False),
    sa.Column("details", sa.JSON(), nullable=False),
    *_timestamps(updated=False),
  )
  op.create_index("ix_activities_board_id", "activities", ["board_id"], unique=False)
  op.create_index("ix_activities_task_id", "activities", ["task_id"], unique=False)
  op.create_index("ix_activities_created_at", "activities", ["created_at"], unique=False)

  op.create_table(
    "board_invitations",
    _id(primary_key=True),
    _id("board_id", sa.ForeignKey("boards.id"), nullable=False),
    _id("invited_by_id", sa.ForeignKey("users.id"), nullable=False),
    _id("invited_user_id", sa.ForeignKey("users.id"), nullable=True),
    sa.Column("email", sa.String(255), nullable=True),
    sa.Column("role", sa.String(16), nullable=False),
    sa.Column("status", sa.String(16), nullable=False),
    sa.Column("token", sa.String(64), nullable=False),
    sa.Column("message", sa.String(500), nullable=True),
    sa.Column("invite_type", sa.String(16), nullable=False),
    sa.Column("created_ip", sa.String(), nullable=True),
    sa.Column("user_agent", sa.String(), nullable=True),
    sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("declined_at", sa.DateTime(timezone=True), nullable=True),
    *_timestamps(),
  )
  op.create_index("ix_board_invitations_board_id", "board_invitations", ["board_id"], unique=False)
  op.create_index("ix_board_invitations_invited_user_id", "board_invitations", ["invited_user_id"], unique=False)
  op.create_index("ix_board_invitations_email", "board_invitations", ["email"], unique=False)
  op.create_index("ix_board_invitations_status", "board_invitations", ["status"], unique=False)
  op.create_index("ix_board_invitations_token", "board_invitations", ["token"], unique=True)


def downgrade() -> None:
  for table in (
    "board_invitations",
    "activities",
    "comments",
    "subtasks",
    "tasks",
    "board_columns",
    "board_members",
    "boards",
    "refresh_tokens",
    "users",
  ):
    op.drop_table(table)
