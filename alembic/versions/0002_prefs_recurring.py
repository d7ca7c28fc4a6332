"""notification prefs + recurring tasks

Revision ID: 0002_prefs_recurring
Revises: 0001_init
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


revision = "0002_prefs_recurring"
down_revision = "0001_init"
branch_labels = None
depends_on = None


def upgrade() -> None:
  with op.batch_alter_table("users") as batch:
    batch.add_column(sa.Column("notification_prefs", sa.JSON(), nullable=False, server_default=sa.text("'{}'")))

  with op.batch_alter_table("tasks") as batch:
    batch.add_column(sa.Column("is_recurring", sa.Boolean(), nullable=False, server_default=sa.false()))
    batch.add_column(sa.Column("recurrence", sa.JSON(), nullable=True))
    batch.add_column(sa.Column("next_occurrence_at", sa.DateTime(timezone=True), nullable=True))
    batch.add_column(sa.Column("occurrence_count", sa.Integer(), nullable=False, server_default="0"))
    batch.add_column(sa.Column("parent_task_id", sa.String(36), nullable=True))
    batch.create_foreign_key("fk_tasks_parent_task_id", "tasks", ["parent_task_id"], ["id"])
    batch.create_index("ix_tasks_is_recurring", ["is_recurring"], unique=False)
    batch.create_index("ix_tasks_next_occurrence_at", ["next_occurrence_at"], unique=False)
    batch.create_index("ix_tasks_parent_task_id", ["parent_task_id"], unique=False)


def downgrade() -> None:
  with op.batch_alter_table("tasks") as batch:
    batch.drop_index("ix_tasks_parent_task_id")
    batch.drop_index("ix_tasks_next_occurrence_at")
    batch.drop_index("ix_tasks_is_recurring")
    batch.drop_constraint("fk_tasks_parent_task_id", type_="foreignkey")
    batch.drop_column("parent_task_id")
    batch.drop_column("occurrence_count")
    batch.drop_column("next_occurrence_at")
    batch.drop_column("recurrence")
    batch.drop_column("is_recurring")

  with op.batch_alter_table("users") as batch:
    batch.drop_column("notification_prefs")
