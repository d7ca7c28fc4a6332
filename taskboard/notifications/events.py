from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.config import settings
from taskboard.models import Board, BoardInvitation, Task, User, as_utc
from taskboard.notifications.email import EmailMessage, send_email
from taskboard.notifications.preferences import wants_email

logger = logging.getLogger(__name__)

OPEN_STATUSES = ("pending", "in-progress", "overdue")


async def _user(db: AsyncSession, user_id: str | None) -> User | None:
  if not user_id:
    return None
  res = await db.execute(select(User).where(User.id == user_id, User.is_deleted.is_(False)))
  return res.scalar_one_or_none()


def _due_text(t: Task) -> str:
  due = as_utc(t.due_date)
  return due.strftime("%Y-%m-%d %H:%M UTC") if due else "no due date"


async def notify_task_assigned(db: AsyncSession, task: Task, actor: User) -> bool:
  if not task.assigned_to_id or task.assigned_to_id == actor.id:
    return False
  assignee = await _user(db, task.assigned_to_id)
  if not assignee or not wants_email(assignee, "assignments"):
    return False
  return await send_email(
    EmailMessage(
      to=assignee.email,
      subject=f"New task assigned: {task.title}",
      body=f"{actor.name} assigned you \"{task.title}\" (priority {task.priority}, due {_due_text(task)}).",
    )
  )


async def notify_task_completed(db: AsyncSession, task: Task, actor: User) -> bool:
  if task.created_by_id == actor.id:
    return False
  creator = await _user(db, task.created_by_id)
  if not creator or not wants_email(creator, "completions"):
    return False
  return await send_email(
    EmailMessage(
      to=creator.email,
      subject=f"Task completed: {task.title}",
      body=f"{actor.name} marked \"{task.title}\" as completed.",
    )
  )


def invitation_link(token: str) -> str:
  return f"{settings.frontend_url.rstrip('/')}/boards/join/{token}"


async def notify_board_invitation(db: AsyncSession, inv: BoardInvitation, board: Board, inviter: User) -> bool:
  to = inv.email
  if inv.invited_user_id:
    u = await _user(db, inv.invited_user_id)
    to = u.email if u and wants_email(u, "invitations") else None
  if not to:
    return False
  body = f"{inviter.name} invited you to join \"{board.title}\" as {inv.role}.\n{invitation_link(inv.token)}"
  if inv.message:
    body = f"{body}\n\n{inv.message}"
  return await send_email(EmailMessage(to=to, subject=f"Invitation to board: {board.title}", body=body))


async def dispatch_due_notifications_once(db: AsyncSession, *, now: datetime | None = None, limit: int = 100) -> int:
  """
  Email assignees about tasks due within ``due_soon_hours`` and tasks past due.

  Each task is stamped when notified, so a given due date produces at most one
  due-soon and one overdue email. Overdue tasks also move to status "overdue".
  """
  now = now or datetime.now(timezone.utc)
  horizon = now + timedelta(hours=settings.due_soon_hours)
  sent = 0

  res = await db.execute(
    select(Task)
    .where(
      Task.is_deleted.is_(False),
      Task.status.in_(OPEN_STATUSES),
      Task.due_date.is_not(None),
      Task.overdue_notified_at.is_(None),
      Task.due_date <= horizon,
      or_(Task.due_soon_notified_at.is_(None), Task.due_date <= now),
    )
    .order_by(Task.due_date.asc())
    .limit(int(limit))
  )
  for t in res.scalars().all():
    due = as_utc(t.due_date)
    recipient = await _user(db, t.assigned_to_id or t.created_by_id)
    if due <= now:
      t.status = "overdue"
      t.overdue_notified_at = now
      if recipient and wants_email(recipient, "overdue"):
        ok = await send_email(
          EmailMessage(to=recipient.email, subject=f"Task overdue: {t.title}", body=f"\"{t.title}\" was due {_due_text(t)}.")
        )
        sent += int(ok)
    else:
      if t.due_soon_notified_at is not None:
        continue
      t.due_soon_notified_at = now
      if recipient and wants_email(recipient, "dueSoon"):
        ok = await send_email(
          EmailMessage(to=recipient.email, subject=f"Task due soon: {t.title}", body=f"\"{t.title}\" is due {_due_text(t)}.")
        )
        sent += int(ok)
  await db.commit()
  if sent:
    logger.info("due-date notifications sent: %d", sent)
  return sent
