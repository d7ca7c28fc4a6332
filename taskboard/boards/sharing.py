from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.activity import write_activity
from taskboard.boards.service import (
  board_out,
  get_board_or_404,
  get_membership,
  merged_settings,
  require_edit,
  require_view,
)
from taskboard.errors import ForbiddenError, NotFoundError, ValidationError
from taskboard.models import Board, BoardInvitation, BoardMember, User, as_utc, utcnow
from taskboard.notifications.events import invitation_link, notify_board_invitation
from taskboard.schemas import BoardOut, InvitationOut, InviteIn, PermissionsIn, SharingLinkIn
from taskboard.security import new_invitation_expires_at, new_invitation_token

logger = logging.getLogger(__name__)


def invitation_out(inv: BoardInvitation, *, include_token: bool = False) -> InvitationOut:
  return InvitationOut(
    id=inv.id,
    boardId=inv.board_id,
    invitedBy=inv.invited_by_id,
    invitedUser=inv.invited_user_id,
    email=inv.email,
    role=inv.role,
    status=inv.status,
    token=inv.token if include_token else None,
    message=inv.message,
    inviteType=inv.invite_type,
    expiresAt=as_utc(inv.expires_at),
    acceptedAt=as_utc(inv.accepted_at),
    declinedAt=as_utc(inv.declined_at),
    createdAt=as_utc(inv.created_at),
  )


def can_accept(inv: BoardInvitation, now: datetime | None = None) -> bool:
  now = now or datetime.now(timezone.utc)
  return inv.status == "pending" and as_utc(inv.expires_at) > now


async def _invitation_by_token(db: AsyncSession, token: str) -> BoardInvitation:
  res = await db.execute(select(BoardInvitation).where(BoardInvitation.token == token))
  inv = res.scalar_one_or_none()
  if not inv:
    raise NotFoundError("Invitation not found")
  return inv


async def _is_member(db: AsyncSession, board: Board, user_id: str) -> bool:
  return board.owner_id == user_id or await get_membership(db, board.id, user_id) is not None


async def invite_to_board(
  db: AsyncSession,
  board_id: str,
  payload: InviteIn,
  user: User,
  *,
  ip: str | None = None,
  user_agent: str | None = None,
) -> InvitationOut:
  b, _ = await require_edit(db, board_id, user)

  target: User | None = None
  if payload.userId:
    res = await db.execute(select(User).where(User.id == payload.userId, User.is_deleted.is_(False)))
    target = res.scalar_one_or_none()
    if not target:
      raise NotFoundError("User not found")
  else:
    res = await db.execute(select(User).where(User.email == payload.email, User.is_deleted.is_(False)))
    target = res.scalar_one_or_none()

  if target and await _is_member(db, b, target.id):
    raise ValidationError("User is already a member of this board")

  email = target.email if target else payload.email
  match = [BoardInvitation.email == email]
  if target:
    match.append(BoardInvitation.invited_user_id == target.id)
  existing = await db.execute(
    select(BoardInvitation.id).where(
      BoardInvitation.board_id == board_id,
      BoardInvitation.status == "pending",
      BoardInvitation.expires_at > utcnow(),
      or_(*match),
    )
  )
  if existing.first() is not None:
    raise ValidationError("Invitation already sent")

  inv = BoardInvitation(
    board_id=board_id,
    invited_by_id=user.id,
    invited_user_id=target.id if target else None,
    email=None if target else email,
    role=payload.role,
    status="pending",
    token=new_invitation_token(),
    message=payload.message,
    invite_type="direct" if target else "email",
    created_ip=ip,
    user_agent=user_agent,
    expires_at=new_invitation_expires_at(),
  )
  db.add(inv)
  await write_activity(db, action="member_invited", board_id=board_id, actor_id=user.id, details={"email": email, "role": payload.role})
  await db.commit()

  if not await notify_board_invitation(db, inv, b, user):
    logger.warning("invitation %s created but email was not delivered", inv.id)
  return invitation_out(inv)


async def list_board_invitations(
  db: AsyncSession, board_id: str, user: User, *, status: str | None = None, page: int = 1, limit: int = 20
) -> tuple[list[InvitationOut], int]:
  await require_view(db, board_id, user)
  conds = [BoardInvitation.board_id == board_id]
  if status:
    conds.append(BoardInvitation.status == status)
  total = (await db.execute(select(func.count()).select_from(BoardInvitation).where(*conds))).scalar_one()
  res = await db.execute(
    select(BoardInvitation)
    .where(*conds)
    .order_by(BoardInvitation.created_at.desc())
    .offset((page - 1) * limit)
    .limit(limit)
  )
  return [invitation_out(i) for i in res.scalars().all()], int(total)


async def cancel_invitation(db: AsyncSession, board_id: str, invitation_id: str, user: User) -> None:
  res = await db.execute(select(BoardInvitation).where(BoardInvitation.id == invitation_id, BoardInvitation.board_id == board_id))
  inv = res.scalar_one_or_none()
  if not inv:
    raise NotFoundError("Invitation not found")
  await require_edit(db, board_id, user)
  if inv.status != "pending":
    raise ValidationError("Invitation cannot be cancelled")
  inv.status = "cancelled"
  await db.commit()


async def invitations_for_user(db: AsyncSession, user: User) -> list[InvitationOut]:
  res = await db.execute(
    select(BoardInvitation)
    .where(
      BoardInvitation.status == "pending",
      BoardInvitation.expires_at > utcnow(),
      or_(BoardInvitation.invited_user_id == user.id, BoardInvitation.email == user.email),
    )
    .order_by(BoardInvitation.created_at.desc())
  )
  # Token is included: this list is what the invitee acts on.
  return [invitation_out(i, include_token=True) for i in res.scalars().all()]


async def invitation_details(db: AsyncSession, token: str) -> dict[str, Any]:
  inv = await _invitation_by_token(db, token)
  b = await get_board_or_404(db, inv.board_id)
  ires = await db.execute(select(User).where(User.id == inv.invited_by_id))
  inviter = ires.scalar_one_or_none()
  return {
    "board": {"id": b.id, "title": b.title, "description": b.description},
    "invitedBy": {"id": inviter.id, "name": inviter.name} if inviter else None,
    "role": inv.role,
    "status": inv.status,
    "inviteType": inv.invite_type,
    "message": inv.message,
    "expiresAt": as_utc(inv.expires_at),
    "isValid": can_accept(inv),
  }


async def _add_member(db: AsyncSession, board: Board, user_id: str, role: str, added_by: str) -> None:
  db.add(BoardMember(board_id=board.id, user_id=user_id, role=role, added_by_id=added_by))
  board.last_activity_at = utcnow()
  await write_activity(db, action="member_joined", board_id=board.id, actor_id=user_id, details={"role": role})


async def accept_invitation(db: AsyncSession, token: str, user: User) -> tuple[BoardOut, str]:
  inv = await _invitation_by_token(db, token)
  if not can_accept(inv):
    raise ValidationError("Invitation has expired or cannot be accepted")
  if inv.invited_user_id is None:
    if not inv.email or inv.email != user.email:
      raise ValidationError("Email mismatch")
    inv.invited_user_id = user.id
  elif inv.invited_user_id != user.id:
    raise ForbiddenError("Access denied")

  b = await get_board_or_404(db, inv.board_id)
  message = "Invitation accepted successfully"
  if await _is_member(db, b, user.id):
    message = "User is already a member of this board"
  else:
    await _add_member(db, b, user.id, inv.role, inv.invited_by_id)
  inv.status = "accepted"
  inv.accepted_at = utcnow()
  await db.commit()
  return await board_out(db, b), message


async def decline_invitation(db: AsyncSession, token: str, user: User) -> None:
  inv = await _invitation_by_token(db, token)
  if inv.status != "pending":
    raise ValidationError("Invitation cannot be declined")
  if inv.invited_user_id and inv.invited_user_id != user.id:
    raise ForbiddenError("Access denied")
  if not inv.invited_user_id and inv.email and inv.email != user.email:
    raise ForbiddenError("Access denied")
  inv.status = "declined"
  inv.declined_at = utcnow()
  await db.commit()


async def generate_sharing_link(db: AsyncSession, board_id: str, payload: SharingLinkIn, user: User) -> dict[str, Any]:
  await require_edit(db, board_id, user)
  inv = BoardInvitation(
    board_id=board_id,
    invited_by_id=user.id,
    role=payload.role,
    status="pending",
    token=new_invitation_token(),
    invite_type="link",
    expires_at=utcnow() + timedelta(milliseconds=payload.expiresIn),
  )
  db.add(inv)
  await db.commit()
  return {"link": invitation_link(inv.token), "token": inv.token, "expiresAt": as_utc(inv.expires_at), "role": inv.role}


async def join_via_link(db: AsyncSession, token: str, user: User) -> tuple[BoardOut, str]:
  res = await db.execute(select(BoardInvitation).where(BoardInvitation.token == token))
  inv = res.scalar_one_or_none()
  if not inv:
    raise NotFoundError("Invalid or expired link")
  if not can_accept(inv):
    raise ValidationError("Link has expired")
  b = await get_board_or_404(db, inv.board_id)
  if await _is_member(db, b, user.id):
    return await board_out(db, b), "You are already a member of this board"

  await _add_member(db, b, user.id, inv.role, inv.invited_by_id)
  # Link invitations stay pending so the same link keeps working.
  if inv.invite_type != "link":
    inv.status = "accepted"
    inv.accepted_at = utcnow()
    inv.invited_user_id = user.id
  await db.commit()
  return await board_out(db, b), "Successfully joined the board"


async def update_permissions(db: AsyncSession, board_id: str, payload: PermissionsIn, user: User) -> BoardOut:
  b, _ = await require_edit(db, board_id, user)
  if payload.visibility is not None:
    b.visibility = payload.visibility
  if payload.settings is not None:
    b.settings = merged_settings(b.settings, payload.settings)
  await write_activity(
    db, action="board_permissions_updated", board_id=board_id, actor_id=user.id, details=payload.model_dump(exclude_none=True)
  )
  await db.commit()
  return await board_out(db, b)
