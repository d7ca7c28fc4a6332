from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.boards import sharing
from taskboard.deps import client_ip, get_current_user, get_db, user_agent
from taskboard.models import User
from taskboard.responses import created, envelope, paginated
from taskboard.schemas import InviteIn, PermissionsIn, SharingLinkIn

router = APIRouter(prefix="/boards", tags=["sharing"])

InvitationStatus = Literal["pending", "accepted", "declined", "expired", "cancelled"]


@router.post("/{board_id}/invite", status_code=201)
async def invite_to_board(
  board_id: str,
  payload: InviteIn,
  request: Request,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
):
  out = await sharing.invite_to_board(db, board_id, payload, user, ip=client_ip(request), user_agent=user_agent(request))
  return created(out, "Invitation sent successfully")


@router.get("/{board_id}/invitations")
async def list_board_invitations(
  board_id: str,
  status: InvitationStatus | None = None,
  page: int = Query(default=1, ge=1),
  limit: int = Query(default=20, ge=1, le=100),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  items, total = await sharing.list_board_invitations(db, board_id, user, status=status, page=page, limit=limit)
  return paginated(items, page=page, limit=limit, total=total, message="Invitations retrieved successfully")


@router.patch("/{board_id}/invitations/{invitation_id}/cancel")
async def cancel_invitation(
  board_id: str, invitation_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)
) -> dict:
  await sharing.cancel_invitation(db, board_id, invitation_id, user)
  return envelope(None, "Invitation cancelled successfully")


@router.post("/{board_id}/sharing-link", status_code=201)
async def generate_sharing_link(
  board_id: str, payload: SharingLinkIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)
):
  out = await sharing.generate_sharing_link(db, board_id, payload, user)
  return created(out, "Sharing link generated successfully")


@router.patch("/{board_id}/permissions")
async def update_permissions(
  board_id: str, payload: PermissionsIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)
) -> dict:
  out = await sharing.update_permissions(db, board_id, payload, user)
  return envelope(out, "Board permissions updated successfully")
