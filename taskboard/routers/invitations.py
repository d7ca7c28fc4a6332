from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.boards import sharing
from taskboard.deps import get_current_user, get_db
from taskboard.models import User
from taskboard.responses import envelope

router = APIRouter(prefix="/invitations", tags=["invitations"])


@router.get("/me")
async def my_invitations(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  return envelope(await sharing.invitations_for_user(db, user), "Invitations retrieved successfully")


@router.get("/{token}")
async def invitation_details(token: str, db: AsyncSession = Depends(get_db)) -> dict:
  return envelope(await sharing.invitation_details(db, token), "Invitation details retrieved successfully")


@router.post("/{token}/accept")
async def accept_invitation(token: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  board, message = await sharing.accept_invitation(db, token, user)
  return envelope(board, message)


@router.post("/{token}/decline")
async def decline_invitation(token: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  await sharing.decline_invitation(db, token, user)
  return envelope(None, "Invitation declined successfully")


@router.post("/{token}/join")
async def join_via_link(token: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  board, message = await sharing.join_via_link(db, token, user)
  return envelope(board, message)
