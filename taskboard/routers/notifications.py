from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.deps import get_current_user, get_db
from taskboard.models import User
from taskboard.notifications.preferences import preferences_out, update_preferences
from taskboard.responses import envelope
from taskboard.schemas import NotificationPreferencesIn

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/preferences")
async def get_notification_preferences(user: User = Depends(get_current_user)) -> dict:
  return envelope(preferences_out(user), "Notification preferences retrieved successfully")


@router.patch("/preferences")
async def update_notification_preferences(
  payload: NotificationPreferencesIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  out = await update_preferences(db, user, payload)
  return envelope(out, "Notification preferences updated successfully")
