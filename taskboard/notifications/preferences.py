from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.activity import write_activity
from taskboard.models import User
from taskboard.schemas import NotificationPreferencesIn, NotificationPreferencesOut

PREF_KEYS = ("emailEnabled", "assignments", "completions", "dueSoon", "overdue", "invitations")


def _default_prefs() -> dict[str, bool]:
  return {key: True for key in PREF_KEYS}


def preferences_for(user: User) -> dict[str, bool]:
  prefs = _default_prefs()
  prefs.update({k: bool(v) for k, v in (user.notification_prefs or {}).items() if k in PREF_KEYS})
  return prefs


def wants_email(user: User, kind: str) -> bool:
  prefs = preferences_for(user)
  return prefs["emailEnabled"] and prefs.get(kind, True)


def preferences_out(user: User) -> NotificationPreferencesOut:
  return NotificationPreferencesOut(**preferences_for(user))


async def update_preferences(db: AsyncSession, user: User, payload: NotificationPreferencesIn) -> NotificationPreferencesOut:
  prefs = preferences_for(user)
  changed: list[str] = []
  for key in PREF_KEYS:
    if key in payload.model_fields_set:
      val = getattr(payload, key)
      if val is not None:
        prefs[key] = bool(val)
        changed.append(key)
  # Reassign so the JSON column is flagged dirty.
  user.notification_prefs = dict(prefs)
  details: dict[str, Any] = {"changed": sorted(changed)}
  await write_activity(db, action="notification_preferences_updated", actor_id=user.id, details=details)
  await db.commit()
  return preferences_out(user)
