from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from taskboard.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

INVITATION_TTL_DAYS = 7


class TokenError(Exception):
  pass


def hash_password(password: str) -> str:
  return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
  return pwd_context.verify(password, password_hash)


def create_access_token(user: Any, *, now: datetime | None = None) -> str:
  now = now or datetime.now(timezone.utc)
  claims = {
    "user": {"id": user.id, "email": user.email, "name": user.name, "role": user.role},
    "iat": int(now.timestamp()),
    "exp": int((now + timedelta(minutes=settings.access_token_expire_minutes)).timestamp()),
  }
  return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_refresh_token(user_id: str, *, now: datetime | None = None) -> tuple[str, str, datetime]:
  """
  Returns (token, jti, expires_at).

  The jti is what gets persisted; the signed token itself is never stored.
  """
  now = now or datetime.now(timezone.utc)
  jti = uuid.uuid4().hex
  expires_at = now + timedelta(days=settings.refresh_token_expire_days)
  claims = {"sub": user_id, "jti": jti, "iat": int(now.timestamp()), "exp": int(expires_at.timestamp())}
  token = jwt.encode(claims, settings.refresh_secret(), algorithm=settings.jwt_algorithm)
  return token, jti, expires_at


def decode_access_token(token: str) -> dict[str, Any]:
  try:
    payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
  except JWTError as exc:
    raise TokenError(str(exc)) from exc
  claims = payload.get("user")
  if not isinstance(claims, dict) or not claims.get("id"):
    raise TokenError("Missing user claim")
  return claims


def decode_refresh_token(token: str) -> tuple[str, str]:
  try:
    payload = jwt.decode(token, settings.refresh_secret(), algorithms=[settings.jwt_algorithm])
  except JWTError as exc:
    raise TokenError(str(exc)) from exc
  sub = payload.get("sub")
  jti = payload.get("jti")
  if not sub or not jti:
    raise TokenError("Missing sub/jti")
  return str(sub), str(jti)


def new_invitation_token() -> str:
  return secrets.token_hex(32)


def new_invitation_expires_at(now: datetime | None = None) -> datetime:
  return (now or datetime.now(timezone.utc)) + timedelta(days=INVITATION_TTL_DAYS)
