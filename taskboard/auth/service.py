from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.config import settings
from taskboard.errors import AuthError, ConflictError, ValidationError
from taskboard.models import RefreshToken, User, as_utc, utcnow
from taskboard.schemas import ChangePasswordIn, ProfileUpdateIn, RegisterIn, UserOut
from taskboard.security import (
  TokenError,
  create_access_token,
  create_refresh_token,
  decode_refresh_token,
  hash_password,
  verify_password,
)

logger = logging.getLogger(__name__)


def user_out(u: User) -> UserOut:
  return UserOut(
    id=u.id,
    name=u.name,
    email=u.email,
    role=u.role,
    active=u.active,
    lastLogin=as_utc(u.last_login_at),
    createdAt=as_utc(u.created_at),
    updatedAt=as_utc(u.updated_at),
  )


async def email_taken(db: AsyncSession, email: str, *, exclude_user_id: str | None = None) -> bool:
  q = select(func.count()).select_from(User).where(func.lower(User.email) == email.lower())
  if exclude_user_id:
    q = q.where(User.id != exclude_user_id)
  return (await db.execute(q)).scalar_one() > 0


async def register(db: AsyncSession, payload: RegisterIn) -> User:
  if await email_taken(db, payload.email):
    raise ConflictError("User already exists")
  role = (payload.role or "user") if settings.allow_self_assigned_role else "user"
  u = User(name=payload.name.strip(), email=payload.email, password_hash=hash_password(payload.password), role=role)
  db.add(u)
  await db.commit()
  logger.info("user registered: %s", u.id)
  return u


async def _issue_refresh(db: AsyncSession, user_id: str, *, ip: str | None, user_agent: str | None) -> tuple[str, str]:
  token, jti, expires_at = create_refresh_token(user_id)
  db.add(RefreshToken(user_id=user_id, jti=jti, expires_at=expires_at, created_by_ip=ip, user_agent=user_agent))
  return token, jti


async def login(
  db: AsyncSession, email: str, password: str, *, ip: str | None = None, user_agent: str | None = None
) -> tuple[User, str, str]:
  res = await db.execute(select(User).where(User.email == email.strip().lower()))
  u = res.scalar_one_or_none()
  if not u or u.is_deleted or not u.active or not verify_password(password, u.password_hash):
    logger.warning("login failed for %s from %s", email, ip)
    raise AuthError("Invalid credentials")

  u.last_login_at = utcnow()
  access = create_access_token(u)
  refresh, _ = await _issue_refresh(db, u.id, ip=ip, user_agent=user_agent)
  await db.commit()
  logger.info("login ok: %s", u.id)
  return u, access, refresh


async def rotate_refresh(
  db: AsyncSession, token: str, *, ip: str | None = None, user_agent: str | None = None
) -> tuple[str, str]:
  """Exchange a refresh token for a new pair; the presented token is revoked."""
  try:
    sub, jti = decode_refresh_token(token)
  except TokenError:
    raise AuthError("Invalid or expired refresh token")

  res = await db.execute(select(RefreshToken).where(RefreshToken.jti == jti, RefreshToken.user_id == sub))
  rec = res.scalar_one_or_none()
  if not rec or rec.revoked or as_utc(rec.expires_at) <= datetime.now(timezone.utc):
    raise AuthError("Invalid or expired refresh token")

  ures = await db.execute(select(User).where(User.id == sub))
  u = ures.scalar_one_or_none()
  if not u or u.is_deleted or not u.active:
    raise AuthError("User not found or inactive")

  new_token, new_jti = await _issue_refresh(db, u.id, ip=ip, user_agent=user_agent)
  rec.revoked = True
  rec.replaced_by_jti = new_jti
  await db.commit()
  return create_access_token(u), new_token


async def logout(db: AsyncSession, token: str | None) -> None:
  if not token:
    raise ValidationError("Refresh token is required")
  try:
    sub, jti = decode_refresh_token(token)
  except TokenError as exc:
    logger.info("logout with unverifiable refresh token: %s", exc)
    return
  await db.execute(update(RefreshToken).where(RefreshToken.jti == jti, RefreshToken.user_id == sub).values(revoked=True))
  await db.commit()


async def revoke_user_tokens(db: AsyncSession, user_id: str) -> None:
  await db.execute(update(RefreshToken).where(RefreshToken.user_id == user_id, RefreshToken.revoked.is_(False)).values(revoked=True))


async def update_profile(db: AsyncSession, user: User, payload: ProfileUpdateIn) -> User:
  if payload.email and payload.email != user.email:
    if await email_taken(db, payload.email, exclude_user_id=user.id):
      raise ConflictError("Email already in use")
    user.email = payload.email
  if payload.name:
    user.name = payload.name.strip()
  await db.commit()
  return user


async def change_password(db: AsyncSession, user: User, payload: ChangePasswordIn) -> None:
  if not verify_password(payload.currentPassword, user.password_hash):
    raise ValidationError("Current password is incorrect")
  user.password_hash = hash_password(payload.newPassword)
  await db.commit()


async def cleanup_expired_tokens(db: AsyncSession, *, now: datetime | None = None) -> int:
  now = now or datetime.now(timezone.utc)
  res = await db.execute(delete(RefreshToken).where(RefreshToken.expires_at <= now))
  await db.commit()
  return int(res.rowcount or 0)
