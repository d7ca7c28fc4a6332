from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.db import SessionLocal
from taskboard.errors import AuthError, ForbiddenError
from taskboard.models import User
from taskboard.security import TokenError, decode_access_token


async def get_db() -> AsyncSession:
  async with SessionLocal() as session:
    yield session


def _token_from_request(request: Request) -> str | None:
  token = (request.headers.get("x-auth-token") or "").strip()
  if token:
    return token
  auth = request.headers.get("authorization")
  if auth and auth.lower().startswith("bearer "):
    return auth.split(" ", 1)[1].strip() or None
  return None


async def get_current_user(request: Request, db: AsyncSession = Depends(get_db)) -> User:
  token = _token_from_request(request)
  if not token:
    raise AuthError("No token, authorization denied")
  try:
    claims = decode_access_token(token)
  except TokenError:
    raise AuthError("Token is not valid")

  res = await db.execute(select(User).where(User.id == claims["id"]))
  u = res.scalar_one_or_none()
  if not u or u.is_deleted or not u.active:
    raise AuthError("Token is not valid")
  return u


def require_roles(*roles: str):
  async def _check(user: User = Depends(get_current_user)) -> User:
    if user.role not in roles:
      raise ForbiddenError("Forbidden: insufficient role")
    return user

  return _check


require_admin = require_roles("admin")


def client_ip(request: Request) -> str | None:
  return request.client.host if request.client else None


def user_agent(request: Request) -> str | None:
  return request.headers.get("user-agent")
