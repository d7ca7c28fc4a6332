from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.auth.service import email_taken, revoke_user_tokens, user_out
from taskboard.deps import get_db, require_admin
from taskboard.errors import ConflictError, NotFoundError, ValidationError
from taskboard.models import User, utcnow
from taskboard.responses import created, envelope, paginated
from taskboard.schemas import UserCreateIn, UserUpdateIn
from taskboard.security import hash_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])

_LIVE = (User.is_deleted.is_(False),)


async def _live_user_or_404(db: AsyncSession, user_id: str) -> User:
  res = await db.execute(select(User).where(User.id == user_id))
  u = res.scalar_one_or_none()
  if not u or u.is_deleted:
    raise NotFoundError("User not found")
  return u


@router.get("")
async def list_users(
  page: int = Query(default=1, ge=1),
  limit: int = Query(default=20, ge=1, le=100),
  includeInactive: bool = False,
  _: User = Depends(require_admin),
  db: AsyncSession = Depends(get_db),
) -> dict:
  conds = list(_LIVE)
  if not includeInactive:
    conds.append(User.active.is_(True))
  total = (await db.execute(select(func.count()).select_from(User).where(*conds))).scalar_one()
  res = await db.execute(
    select(User).where(*conds).order_by(User.created_at.desc(), User.id.asc()).offset((page - 1) * limit).limit(limit)
  )
  items = [user_out(u) for u in res.scalars().all()]
  return paginated(items, page=page, limit=limit, total=int(total), message="Users retrieved successfully")


@router.get("/search")
async def search_users(
  q: str | None = None,
  role: Literal["user", "admin"] | None = None,
  page: int = Query(default=1, ge=1),
  limit: int = Query(default=10, ge=1, le=100),
  _: User = Depends(require_admin),
  db: AsyncSession = Depends(get_db),
) -> dict:
  conds = [*_LIVE, User.active.is_(True)]
  if q and q.strip():
    like = f"%{q.strip()}%"
    conds.append(or_(User.name.ilike(like), User.email.ilike(like)))
  if role:
    conds.append(User.role == role)
  total = (await db.execute(select(func.count()).select_from(User).where(*conds))).scalar_one()
  res = await db.execute(
    select(User).where(*conds).order_by(User.created_at.desc(), User.id.asc()).offset((page - 1) * limit).limit(limit)
  )
  items = [user_out(u) for u in res.scalars().all()]
  return paginated(items, page=page, limit=limit, total=int(total), message="Users retrieved successfully")


@router.get("/stats")
async def user_stats(_: User = Depends(require_admin), db: AsyncSession = Depends(get_db)) -> dict:
  now = datetime.now(timezone.utc)
  month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

  async def _count(*conds) -> int:
    return int((await db.execute(select(func.count()).select_from(User).where(*_LIVE, *conds))).scalar_one())

  data = {
    "totalUsers": await _count(),
    "activeUsers": await _count(User.active.is_(True)),
    "adminUsers": await _count(User.role == "admin"),
    "newUsersThisMonth": await _count(User.created_at >= month_start),
  }
  return envelope(data, "User statistics retrieved successfully")


@router.get("/{user_id}")
async def get_user(user_id: str, _: User = Depends(require_admin), db: AsyncSession = Depends(get_db)) -> dict:
  u = await _live_user_or_404(db, user_id)
  return envelope(user_out(u), "User retrieved successfully")


@router.post("", status_code=201)
async def create_user(payload: UserCreateIn, actor: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
  if await email_taken(db, payload.email):
    raise ConflictError("User already exists")
  u = User(
    name=payload.name.strip(),
    email=payload.email,
    password_hash=hash_password(payload.password),
    role=payload.role or "user",
  )
  db.add(u)
  await db.commit()
  logger.info("user %s created by admin %s", u.id, actor.id)
  return created(user_out(u), "User created successfully")


@router.put("/{user_id}")
async def update_user(
  user_id: str, payload: UserUpdateIn, _: User = Depends(require_admin), db: AsyncSession = Depends(get_db)
) -> dict:
  u = await _live_user_or_404(db, user_id)
  if payload.email and payload.email != u.email:
    if await email_taken(db, payload.email, exclude_user_id=u.id):
      raise ConflictError("Email already in use")
    u.email = payload.email
  if payload.name:
    u.name = payload.name.strip()
  if payload.role:
    u.role = payload.role
  if payload.isActive is not None:
    u.active = payload.isActive
    if not u.active:
      await revoke_user_tokens(db, u.id)
  await db.commit()
  return envelope(user_out(u), "User updated successfully")


@router.delete("/{user_id}")
async def delete_user(user_id: str, actor: User = Depends(require_admin), db: AsyncSession = Depends(get_db)) -> dict:
  u = await _live_user_or_404(db, user_id)
  if u.id == actor.id:
    raise ValidationError("You cannot delete your own account")
  u.active = False
  u.is_deleted = True
  u.deleted_at = utcnow()
  u.deleted_by_id = actor.id
  await revoke_user_tokens(db, u.id)
  await db.commit()
  logger.info("user %s soft-deleted by admin %s", u.id, actor.id)
  return envelope(None, "User deleted successfully")
