from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.auth import service as auth_service
from taskboard.config import settings
from taskboard.deps import client_ip, get_current_user, get_db, user_agent
from taskboard.models import User
from taskboard.rate_limit import limiter
from taskboard.responses import created, envelope
from taskboard.schemas import ChangePasswordIn, LoginIn, LogoutIn, ProfileUpdateIn, RefreshIn, RegisterIn

router = APIRouter(prefix="/auth", tags=["auth"])


def _rate_limit_or_429(*, key: str, limit: int, window_seconds: int = 60) -> None:
  allowed, retry_after = limiter.hit(key, limit=limit, window_seconds=window_seconds)
  if allowed:
    return
  raise HTTPException(
    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
    detail="Too many requests, please try again later",
    headers={"Retry-After": str(retry_after)},
  )


@router.post("/register", status_code=201)
async def register(payload: RegisterIn, request: Request, db: AsyncSession = Depends(get_db)):
  ip = client_ip(request) or "unknown"
  _rate_limit_or_429(key=f"auth:register:ip:{ip}", limit=int(settings.rate_limit_register_ip_per_minute))
  u = await auth_service.register(db, payload)
  return created(auth_service.user_out(u), "User registered successfully")


@router.post("/login")
async def login(payload: LoginIn, request: Request, db: AsyncSession = Depends(get_db)) -> dict:
  ip = client_ip(request) or "unknown"
  _rate_limit_or_429(key=f"auth:login:ip:{ip}", limit=int(settings.rate_limit_login_ip_per_minute))
  _rate_limit_or_429(key=f"auth:login:email:{payload.email}", limit=int(settings.rate_limit_login_email_per_minute))

  u, access, refresh = await auth_service.login(db, payload.email, payload.password, ip=ip, user_agent=user_agent(request))
  return envelope({"user": auth_service.user_out(u), "token": access, "refreshToken": refresh}, "Login successful")


@router.post("/refresh")
async def refresh(payload: RefreshIn, request: Request, db: AsyncSession = Depends(get_db)) -> dict:
  access, refresh_token = await auth_service.rotate_refresh(
    db, payload.refreshToken, ip=client_ip(request), user_agent=user_agent(request)
  )
  return envelope({"token": access, "refreshToken": refresh_token}, "Token refreshed successfully")


@router.post("/logout")
async def logout(payload: LogoutIn, db: AsyncSession = Depends(get_db)) -> dict:
  await auth_service.logout(db, payload.refreshToken)
  return envelope(None, "Logged out successfully")


@router.get("/profile")
async def get_profile(user: User = Depends(get_current_user)) -> dict:
  return envelope(auth_service.user_out(user), "Profile retrieved successfully")


@router.put("/profile")
async def update_profile(payload: ProfileUpdateIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  u = await auth_service.update_profile(db, user, payload)
  return envelope(auth_service.user_out(u), "Profile updated successfully")


@router.put("/change-password")
async def change_password(payload: ChangePasswordIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  await auth_service.change_password(db, user, payload)
  return envelope(None, "Password changed successfully")
