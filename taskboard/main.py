from __future__ import annotations

import asyncio
import logging
from time import monotonic

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.trustedhost import TrustedHostMiddleware

from taskboard.auth.service import cleanup_expired_tokens
from taskboard.config import settings
from taskboard.db import SessionLocal
from taskboard.errors import ServiceError
from taskboard.logging_config import configure_logging
from taskboard.metrics import runtime_metrics
from taskboard.notifications.events import dispatch_due_notifications_once
from taskboard.responses import error_body
from taskboard.routers.auth import router as auth_router
from taskboard.routers.boards import router as boards_router
from taskboard.routers.health import router as health_router
from taskboard.routers.invitations import router as invitations_router
from taskboard.routers.notifications import router as notifications_router
from taskboard.routers.sharing import router as sharing_router
from taskboard.routers.tasks import router as tasks_router
from taskboard.routers.users import router as users_router
from taskboard.tasks.recurring import generate_recurring_tasks_once

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Taskboard API", version=settings.app_version)


@app.exception_handler(ServiceError)
async def _service_error_handler(_: Request, exc: ServiceError) -> JSONResponse:
  return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.errors))


@app.exception_handler(StarletteHTTPException)
async def _http_error_handler(_: Request, exc: StarletteHTTPException) -> JSONResponse:
  message = exc.detail if isinstance(exc.detail, str) else "Request failed"
  return JSONResponse(status_code=exc.status_code, content=error_body(message), headers=getattr(exc, "headers", None))


def _field_name(loc: tuple) -> str:
  parts = [str(p) for p in loc if p not in ("body", "query", "path", "header")]
  return ".".join(parts) or "request"


@app.exception_handler(RequestValidationError)
async def _validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
  errors = [{"field": _field_name(tuple(e.get("loc", ()))), "message": e.get("msg", "Invalid value")} for e in exc.errors()]
  return JSONResponse(status_code=400, content=error_body("Validation error", errors))


@app.exception_handler(Exception)
async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
  logger.exception("unhandled error on %s %s", request.method, request.url.path)
  return JSONResponse(status_code=500, content=error_body("Server error"))


app.add_middleware(
  CORSMiddleware,
  allow_origins=settings.cors_origin_list(),
  allow_origin_regex=settings.cors_origin_regex,
  allow_credentials=True,
  allow_methods=["*"],
  allow_headers=["*"],
)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.trusted_host_list())

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(boards_router)
app.include_router(sharing_router)
app.include_router(invitations_router)
app.include_router(tasks_router)
app.include_router(notifications_router)
app.include_router(health_router)


@app.middleware("http")
async def _request_metrics_middleware(request, call_next):
  start = monotonic()
  response = await call_next(request)
  elapsed_ms = (monotonic() - start) * 1000.0
  runtime_metrics.observe_request(response.status_code, elapsed_ms)
  response.headers.setdefault("X-Content-Type-Options", "nosniff")
  response.headers.setdefault("X-Frame-Options", "DENY")
  response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
  return response


_notification_loop_task: asyncio.Task | None = None
_token_cleanup_loop_task: asyncio.Task | None = None
_recurring_loop_task: asyncio.Task | None = None


def _is_test_db() -> bool:
  db_name = settings.database_url.rsplit("/", 1)[-1]
  return "test" in db_name


async def _due_notification_loop() -> None:
  while True:
    await asyncio.sleep(max(10, int(settings.notification_poll_seconds)))
    async with SessionLocal() as db:
      try:
        await dispatch_due_notifications_once(db)
      except Exception:
        logger.exception("due-date notification pass failed")


async def _recurring_task_loop() -> None:
  while True:
    await asyncio.sleep(max(30, int(settings.recurring_poll_seconds)))
    async with SessionLocal() as db:
      try:
        await generate_recurring_tasks_once(db)
      except Exception:
        logger.exception("recurring task pass failed")


async def _token_cleanup_loop() -> None:
  while True:
    await asyncio.sleep(max(60, int(settings.token_cleanup_interval_seconds)))
    async with SessionLocal() as db:
      try:
        removed = await cleanup_expired_tokens(db)
        if removed:
          logger.info("removed %d expired refresh tokens", removed)
      except Exception:
        logger.exception("refresh token cleanup failed")


@app.on_event("startup")
async def _startup() -> None:
  global _notification_loop_task, _token_cleanup_loop_task, _recurring_loop_task
  if _is_test_db():
    return
  if not settings.jwt_secret or settings.jwt_secret.strip().lower() in {"change-me", "dev-jwt-secret-change-me"}:
    raise RuntimeError("JWT_SECRET is required and must not be a placeholder")
  if _notification_loop_task is None:
    _notification_loop_task = asyncio.create_task(_due_notification_loop())
  if _token_cleanup_loop_task is None:
    _token_cleanup_loop_task = asyncio.create_task(_token_cleanup_loop())
  if _recurring_loop_task is None:
    _recurring_loop_task = asyncio.create_task(_recurring_task_loop())
