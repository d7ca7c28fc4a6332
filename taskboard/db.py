from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from taskboard.config import settings


def _engine_kwargs(url: str) -> dict:
  if url.startswith("sqlite"):
    return {}
  return {"pool_size": 10, "max_overflow": 10, "pool_pre_ping": True, "pool_recycle": 3600}


engine = create_async_engine(settings.database_url, future=True, **_engine_kwargs(settings.database_url))

SessionLocal = async_sessionmaker(
  engine,
  class_=AsyncSession,
  expire_on_commit=False,
  autoflush=False,
)
