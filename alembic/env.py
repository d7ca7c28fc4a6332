from __future__ import annotations

import asyncio
import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import create_async_engine

from taskboard.models import Base

config = context.config
if config.config_file_name is not None:
  fileConfig(config.config_file_name)

database_url = os.getenv("DATABASE_URL")
if database_url:
  config.set_main_option("sqlalchemy.url", database_url)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
  context.configure(
    url=config.get_main_option("sqlalchemy.url"),
    target_metadata=target_metadata,
    literal_binds=True,
    compare_type=True,
    render_as_batch=True,
  )
  with context.begin_transaction():
    context.run_migrations()


def do_run_migrations(connection) -> None:
  context.configure(connection=connection, target_metadata=target_metadata, compare_type=True, render_as_batch=True)
  with context.begin_transaction():
    context.run_migrations()


async def run_migrations_online() -> None:
  connectable = create_async_engine(config.get_main_option("sqlalchemy.url"), poolclass=pool.NullPool, future=True)
  async with connectable.connect() as connection:
    await connection.run_sync(do_run_migrations)
  await connectable.dispose()


if context.is_offline_mode():
  run_migrations_offline()
else:
  asyncio.run(run_migrations_online())
