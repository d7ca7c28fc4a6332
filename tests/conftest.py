from __future__ import annotations

import os
import sys
from pathlib import Path

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./taskboard_test.db")
os.environ.setdefault("EMAIL_PROVIDER", "local")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
  sys.path.insert(0, str(ROOT))

from taskboard.config import settings
from taskboard.db import SessionLocal, engine
from taskboard.main import app
from taskboard.models import Base, User
from taskboard.notifications import email
from taskboard.rate_limit import limiter
from taskboard.security import hash_password

ADMIN_EMAIL = "admin@taskboard.local"
ADMIN_PASSWORD = "admin1234"
MEMBER_EMAIL = "member@taskboard.local"
MEMBER_PASSWORD = "member1234"

_hashes: dict[str, str] = {}


def _hash(password: str) -> str:
  # bcrypt is slow; hash each seed password once per session.
  if password not in _hashes:
    _hashes[password] = hash_password(password)
  return _hashes[password]


@pytest.fixture(scope="session")
def anyio_backend() -> str:
  return "asyncio"


async def _reset_db() -> None:
  limiter.reset_prefix("auth:")
  email.email_sender.clear()
  async with engine.begin() as conn:
    await conn.run_sync(Base.metadata.drop_all)
    await conn.run_sync(Base.metadata.create_all)
  async with SessionLocal() as db:
    db.add(User(email=ADMIN_EMAIL, name="Admin", role="admin", password_hash=_hash(ADMIN_PASSWORD)))
    db.add(User(email=MEMBER_EMAIL, name="Member", role="user", password_hash=_hash(MEMBER_PASSWORD)))
    await db.commit()


@pytest.fixture(autouse=True)
async def _clean_between_tests() -> None:
  db_name = settings.database_url.rsplit("/", 1)[-1]
  if "test" not in db_name:
    raise RuntimeError(
      "Refusing to run destructive tests against non-test DB. "
      "Set DATABASE_URL to a *_test database (e.g. taskboard_test.db)."
    )
  await _reset_db()
  yield
  await engine.dispose()


@pytest.fixture
async def client() -> AsyncClient:
  transport = ASGITransport(app=app)
  async with AsyncClient(transport=transport, base_url="http://localhost") as c:
    yield c


async def login(client: AsyncClient, email_addr: str, password: str) -> dict[str, str]:
  res = await client.post("/auth/login", json={"email": email_addr, "password": password})
  assert res.status_code == 200, res.text
  return {"Authorization": f"Bearer {res.json()['data']['token']}"}


async def login_admin(client: AsyncClient) -> dict[str, str]:
  return await login(client, ADMIN_EMAIL, ADMIN_PASSWORD)


async def login_member(client: AsyncClient) -> dict[str, str]:
  return await login(client, MEMBER_EMAIL, MEMBER_PASSWORD)


async def register(client: AsyncClient, name: str, email_addr: str, password: str = "secret123") -> dict[str, str]:
  res = await client.post("/auth/register", json={"name": name, "email": email_addr, "password": password})
  assert res.status_code == 201, res.text
  return await login(client, email_addr, password)


async def user_id(email_addr: str) -> str:
  async with SessionLocal() as db:
    res = await db.execute(select(User).where(User.email == email_addr))
    return res.scalar_one().id


async def create_board(client: AsyncClient, headers: dict[str, str], **fields) -> dict:
  payload = {"title": "Sprint", **fields}
  res = await client.post("/boards", json=payload, headers=headers)
  assert res.status_code == 201, res.text
  return res.json()["data"]


def outbox() -> list:
  return list(email.email_sender.outbox)
