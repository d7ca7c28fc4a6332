from __future__ import annotations

import pytest
from httpx import AsyncClient

from taskboard.config import settings


@pytest.mark.anyio
async def test_health_reports_database(client: AsyncClient) -> None:
  res = await client.get("/health")
  assert res.status_code == 200, res.text
  body = res.json()
  assert body["success"] is True
  assert body["message"] == "API is running"
  assert body["data"]["status"] == "healthy"
  assert body["data"]["database"] == "connected"
  assert body["data"]["version"] == settings.app_version


@pytest.mark.anyio
async def test_health_status_includes_request_metrics(client: AsyncClient) -> None:
  await client.get("/health")
  res = await client.get("/health/status")
  assert res.status_code == 200, res.text
  data = res.json()["data"]
  assert data["database"]["status"] == "healthy"
  assert data["requests"]["requestCount1h"] >= 1
  assert "2xx" in data["requests"]["statusClasses1h"]


@pytest.mark.anyio
async def test_version_and_security_headers(client: AsyncClient) -> None:
  res = await client.get("/version")
  assert res.status_code == 200, res.text
  assert res.json()["data"]["version"] == settings.app_version
  assert res.headers["x-content-type-options"] == "nosniff"
  assert res.headers["x-frame-options"] == "DENY"


@pytest.mark.anyio
async def test_unknown_route_uses_envelope(client: AsyncClient) -> None:
  res = await client.get("/no-such-route")
  assert res.status_code == 404
  assert res.json()["success"] is False
