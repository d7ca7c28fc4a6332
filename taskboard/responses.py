from __future__ import annotations

import math
from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def envelope(data: Any = None, message: str = "OK") -> dict[str, Any]:
  return {"success": True, "message": message, "data": jsonable_encoder(data)}


def created(data: Any = None, message: str = "Created") -> JSONResponse:
  return JSONResponse(status_code=201, content=envelope(data, message))


def error_body(message: str, errors: list[dict[str, Any]] | None = None) -> dict[str, Any]:
  body: dict[str, Any] = {"success": False, "message": message}
  if errors:
    body["errors"] = errors
  return body


def pagination(page: int, limit: int, total: int) -> dict[str, Any]:
  total_pages = math.ceil(total / limit) if limit else 0
  return {
    "page": page,
    "limit": limit,
    "total": total,
    "totalPages": total_pages,
    "hasNextPage": page < total_pages,
    "hasPrevPage": page > 1,
  }


def paginated(items: list[Any], *, page: int, limit: int, total: int, message: str = "OK") -> dict[str, Any]:
  out = envelope(items, message)
  out["pagination"] = pagination(page, limit, total)
  return out
