from __future__ import annotations

from typing import Any


class ServiceError(Exception):
  status_code = 400

  def __init__(self, message: str, *, errors: list[dict[str, Any]] | None = None) -> None:
    super().__init__(message)
    self.message = message
    self.errors = errors


class ValidationError(ServiceError):
  status_code = 400


class ConflictError(ServiceError):
  # Duplicates answer 400, not 409.
  status_code = 400


class AuthError(ServiceError):
  status_code = 401


class ForbiddenError(ServiceError):
  status_code = 403


class NotFoundError(ServiceError):
  status_code = 404
