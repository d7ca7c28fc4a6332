from __future__ import annotations

import logging

from taskboard.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
  lvl = (level or settings.log_level or "INFO").upper()
  logging.basicConfig(level=getattr(logging, lvl, logging.INFO), format=LOG_FORMAT)
  # uvicorn access logs duplicate the request metrics middleware.
  logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
