from __future__ import annotations

import asyncio
import logging
import smtplib
from collections import deque
from dataclasses import dataclass
from email.message import EmailMessage as MimeMessage
from typing import Protocol

from taskboard.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailMessage:
  to: str
  subject: str
  body: str


class EmailSender(Protocol):
  async def send(self, msg: EmailMessage) -> None: ...


class LocalEmailSender:
  """Logs messages and keeps the most recent ones in memory (dev and tests)."""

  def __init__(self, maxlen: int = 200) -> None:
    self.outbox: deque[EmailMessage] = deque(maxlen=maxlen)

  async def send(self, msg: EmailMessage) -> None:
    self.outbox.append(msg)
    logger.info("email (local) to=%s subject=%r", msg.to, msg.subject)

  def clear(self) -> None:
    self.outbox.clear()


class SmtpEmailSender:
  def __init__(
    self,
    *,
    host: str,
    port: int = 587,
    username: str | None = None,
    password: str | None = None,
    starttls: bool = True,
    from_addr: str,
  ) -> None:
    self.host = host
    self.port = port
    self.username = username
    self.password = password
    self.starttls = starttls
    self.from_addr = from_addr

  async def send(self, msg: EmailMessage) -> None:
    def _send_sync() -> None:
      m = MimeMessage()
      m["Subject"] = msg.subject
      m["From"] = self.from_addr
      m["To"] = msg.to
      m.set_content(msg.body)
      with smtplib.SMTP(host=self.host, port=self.port, timeout=15) as s:
        s.ehlo()
        if self.starttls:
          s.starttls()
          s.ehlo()
        if self.username and self.password:
          s.login(self.username, self.password)
        s.send_message(m)

    await asyncio.to_thread(_send_sync)
    logger.info("email (smtp) to=%s subject=%r", msg.to, msg.subject)


def sender_for(name: str) -> EmailSender:
  n = (name or "").strip().lower()
  if n == "smtp":
    if not settings.smtp_host:
      raise ValueError("EMAIL_PROVIDER=smtp requires SMTP_HOST")
    return SmtpEmailSender(
      host=settings.smtp_host,
      port=settings.smtp_port,
      username=settings.smtp_username,
      password=settings.smtp_password,
      starttls=settings.smtp_starttls,
      from_addr=settings.email_from,
    )
  if n == "local":
    return LocalEmailSender()
  raise ValueError(f"Unknown email provider: {name}")


email_sender: EmailSender = sender_for(settings.email_provider)


async def send_email(msg: EmailMessage) -> bool:
  """Deliver best-effort: failures are logged and reported as False, never raised."""
  try:
    await email_sender.send(msg)
    return True
  except (OSError, smtplib.SMTPException):
    logger.exception("failed to send email to %s (%s)", msg.to, msg.subject)
    return False
