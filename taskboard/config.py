from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
  model_config = SettingsConfigDict(env_file=".env", extra="ignore")

  database_url: str = "postgresql+asyncpg://taskboard:taskboard@db:5432/taskboard"
  app_version: str = "v2026-10-18"
  build_sha: str = "dev"
  log_level: str = "INFO"

  jwt_secret: str = "dev-jwt-secret-change-me"
  jwt_refresh_secret: str | None = None
  jwt_algorithm: str = "HS256"
  access_token_expire_minutes: int = 15
  refresh_token_expire_days: int = 7
  allow_self_assigned_role: bool = False

  rate_limit_login_ip_per_minute: int = 60
  rate_limit_login_email_per_minute: int = 20
  rate_limit_register_ip_per_minute: int = 30

  cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
  cors_origin_regex: str = r"^http://(localhost|127\.0\.0\.1):3000$"
  trusted_hosts: str = "localhost,127.0.0.1,0.0.0.0,api,test"
  redis_url: str | None = None

  frontend_url: str = "http://localhost:3000"

  email_provider: str = "local"  # local | smtp
  email_from: str = "Taskboard <no-reply@taskboard.local>"
  smtp_host: str | None = None
  smtp_port: int = 587
  smtp_username: str | None = None
  smtp_password: str | None = None
  smtp_starttls: bool = True

  due_soon_hours: int = 24
  notification_poll_seconds: int = 300
  token_cleanup_interval_seconds: int = 3600
  recurring_poll_seconds: int = 600
  recurring_lead_hours: int = 24

  def cors_origin_list(self) -> list[str]:
    return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

  def trusted_host_list(self) -> list[str]:
    return [h.strip() for h in self.trusted_hosts.split(",") if h.strip()]

  def refresh_secret(self) -> str:
    # Falls back to the access secret plus a fixed suffix.
    return self.jwt_refresh_secret or f"{self.jwt_secret}_refresh"


settings = Settings()
