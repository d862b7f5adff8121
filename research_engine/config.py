"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from research_engine.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

_LAUNCH_MODES = {"direct", "webhook"}
_DEFAULT_ORIGINS = ("http://localhost:3000", "http://127.0.0.1:3000")


@dataclass(frozen=True)
class Settings:
  """Typed settings for the research engine service."""

  environment: str
  debug: bool
  allowed_origins: tuple[str, ...]
  log_dir: str | None
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  pg_dsn: str | None
  pg_connect_timeout: int
  auto_create_tables: bool
  callback_secret: str | None
  launch_mode: str
  workflow_webhook_url: str | None
  base_url: str | None
  apify_api_token: str | None
  apify_base_url: str
  task_timeout_seconds: float
  provider_http_timeout_seconds: float
  competitor_count: int
  crawl_max_pages: int
  crawl_max_depth: int
  deep_crawl_max_pages: int
  deep_crawl_max_depth: int


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    return _DEFAULT_ORIGINS

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if not origins:
    return _DEFAULT_ORIGINS

  if "*" in origins:
    raise ValueError("RESEARCH_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value


def _positive_int(name: str, default: str) -> int:
  raw = os.getenv(name, default)
  try:
    value = int(raw)
  except ValueError as exc:
    raise ValueError(f"{name} must be an integer.") from exc
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


def _positive_float(name: str, default: str) -> float:
  raw = os.getenv(name, default)
  try:
    value = float(raw)
  except ValueError as exc:
    raise ValueError(f"{name} must be a number.") from exc
  if value <= 0:
    raise ValueError(f"{name} must be a positive number.")
  return value


def _pg_dsn() -> str | None:
  return _optional_str(os.getenv("RESEARCH_PG_DSN")) or _optional_str(os.getenv("DATABASE_URL"))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("RESEARCH_ENV", "development").strip().lower()
  debug = _parse_bool(os.getenv("RESEARCH_DEBUG"))

  log_backup_count = int(os.getenv("RESEARCH_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("RESEARCH_LOG_BACKUP_COUNT must be zero or a positive integer.")

  launch_mode = (os.getenv("RESEARCH_LAUNCH_MODE") or "direct").strip().lower()
  if launch_mode not in _LAUNCH_MODES:
    raise ValueError(f"RESEARCH_LAUNCH_MODE must be one of: {', '.join(sorted(_LAUNCH_MODES))}.")

  workflow_webhook_url = _optional_str(os.getenv("RESEARCH_WORKFLOW_WEBHOOK_URL"))
  # Webhook mode hands every session to the external workflow runner, so it needs a target.
  if launch_mode == "webhook" and not workflow_webhook_url:
    raise ValueError("RESEARCH_WORKFLOW_WEBHOOK_URL must be set when RESEARCH_LAUNCH_MODE=webhook.")

  return Settings(
    environment=environment,
    debug=debug,
    allowed_origins=_parse_origins(os.getenv("RESEARCH_ALLOWED_ORIGINS")),
    log_dir=_optional_str(os.getenv("RESEARCH_LOG_DIR")),
    log_max_bytes=_positive_int("RESEARCH_LOG_MAX_BYTES", "5242880"),
    log_backup_count=log_backup_count,
    log_http_4xx=_parse_bool(os.getenv("RESEARCH_LOG_HTTP_4XX")),
    pg_dsn=_pg_dsn(),
    pg_connect_timeout=_positive_int("RESEARCH_PG_CONNECT_TIMEOUT", "5"),
    auto_create_tables=_parse_bool(os.getenv("RESEARCH_AUTO_CREATE_TABLES")),
    callback_secret=_optional_str(os.getenv("RESEARCH_CALLBACK_SECRET")),
    launch_mode=launch_mode,
    workflow_webhook_url=workflow_webhook_url,
    base_url=_optional_str(os.getenv("RESEARCH_BASE_URL")),
    apify_api_token=_optional_str(os.getenv("APIFY_API_TOKEN")),
    apify_base_url=(os.getenv("RESEARCH_APIFY_BASE_URL") or "https://api.apify.com/v2").strip().rstrip("/"),
    task_timeout_seconds=_positive_float("RESEARCH_TASK_TIMEOUT_SECONDS", "300"),
    provider_http_timeout_seconds=_positive_float("RESEARCH_PROVIDER_HTTP_TIMEOUT_SECONDS", "30"),
    competitor_count=_positive_int("RESEARCH_COMPETITOR_COUNT", "5"),
    crawl_max_pages=_positive_int("RESEARCH_CRAWL_MAX_PAGES", "20"),
    crawl_max_depth=_positive_int("RESEARCH_CRAWL_MAX_DEPTH", "3"),
    deep_crawl_max_pages=_positive_int("RESEARCH_DEEP_CRAWL_MAX_PAGES", "10000"),
    deep_crawl_max_depth=_positive_int("RESEARCH_DEEP_CRAWL_MAX_DEPTH", "8"),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring web-runtime configuration."""
  # Keep database configuration isolated so offline scripts don't require unrelated env vars.
  return DatabaseSettings(debug=_parse_bool(os.getenv("RESEARCH_DEBUG")), pg_dsn=_pg_dsn(), pg_connect_timeout=_positive_int("RESEARCH_PG_CONNECT_TIMEOUT", "5"))
