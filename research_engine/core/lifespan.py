import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from fastapi import FastAPI

from research_engine.config import get_settings
from research_engine.core.database import create_tables, get_db_engine
from research_engine.core.logging import _initialize_logging


def _redact_dsn(dsn: str | None) -> str:
  """Return a DSN without credentials for logging."""
  if not dsn:
    return "<unset>"
  parsed = urlparse(dsn)
  host = parsed.hostname or "?"
  port = f":{parsed.port}" if parsed.port else ""
  return f"{parsed.scheme}://***@{host}{port}{parsed.path}"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Initialize logging and storage on startup, dispose the engine on shutdown."""
  settings = get_settings()
  logger = logging.getLogger("research_engine.core.lifespan")
  _initialize_logging(settings)
  logger.info("Starting research engine env=%s launch_mode=%s", settings.environment, settings.launch_mode)

  if settings.pg_dsn:
    logger.info("Using Postgres session store at %s", _redact_dsn(settings.pg_dsn))
    if settings.auto_create_tables:
      await create_tables()
      logger.info("Ensured research_sessions table exists.")
  else:
    logger.warning("RESEARCH_PG_DSN is not set; sessions are kept in process memory and lost on restart.")

  if not settings.callback_secret:
    logger.warning("RESEARCH_CALLBACK_SECRET is not set; the callback endpoint rejects every request.")

  yield

  engine = get_db_engine()
  if engine is not None:
    await engine.dispose()
