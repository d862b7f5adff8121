from __future__ import annotations

from functools import lru_cache

from research_engine.config import Settings
from research_engine.storage.memory_sessions_repo import InMemorySessionsRepository
from research_engine.storage.postgres_sessions_repo import PostgresSessionsRepository
from research_engine.storage.sessions_repo import SessionsRepository


@lru_cache
def get_memory_sessions_repo() -> InMemorySessionsRepository:
  """Return the process-wide in-memory session store."""
  return InMemorySessionsRepository()


def _get_sessions_repo(settings: Settings) -> SessionsRepository:
  """Return the active sessions repository."""

  # Postgres when a DSN is configured, otherwise the in-process store.
  if settings.pg_dsn:
    return PostgresSessionsRepository()

  return get_memory_sessions_repo()
