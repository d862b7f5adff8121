"""In-memory session store for local development and tests."""

from __future__ import annotations

import asyncio
import copy
from collections import defaultdict

from research_engine.research.models import SessionRecord
from research_engine.research.state import Transition
from research_engine.storage.sessions_repo import SessionMutator, SessionsRepository


class InMemorySessionsRepository(SessionsRepository):
  """Keeps session records in process memory with one lock per session id."""

  def __init__(self) -> None:
    self._sessions: dict[str, SessionRecord] = {}
    self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

  async def create_session(self, record: SessionRecord) -> None:
    if record.session_id in self._sessions:
      raise ValueError(f"Session {record.session_id} already exists.")
    self._sessions[record.session_id] = copy.deepcopy(record)

  async def get_session(self, session_id: str) -> SessionRecord | None:
    record = self._sessions.get(session_id)
    # Hand out copies so callers cannot mutate stored state behind the lock.
    return copy.deepcopy(record) if record is not None else None

  async def mutate_session(self, session_id: str, mutate: SessionMutator) -> Transition | None:
    if session_id not in self._sessions:
      return None
    async with self._locks[session_id]:
      current = copy.deepcopy(self._sessions[session_id])
      transition = mutate(current)
      if transition.changed:
        self._sessions[session_id] = copy.deepcopy(transition.record)
      return transition

  async def list_sessions(self, limit: int, offset: int, status: str | None = None) -> tuple[list[SessionRecord], int]:
    records = [record for record in self._sessions.values() if status is None or record.status == status]
    records.sort(key=lambda record: record.created_at, reverse=True)
    page = records[offset : offset + limit]
    return [copy.deepcopy(record) for record in page], len(records)

  def reset(self) -> None:
    """Drop every stored session (used in tests)."""
    self._sessions.clear()
    self._locks.clear()
