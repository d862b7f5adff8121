"""Storage interfaces for research sessions."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

from research_engine.research.models import SessionRecord
from research_engine.research.state import Transition

SessionMutator = Callable[[SessionRecord], Transition]


class SessionsRepository(Protocol):
  """Repository contract for session persistence."""

  async def create_session(self, record: SessionRecord) -> None:
    """Persist an initial session record."""

  async def get_session(self, session_id: str) -> SessionRecord | None:
    """Fetch a session by identifier."""

  async def mutate_session(self, session_id: str, mutate: SessionMutator) -> Transition | None:
    """Apply a read-modify-write to the latest record under a per-session lock.

    The mutator receives the freshly read record and returns a Transition; the
    store writes the new record only when the transition reports a change.
    Exceptions raised by the mutator propagate and nothing is written. Returns
    None when the session does not exist.
    """

  async def list_sessions(self, limit: int, offset: int, status: str | None = None) -> tuple[list[SessionRecord], int]:
    """Return a page of sessions (newest first) and the total count."""
