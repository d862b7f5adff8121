from __future__ import annotations

from typing import Protocol

from research_engine.research.models import SessionRecord


class WorkflowLauncher(Protocol):
  """Interface for starting the data collection of a freshly created session."""

  async def launch(self, record: SessionRecord) -> None:
    """Start collecting every declared task for the session."""
    ...
