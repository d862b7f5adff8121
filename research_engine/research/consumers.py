"""Result consumers notified when a session reaches a terminal status."""

from __future__ import annotations

import logging
from typing import Protocol

from research_engine.research.models import SessionRecord

logger = logging.getLogger(__name__)


class SessionConsumer(Protocol):
  """Downstream hook (analysis, notifications) fed with terminal session records."""

  async def on_session_terminal(self, record: SessionRecord) -> None:
    """Handle a session that just became terminal."""
    ...


class SessionSummaryLogger:
  """Log a one-line summary of every finished session."""

  async def on_session_terminal(self, record: SessionRecord) -> None:
    logger.info(
      "Research session %s finished: status=%s completed=%s failed=%s",
      record.session_id,
      record.status,
      ",".join(record.progress.completed_steps) or "-",
      ",".join(record.progress.failed_steps) or "-",
    )
