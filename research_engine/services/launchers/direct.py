from __future__ import annotations

import logging

from research_engine.research.models import SessionRecord
from research_engine.research.orchestrator import ResearchOrchestrator
from research_engine.services.launchers.interface import WorkflowLauncher

logger = logging.getLogger(__name__)


class DirectLauncher(WorkflowLauncher):
  """Runs every executor in-process and applies outcomes as they resolve."""

  def __init__(self, orchestrator: ResearchOrchestrator) -> None:
    self._orchestrator = orchestrator

  async def launch(self, record: SessionRecord) -> None:
    logger.info("Dispatching session %s in-process", record.session_id)
    final = await self._orchestrator.dispatch_all(record.session_id)
    logger.info("Session %s dispatch finished with status %s", record.session_id, final.status)
