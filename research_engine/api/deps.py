from __future__ import annotations

from typing import Annotated

from fastapi import Depends

from research_engine.config import Settings, get_settings
from research_engine.executors.factory import build_executor_registry
from research_engine.research.consumers import SessionSummaryLogger
from research_engine.research.orchestrator import ResearchOrchestrator
from research_engine.services.launchers.factory import get_workflow_launcher
from research_engine.services.launchers.interface import WorkflowLauncher
from research_engine.storage.factory import _get_sessions_repo


def get_orchestrator(settings: Annotated[Settings, Depends(get_settings)]) -> ResearchOrchestrator:
  """Dependency to provide a ResearchOrchestrator wired to the configured store and executors."""
  return ResearchOrchestrator(
    sessions_repo=_get_sessions_repo(settings),
    executors=build_executor_registry(settings),
    task_timeout_seconds=settings.task_timeout_seconds,
    consumers=(SessionSummaryLogger(),),
  )


def get_launcher(settings: Annotated[Settings, Depends(get_settings)], orchestrator: Annotated[ResearchOrchestrator, Depends(get_orchestrator)]) -> WorkflowLauncher:
  """Dependency to provide the launcher for new sessions."""
  return get_workflow_launcher(settings, orchestrator)
