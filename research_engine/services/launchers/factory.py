from __future__ import annotations

from research_engine.config import Settings
from research_engine.research.orchestrator import ResearchOrchestrator
from research_engine.services.launchers.direct import DirectLauncher
from research_engine.services.launchers.interface import WorkflowLauncher
from research_engine.services.launchers.webhook import WebhookLauncher


def get_workflow_launcher(settings: Settings, orchestrator: ResearchOrchestrator) -> WorkflowLauncher:
  """Factory to get the configured workflow launcher."""
  if settings.launch_mode == "webhook":
    return WebhookLauncher(settings, orchestrator)
  return DirectLauncher(orchestrator)
