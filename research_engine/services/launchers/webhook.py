from __future__ import annotations

import logging
from typing import Any

import httpx

from research_engine.config import Settings
from research_engine.research.models import SessionRecord
from research_engine.research.orchestrator import ResearchOrchestrator
from research_engine.services.launchers.interface import WorkflowLauncher

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/internal/research/callback"


def build_launch_payload(record: SessionRecord, callback_url: str | None) -> dict[str, Any]:
  """Build the JSON body handed to the external workflow runner."""
  business = record.input
  return {
    "sessionId": record.session_id,
    "tasks": [task_id.value for task_id in record.task_ids],
    "callbackUrl": callback_url,
    "input": {
      "businessName": business.business_name,
      "website": business.website,
      "city": business.city,
      "state": business.state,
      "location": business.location,
      "serviceAreas": list(business.service_areas),
      "industry": business.industry,
      "primaryServices": list(business.primary_services),
      "gbpUrl": business.gbp_url,
    },
  }


class WebhookLauncher(WorkflowLauncher):
  """Hands the session to an external workflow runner that reports back through the callback endpoint."""

  def __init__(self, settings: Settings, orchestrator: ResearchOrchestrator, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
    if not settings.workflow_webhook_url:
      raise RuntimeError("Workflow webhook URL not configured, strictly required for WebhookLauncher.")
    self.settings = settings
    self._orchestrator = orchestrator
    self._transport = transport

  def _callback_url(self) -> str | None:
    if not self.settings.base_url:
      return None
    return f"{self.settings.base_url.rstrip('/')}{CALLBACK_PATH}"

  def _headers(self) -> dict[str, str]:
    # The runner echoes this secret back on every callback.
    if not self.settings.callback_secret:
      return {}
    return {"x-webhook-secret": self.settings.callback_secret}

  async def launch(self, record: SessionRecord) -> None:
    url = str(self.settings.workflow_webhook_url)
    payload = build_launch_payload(record, self._callback_url())
    try:
      async with httpx.AsyncClient(transport=self._transport, timeout=self.settings.provider_http_timeout_seconds, trust_env=False) as client:
        logger.info("Handing session %s to workflow runner", record.session_id)
        response = await client.post(url, json=payload, headers=self._headers())
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
      logger.error("Workflow runner returned %s for session %s", exc.response.status_code, record.session_id)
      await self._fail_session(record, f"Workflow runner returned HTTP {exc.response.status_code}.")
    except httpx.RequestError as exc:
      logger.error("Failed to reach workflow runner for session %s: %s", record.session_id, exc)
      await self._fail_session(record, f"Workflow runner unreachable: {exc}")
    else:
      # Accepted: the runner now owns the tasks, so the session is running.
      await self._orchestrator.mark_dispatched(record.session_id)
      logger.info("Workflow runner accepted session %s", record.session_id)

  async def _fail_session(self, record: SessionRecord, message: str) -> None:
    # Nothing will call back, so settle every task now instead of leaving the session running forever.
    errors = [{"step": task_id.value, "code": "launch_failed", "message": message} for task_id in record.task_ids]
    await self._orchestrator.apply_completion_bundle(record.session_id, {}, errors)
