from __future__ import annotations

import logging
from typing import Annotated, Any, Literal

import msgspec
from fastapi import APIRouter, Depends, Request

from research_engine.api.deps import get_orchestrator
from research_engine.api.msgspec_utils import decode_msgspec_request, encode_msgspec_response
from research_engine.core.security import verify_callback_secret
from research_engine.research.errors import NotFoundError
from research_engine.research.models import SessionRecord
from research_engine.research.orchestrator import ResearchOrchestrator, outcome_from_callback
from research_engine.research.payloads import resolve_result_key

router = APIRouter(prefix="/research", tags=["callbacks"])
logger = logging.getLogger(__name__)

COMPLETE_STEP = "complete"


class CallbackError(msgspec.Struct):
  code: str | None = None
  message: str | None = None


class CallbackPayload(msgspec.Struct, rename="camel"):
  """Update reported by the external workflow runner for one step or the whole session."""

  session_id: str
  step: str
  status: Literal["completed", "failed"]
  data: Any = None
  error: CallbackError | None = None
  metadata: dict[str, Any] | None = None


class CallbackProgress(msgspec.Struct, rename="camel"):
  current_step: str
  completed_steps: list[str]
  failed_steps: list[str]
  percentage: int


class CallbackResponse(msgspec.Struct, rename="camel"):
  success: bool
  session_id: str
  status: str
  progress: CallbackProgress


def _error_dict(error: CallbackError | None) -> dict[str, Any] | None:
  if error is None:
    return None
  return {"code": error.code, "message": error.message}


def split_bundle(data: Any, metadata: dict[str, Any] | None) -> tuple[dict[str, Any], list[dict[str, Any]], dict[str, Any] | None]:
  """Return (results, errors, metadata) from a completion bundle in either accepted shape."""
  if not isinstance(data, dict):
    return {}, [], metadata
  if isinstance(data.get("results"), dict):
    results = data["results"]
    errors = [entry for entry in data.get("errors") or [] if isinstance(entry, dict)]
  else:
    # Flat shape: task results sit directly next to the metadata.
    results = {key: value for key, value in data.items() if resolve_result_key(key) is not None}
    errors = []
  bundle_metadata = data.get("metadata") if isinstance(data.get("metadata"), dict) else None
  return results, errors, bundle_metadata or metadata


async def _apply_complete(orchestrator: ResearchOrchestrator, payload: CallbackPayload) -> SessionRecord:
  if payload.status == "failed":
    record = await orchestrator.get_session(payload.session_id)
    error = payload.error or CallbackError()
    errors = [{"step": task_id.value, "code": error.code or "workflow_failed", "message": error.message or "Workflow reported failure."} for task_id in record.task_ids]
    return await orchestrator.apply_completion_bundle(payload.session_id, {}, errors, metadata=payload.metadata)

  results, errors, metadata = split_bundle(payload.data, payload.metadata)
  return await orchestrator.apply_completion_bundle(payload.session_id, results, errors, metadata=metadata)


@router.post("/callback", dependencies=[Depends(verify_callback_secret)])
async def research_callback(request: Request, orchestrator: Annotated[ResearchOrchestrator, Depends(get_orchestrator)]):
  """Receive a per-step outcome or the final result bundle from the workflow runner."""
  payload = await decode_msgspec_request(request, CallbackPayload)
  logger.info("Research callback session=%s step=%s status=%s", payload.session_id, payload.step, payload.status)

  if payload.step == COMPLETE_STEP:
    record = await _apply_complete(orchestrator, payload)
  else:
    task_id = resolve_result_key(payload.step)
    if task_id is None:
      raise NotFoundError(f"Unknown step: {payload.step}")
    outcome = outcome_from_callback(payload.status, payload.data, _error_dict(payload.error))
    record = await orchestrator.apply_task_outcome(payload.session_id, task_id, outcome)

  progress = record.progress
  response = CallbackResponse(
    success=True,
    session_id=record.session_id,
    status=record.status,
    progress=CallbackProgress(current_step=progress.current_step, completed_steps=list(progress.completed_steps), failed_steps=list(progress.failed_steps), percentage=progress.percentage),
  )
  return encode_msgspec_response(response)
