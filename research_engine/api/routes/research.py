from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status

from research_engine.api.deps import get_launcher, get_orchestrator
from research_engine.api.models import CreateResearchRequest, CreateResearchResponse, ResearchSessionListResponse, ResearchSessionResponse, session_response, session_summary
from research_engine.research.inputs import normalize_business_input
from research_engine.research.models import SessionRecord, SessionStatus
from research_engine.research.orchestrator import ResearchOrchestrator
from research_engine.services.launchers.interface import WorkflowLauncher

router = APIRouter()
logger = logging.getLogger(__name__)


async def launch_session(launcher: WorkflowLauncher, record: SessionRecord) -> None:
  """Run the launcher after the create response has been sent."""
  try:
    await launcher.launch(record)
  except Exception:  # pylint: disable=broad-exception-caught
    # Background work has no caller to report to; the session stays inspectable via polling.
    logger.error("Launching session %s failed", record.session_id, exc_info=True)


@router.post("", response_model=CreateResearchResponse, status_code=status.HTTP_201_CREATED)
async def create_research_session(
  request: CreateResearchRequest,
  background_tasks: BackgroundTasks,
  orchestrator: Annotated[ResearchOrchestrator, Depends(get_orchestrator)],
  launcher: Annotated[WorkflowLauncher, Depends(get_launcher)],
) -> CreateResearchResponse:
  """Create a research session and start collecting its tasks in the background."""
  business_input = normalize_business_input(
    business_name=request.business_name,
    website=request.website,
    city=request.city,
    state=request.state,
    location=request.location,
    service_areas=request.service_areas,
    industry=request.industry,
    primary_services=request.primary_services,
    gbp_url=request.gbp_url,
  )
  session_id = await orchestrator.create_session(business_input, request.tasks)
  record = await orchestrator.get_session(session_id)
  background_tasks.add_task(launch_session, launcher, record)
  return CreateResearchResponse(session_id=session_id, status=record.status)


@router.get("", response_model=ResearchSessionListResponse)
async def list_research_sessions(
  orchestrator: Annotated[ResearchOrchestrator, Depends(get_orchestrator)],
  limit: Annotated[int, Query(ge=1, le=100)] = 20,
  offset: Annotated[int, Query(ge=0)] = 0,
  status_filter: Annotated[SessionStatus | None, Query(alias="status")] = None,
) -> ResearchSessionListResponse:
  """Return a page of sessions, newest first."""
  records, total = await orchestrator.list_sessions(limit=limit, offset=offset, status=status_filter)
  return ResearchSessionListResponse(items=[session_summary(record) for record in records], total=total, limit=limit, offset=offset)


@router.get("/{session_id}", response_model=ResearchSessionResponse)
async def get_research_session(session_id: str, orchestrator: Annotated[ResearchOrchestrator, Depends(get_orchestrator)]) -> ResearchSessionResponse:
  """Poll the status, progress and results of one session."""
  return session_response(await orchestrator.get_session(session_id))


@router.post("/{session_id}/tasks/{task_id}/rerun", response_model=ResearchSessionResponse)
async def rerun_research_task(session_id: str, task_id: str, orchestrator: Annotated[ResearchOrchestrator, Depends(get_orchestrator)]) -> ResearchSessionResponse:
  """Re-collect one task of a finished session with deeper limits and replace its result."""
  return session_response(await orchestrator.rerun_task(session_id, task_id))
