from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from research_engine.research.models import SessionRecord, SessionStatus


class _CamelModel(BaseModel):
  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateResearchRequest(_CamelModel):
  """Request payload for starting a research session.

  Identifying fields are optional here so blank or missing values surface as
  400 responses from domain validation rather than schema errors.
  """

  business_name: str | None = Field(default=None, max_length=300)
  website: str | None = Field(default=None, max_length=2048, validation_alias=AliasChoices("website", "websiteUrl", "website_url"))
  city: str | None = Field(default=None, max_length=200)
  state: str | None = Field(default=None, max_length=100)
  location: str | None = Field(default=None, max_length=300)
  service_areas: list[str] = Field(default_factory=list, max_length=50)
  industry: str | None = Field(default=None, max_length=200)
  primary_services: list[str] = Field(default_factory=list, max_length=50)
  gbp_url: str | None = Field(default=None, max_length=2048)
  tasks: list[str] | None = Field(default=None, description="Task ids to collect; defaults to every task.")
  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class CreateResearchResponse(_CamelModel):
  session_id: str
  status: SessionStatus


class ProgressResponse(_CamelModel):
  current_step: str
  completed_steps: list[str]
  failed_steps: list[str]
  percentage: int


class TaskErrorResponse(_CamelModel):
  step: str
  code: str
  message: str


class ResearchSessionResponse(_CamelModel):
  """Full status poll response for one session."""

  session_id: str
  status: SessionStatus
  input: dict[str, Any]
  tasks: list[str]
  progress: ProgressResponse
  results: dict[str, Any]
  errors: list[TaskErrorResponse]
  metadata: dict[str, Any] | None = None
  created_at: str
  updated_at: str
  completed_at: str | None = None


class ResearchSessionSummary(_CamelModel):
  session_id: str
  business_name: str
  website: str
  status: SessionStatus
  percentage: int
  created_at: str
  completed_at: str | None = None


class ResearchSessionListResponse(_CamelModel):
  items: list[ResearchSessionSummary]
  total: int
  limit: int
  offset: int


def _input_response(record: SessionRecord) -> dict[str, Any]:
  business = record.input
  return {
    "businessName": business.business_name,
    "website": business.website,
    "city": business.city,
    "state": business.state,
    "serviceAreas": list(business.service_areas),
    "industry": business.industry,
    "primaryServices": list(business.primary_services),
    "gbpUrl": business.gbp_url,
  }


def session_response(record: SessionRecord) -> ResearchSessionResponse:
  """Convert a stored session record into its API response."""
  progress = record.progress
  return ResearchSessionResponse(
    session_id=record.session_id,
    status=record.status,
    input=_input_response(record),
    tasks=[task_id.value for task_id in record.task_ids],
    progress=ProgressResponse(current_step=progress.current_step, completed_steps=list(progress.completed_steps), failed_steps=list(progress.failed_steps), percentage=progress.percentage),
    results=dict(record.results),
    errors=[TaskErrorResponse(step=error.step, code=error.code, message=error.message) for error in record.errors],
    metadata=record.metadata,
    created_at=record.created_at,
    updated_at=record.updated_at,
    completed_at=record.completed_at,
  )


def session_summary(record: SessionRecord) -> ResearchSessionSummary:
  return ResearchSessionSummary(
    session_id=record.session_id,
    business_name=record.input.business_name,
    website=record.input.website,
    status=record.status,
    percentage=record.progress.percentage,
    created_at=record.created_at,
    completed_at=record.completed_at,
  )
