"""Typed per-task payloads stored in a session's results mapping."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, RootModel, ValidationError
from pydantic.alias_generators import to_camel

from research_engine.research.models import TaskId


class _Payload(BaseModel):
  """Camel-cased payload base that keeps provider extras."""

  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class GbpPayload(_Payload):
  """Business profile listing for the subject business."""

  name: str
  rating: float | None = None
  review_count: int = 0
  categories: list[str] = Field(default_factory=list)
  phone: str | None = None
  address: str | None = None
  website: str | None = None
  url: str | None = None
  place_id: str | None = None
  photo_count: int | None = None
  recent_reviews: list[dict[str, Any]] = Field(default_factory=list)
  mock: bool = False


class CompetitorEntry(_Payload):
  """One ranked competitor listing."""

  rank: int
  name: str
  rating: float | None = None
  review_count: int = 0
  website: str | None = None
  phone: str | None = None
  address: str | None = None
  categories: list[str] = Field(default_factory=list)
  url: str | None = None
  mock: bool = False


class CompetitorsPayload(RootModel[list[CompetitorEntry]]):
  """Ranked competitor listings."""


class CrawledPage(_Payload):
  url: str
  title: str = ""
  description: str = ""
  word_count: int | None = None


class WebsiteCrawlPayload(_Payload):
  """Website structure collected by the crawler."""

  cms: str | None = None
  ssl: bool = False
  structured_data: bool = False
  schema_types: list[str] = Field(default_factory=list)
  title: str | None = None
  description: str | None = None
  total_pages: int = 0
  pages: list[CrawledPage] = Field(default_factory=list)
  page_limit_reached: bool = False
  mock: bool = False


class SitemapPayload(_Payload):
  """Sitemap structure summary."""

  total_pages: int = 0
  page_types: dict[str, int] = Field(default_factory=dict)
  has_service_pages: bool = False
  has_blog: bool = False
  has_location_pages: bool = False
  recently_updated: int = 0
  urls: list[str] = Field(default_factory=list)
  note: str | None = None
  mock: bool = False


class SeoAuditPayload(_Payload):
  """Technical audit of the home page."""

  score: int = Field(ge=0, le=100)
  url: str | None = None
  technical: dict[str, Any] = Field(default_factory=dict)
  content: dict[str, Any] = Field(default_factory=dict)
  mock: bool = False


class CitationEntry(_Payload):
  source: str
  found: bool = False
  url: str | None = None
  nap_consistent: bool | None = None
  claimed: bool | None = None
  mock: bool = False


class CitationsPayload(RootModel[list[CitationEntry]]):
  """Directory listing presence and NAP consistency."""


PAYLOAD_MODELS: dict[TaskId, type[BaseModel]] = {
  TaskId.GBP: GbpPayload,
  TaskId.COMPETITORS: CompetitorsPayload,
  TaskId.WEBSITE: WebsiteCrawlPayload,
  TaskId.SITEMAP: SitemapPayload,
  TaskId.SEO: SeoAuditPayload,
  TaskId.CITATIONS: CitationsPayload,
}

# Keys used by the external workflow runner's result bundle.
RESULT_KEY_ALIASES: dict[str, TaskId] = {"seoAudit": TaskId.SEO, "websiteCrawl": TaskId.WEBSITE}


class PayloadError(ValueError):
  """Raised when a task payload does not match its task's schema."""


def validate_payload(task_id: TaskId, data: Any) -> Any:
  """Validate raw payload data for a task and return its JSON-ready form."""
  model = PAYLOAD_MODELS[task_id]
  if isinstance(data, model):
    parsed = data
  else:
    try:
      parsed = model.model_validate(data)
    except ValidationError as exc:
      raise PayloadError(f"Invalid {task_id.value} payload: {exc.error_count()} validation error(s).") from exc
  return parsed.model_dump(mode="json", by_alias=True)


def resolve_result_key(key: str) -> TaskId | None:
  """Map a result bundle key (task id or legacy alias) to its task id."""
  return RESULT_KEY_ALIASES.get(key) or TaskId.parse(key)
