"""Domain models for research sessions and task outcomes."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Literal

SessionStatus = Literal["pending", "running", "completed", "failed", "partial"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "failed", "partial"})

STEP_INITIALIZING = "initializing"
STEP_DISPATCHING = "dispatching"
STEP_COMPLETE = "complete"

# Used when a runner reports a failure without a code or message.
DEFAULT_FAILURE_CODE = "provider_error"
DEFAULT_FAILURE_MESSAGE = "Task failed."


class TaskId(str, Enum):
  """Closed set of data-collection tasks a session can declare."""

  GBP = "gbp"
  COMPETITORS = "competitors"
  WEBSITE = "website"
  SITEMAP = "sitemap"
  SEO = "seo"
  CITATIONS = "citations"

  @classmethod
  def parse(cls, raw: str) -> TaskId | None:
    """Return the task id for a raw string, or None when it is not declared."""
    try:
      return cls(raw.strip().lower())
    except ValueError:
      return None


DEFAULT_TASK_IDS: tuple[TaskId, ...] = tuple(TaskId)


@dataclass(frozen=True)
class BusinessInput:
  """Identifying fields of the subject business, fixed at session creation."""

  business_name: str
  website: str
  city: str | None = None
  state: str | None = None
  service_areas: tuple[str, ...] = ()
  industry: str | None = None
  primary_services: tuple[str, ...] = ()
  gbp_url: str | None = None

  @property
  def location(self) -> str:
    """Return a human readable locality for provider searches."""
    parts = [part for part in (self.city, self.state) if part]
    return ", ".join(parts) if parts else "United States"

  def to_dict(self) -> dict[str, Any]:
    payload = asdict(self)
    payload["service_areas"] = list(self.service_areas)
    payload["primary_services"] = list(self.primary_services)
    return payload

  @classmethod
  def from_dict(cls, payload: dict[str, Any]) -> BusinessInput:
    return cls(
      business_name=str(payload["business_name"]),
      website=str(payload["website"]),
      city=payload.get("city"),
      state=payload.get("state"),
      service_areas=tuple(payload.get("service_areas") or ()),
      industry=payload.get("industry"),
      primary_services=tuple(payload.get("primary_services") or ()),
      gbp_url=payload.get("gbp_url"),
    )


@dataclass(frozen=True)
class TaskError:
  """One failed task outcome recorded on a session."""

  step: str
  code: str
  message: str


@dataclass(frozen=True)
class SessionProgress:
  """Step bookkeeping for a session; step tuples keep first-insert order."""

  current_step: str = STEP_INITIALIZING
  completed_steps: tuple[str, ...] = ()
  failed_steps: tuple[str, ...] = ()
  percentage: int = 0

  def processed(self) -> set[str]:
    return set(self.completed_steps) | set(self.failed_steps)

  def to_dict(self) -> dict[str, Any]:
    return {"currentStep": self.current_step, "completedSteps": list(self.completed_steps), "failedSteps": list(self.failed_steps), "percentage": self.percentage}

  @classmethod
  def from_dict(cls, payload: dict[str, Any]) -> SessionProgress:
    return cls(
      current_step=str(payload.get("currentStep") or STEP_INITIALIZING),
      completed_steps=tuple(payload.get("completedSteps") or ()),
      failed_steps=tuple(payload.get("failedSteps") or ()),
      percentage=int(payload.get("percentage") or 0),
    )


@dataclass
class SessionRecord:
  """Durable record tracking one research request across all its tasks."""

  session_id: str
  input: BusinessInput
  task_ids: tuple[TaskId, ...]
  status: SessionStatus
  created_at: str
  updated_at: str
  progress: SessionProgress = field(default_factory=SessionProgress)
  results: dict[str, Any] = field(default_factory=dict)
  errors: list[TaskError] = field(default_factory=list)
  metadata: dict[str, Any] | None = None
  completed_at: str | None = None

  @property
  def is_terminal(self) -> bool:
    return self.status in TERMINAL_STATUSES

  def declares(self, task_id: TaskId) -> bool:
    return task_id in self.task_ids


@dataclass(frozen=True)
class TaskSuccess:
  """Executor outcome carrying the collected payload."""

  data: Any


@dataclass(frozen=True)
class TaskFailure:
  """Executor outcome describing why a task produced no data."""

  code: str
  message: str

  @classmethod
  def from_report(cls, error: Mapping[str, Any] | None) -> TaskFailure:
    """Build a failure from an externally reported error object, filling blanks with defaults."""
    error = error or {}
    return cls(code=str(error.get("code") or DEFAULT_FAILURE_CODE), message=str(error.get("message") or DEFAULT_FAILURE_MESSAGE))


@dataclass(frozen=True)
class TimeoutFailure(TaskFailure):
  """Failure synthesized by the orchestrator when an executor exceeds its deadline."""

  code: str = "timeout"
  message: str = "Task timed out."


TaskOutcome = TaskSuccess | TaskFailure
