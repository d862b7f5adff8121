"""Test doubles and builders shared across unit and integration tests."""

from __future__ import annotations

import asyncio
from typing import Any

from research_engine.executors.registry import ExecutorRegistry
from research_engine.research.models import BusinessInput, TaskFailure, TaskId, TaskOutcome, TaskSuccess
from research_engine.research.orchestrator import ResearchOrchestrator
from research_engine.storage.memory_sessions_repo import InMemorySessionsRepository

CALLBACK_SECRET = "test-callback-secret"

# Minimal payloads that pass each task's schema.
VALID_PAYLOADS: dict[TaskId, Any] = {
  TaskId.GBP: {"name": "Acme Plumbing", "rating": 4.6, "reviewCount": 80},
  TaskId.COMPETITORS: [{"rank": 1, "name": "Rival Plumbing"}],
  TaskId.WEBSITE: {"cms": "WordPress", "ssl": True},
  TaskId.SITEMAP: {"totalPages": 12},
  TaskId.SEO: {"score": 80},
  TaskId.CITATIONS: [{"source": "Yelp", "found": True}],
}


class FakeExecutor:
  """Executor double with a canned outcome, optional delay and optional crash."""

  def __init__(self, outcome: TaskOutcome | None = None, *, delay: float = 0.0, error: Exception | None = None, deep_outcome: TaskOutcome | None = None) -> None:
    self.outcome = outcome
    self.deep_outcome = deep_outcome
    self.delay = delay
    self.error = error
    self.calls: list[bool] = []

  async def execute(self, business_input: BusinessInput, *, deep: bool = False) -> TaskOutcome:
    self.calls.append(deep)
    if self.delay:
      await asyncio.sleep(self.delay)
    if self.error is not None:
      raise self.error
    if deep and self.deep_outcome is not None:
      return self.deep_outcome
    assert self.outcome is not None
    return self.outcome


def success_executors(**overrides: FakeExecutor) -> dict[TaskId, FakeExecutor]:
  """Return a fake executor per task, each succeeding with a valid payload unless overridden."""
  executors = {task_id: FakeExecutor(TaskSuccess(payload)) for task_id, payload in VALID_PAYLOADS.items()}
  for name, executor in overrides.items():
    executors[TaskId(name)] = executor
  return executors


def failing_executor(code: str = "provider_error", message: str = "Provider unavailable.") -> FakeExecutor:
  return FakeExecutor(TaskFailure(code=code, message=message))


def make_business_input(**overrides: Any) -> BusinessInput:
  fields: dict[str, Any] = {"business_name": "Acme Plumbing", "website": "https://acmeplumbing.example", "city": "Austin", "state": "TX", "industry": "Plumbing"}
  fields.update(overrides)
  return BusinessInput(**fields)


def make_orchestrator(repo: InMemorySessionsRepository, executors: dict[TaskId, FakeExecutor], *, timeout: float = 5.0, consumers: tuple = ()) -> ResearchOrchestrator:
  return ResearchOrchestrator(sessions_repo=repo, executors=ExecutorRegistry(executors), task_timeout_seconds=timeout, consumers=consumers)
