from __future__ import annotations

from typing import Protocol

from research_engine.research.models import BusinessInput, TaskOutcome


class TaskExecutor(Protocol):
  """Adapter that collects one kind of data for a business.

  Executors never retry, never enforce their own deadline and never touch the
  session record; provider problems come back as TaskFailure values.
  """

  async def execute(self, business_input: BusinessInput, *, deep: bool = False) -> TaskOutcome:
    """Collect the task's data and return a success or failure outcome."""
    ...


class ProviderError(Exception):
  """Raised by provider clients when a remote call fails."""

  def __init__(self, message: str, *, status_code: int | None = None) -> None:
    super().__init__(message)
    self.status_code = status_code
