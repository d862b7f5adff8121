"""Error taxonomy for research sessions."""

from __future__ import annotations


class ResearchError(Exception):
  """Base class for errors surfaced to research API callers."""


class InvalidInputError(ResearchError):
  """Raised when a session request is missing identifying business fields."""


class NotFoundError(ResearchError):
  """Raised for unknown session ids or task ids outside the declared task set."""


class UnauthorizedError(ResearchError):
  """Raised when an inbound callback fails shared-secret authentication."""


class SessionStateError(ResearchError):
  """Raised when an operation is not allowed in the session's current status."""


class TaskRerunError(ResearchError):
  """Raised when an explicit re-run of a single task does not produce new data."""

  def __init__(self, task_id: str, code: str, message: str) -> None:
    super().__init__(f"Re-run of {task_id} failed ({code}): {message}")
    self.task_id = task_id
    self.code = code
    self.message = message
