"""Progress and terminal-status policy for research sessions.

These helpers are pure: they only look at step membership, never at arrival
order, so the outcome of a session does not depend on which provider answered
first.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable

from research_engine.research.models import SessionStatus

MAX_RUNNING_PERCENTAGE = 99


def step_key(task_id: object) -> str:
  """Return the plain string stored in step sets for a task id or raw step name."""
  return str(getattr(task_id, "value", task_id))


def compute_percentage(completed: Collection[str], failed: Collection[str], total: int, *, terminal: bool = False) -> int:
  """Return the 0-100 completion percentage for a session.

  Processed steps are counted once even if a caller passes overlapping sets.
  100 is reserved for terminal sessions, so a running session is capped at 99.
  """
  if terminal:
    return 100
  if total <= 0:
    return 0
  processed = len(set(completed) | set(failed))
  percentage = round(100 * processed / total)
  return max(0, min(percentage, MAX_RUNNING_PERCENTAGE))


def derive_terminal_status(completed: Collection[str], failed: Collection[str], task_ids: Iterable[str]) -> SessionStatus | None:
  """Return the terminal status once every declared task is processed, else None."""
  declared = {step_key(task_id) for task_id in task_ids}
  if not declared:
    return None

  completed_set = set(completed) & declared
  failed_set = set(failed) & declared
  if (completed_set | failed_set) != declared:
    return None

  if failed_set == declared:
    return "failed"
  if failed_set:
    return "partial"
  return "completed"
