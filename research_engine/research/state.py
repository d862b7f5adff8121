"""Pure state transitions applied to a session record under the store's per-session lock."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from typing import Any

from research_engine.research.models import STEP_COMPLETE, STEP_DISPATCHING, SessionProgress, SessionRecord, TaskError, TaskFailure, TaskId, TaskOutcome, TaskSuccess
from research_engine.research.payloads import PayloadError, resolve_result_key, validate_payload
from research_engine.research.progress import compute_percentage, derive_terminal_status

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Transition:
  """Result of folding one change into a record."""

  record: SessionRecord
  changed: bool
  became_terminal: bool


def _unchanged(record: SessionRecord) -> Transition:
  return Transition(record=record, changed=False, became_terminal=False)


def mark_running(record: SessionRecord, *, now: str) -> Transition:
  """Move a pending session to running before dispatch starts."""
  if record.status != "pending":
    return _unchanged(record)
  progress = replace(record.progress, current_step=STEP_DISPATCHING)
  return Transition(record=replace(record, status="running", progress=progress, updated_at=now), changed=True, became_terminal=False)


def _resolve_outcome(task_id: TaskId, outcome: TaskOutcome) -> tuple[Any | None, TaskFailure | None]:
  """Validate a success payload; a payload that fails validation becomes a failure."""
  if isinstance(outcome, TaskSuccess):
    try:
      return validate_payload(task_id, outcome.data), None
    except PayloadError as exc:
      logger.warning("Discarding invalid payload for task %s: %s", task_id.value, exc)
      return None, TaskFailure(code="invalid_payload", message=str(exc))
  return None, outcome


def _finalize(record: SessionRecord, progress: SessionProgress, *, previous_percentage: int, now: str) -> tuple[SessionRecord, bool]:
  """Recompute percentage and apply the terminal-status rule."""
  terminal_status = derive_terminal_status(progress.completed_steps, progress.failed_steps, record.task_ids)
  if terminal_status is None:
    percentage = compute_percentage(progress.completed_steps, progress.failed_steps, len(record.task_ids))
    progress = replace(progress, percentage=max(previous_percentage, percentage))
    status = "running" if record.status == "pending" else record.status
    return replace(record, status=status, progress=progress, updated_at=now), False

  progress = replace(progress, percentage=100)
  completed_at = record.completed_at or now
  return replace(record, status=terminal_status, progress=progress, updated_at=now, completed_at=completed_at), True


def fold_outcome(record: SessionRecord, task_id: TaskId, outcome: TaskOutcome, *, now: str) -> Transition:
  """Fold one task outcome into a session record.

  The first outcome recorded for a task wins: repeated or conflicting outcomes
  for an already processed task, and any outcome after the session is
  terminal, leave the record untouched.
  """
  step = task_id.value
  if record.is_terminal or step in record.progress.processed():
    return _unchanged(record)

  payload, failure = _resolve_outcome(task_id, outcome)
  progress = record.progress
  results = record.results
  errors = record.errors

  if failure is None:
    results = {**record.results, step: payload}
    progress = replace(progress, completed_steps=(*progress.completed_steps, step))
  else:
    errors = [*record.errors, TaskError(step=step, code=failure.code, message=failure.message)]
    progress = replace(progress, failed_steps=(*progress.failed_steps, step))

  progress = replace(progress, current_step=step)
  updated, became_terminal = _finalize(replace(record, results=results, errors=errors), progress, previous_percentage=record.progress.percentage, now=now)
  return Transition(record=updated, changed=True, became_terminal=became_terminal)


def _bundle_errors(errors: Iterable[Mapping[str, Any]]) -> dict[str, TaskFailure]:
  failures: dict[str, TaskFailure] = {}
  for entry in errors:
    task_id = resolve_result_key(str(entry.get("step") or ""))
    if task_id is None:
      continue
    # Keep the first reported error per step.
    failures.setdefault(task_id.value, TaskFailure.from_report(entry))
  return failures


def fold_completion_bundle(record: SessionRecord, results: Mapping[str, Any], errors: Iterable[Mapping[str, Any]], *, metadata: Mapping[str, Any] | None = None, now: str) -> Transition:
  """Fold a whole-session result bundle reported once by an external worker.

  Every declared task not yet processed is settled in one pass: steps with a
  payload and no reported error complete, everything else fails. The
  terminal-status rule is then applied once.
  """
  if record.is_terminal:
    return _unchanged(record)

  payloads: dict[str, Any] = {}
  for key, data in results.items():
    task_id = resolve_result_key(key)
    if task_id is not None and data is not None:
      payloads[task_id.value] = data
  failures = _bundle_errors(errors)

  processed = record.progress.processed()
  completed_steps = list(record.progress.completed_steps)
  failed_steps = list(record.progress.failed_steps)
  merged_results = dict(record.results)
  merged_errors = list(record.errors)

  for task_id in record.task_ids:
    step = task_id.value
    if step in processed:
      continue

    failure = failures.get(step)
    if failure is None and step in payloads:
      payload, failure = _resolve_outcome(task_id, TaskSuccess(payloads[step]))
      if failure is None:
        merged_results[step] = payload
        completed_steps.append(step)
        continue
    if failure is None:
      failure = TaskFailure(code="missing_result", message="No result reported for this step.")
    merged_errors.append(TaskError(step=step, code=failure.code, message=failure.message))
    failed_steps.append(step)

  progress = replace(record.progress, current_step=STEP_COMPLETE, completed_steps=tuple(completed_steps), failed_steps=tuple(failed_steps))
  merged_metadata = {**(record.metadata or {}), **dict(metadata)} if metadata else record.metadata
  base = replace(record, results=merged_results, errors=merged_errors, metadata=merged_metadata)
  updated, became_terminal = _finalize(base, progress, previous_percentage=record.progress.percentage, now=now)
  return Transition(record=updated, changed=True, became_terminal=became_terminal)


def replace_result(record: SessionRecord, task_id: TaskId, payload: Any, *, now: str) -> Transition:
  """Overwrite one task's result after an explicit re-run; progress and status stay as they are."""
  results = {**record.results, task_id.value: payload}
  return Transition(record=replace(record, results=results, updated_at=now), changed=True, became_terminal=False)
