"""Research session orchestrator: fan-out, outcome application and re-runs."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from research_engine.executors.registry import ExecutorRegistry
from research_engine.research.consumers import SessionConsumer
from research_engine.research.errors import NotFoundError, SessionStateError, TaskRerunError
from research_engine.research.inputs import normalize_business_input, normalize_task_ids
from research_engine.research.models import BusinessInput, SessionRecord, TaskFailure, TaskId, TaskOutcome, TaskSuccess, TimeoutFailure
from research_engine.research.payloads import PayloadError, validate_payload
from research_engine.research.state import Transition, fold_completion_bundle, fold_outcome, mark_running, replace_result
from research_engine.storage.sessions_repo import SessionsRepository
from research_engine.utils.ids import generate_session_id, utc_timestamp

logger = logging.getLogger(__name__)

_RERUNNABLE_STATUSES = {"completed", "partial"}


def _session_not_found(session_id: str) -> NotFoundError:
  return NotFoundError(f"Research session {session_id} not found.")


def _coerce_task_id(task_id: TaskId | str) -> TaskId:
  if isinstance(task_id, TaskId):
    return task_id
  parsed = TaskId.parse(str(task_id))
  if parsed is None:
    raise NotFoundError(f"Unknown task id: {task_id}")
  return parsed


class ResearchOrchestrator:
  """Owns the lifecycle of research sessions on top of a session store."""

  def __init__(self, *, sessions_repo: SessionsRepository, executors: ExecutorRegistry, task_timeout_seconds: float, consumers: Sequence[SessionConsumer] = ()) -> None:
    self._repo = sessions_repo
    self._executors = executors
    self._task_timeout_seconds = task_timeout_seconds
    self._consumers = tuple(consumers)

  async def create_session(self, business_input: BusinessInput, task_ids: Iterable[TaskId | str] | None = None) -> str:
    """Validate input and persist a pending session; returns the new session id."""
    # Re-run normalization so records built outside the API obey the same rules.
    validated = normalize_business_input(**business_input.to_dict())
    declared = normalize_task_ids(task_ids)
    now = utc_timestamp()
    record = SessionRecord(session_id=generate_session_id(), input=validated, task_ids=declared, status="pending", created_at=now, updated_at=now)
    await self._repo.create_session(record)
    logger.info("Created research session %s with tasks %s", record.session_id, ",".join(task_id.value for task_id in declared))
    return record.session_id

  async def get_session(self, session_id: str) -> SessionRecord:
    record = await self._repo.get_session(session_id)
    if record is None:
      raise _session_not_found(session_id)
    return record

  async def list_sessions(self, *, limit: int = 20, offset: int = 0, status: str | None = None) -> tuple[list[SessionRecord], int]:
    return await self._repo.list_sessions(limit, offset, status)

  async def mark_dispatched(self, session_id: str) -> Transition:
    """Move a pending session to running; any other status is left untouched."""
    transition = await self._repo.mutate_session(session_id, lambda record: mark_running(record, now=utc_timestamp()))
    if transition is None:
      raise _session_not_found(session_id)
    return transition

  async def dispatch_all(self, session_id: str) -> SessionRecord:
    """Run every declared executor concurrently and apply each outcome as it resolves."""
    transition = await self.mark_dispatched(session_id)
    record = transition.record
    if not transition.changed:
      # Terminal sessions are settled and running ones already have a dispatcher.
      logger.info("Skipping dispatch for session %s in status %s", session_id, record.status)
      return record

    unrecorded: dict[TaskId, TaskOutcome] = {}

    async def _run_and_apply(task_id: TaskId) -> None:
      outcome = await self._run_task(record.input, task_id, deep=False)
      try:
        await self.apply_task_outcome(session_id, task_id, outcome)
      except Exception:  # pylint: disable=broad-exception-caught
        logger.error("Failed to record outcome for task %s on session %s", task_id.value, session_id, exc_info=True)
        unrecorded[task_id] = outcome

    await asyncio.gather(*(_run_and_apply(task_id) for task_id in record.task_ids))
    if unrecorded:
      return await self._settle_unrecorded(session_id, unrecorded)
    return await self.get_session(session_id)

  async def _settle_unrecorded(self, session_id: str, outcomes: Mapping[TaskId, TaskOutcome]) -> SessionRecord:
    """Write outcomes whose per-task write failed in one bundle so the session still reaches a terminal status."""
    results = {task_id.value: outcome.data for task_id, outcome in outcomes.items() if isinstance(outcome, TaskSuccess)}
    errors = [{"step": task_id.value, "code": outcome.code, "message": outcome.message} for task_id, outcome in outcomes.items() if isinstance(outcome, TaskFailure)]
    logger.warning("Settling %d unrecorded task(s) for session %s", len(outcomes), session_id)
    return await self.apply_completion_bundle(session_id, results, errors)

  async def _run_task(self, business_input: BusinessInput, task_id: TaskId, *, deep: bool) -> TaskOutcome:
    """Execute one adapter under the task deadline; never raises."""
    try:
      executor = self._executors.resolve(task_id)
      return await asyncio.wait_for(executor.execute(business_input, deep=deep), timeout=self._task_timeout_seconds)
    except TimeoutError:
      logger.warning("Task %s timed out after %.1fs", task_id.value, self._task_timeout_seconds)
      return TimeoutFailure(message=f"Task exceeded {self._task_timeout_seconds:g}s deadline.")
    except Exception as exc:  # pylint: disable=broad-exception-caught
      logger.error("Executor for task %s raised unexpectedly", task_id.value, exc_info=True)
      return TaskFailure(code="executor_error", message=str(exc) or type(exc).__name__)

  async def apply_task_outcome(self, session_id: str, task_id: TaskId | str, outcome: TaskOutcome) -> SessionRecord:
    """Fold one task outcome into the session under the store's per-session lock."""
    resolved = _coerce_task_id(task_id)

    def _mutate(record: SessionRecord) -> Transition:
      if not record.declares(resolved):
        raise NotFoundError(f"Task {resolved.value} is not declared for session {session_id}.")
      return fold_outcome(record, resolved, outcome, now=utc_timestamp())

    transition = await self._repo.mutate_session(session_id, _mutate)
    if transition is None:
      raise _session_not_found(session_id)
    if not transition.changed:
      logger.info("Ignored outcome for task %s on session %s (already processed or session terminal)", resolved.value, session_id)
    await self._after_transition(transition)
    return transition.record

  async def apply_completion_bundle(self, session_id: str, results: Mapping[str, Any], errors: Iterable[Mapping[str, Any]] = (), *, metadata: Mapping[str, Any] | None = None) -> SessionRecord:
    """Settle every remaining declared task from one result bundle."""
    error_list = list(errors)
    transition = await self._repo.mutate_session(session_id, lambda record: fold_completion_bundle(record, results, error_list, metadata=metadata, now=utc_timestamp()))
    if transition is None:
      raise _session_not_found(session_id)
    await self._after_transition(transition)
    return transition.record

  async def rerun_task(self, session_id: str, task_id: TaskId | str) -> SessionRecord:
    """Re-collect one task with deep options and overwrite its stored result."""
    resolved = _coerce_task_id(task_id)
    record = await self.get_session(session_id)
    if not record.declares(resolved):
      raise NotFoundError(f"Task {resolved.value} is not declared for session {session_id}.")
    if record.status not in _RERUNNABLE_STATUSES:
      raise SessionStateError(f"Session {session_id} is {record.status}; only completed or partial sessions can re-run tasks.")
    if resolved.value not in record.progress.completed_steps:
      raise SessionStateError(f"Task {resolved.value} did not complete for session {session_id}; only completed tasks can be re-run.")

    outcome = await self._run_task(record.input, resolved, deep=True)
    if isinstance(outcome, TaskFailure):
      raise TaskRerunError(resolved.value, outcome.code, outcome.message)
    try:
      payload = validate_payload(resolved, outcome.data)
    except PayloadError as exc:
      raise TaskRerunError(resolved.value, "invalid_payload", str(exc)) from exc

    def _mutate(current: SessionRecord) -> Transition:
      return replace_result(current, resolved, payload, now=utc_timestamp())

    transition = await self._repo.mutate_session(session_id, _mutate)
    if transition is None:
      raise _session_not_found(session_id)
    logger.info("Re-ran task %s for session %s", resolved.value, session_id)
    return transition.record

  async def _after_transition(self, transition: Transition) -> None:
    if not transition.became_terminal:
      return
    for consumer in self._consumers:
      try:
        await consumer.on_session_terminal(transition.record)
      except Exception:  # pylint: disable=broad-exception-caught
        logger.error("Session consumer %s failed for session %s", type(consumer).__name__, transition.record.session_id, exc_info=True)


def outcome_from_callback(status: str, data: Any, error: Mapping[str, Any] | None) -> TaskOutcome:
  """Translate a per-task callback (status/data/error) into an outcome value."""
  if status == "completed":
    return TaskSuccess(data)
  return TaskFailure.from_report(error)
