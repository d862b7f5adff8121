"""Behavior of outcome folding on session records, independent of any store."""

from __future__ import annotations

import itertools

import pytest

from research_engine.research.models import STEP_COMPLETE, SessionRecord, TaskFailure, TaskId, TaskSuccess, TimeoutFailure
from research_engine.research.state import fold_completion_bundle, fold_outcome, mark_running, replace_result
from tests.helpers import VALID_PAYLOADS, make_business_input

NOW = "2026-01-01T00:00:00Z"
LATER = "2026-01-01T00:05:00Z"
A, B, C, D = TaskId.GBP, TaskId.COMPETITORS, TaskId.WEBSITE, TaskId.SEO
FOUR_TASKS = (A, B, C, D)


def _record(task_ids: tuple[TaskId, ...] = FOUR_TASKS, status: str = "running") -> SessionRecord:
  return SessionRecord(session_id="session-1", input=make_business_input(), task_ids=task_ids, status=status, created_at=NOW, updated_at=NOW)


def _success(task_id: TaskId) -> TaskSuccess:
  return TaskSuccess(VALID_PAYLOADS[task_id])


def _failure(task_id: TaskId) -> TaskFailure:
  return TaskFailure(code="provider_error", message=f"{task_id.value} unavailable")


def _apply(record: SessionRecord, steps) -> SessionRecord:
  for task_id, outcome in steps:
    record = fold_outcome(record, task_id, outcome, now=NOW).record
  return record


def test_mixed_outcomes_end_partial() -> None:
  record = _apply(_record(), [(A, _success(A)), (B, _success(B)), (C, _failure(C)), (D, _success(D))])
  assert record.status == "partial"
  assert record.progress.percentage == 100
  assert set(record.progress.completed_steps) == {"gbp", "competitors", "seo"}
  assert set(record.progress.failed_steps) == {"website"}
  assert [error.step for error in record.errors] == ["website"]
  assert record.completed_at == NOW


def test_all_failures_end_failed() -> None:
  record = _apply(_record(), [(task_id, _failure(task_id)) for task_id in FOUR_TASKS])
  assert record.status == "failed"
  assert record.progress.percentage == 100
  assert record.results == {}
  assert len(record.errors) == 4


def test_all_successes_end_completed() -> None:
  record = _apply(_record(), [(task_id, _success(task_id)) for task_id in FOUR_TASKS])
  assert record.status == "completed"
  assert record.errors == []
  assert set(record.results) == {"gbp", "competitors", "website", "seo"}


def test_duplicate_success_changes_nothing() -> None:
  record = _apply(_record(), [(A, _success(A)), (B, _failure(B))])
  transition = fold_outcome(record, A, _success(A), now=LATER)
  assert transition.changed is False
  assert transition.record == record
  assert transition.record.progress.completed_steps == ("gbp",)
  assert transition.record.progress.percentage == 50
  assert len(transition.record.errors) == 1


def test_duplicate_failure_does_not_add_error_entries() -> None:
  record = _apply(_record(), [(B, _failure(B)), (B, _failure(B))])
  assert record.progress.failed_steps == ("competitors",)
  assert len(record.errors) == 1


def test_first_outcome_wins_for_a_task() -> None:
  record = _apply(_record(), [(A, _failure(A)), (A, _success(A))])
  assert record.progress.failed_steps == ("gbp",)
  assert record.progress.completed_steps == ()
  assert "gbp" not in record.results


def test_outcome_after_terminal_status_is_ignored() -> None:
  record = _apply(_record((A,)), [(A, _success(A))])
  assert record.status == "completed"
  transition = fold_outcome(record, A, _failure(A), now=LATER)
  assert transition.changed is False
  assert transition.record.status == "completed"


def test_invalid_payload_is_recorded_as_failure() -> None:
  transition = fold_outcome(_record(), A, TaskSuccess({"rating": 4.0}), now=NOW)
  record = transition.record
  assert record.progress.failed_steps == ("gbp",)
  assert record.errors[0].code == "invalid_payload"
  assert "gbp" not in record.results


def test_timeout_failure_uses_timeout_code() -> None:
  record = _apply(_record(), [(C, TimeoutFailure())])
  assert record.errors[0].code == "timeout"


def test_running_progress_tracks_current_step() -> None:
  record = _apply(_record(), [(B, _success(B))])
  assert record.status == "running"
  assert record.progress.current_step == "competitors"
  assert record.progress.percentage == 25
  assert record.completed_at is None


def test_first_outcome_moves_pending_session_to_running() -> None:
  record = _apply(_record(status="pending"), [(A, _success(A))])
  assert record.status == "running"


def test_success_payload_is_stored_in_camel_case() -> None:
  record = _apply(_record(), [(A, _success(A))])
  assert record.results["gbp"]["name"] == "Acme Plumbing"
  assert record.results["gbp"]["reviewCount"] == 80


@pytest.mark.parametrize("pattern", list(itertools.product((True, False), repeat=4)))
def test_any_order_reaches_terminal_with_monotonic_progress(pattern: tuple[bool, ...]) -> None:
  outcomes = {task_id: (_success(task_id) if ok else _failure(task_id)) for task_id, ok in zip(FOUR_TASKS, pattern, strict=True)}
  final_states = set()
  for order in itertools.permutations(FOUR_TASKS):
    record = _record()
    last_percentage = record.progress.percentage
    for task_id in order:
      record = fold_outcome(record, task_id, outcomes[task_id], now=NOW).record
      assert record.progress.percentage >= last_percentage
      assert not set(record.progress.completed_steps) & set(record.progress.failed_steps)
      last_percentage = record.progress.percentage

    assert record.is_terminal
    assert record.progress.percentage == 100
    if all(pattern):
      assert record.status == "completed"
    elif not any(pattern):
      assert record.status == "failed"
    else:
      assert record.status == "partial"
    final_states.add((record.status, frozenset(record.progress.completed_steps), frozenset(record.progress.failed_steps)))

  # Arrival order never changes the outcome.
  assert len(final_states) == 1


@pytest.mark.parametrize("pattern", list(itertools.product((True, False), repeat=4)))
def test_applying_every_outcome_twice_matches_applying_once(pattern: tuple[bool, ...]) -> None:
  steps = [(task_id, _success(task_id) if ok else _failure(task_id)) for task_id, ok in zip(FOUR_TASKS, pattern, strict=True)]
  once = _apply(_record(), steps)
  twice = _apply(_record(), [step for step in steps for _ in range(2)])
  assert twice == once


def test_bundle_matches_individual_application() -> None:
  individual = _apply(_record(), [(A, _success(A)), (B, _success(B)), (C, _failure(C)), (D, _success(D))])
  results = {"gbp": VALID_PAYLOADS[A], "competitors": VALID_PAYLOADS[B], "seo": VALID_PAYLOADS[D]}
  errors = [{"step": "website", "code": "provider_error", "message": "website unavailable"}]
  transition = fold_completion_bundle(_record(), results, errors, now=NOW)
  bundled = transition.record

  assert transition.became_terminal is True
  assert bundled.status == individual.status == "partial"
  assert bundled.progress.percentage == individual.progress.percentage == 100
  assert set(bundled.progress.completed_steps) == set(individual.progress.completed_steps)
  assert set(bundled.progress.failed_steps) == set(individual.progress.failed_steps)
  assert bundled.results == individual.results
  assert bundled.errors == individual.errors
  assert bundled.progress.current_step == STEP_COMPLETE


def test_bundle_fails_declared_steps_without_results() -> None:
  record = fold_completion_bundle(_record(), {"gbp": VALID_PAYLOADS[A]}, [], now=NOW).record
  assert record.status == "partial"
  missing = {error.step: error.code for error in record.errors}
  assert missing == {"competitors": "missing_result", "website": "missing_result", "seo": "missing_result"}


def test_bundle_accepts_legacy_result_keys() -> None:
  results = {"gbp": VALID_PAYLOADS[A], "competitors": VALID_PAYLOADS[B], "websiteCrawl": VALID_PAYLOADS[C], "seoAudit": VALID_PAYLOADS[D]}
  record = fold_completion_bundle(_record(), results, [], now=NOW).record
  assert record.status == "completed"
  assert set(record.results) == {"gbp", "competitors", "website", "seo"}


def test_bundle_error_overrides_payload_for_same_step() -> None:
  results = {task_id.value: VALID_PAYLOADS[task_id] for task_id in FOUR_TASKS}
  record = fold_completion_bundle(_record(), results, [{"step": "seo", "code": "blocked", "message": "Robots blocked the audit."}], now=NOW).record
  assert record.progress.failed_steps == ("seo",)
  assert "seo" not in record.results


def test_bundle_keeps_steps_already_reported() -> None:
  record = _apply(_record(), [(A, _failure(A))])
  results = {task_id.value: VALID_PAYLOADS[task_id] for task_id in FOUR_TASKS}
  record = fold_completion_bundle(record, results, [], now=NOW).record
  assert record.status == "partial"
  assert record.progress.failed_steps == ("gbp",)
  assert "gbp" not in record.results
  assert len(record.errors) == 1


def test_bundle_merges_metadata() -> None:
  record = _record()
  record.metadata = {"runner": "workflow"}
  results = {task_id.value: VALID_PAYLOADS[task_id] for task_id in FOUR_TASKS}
  updated = fold_completion_bundle(record, results, [], metadata={"executionId": "exec-9"}, now=NOW).record
  assert updated.metadata == {"runner": "workflow", "executionId": "exec-9"}


def test_bundle_on_terminal_session_is_ignored() -> None:
  record = _apply(_record((A,)), [(A, _success(A))])
  transition = fold_completion_bundle(record, {}, [{"step": "gbp", "code": "late", "message": "late"}], now=LATER)
  assert transition.changed is False
  assert transition.record == record


def test_mark_running_only_moves_pending_sessions() -> None:
  started = mark_running(_record(status="pending"), now=LATER)
  assert started.changed is True
  assert started.record.status == "running"
  assert started.record.progress.current_step == "dispatching"

  again = mark_running(started.record, now=LATER)
  assert again.changed is False


def test_replace_result_keeps_progress() -> None:
  record = _apply(_record((A, B)), [(A, _success(A)), (B, _failure(B))])
  transition = replace_result(record, A, {"name": "Acme Plumbing", "reviewCount": 200}, now=LATER)
  assert transition.record.results["gbp"]["reviewCount"] == 200
  assert transition.record.status == "partial"
  assert transition.record.progress == record.progress
  assert transition.record.updated_at == LATER
