from __future__ import annotations

from collections.abc import Iterator
from dataclasses import replace

import pytest
from httpx import AsyncClient

from research_engine.api.routes.callbacks import split_bundle
from research_engine.config import get_settings
from research_engine.main import app
from research_engine.research.models import TaskId
from research_engine.research.orchestrator import ResearchOrchestrator
from tests.helpers import CALLBACK_SECRET, VALID_PAYLOADS, make_business_input

CALLBACK_URL = "/internal/research/callback"
AUTH = {"x-webhook-secret": CALLBACK_SECRET}
FOUR_TASKS = ["gbp", "competitors", "website", "seo"]


async def _session(orchestrator: ResearchOrchestrator, tasks: list[str] = FOUR_TASKS) -> str:
  return await orchestrator.create_session(make_business_input(), tasks)


def _step(session_id: str, step: str, status: str = "completed", **extra: object) -> dict:
  body: dict = {"sessionId": session_id, "step": step, "status": status}
  if status == "completed" and "data" not in extra:
    body["data"] = VALID_PAYLOADS[TaskId(step)]
  body.update(extra)
  return body


@pytest.fixture
def no_callback_secret() -> Iterator[None]:
  app.dependency_overrides[get_settings] = lambda: replace(get_settings(), callback_secret=None)
  yield
  app.dependency_overrides.pop(get_settings, None)


@pytest.mark.anyio
async def test_callback_rejects_missing_or_wrong_secret(async_client: AsyncClient, orchestrator: ResearchOrchestrator) -> None:
  session_id = await _session(orchestrator)
  response = await async_client.post(CALLBACK_URL, json=_step(session_id, "gbp"))
  assert response.status_code == 401

  response = await async_client.post(CALLBACK_URL, json=_step(session_id, "gbp"), headers={"x-webhook-secret": "guess"})
  assert response.status_code == 401
  assert response.json()["detail"] == "Invalid callback secret."

  record = await orchestrator.get_session(session_id)
  assert record.progress.completed_steps == ()


@pytest.mark.anyio
async def test_callback_accepts_bearer_secret(async_client: AsyncClient, orchestrator: ResearchOrchestrator) -> None:
  session_id = await _session(orchestrator)
  response = await async_client.post(CALLBACK_URL, json=_step(session_id, "gbp"), headers={"authorization": f"Bearer {CALLBACK_SECRET}"})
  assert response.status_code == 200


@pytest.mark.anyio
async def test_callback_denied_when_secret_not_configured(async_client: AsyncClient, orchestrator: ResearchOrchestrator, no_callback_secret: None) -> None:
  session_id = await _session(orchestrator)
  response = await async_client.post(CALLBACK_URL, json=_step(session_id, "gbp"), headers=AUTH)
  assert response.status_code == 403


@pytest.mark.anyio
async def test_callback_unknown_session_is_not_created(async_client: AsyncClient, orchestrator: ResearchOrchestrator) -> None:
  response = await async_client.post(CALLBACK_URL, json=_step("no-such-session", "gbp"), headers=AUTH)
  assert response.status_code == 404
  assert await orchestrator.list_sessions() == ([], 0)


@pytest.mark.anyio
async def test_callback_unknown_or_undeclared_step(async_client: AsyncClient, orchestrator: ResearchOrchestrator) -> None:
  session_id = await _session(orchestrator, ["gbp"])
  response = await async_client.post(CALLBACK_URL, json={"sessionId": session_id, "step": "reviews", "status": "completed"}, headers=AUTH)
  assert response.status_code == 404
  assert response.json()["detail"] == "Unknown step: reviews"

  response = await async_client.post(CALLBACK_URL, json=_step(session_id, "seo"), headers=AUTH)
  assert response.status_code == 404


@pytest.mark.anyio
async def test_callback_rejects_malformed_payload(async_client: AsyncClient) -> None:
  response = await async_client.post(CALLBACK_URL, content=b"{not json", headers={**AUTH, "content-type": "application/json"})
  assert response.status_code == 400
  assert response.json()["detail"] == "Request body is not valid JSON."

  response = await async_client.post(CALLBACK_URL, json={"sessionId": "abc", "step": "gbp", "status": "done"}, headers=AUTH)
  assert response.status_code == 400
  assert response.json()["detail"].startswith("Invalid request payload")


@pytest.mark.anyio
async def test_per_step_callbacks_reach_partial(async_client: AsyncClient, orchestrator: ResearchOrchestrator) -> None:
  session_id = await _session(orchestrator)
  steps = [
    _step(session_id, "gbp"),
    _step(session_id, "competitors"),
    _step(session_id, "website", status="failed", error={"code": "crawl_blocked", "message": "Crawler was blocked."}),
    _step(session_id, "seo"),
  ]
  percentages = []
  for step in steps:
    response = await async_client.post(CALLBACK_URL, json=step, headers=AUTH)
    assert response.status_code == 200
    percentages.append(response.json()["progress"]["percentage"])

  body = response.json()
  assert body["success"] is True
  assert body["sessionId"] == session_id
  assert body["status"] == "partial"
  assert percentages == [25, 50, 75, 100]
  assert sorted(body["progress"]["completedSteps"]) == ["competitors", "gbp", "seo"]
  assert body["progress"]["failedSteps"] == ["website"]

  record = await orchestrator.get_session(session_id)
  assert record.errors[0].code == "crawl_blocked"


@pytest.mark.anyio
async def test_duplicate_callback_is_idempotent(async_client: AsyncClient, orchestrator: ResearchOrchestrator) -> None:
  session_id = await _session(orchestrator)
  first = await async_client.post(CALLBACK_URL, json=_step(session_id, "gbp"), headers=AUTH)
  second = await async_client.post(CALLBACK_URL, json=_step(session_id, "gbp"), headers=AUTH)
  assert second.status_code == 200
  assert second.json()["progress"] == first.json()["progress"]
  assert second.json()["progress"]["completedSteps"] == ["gbp"]
  assert second.json()["progress"]["percentage"] == 25


@pytest.mark.anyio
async def test_every_step_failing_reports_failed_as_data(async_client: AsyncClient, orchestrator: ResearchOrchestrator) -> None:
  session_id = await _session(orchestrator)
  for step in FOUR_TASKS:
    response = await async_client.post(CALLBACK_URL, json=_step(session_id, step, status="failed"), headers=AUTH)
    assert response.status_code == 200
  assert response.json()["status"] == "failed"
  assert response.json()["progress"]["percentage"] == 100

  poll = await async_client.get(f"/v1/research/{session_id}")
  assert poll.status_code == 200
  assert {error["code"] for error in poll.json()["errors"]} == {"provider_error"}


@pytest.mark.anyio
async def test_complete_bundle_matches_individual_callbacks(async_client: AsyncClient, orchestrator: ResearchOrchestrator) -> None:
  individual_id = await _session(orchestrator)
  for step in [_step(individual_id, "gbp"), _step(individual_id, "competitors"), _step(individual_id, "website", status="failed", error={"code": "crawl_blocked", "message": "Crawler was blocked."}), _step(individual_id, "seo")]:
    await async_client.post(CALLBACK_URL, json=step, headers=AUTH)

  bundled_id = await _session(orchestrator)
  bundle = {
    "results": {"gbp": VALID_PAYLOADS[TaskId.GBP], "competitors": VALID_PAYLOADS[TaskId.COMPETITORS], "seo": VALID_PAYLOADS[TaskId.SEO]},
    "errors": [{"step": "website", "code": "crawl_blocked", "message": "Crawler was blocked."}],
    "metadata": {"executionId": "exec-1"},
  }
  response = await async_client.post(CALLBACK_URL, json={"sessionId": bundled_id, "step": "complete", "status": "completed", "data": bundle}, headers=AUTH)
  assert response.status_code == 200
  assert response.json()["progress"]["currentStep"] == "complete"

  individual = await orchestrator.get_session(individual_id)
  bundled = await orchestrator.get_session(bundled_id)
  assert bundled.status == individual.status == "partial"
  assert bundled.progress.percentage == individual.progress.percentage == 100
  assert set(bundled.progress.completed_steps) == set(individual.progress.completed_steps)
  assert set(bundled.progress.failed_steps) == set(individual.progress.failed_steps)
  assert bundled.results == individual.results
  assert bundled.errors == individual.errors
  assert bundled.metadata == {"executionId": "exec-1"}


@pytest.mark.anyio
async def test_complete_bundle_in_flat_shape(async_client: AsyncClient, orchestrator: ResearchOrchestrator) -> None:
  session_id = await _session(orchestrator)
  data = {
    "gbp": VALID_PAYLOADS[TaskId.GBP],
    "competitors": VALID_PAYLOADS[TaskId.COMPETITORS],
    "websiteCrawl": VALID_PAYLOADS[TaskId.WEBSITE],
    "seoAudit": VALID_PAYLOADS[TaskId.SEO],
    "metadata": {"source": "workflow"},
  }
  response = await async_client.post(CALLBACK_URL, json={"sessionId": session_id, "step": "complete", "status": "completed", "data": data}, headers=AUTH)
  assert response.json()["status"] == "completed"
  record = await orchestrator.get_session(session_id)
  assert set(record.results) == set(FOUR_TASKS)
  assert record.metadata == {"source": "workflow"}


@pytest.mark.anyio
async def test_failed_complete_signal_fails_remaining_steps(async_client: AsyncClient, orchestrator: ResearchOrchestrator) -> None:
  session_id = await _session(orchestrator)
  await async_client.post(CALLBACK_URL, json=_step(session_id, "gbp"), headers=AUTH)
  response = await async_client.post(
    CALLBACK_URL,
    json={"sessionId": session_id, "step": "complete", "status": "failed", "error": {"code": "workflow_crashed", "message": "Runner died."}},
    headers=AUTH,
  )
  body = response.json()
  assert body["status"] == "partial"
  assert body["progress"]["completedSteps"] == ["gbp"]
  record = await orchestrator.get_session(session_id)
  assert {error.step: error.code for error in record.errors} == {"competitors": "workflow_crashed", "website": "workflow_crashed", "seo": "workflow_crashed"}


@pytest.mark.anyio
async def test_late_callback_after_terminal_is_ignored(async_client: AsyncClient, orchestrator: ResearchOrchestrator) -> None:
  session_id = await _session(orchestrator, ["gbp"])
  await async_client.post(CALLBACK_URL, json=_step(session_id, "gbp"), headers=AUTH)
  response = await async_client.post(CALLBACK_URL, json={"sessionId": session_id, "step": "complete", "status": "failed"}, headers=AUTH)
  assert response.status_code == 200
  assert response.json()["status"] == "completed"


def test_split_bundle_shapes() -> None:
  results, errors, metadata = split_bundle({"results": {"gbp": {"name": "Acme"}}, "errors": [{"step": "seo"}, "junk"]}, {"fallback": True})
  assert results == {"gbp": {"name": "Acme"}}
  assert errors == [{"step": "seo"}]
  assert metadata == {"fallback": True}

  results, errors, metadata = split_bundle({"seoAudit": {"score": 70}, "summary": "ignored"}, None)
  assert results == {"seoAudit": {"score": 70}}
  assert errors == []

  assert split_bundle(None, None) == ({}, [], None)
