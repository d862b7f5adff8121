"""Unit tests for API exception sanitization behavior."""

from __future__ import annotations

import json

import pytest
from starlette.requests import Request

from research_engine.core.exceptions import _sanitize_validation_errors, research_exception_handler, status_for_research_error
from research_engine.research.errors import InvalidInputError, NotFoundError, ResearchError, SessionStateError, TaskRerunError, UnauthorizedError


def _request(request_id: str | None = "req-1") -> Request:
  scope = {"type": "http", "method": "GET", "path": "/v1/research/abc", "headers": [], "query_string": b"", "state": {}}
  if request_id:
    scope["state"]["request_id"] = request_id
  return Request(scope)


def test_sanitize_validation_errors_removes_input_and_serializes_exception_ctx() -> None:
  """Ensure validation errors stay JSON-serializable and redact raw request payloads."""
  errors = [{"type": "value_error", "loc": ("body", "tasks"), "msg": "Value error, bad task.", "input": {"tasks": ["reviews"]}, "ctx": {"error": ValueError("bad task."), "input": ["reviews"]}}]
  sanitized = _sanitize_validation_errors(errors)
  assert "input" not in sanitized[0]
  assert sanitized[0]["ctx"]["error"] == "ValueError: bad task."
  assert "input" not in sanitized[0]["ctx"]
  assert sanitized[0]["loc"] == ["body", "tasks"]


@pytest.mark.parametrize(
  ("error", "status_code"),
  [
    (InvalidInputError("bad"), 400),
    (UnauthorizedError("nope"), 401),
    (NotFoundError("missing"), 404),
    (SessionStateError("busy"), 409),
    (TaskRerunError("gbp", "provider_error", "down"), 502),
    (ResearchError("unexpected"), 500),
  ],
)
def test_status_for_research_error(error: ResearchError, status_code: int) -> None:
  assert status_for_research_error(error) == status_code


@pytest.mark.anyio
async def test_research_error_response_carries_message_and_request_id() -> None:
  response = await research_exception_handler(_request(), NotFoundError("Research session abc not found."))
  assert response.status_code == 404
  assert json.loads(response.body) == {"detail": "Research session abc not found.", "requestId": "req-1"}


@pytest.mark.anyio
async def test_unmapped_research_error_hides_detail() -> None:
  response = await research_exception_handler(_request(None), ResearchError("secret internals"))
  assert response.status_code == 500
  assert json.loads(response.body) == {"detail": "Internal Server Error"}


@pytest.mark.anyio
async def test_rerun_failure_keeps_provider_message() -> None:
  response = await research_exception_handler(_request(), TaskRerunError("gbp", "no_data", "No business profile found."))
  assert response.status_code == 502
  assert json.loads(response.body)["detail"] == "Re-run of gbp failed (no_data): No business profile found."
