import logging
import time

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from research_engine.utils.ids import generate_request_id

logger = logging.getLogger("research_engine.core.middleware")

REQUEST_ID_HEADER = "x-request-id"


def _build_request_url(scope: Scope) -> str:
  """Build a readable URL path for logging without touching the request body."""
  path = scope.get("path", "")
  query_string = scope.get("query_string", b"")
  if query_string:
    return f"{path}?{query_string.decode('latin-1')}"
  return path


def _incoming_request_id(scope: Scope) -> str | None:
  for key, value in scope.get("headers", []):
    if key.decode("latin-1").lower() == REQUEST_ID_HEADER:
      candidate = value.decode("latin-1").strip()
      # Only reuse short opaque ids so callers cannot inject arbitrary text into logs.
      if candidate and len(candidate) <= 64 and candidate.replace("-", "").isalnum():
        return candidate
  return None


class RequestLoggingMiddleware:
  """Assign a request id and log method, path, status and latency for each HTTP request."""

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    request_id = _incoming_request_id(scope) or generate_request_id()
    scope.setdefault("state", {})["request_id"] = request_id
    method = scope.get("method", "UNKNOWN")
    url = _build_request_url(scope)
    start_time = time.perf_counter()
    status_holder: dict[str, int] = {}

    async def send_wrapper(message: Message) -> None:
      if message["type"] == "http.response.start":
        status_holder["status"] = message["status"]
        headers = MutableHeaders(scope=message)
        headers[REQUEST_ID_HEADER] = request_id
      await send(message)

    try:
      await self.app(scope, receive, send_wrapper)
    finally:
      duration_ms = (time.perf_counter() - start_time) * 1000
      logger.info("Request completed request_id=%s %s %s status=%s duration_ms=%.1f", request_id, method, url, status_holder.get("status", 500), duration_ms)
