from __future__ import annotations

import httpx

USER_AGENT = "research-engine/0.1"


def build_fetch_client(*, timeout: float, transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
  """Build an httpx client for fetching public pages of the subject website."""
  return httpx.AsyncClient(timeout=timeout, transport=transport, follow_redirects=True, headers={"user-agent": USER_AGENT})
