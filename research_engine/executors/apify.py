"""Minimal Apify actor runner over httpx."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from research_engine.executors.interface import ProviderError

logger = logging.getLogger(__name__)

PLACES_ACTOR_ID = "compass/crawler-google-places"
WEBSITE_CRAWLER_ACTOR_ID = "apify/website-content-crawler"
CITATION_CHECKER_ACTOR_ID = "alizarin_refrigerator-owner/citation-checker-ai"


class ApifyClient:
  """Runs Apify actors synchronously and returns their dataset items."""

  def __init__(self, *, token: str, base_url: str = "https://api.apify.com/v2", connect_timeout: float = 30.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
    if not token:
      raise ValueError("Apify token is required.")
    self._token = token
    self._base_url = base_url.rstrip("/")
    self._connect_timeout = connect_timeout
    self._transport = transport

  def _build_client(self) -> httpx.AsyncClient:
    # Actor runs are long-polling requests; the overall deadline is enforced by the orchestrator.
    timeout = httpx.Timeout(self._connect_timeout, read=None)
    headers = {"authorization": f"Bearer {self._token}", "content-type": "application/json"}
    return httpx.AsyncClient(base_url=self._base_url, headers=headers, timeout=timeout, transport=self._transport)

  async def run_actor(self, actor_id: str, actor_input: dict[str, Any], *, wait_for_finish: int = 300, memory_mb: int | None = None) -> list[dict[str, Any]]:
    """Start an actor, wait for it to finish and return its dataset items."""
    # Actor ids use "user/name" in docs but "user~name" in API paths.
    path = f"/acts/{actor_id.replace('/', '~')}/run-sync-get-dataset-items"
    params: dict[str, Any] = {"waitForFinish": wait_for_finish}
    if memory_mb is not None:
      params["memory"] = memory_mb

    logger.info("Calling Apify actor %s", actor_id)
    try:
      async with self._build_client() as client:
        response = await client.post(path, params=params, json=actor_input)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
      logger.warning("Apify actor %s returned %s", actor_id, exc.response.status_code)
      raise ProviderError(f"Actor {actor_id} returned HTTP {exc.response.status_code}.", status_code=exc.response.status_code) from exc
    except httpx.RequestError as exc:
      logger.warning("Apify actor %s request failed: %s", actor_id, exc)
      raise ProviderError(f"Actor {actor_id} request failed: {exc}") from exc

    try:
      items = response.json()
    except ValueError as exc:
      raise ProviderError(f"Actor {actor_id} returned a non-JSON body.") from exc
    if not isinstance(items, list):
      raise ProviderError(f"Actor {actor_id} returned an unexpected payload.")
    return [item for item in items if isinstance(item, dict)]
