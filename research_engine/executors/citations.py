"""Citation executor backed by the citation checker actor."""

from __future__ import annotations

import logging
from typing import Any

from research_engine.executors.apify import CITATION_CHECKER_ACTOR_ID, ApifyClient
from research_engine.executors.interface import ProviderError
from research_engine.research.models import BusinessInput, TaskFailure, TaskOutcome, TaskSuccess

logger = logging.getLogger(__name__)

_FOUND_STATUSES = {"correct", "incorrect", "found"}
_MISMATCH_FIELDS = (("nameMatch", "Business name mismatch"), ("addressMatch", "Address mismatch"), ("phoneMatch", "Phone number mismatch"))


def _unwrap(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
  # The actor either returns citation rows directly or one wrapper item holding them.
  if len(items) == 1 and isinstance(items[0].get("citations"), list):
    return [row for row in items[0]["citations"] if isinstance(row, dict)]
  return items


def citation_entry(row: dict[str, Any]) -> dict[str, Any]:
  """Map one checker row to a citation listing entry."""
  status = str(row.get("status") or "").lower()
  found = status in _FOUND_STATUSES or row.get("found") is True
  nap_consistent = None
  if found:
    nap_consistent = status == "correct" if status else row.get("napConsistent")
  return {
    "source": str(row.get("platform") or row.get("directory") or row.get("source") or "Unknown"),
    "found": found,
    "url": row.get("url") or row.get("listingUrl"),
    "napConsistent": nap_consistent,
    "issues": [message for field_name, message in _MISMATCH_FIELDS if row.get(field_name) is False],
  }


class CitationsExecutor:
  """Check directory listings for the business and their NAP consistency."""

  def __init__(self, client: ApifyClient) -> None:
    self._client = client

  async def execute(self, business_input: BusinessInput, *, deep: bool = False) -> TaskOutcome:
    actor_input: dict[str, Any] = {"businessName": business_input.business_name, "website": business_input.website}
    if business_input.city:
      actor_input["city"] = business_input.city
    if business_input.state:
      actor_input["state"] = business_input.state

    try:
      items = await self._client.run_actor(CITATION_CHECKER_ACTOR_ID, actor_input, wait_for_finish=600, memory_mb=4096)
    except ProviderError as exc:
      return TaskFailure(code="provider_error", message=str(exc))

    entries = [citation_entry(row) for row in _unwrap(items)]
    if not entries:
      return TaskFailure(code="no_data", message="Citation check returned no directories.")
    logger.info("Citation check for %s: %d/%d directories found", business_input.business_name, sum(1 for entry in entries if entry["found"]), len(entries))
    return TaskSuccess(entries)
