"""Business profile and competitor executors backed by the Google Places actor."""

from __future__ import annotations

import logging
import math
from datetime import UTC, datetime, timedelta
from typing import Any
from urllib.parse import urlparse

from research_engine.executors.apify import PLACES_ACTOR_ID, ApifyClient
from research_engine.executors.interface import ProviderError
from research_engine.research.models import BusinessInput, TaskFailure, TaskOutcome, TaskSuccess

logger = logging.getLogger(__name__)

_RECENT_REVIEW_WINDOW = timedelta(days=30)
_MAX_REVIEWS_KEPT = 5


def _parse_timestamp(raw: Any) -> datetime | None:
  if not isinstance(raw, str) or not raw:
    return None
  try:
    parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
  except ValueError:
    return None
  return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def place_metrics(place: dict[str, Any], *, now: datetime | None = None) -> dict[str, Any]:
  """Map one Google Places dataset item to business profile fields."""
  now = now or datetime.now(UTC)
  reviews = [review for review in place.get("reviews") or [] if isinstance(review, dict)]
  answered = sum(1 for review in reviews if review.get("responseFromOwnerText"))
  recent = [review for review in reviews if (published := _parse_timestamp(review.get("publishedAtDate"))) and now - published <= _RECENT_REVIEW_WINDOW]
  category = place.get("categoryName")
  return {
    "name": str(place.get("title") or ""),
    "rating": place.get("totalScore"),
    "reviewCount": int(place.get("reviewsCount") or 0),
    "categories": [category] if category else list(place.get("categories") or []),
    "phone": place.get("phone"),
    "address": place.get("address"),
    "website": place.get("website"),
    "url": place.get("url"),
    "placeId": place.get("placeId"),
    "photoCount": len(place.get("images") or []) or place.get("imagesCount"),
    "responseRate": round(100 * answered / len(reviews), 1) if reviews else 0.0,
    "recentReviewCount": len(recent),
    "recentReviews": [{"text": review.get("text"), "stars": review.get("stars"), "publishedAt": review.get("publishedAtDate")} for review in reviews[:_MAX_REVIEWS_KEPT]],
  }


def prominence_score(rating: float | None, review_count: int | None) -> float:
  """Rank competitors by rating weighted with the square root of their review volume."""
  if not rating or not review_count:
    return 0.0
  return float(rating) * math.sqrt(review_count)


def _host(url: str | None) -> str:
  host = (urlparse(url or "").hostname or "").lower()
  return host[4:] if host.startswith("www.") else host


class GbpExecutor:
  """Look up the subject business profile by listing URL or by name and locality."""

  def __init__(self, client: ApifyClient) -> None:
    self._client = client

  async def execute(self, business_input: BusinessInput, *, deep: bool = False) -> TaskOutcome:
    max_reviews = 50 if deep else 20
    if business_input.gbp_url:
      actor_input: dict[str, Any] = {"startUrls": [{"url": business_input.gbp_url}], "maxCrawledPlacesPerSearch": 1}
    else:
      actor_input = {"searchStringsArray": [business_input.business_name], "locationQuery": business_input.location, "maxCrawledPlacesPerSearch": 1}
    actor_input.update({"maxReviews": max_reviews, "maxImages": 10, "language": "en", "scrapeReviewerName": True, "scrapeResponseFromOwnerText": True})

    try:
      places = await self._client.run_actor(PLACES_ACTOR_ID, actor_input, wait_for_finish=300, memory_mb=8192)
    except ProviderError as exc:
      return TaskFailure(code="provider_error", message=str(exc))
    if not places:
      return TaskFailure(code="no_data", message="No business profile found.")
    return TaskSuccess(place_metrics(places[0]))


class CompetitorsExecutor:
  """Find nearby businesses of the same kind, ranked by prominence."""

  def __init__(self, client: ApifyClient, *, max_competitors: int = 5) -> None:
    self._client = client
    self._max_competitors = max_competitors

  @staticmethod
  def search_query(business_input: BusinessInput) -> str:
    if business_input.industry:
      return business_input.industry
    words = business_input.business_name.split()
    return words[-1] if words else "services"

  def _is_subject(self, place: dict[str, Any], business_input: BusinessInput) -> bool:
    same_name = str(place.get("title") or "").strip().casefold() == business_input.business_name.casefold()
    place_host = _host(place.get("website"))
    return same_name or (bool(place_host) and place_host == _host(business_input.website))

  async def execute(self, business_input: BusinessInput, *, deep: bool = False) -> TaskOutcome:
    limit = self._max_competitors * (2 if deep else 1)
    actor_input = {
      "searchStringsArray": [self.search_query(business_input)],
      "locationQuery": business_input.location,
      # Over-fetch so ranking and subject exclusion still leave enough entries.
      "maxCrawledPlacesPerSearch": max(limit * 3, 15),
      "maxReviews": 10,
      "maxImages": 3,
      "language": "en",
    }
    try:
      places = await self._client.run_actor(PLACES_ACTOR_ID, actor_input, wait_for_finish=600, memory_mb=8192)
    except ProviderError as exc:
      return TaskFailure(code="provider_error", message=str(exc))

    candidates = [place for place in places if not self._is_subject(place, business_input)]
    candidates.sort(key=lambda place: prominence_score(place.get("totalScore"), place.get("reviewsCount")), reverse=True)
    if not candidates:
      return TaskFailure(code="no_data", message="No competitors found.")

    entries = []
    for rank, place in enumerate(candidates[:limit], start=1):
      metrics = place_metrics(place)
      entries.append(
        {
          "rank": rank,
          "name": metrics["name"],
          "rating": metrics["rating"],
          "reviewCount": metrics["reviewCount"],
          "website": metrics["website"],
          "phone": metrics["phone"],
          "address": metrics["address"],
          "categories": metrics["categories"],
          "url": metrics["url"],
        }
      )
    logger.info("Found %d competitors for query %r", len(entries), actor_input["searchStringsArray"][0])
    return TaskSuccess(entries)
