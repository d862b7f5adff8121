"""Sample-data executor used when no provider credentials are configured."""

from __future__ import annotations

import asyncio
from typing import Any

from research_engine.research.models import BusinessInput, TaskId, TaskOutcome, TaskSuccess


def _gbp(business_input: BusinessInput) -> dict[str, Any]:
  return {
    "name": business_input.business_name,
    "rating": 4.5,
    "reviewCount": 127,
    "categories": [business_input.industry or "Service Provider"],
    "phone": "(555) 123-4567",
    "address": business_input.location,
    "website": business_input.website,
  }


def _competitors(_: BusinessInput) -> list[dict[str, Any]]:
  return [
    {"rank": 1, "name": "Competitor A", "rating": 4.7, "reviewCount": 234, "mock": True},
    {"rank": 2, "name": "Competitor B", "rating": 4.3, "reviewCount": 156, "mock": True},
    {"rank": 3, "name": "Competitor C", "rating": 4.1, "reviewCount": 89, "mock": True},
  ]


def _website(business_input: BusinessInput) -> dict[str, Any]:
  return {
    "cms": "WordPress",
    "ssl": business_input.website.lower().startswith("https://"),
    "structuredData": True,
    "schemaTypes": ["LocalBusiness", "Organization"],
    "title": business_input.business_name,
    "description": f"{business_input.business_name} - Quality services",
    "totalPages": 0,
    "pages": [],
  }


def _sitemap(_: BusinessInput) -> dict[str, Any]:
  return {
    "totalPages": 25,
    "pageTypes": {"services": 5, "blog": 10, "about": 1, "contact": 1, "other": 8},
    "hasServicePages": True,
    "hasBlog": True,
    "hasLocationPages": False,
    "recentlyUpdated": 5,
  }


def _seo(business_input: BusinessInput) -> dict[str, Any]:
  return {
    "score": 75,
    "url": business_input.website,
    "technical": {"ssl": True, "canonicalTag": True, "robotsTxt": True, "structuredData": ["LocalBusiness"], "metaDescription": True, "h1Tags": 1},
    "content": {"wordCount": 1500, "headings": 8, "images": 12, "imagesWithAlt": 10, "internalLinks": 15, "externalLinks": 3},
  }


def _citations(_: BusinessInput) -> list[dict[str, Any]]:
  return [
    {"source": "Yelp", "found": True, "napConsistent": True, "mock": True},
    {"source": "BBB", "found": True, "napConsistent": False, "mock": True},
    {"source": "Yellow Pages", "found": False, "mock": True},
  ]


_SAMPLES = {
  TaskId.GBP: _gbp,
  TaskId.COMPETITORS: _competitors,
  TaskId.WEBSITE: _website,
  TaskId.SITEMAP: _sitemap,
  TaskId.SEO: _seo,
  TaskId.CITATIONS: _citations,
}


class FallbackExecutor:
  """Return clearly marked sample data for one task."""

  def __init__(self, task_id: TaskId, *, delay_seconds: float = 0.0) -> None:
    self._task_id = task_id
    self._delay_seconds = delay_seconds

  async def execute(self, business_input: BusinessInput, *, deep: bool = False) -> TaskOutcome:
    if self._delay_seconds:
      await asyncio.sleep(self._delay_seconds)
    sample = _SAMPLES[self._task_id](business_input)
    if isinstance(sample, dict):
      sample["mock"] = True
    return TaskSuccess(sample)
