"""Technical audit executor for the subject website's home page."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlparse

import httpx

from research_engine.executors.http import build_fetch_client
from research_engine.executors.page_analysis import PageAnalysis, analyze_html
from research_engine.research.models import BusinessInput, TaskFailure, TaskOutcome, TaskSuccess

logger = logging.getLogger(__name__)

_THIN_CONTENT_WORDS = 300


def score_audit(*, ssl: bool, robots_txt: bool, analysis: PageAnalysis) -> int:
  """Score a page out of 100 by deducting points for each technical gap."""
  score = 100
  if not ssl:
    score -= 20
  if not analysis.title:
    score -= 15
  if not analysis.meta_description:
    score -= 10
  if not analysis.has_viewport:
    score -= 10
  if len(analysis.h1) != 1:
    score -= 10
  if not analysis.schema_types:
    score -= 10
  if not analysis.canonical:
    score -= 5
  if not robots_txt:
    score -= 5
  if analysis.word_count < _THIN_CONTENT_WORDS:
    score -= 5
  if analysis.images:
    missing_alt_ratio = (analysis.images - analysis.images_with_alt) / analysis.images
    score -= round(10 * missing_alt_ratio)
  return max(0, min(100, score))


def build_audit(url: str, *, ssl: bool, robots_txt: bool, analysis: PageAnalysis) -> dict[str, Any]:
  return {
    "score": score_audit(ssl=ssl, robots_txt=robots_txt, analysis=analysis),
    "url": url,
    "technical": {
      "ssl": ssl,
      "canonicalTag": analysis.canonical is not None,
      "robotsTxt": robots_txt,
      "robotsMeta": analysis.robots_meta,
      "viewport": analysis.has_viewport,
      "structuredData": analysis.schema_types,
      "metaDescription": bool(analysis.meta_description),
      "title": analysis.title,
      "h1Tags": len(analysis.h1),
    },
    "content": {
      "wordCount": analysis.word_count,
      "headings": len(analysis.h1) + len(analysis.h2),
      "images": analysis.images,
      "imagesWithAlt": analysis.images_with_alt,
      "internalLinks": analysis.internal_links,
      "externalLinks": analysis.external_links,
    },
  }


class SeoAuditExecutor:
  """Fetch the home page and robots.txt and audit them."""

  def __init__(self, *, timeout: float, transport: httpx.AsyncBaseTransport | None = None) -> None:
    self._timeout = timeout
    self._transport = transport

  async def execute(self, business_input: BusinessInput, *, deep: bool = False) -> TaskOutcome:
    parsed = urlparse(business_input.website)
    robots_url = f"{parsed.scheme}://{parsed.netloc}/robots.txt"
    try:
      async with build_fetch_client(timeout=self._timeout, transport=self._transport) as client:
        response = await client.get(business_input.website)
        response.raise_for_status()
        robots = await client.get(robots_url)
    except httpx.HTTPStatusError as exc:
      return TaskFailure(code="provider_error", message=f"Home page returned HTTP {exc.response.status_code}.")
    except httpx.RequestError as exc:
      return TaskFailure(code="provider_error", message=f"Home page fetch failed: {exc}")

    if not response.text.strip():
      return TaskFailure(code="no_data", message="Home page is empty.")

    final_url = str(response.url)
    analysis = analyze_html(response.text, final_url)
    audit = build_audit(final_url, ssl=final_url.lower().startswith("https://"), robots_txt=robots.status_code == 200, analysis=analysis)
    logger.info("Audited %s: score=%s", final_url, audit["score"])
    return TaskSuccess(audit)
