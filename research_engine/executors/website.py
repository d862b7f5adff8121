"""Website structure executor backed by the website content crawler actor."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlparse

from research_engine.executors.apify import WEBSITE_CRAWLER_ACTOR_ID, ApifyClient
from research_engine.executors.interface import ProviderError
from research_engine.executors.page_analysis import analyze_html, detect_cms
from research_engine.research.models import BusinessInput, TaskFailure, TaskOutcome, TaskSuccess

logger = logging.getLogger(__name__)

_SUMMARY_PAGE_COUNT = 10


def _is_home(url: str) -> bool:
  return urlparse(url).path in {"", "/"}


def _page_summary(item: dict[str, Any]) -> dict[str, Any]:
  metadata = item.get("metadata") if isinstance(item.get("metadata"), dict) else {}
  text = item.get("text") or item.get("markdown") or ""
  url = str(item.get("url") or "")
  summary: dict[str, Any] = {
    "url": url,
    "title": str(item.get("title") or metadata.get("title") or ""),
    "description": str(metadata.get("description") or ""),
    "wordCount": len(str(text).split()) if text else None,
  }
  html = item.get("html")
  if isinstance(html, str) and html:
    analysis = analyze_html(html, url)
    summary.update({"h1": analysis.h1[:5], "schemaTypes": analysis.schema_types, "internalLinkCount": analysis.internal_links, "externalLinkCount": analysis.external_links})
  return summary


class WebsiteCrawlExecutor:
  """Crawl the subject website and summarize its structure."""

  def __init__(self, client: ApifyClient, *, max_pages: int, max_depth: int, deep_max_pages: int, deep_max_depth: int) -> None:
    self._client = client
    self._limits = {False: (max_pages, max_depth), True: (deep_max_pages, deep_max_depth)}

  async def execute(self, business_input: BusinessInput, *, deep: bool = False) -> TaskOutcome:
    max_pages, max_depth = self._limits[deep]
    actor_input = {
      "startUrls": [{"url": business_input.website}],
      "maxCrawlPages": max_pages,
      "maxCrawlDepth": max_depth,
      "crawlerType": "playwright:chrome",
      "proxyConfiguration": {"useApifyProxy": True},
      "saveHtml": True,
    }
    try:
      items = await self._client.run_actor(WEBSITE_CRAWLER_ACTOR_ID, actor_input, wait_for_finish=600)
    except ProviderError as exc:
      return TaskFailure(code="provider_error", message=str(exc))
    pages = [item for item in items if item.get("url")]
    if not pages:
      return TaskFailure(code="no_data", message="Website crawl returned no pages.")
    return TaskSuccess(summarize_crawl(pages, business_input, max_pages=max_pages, deep=deep))


def summarize_crawl(pages: list[dict[str, Any]], business_input: BusinessInput, *, max_pages: int, deep: bool) -> dict[str, Any]:
  """Build the website crawl payload from raw crawler items."""
  home = next((page for page in pages if _is_home(str(page["url"]))), pages[0])
  all_html = " ".join(str(page.get("html") or "") for page in pages)
  summaries = [_page_summary(page) for page in pages]

  schema_types: list[str] = []
  for summary in summaries:
    for schema_type in summary.get("schemaTypes", []):
      if schema_type not in schema_types:
        schema_types.append(schema_type)

  home_summary = summaries[pages.index(home)]
  return {
    "cms": detect_cms(all_html),
    "ssl": business_input.website.lower().startswith("https://"),
    "structuredData": "application/ld+json" in all_html.lower() or bool(schema_types),
    "schemaTypes": schema_types,
    "title": home_summary["title"] or business_input.business_name,
    "description": home_summary["description"],
    "totalPages": len(pages),
    "pages": summaries if deep else summaries[:_SUMMARY_PAGE_COUNT],
    # Deep crawls use limits far above any small business site.
    "pageLimitReached": not deep and len(pages) >= max_pages,
  }
