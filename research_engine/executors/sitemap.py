"""Sitemap executor: fetches and classifies the subject website's sitemap."""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from collections import Counter
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from typing import Any
from urllib.parse import urlparse

import httpx

from research_engine.executors.http import build_fetch_client
from research_engine.research.models import BusinessInput, TaskFailure, TaskOutcome, TaskSuccess

logger = logging.getLogger(__name__)

_RECENT_WINDOW = timedelta(days=30)
_MAX_CHILD_SITEMAPS = 10
_URL_SAMPLE_SIZE = 50
_DEEP_URL_SAMPLE_SIZE = 1000

# First matching rule wins.
_PAGE_TYPE_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
  ("services", ("/service",)),
  ("blog", ("/blog", "/news", "/article")),
  ("locations", ("/location", "/area", "/city")),
  ("about", ("/about",)),
  ("contact", ("/contact",)),
  ("faq", ("/faq",)),
)


def sitemap_url_for(website: str) -> str:
  parsed = urlparse(website)
  return f"{parsed.scheme}://{parsed.netloc}/sitemap.xml"


def classify_url(url: str) -> str:
  lowered = url.lower()
  for page_type, markers in _PAGE_TYPE_RULES:
    if any(marker in lowered for marker in markers):
      return page_type
  return "other"


def _local_name(tag: str) -> str:
  return tag.rsplit("}", 1)[-1]


def parse_sitemap(xml_text: str) -> tuple[list[tuple[str, str | None]], list[str]]:
  """Return (url entries with lastmod, child sitemap urls) from a sitemap or sitemap index."""
  root = ET.fromstring(xml_text)
  entries: list[tuple[str, str | None]] = []
  children: list[str] = []
  for node in root:
    fields = {_local_name(child.tag): (child.text or "").strip() for child in node}
    loc = fields.get("loc")
    if not loc:
      continue
    if _local_name(node.tag) == "sitemap":
      children.append(loc)
    else:
      entries.append((loc, fields.get("lastmod") or None))
  return entries, children


def _is_recent(lastmod: str | None, now: datetime) -> bool:
  if not lastmod:
    return False
  try:
    parsed = datetime.fromisoformat(lastmod.replace("Z", "+00:00"))
  except ValueError:
    return False
  if parsed.tzinfo is None:
    parsed = parsed.replace(tzinfo=UTC)
  return now - parsed <= _RECENT_WINDOW


def analyze_entries(entries: Iterable[tuple[str, str | None]], *, sample_size: int = _URL_SAMPLE_SIZE, now: datetime | None = None) -> dict[str, Any]:
  """Summarize sitemap entries into page-type counts and freshness."""
  now = now or datetime.now(UTC)
  entry_list = list(entries)
  page_types = Counter(classify_url(url) for url, _ in entry_list)
  return {
    "totalPages": len(entry_list),
    "pageTypes": dict(page_types),
    "hasServicePages": page_types["services"] > 0,
    "hasBlog": page_types["blog"] > 0,
    "hasLocationPages": page_types["locations"] > 0,
    "recentlyUpdated": sum(1 for _, lastmod in entry_list if _is_recent(lastmod, now)),
    "urls": [url for url, _ in entry_list[:sample_size]],
  }


def _empty_result(note: str) -> dict[str, Any]:
  return {"totalPages": 0, "pageTypes": {}, "hasServicePages": False, "hasBlog": False, "hasLocationPages": False, "recentlyUpdated": 0, "urls": [], "note": note}


class SitemapExecutor:
  """Fetch /sitemap.xml, following one level of sitemap index."""

  def __init__(self, *, timeout: float, transport: httpx.AsyncBaseTransport | None = None) -> None:
    self._timeout = timeout
    self._transport = transport

  async def execute(self, business_input: BusinessInput, *, deep: bool = False) -> TaskOutcome:
    sitemap_url = sitemap_url_for(business_input.website)
    try:
      async with build_fetch_client(timeout=self._timeout, transport=self._transport) as client:
        response = await client.get(sitemap_url)
        if response.status_code == 404:
          return TaskSuccess(_empty_result("No sitemap found"))
        response.raise_for_status()
        entries, children = parse_sitemap(response.text)
        for child_url in children[:_MAX_CHILD_SITEMAPS]:
          child = await client.get(child_url)
          if child.status_code >= 400:
            logger.info("Skipping child sitemap %s (HTTP %s)", child_url, child.status_code)
            continue
          child_entries, _ = parse_sitemap(child.text)
          entries.extend(child_entries)
    except httpx.HTTPStatusError as exc:
      return TaskFailure(code="provider_error", message=f"Sitemap fetch returned HTTP {exc.response.status_code}.")
    except httpx.RequestError as exc:
      return TaskFailure(code="provider_error", message=f"Sitemap fetch failed: {exc}")
    except ET.ParseError as exc:
      return TaskFailure(code="provider_error", message=f"Sitemap is not valid XML: {exc}")

    if not entries:
      return TaskSuccess(_empty_result("No sitemap found"))
    return TaskSuccess(analyze_entries(entries, sample_size=_DEEP_URL_SAMPLE_SIZE if deep else _URL_SAMPLE_SIZE))
