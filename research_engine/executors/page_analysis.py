"""HTML page analysis shared by the website and technical audit executors."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from html.parser import HTMLParser
from typing import Any
from urllib.parse import urljoin, urlparse

logger = logging.getLogger(__name__)

_SKIPPED_TEXT_TAGS = {"script", "style", "noscript", "template"}
_NON_NAVIGABLE_PREFIXES = ("#", "mailto:", "tel:", "javascript:")
_WORD_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9'\-]*")


@dataclass
class PageAnalysis:
  """Facts extracted from one HTML document."""

  title: str = ""
  meta_description: str = ""
  canonical: str | None = None
  has_viewport: bool = False
  robots_meta: str | None = None
  h1: list[str] = field(default_factory=list)
  h2: list[str] = field(default_factory=list)
  images: int = 0
  images_with_alt: int = 0
  internal_links: int = 0
  external_links: int = 0
  schema_types: list[str] = field(default_factory=list)
  word_count: int = 0


class _PageParser(HTMLParser):
  def __init__(self) -> None:
    super().__init__(convert_charrefs=True)
    self.analysis = PageAnalysis()
    self.hrefs: list[str] = []
    self.ld_json_blocks: list[str] = []
    self._skip_depth = 0
    self._capture: str | None = None
    self._buffer: list[str] = []
    self._in_ld_json = False
    self._words = 0

  def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
    attributes = {name.lower(): (value or "") for name, value in attrs}
    if tag == "script" and attributes.get("type", "").lower() == "application/ld+json":
      self._in_ld_json = True
      self._buffer = []
    if tag in _SKIPPED_TEXT_TAGS:
      self._skip_depth += 1
      return
    if tag in {"title", "h1", "h2"}:
      self._capture = tag
      self._buffer = []
    elif tag == "meta":
      self._handle_meta(attributes)
    elif tag == "link" and "canonical" in attributes.get("rel", "").lower().split():
      self.analysis.canonical = attributes.get("href") or None
    elif tag == "img":
      self.analysis.images += 1
      if attributes.get("alt", "").strip():
        self.analysis.images_with_alt += 1
    elif tag == "a" and attributes.get("href"):
      self.hrefs.append(attributes["href"].strip())

  def _handle_meta(self, attributes: dict[str, str]) -> None:
    name = attributes.get("name", "").lower()
    if name == "description":
      self.analysis.meta_description = attributes.get("content", "").strip()
    elif name == "viewport":
      self.analysis.has_viewport = True
    elif name == "robots":
      self.analysis.robots_meta = attributes.get("content", "").strip() or None

  def handle_endtag(self, tag: str) -> None:
    if tag == "script" and self._in_ld_json:
      self.ld_json_blocks.append("".join(self._buffer))
      self._in_ld_json = False
      self._buffer = []
    if tag in _SKIPPED_TEXT_TAGS:
      self._skip_depth = max(0, self._skip_depth - 1)
      return
    if tag == self._capture:
      text = " ".join("".join(self._buffer).split())
      if tag == "title":
        self.analysis.title = text
      elif text:
        getattr(self.analysis, tag).append(text[:200])
      self._capture = None
      self._buffer = []

  def handle_data(self, data: str) -> None:
    if self._in_ld_json or self._capture:
      self._buffer.append(data)
    if self._skip_depth == 0:
      self._words += len(_WORD_RE.findall(data))

  def close(self) -> None:
    super().close()
    self.analysis.word_count = self._words


def _collect_types(node: Any, found: list[str]) -> None:
  if isinstance(node, list):
    for item in node:
      _collect_types(item, found)
    return
  if not isinstance(node, dict):
    return
  raw_type = node.get("@type")
  for schema_type in raw_type if isinstance(raw_type, list) else [raw_type]:
    if isinstance(schema_type, str) and schema_type not in found:
      found.append(schema_type)
  for value in node.values():
    if isinstance(value, (dict, list)):
      _collect_types(value, found)


def extract_schema_types(blocks: list[str]) -> list[str]:
  """Return schema.org @type values declared in JSON-LD blocks, in first-seen order."""
  found: list[str] = []
  for block in blocks:
    try:
      _collect_types(json.loads(block), found)
    except ValueError:
      logger.debug("Skipping malformed JSON-LD block")
  return found


def _normalized_host(url: str) -> str:
  host = (urlparse(url).hostname or "").lower()
  return host[4:] if host.startswith("www.") else host


def analyze_html(html: str, page_url: str) -> PageAnalysis:
  """Parse an HTML document and classify its links relative to page_url."""
  parser = _PageParser()
  parser.feed(html)
  parser.close()
  analysis = parser.analysis
  analysis.schema_types = extract_schema_types(parser.ld_json_blocks)

  own_host = _normalized_host(page_url)
  for href in parser.hrefs:
    if href.lower().startswith(_NON_NAVIGABLE_PREFIXES):
      continue
    target = _normalized_host(urljoin(page_url, href))
    if not target or target == own_host:
      analysis.internal_links += 1
    else:
      analysis.external_links += 1
  return analysis


def detect_cms(html: str) -> str:
  """Best-effort CMS fingerprint from raw markup."""
  lowered = html.lower()
  if "wp-content" in lowered or "wordpress" in lowered:
    return "WordPress"
  if "wix.com" in lowered:
    return "Wix"
  if "squarespace" in lowered:
    return "Squarespace"
  if "shopify" in lowered:
    return "Shopify"
  return "Unknown"
