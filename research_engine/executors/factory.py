from __future__ import annotations

import logging

from research_engine.config import Settings
from research_engine.executors.apify import ApifyClient
from research_engine.executors.citations import CitationsExecutor
from research_engine.executors.fallback import FallbackExecutor
from research_engine.executors.interface import TaskExecutor
from research_engine.executors.places import CompetitorsExecutor, GbpExecutor
from research_engine.executors.registry import ExecutorRegistry
from research_engine.executors.seo import SeoAuditExecutor
from research_engine.executors.sitemap import SitemapExecutor
from research_engine.executors.website import WebsiteCrawlExecutor
from research_engine.research.models import TaskId

logger = logging.getLogger(__name__)


def build_executor_registry(settings: Settings) -> ExecutorRegistry:
  """Factory to build the executor set for the configured providers."""
  timeout = settings.provider_http_timeout_seconds
  executors: dict[TaskId, TaskExecutor] = {
    TaskId.SITEMAP: SitemapExecutor(timeout=timeout),
    TaskId.SEO: SeoAuditExecutor(timeout=timeout),
  }

  if not settings.apify_api_token:
    # Provider-backed tasks fall back to sample data so local runs still finish.
    logger.warning("APIFY_API_TOKEN is not set; gbp, competitors, website and citations return sample data.")
    for task_id in (TaskId.GBP, TaskId.COMPETITORS, TaskId.WEBSITE, TaskId.CITATIONS):
      executors[task_id] = FallbackExecutor(task_id)
    return ExecutorRegistry(executors)

  client = ApifyClient(token=settings.apify_api_token, base_url=settings.apify_base_url, connect_timeout=timeout)
  executors.update(
    {
      TaskId.GBP: GbpExecutor(client),
      TaskId.COMPETITORS: CompetitorsExecutor(client, max_competitors=settings.competitor_count),
      TaskId.WEBSITE: WebsiteCrawlExecutor(
        client,
        max_pages=settings.crawl_max_pages,
        max_depth=settings.crawl_max_depth,
        deep_max_pages=settings.deep_crawl_max_pages,
        deep_max_depth=settings.deep_crawl_max_depth,
      ),
      TaskId.CITATIONS: CitationsExecutor(client),
    }
  )
  return ExecutorRegistry(executors)
