"""Test configuration for importing the application package."""

from __future__ import annotations

import os
from collections.abc import AsyncIterator

# Pin settings before the application package reads the environment.
os.environ["RESEARCH_CALLBACK_SECRET"] = "test-callback-secret"
os.environ["RESEARCH_LAUNCH_MODE"] = "direct"
for _name in ("RESEARCH_PG_DSN", "DATABASE_URL", "APIFY_API_TOKEN", "RESEARCH_LOG_DIR", "RESEARCH_WORKFLOW_WEBHOOK_URL"):
  os.environ.pop(_name, None)

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from research_engine.api.deps import get_launcher, get_orchestrator  # noqa: E402
from research_engine.config import get_settings  # noqa: E402
from research_engine.main import app  # noqa: E402
from research_engine.research.models import BusinessInput, TaskId  # noqa: E402
from research_engine.research.orchestrator import ResearchOrchestrator  # noqa: E402
from research_engine.services.launchers.direct import DirectLauncher  # noqa: E402
from research_engine.storage.memory_sessions_repo import InMemorySessionsRepository  # noqa: E402
from tests.helpers import FakeExecutor, make_business_input, make_orchestrator, success_executors  # noqa: E402

get_settings.cache_clear()


@pytest.fixture
def anyio_backend() -> str:
  return "asyncio"


@pytest.fixture
def sessions_repo() -> InMemorySessionsRepository:
  return InMemorySessionsRepository()


@pytest.fixture
def executors() -> dict[TaskId, FakeExecutor]:
  return success_executors()


@pytest.fixture
def orchestrator(sessions_repo: InMemorySessionsRepository, executors: dict[TaskId, FakeExecutor]) -> ResearchOrchestrator:
  return make_orchestrator(sessions_repo, executors)


@pytest.fixture
def business_input() -> BusinessInput:
  return make_business_input()


@pytest.fixture
async def async_client(orchestrator: ResearchOrchestrator) -> AsyncIterator[AsyncClient]:
  app.dependency_overrides[get_orchestrator] = lambda: orchestrator
  app.dependency_overrides[get_launcher] = lambda: DirectLauncher(orchestrator)
  async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
    yield client
  app.dependency_overrides.clear()
