"""
Integration test fixtures for AvailNow.

Provides fixtures specific to integration testing:
- A FastAPI app wired to a temp database and mock provider adapters
- Sync (TestClient) and async (httpx) clients
- Owner auth headers
"""

from collections.abc import AsyncGenerator, Generator

import pytest
import pytest_asyncio
from fastapi import FastAPI
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from availnow.api.main import create_app
from availnow.config import AvailNowConfig
from availnow.providers import ProviderRegistry
from availnow.storage import Store
from tests.conftest import FIXED_NOW


# ─────────────────────────────────────────────────────────────────────────────
# App Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def app(store: Store, registry: ProviderRegistry, clock) -> FastAPI:
    """App with a fixed clock and 'today' pinned to FIXED_NOW's date."""
    app = create_app(config=AvailNowConfig(), store=store, registry=registry, cipher=None)
    app.state.orchestrator.clock = clock
    app.state.oauth_manager.clock = clock
    app.state.availability.today_provider = lambda hours: FIXED_NOW.date()
    return app


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    with TestClient(app) as client:
        yield client


@pytest_asyncio.fixture
async def async_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def owner_headers(mock_user_id: str) -> dict[str, str]:
    return {"X-User-Id": mock_user_id}
