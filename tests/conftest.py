"""Shared test fixtures for AvailNow tests.

This module provides common fixtures used across all test modules:
- Database isolation with temporary files
- Wired-up stores on top of the temporary database
- Mock provider adapters and a fixed clock

Usage:
    def test_something(store):
        # store points at a temp database deleted after the test
        ...
"""

import os
import tempfile
from collections.abc import Generator
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from availnow.models import CalendarDescriptor, CalendarEvent, Provider, TokenGrant
from availnow.providers import ProviderRegistry
from availnow.providers.base import CalendarProvider
from availnow.storage import Store
from availnow.storage.selected_calendars import SelectedCalendarStore
from availnow.storage.tokens import TokenStore


# ─────────────────────────────────────────────────────────────────────────────
# Path Constants
# ─────────────────────────────────────────────────────────────────────────────

PROJECT_ROOT = Path(__file__).parent.parent
PACKAGE_DIR = PROJECT_ROOT / "availnow"

# Monday
FIXED_NOW = datetime(2025, 3, 10, 8, 0, tzinfo=timezone.utc)


# ─────────────────────────────────────────────────────────────────────────────
# Database Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def temp_db() -> Generator[Path, None, None]:
    """Create a temporary database file for testing.

    The database file is automatically deleted after the test completes.

    Yields:
        Path to the temporary database file
    """
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    yield db_path

    # Cleanup
    if db_path.exists():
        os.unlink(db_path)


@pytest.fixture
def store(temp_db: Path) -> Store:
    """Store backed by the temporary database."""
    return Store(temp_db)


@pytest.fixture
def token_store(store: Store) -> TokenStore:
    return TokenStore(store)


@pytest.fixture
def selected_store(store: Store) -> SelectedCalendarStore:
    return SelectedCalendarStore(store)


# ─────────────────────────────────────────────────────────────────────────────
# User / Clock Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def mock_user_id() -> str:
    """Standard test user ID."""
    return "test_user_123"


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock():
    """Callable clock pinned to FIXED_NOW."""
    return lambda: FIXED_NOW


# ─────────────────────────────────────────────────────────────────────────────
# Provider Fixtures
# ─────────────────────────────────────────────────────────────────────────────


def make_mock_adapter(provider: Provider, requires_pkce: bool = False) -> MagicMock:
    """A provider adapter whose network capabilities are AsyncMocks."""
    adapter = MagicMock(spec=CalendarProvider)
    adapter.provider = provider
    adapter.requires_pkce = requires_pkce
    adapter.build_authorization_url.side_effect = (
        lambda state, challenge=None: f"https://auth.example/{provider.value}?state={state}&challenge={challenge}"
    )
    adapter.exchange_code = AsyncMock(
        return_value=TokenGrant(access_token="new-access", refresh_token="new-refresh", expires_in=3600)
    )
    adapter.refresh_token = AsyncMock(
        return_value=TokenGrant(access_token="refreshed-access", expires_in=3600)
    )
    adapter.list_calendars = AsyncMock(
        return_value=[CalendarDescriptor(id="primary-cal", name="Work", provider=provider, primary=True)]
    )
    adapter.list_events = AsyncMock(return_value=[])
    adapter.revoke = AsyncMock(return_value=None)
    return adapter


@pytest.fixture
def mock_adapter_factory():
    """Factory for extra mock adapters."""
    return make_mock_adapter


@pytest.fixture
def google_adapter() -> MagicMock:
    return make_mock_adapter(Provider.GOOGLE)


@pytest.fixture
def outlook_adapter() -> MagicMock:
    return make_mock_adapter(Provider.OUTLOOK, requires_pkce=True)


@pytest.fixture
def registry(google_adapter: MagicMock, outlook_adapter: MagicMock) -> ProviderRegistry:
    return ProviderRegistry({Provider.GOOGLE: google_adapter, Provider.OUTLOOK: outlook_adapter})


@pytest.fixture
def sample_event() -> CalendarEvent:
    """A 10:00-11:00 UTC meeting on the fixed Monday."""
    return CalendarEvent(
        id="evt-1",
        title="Standup",
        start=datetime(2025, 3, 10, 10, 0, tzinfo=timezone.utc),
        end=datetime(2025, 3, 10, 11, 0, tzinfo=timezone.utc),
        calendar_id="primary",
        provider=Provider.GOOGLE,
    )
