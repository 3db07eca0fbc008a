"""Tests for availnow/providers/google.py

HTTP is mocked at CalendarProvider._send, which returns (status, payload).
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch
from urllib.parse import parse_qs, urlparse

import pytest

from availnow.config import ProviderOAuthConfig
from availnow.errors import AuthError, ProviderError, TransientFetchError
from availnow.models import Provider
from availnow.providers.google import GOOGLE_REVOKE_URL, GOOGLE_TOKEN_URL, GoogleCalendarProvider


START = datetime(2025, 3, 10, tzinfo=timezone.utc)
END = datetime(2025, 3, 11, tzinfo=timezone.utc)


@pytest.fixture
def provider() -> GoogleCalendarProvider:
    return GoogleCalendarProvider(
        ProviderOAuthConfig(
            client_id="google-client",
            client_secret="google-secret",
            redirect_uri="https://app.example/oauth/google/callback",
            scopes=["https://www.googleapis.com/auth/calendar.readonly"],
        )
    )


# ─────────────────────────────────────────────────────────────────────────────
# Authorization
# ─────────────────────────────────────────────────────────────────────────────


class TestAuthorizationUrl:
    """Tests for the consent URL."""

    def test_url_parameters(self, provider):
        url = provider.build_authorization_url("state-123")
        query = parse_qs(urlparse(url).query)

        assert url.startswith("https://accounts.google.com/o/oauth2/v2/auth?")
        assert query["state"] == ["state-123"]
        assert query["client_id"] == ["google-client"]
        assert query["scope"] == ["https://www.googleapis.com/auth/calendar.readonly"]
        assert query["access_type"] == ["offline"]
        assert query["prompt"] == ["consent"]
        assert "code_challenge" not in query

    def test_optional_pkce(self, provider):
        query = parse_qs(urlparse(provider.build_authorization_url("s", "challenge")).query)
        assert query["code_challenge"] == ["challenge"]
        assert query["code_challenge_method"] == ["S256"]


class TestTokenEndpoint:
    """Tests for code exchange and refresh."""

    @pytest.mark.asyncio
    async def test_exchange_code(self, provider):
        provider._send = AsyncMock(
            return_value=(200, {"access_token": "ya29", "refresh_token": "1//r", "expires_in": 3599})
        )
        grant = await provider.exchange_code("auth-code")

        assert grant.access_token == "ya29"
        assert grant.refresh_token == "1//r"
        assert grant.expires_in == 3599
        method, url = provider._send.call_args.args
        assert (method, url) == ("POST", GOOGLE_TOKEN_URL)
        assert provider._send.call_args.kwargs["data"]["grant_type"] == "authorization_code"

    @pytest.mark.asyncio
    async def test_exchange_failure_carries_description(self, provider):
        """Exchange errors surface the provider's error_description."""
        provider._send = AsyncMock(
            return_value=(400, {"error": "invalid_grant", "error_description": "Code was already redeemed."})
        )
        with pytest.raises(ProviderError, match="Code was already redeemed"):
            await provider.exchange_code("used-code")

    @pytest.mark.asyncio
    async def test_refresh_rejected_is_auth_error(self, provider):
        provider._send = AsyncMock(return_value=(400, {"error": "invalid_grant"}))
        with pytest.raises(AuthError):
            await provider.refresh_token("revoked")

    @pytest.mark.asyncio
    async def test_refresh_outage_is_transient(self, provider):
        provider._send = AsyncMock(return_value=(503, "Service Unavailable"))
        with pytest.raises(TransientFetchError):
            await provider.refresh_token("r")

    @pytest.mark.asyncio
    async def test_revoke_never_raises(self, provider):
        provider._send = AsyncMock(side_effect=TransientFetchError("down"))
        await provider.revoke("token")
        assert provider._send.call_args.args == ("POST", GOOGLE_REVOKE_URL)


# ─────────────────────────────────────────────────────────────────────────────
# Calendars and events
# ─────────────────────────────────────────────────────────────────────────────


class TestListCalendars:
    """Tests for calendar listing."""

    @pytest.mark.asyncio
    async def test_descriptors(self, provider):
        provider._send = AsyncMock(
            return_value=(
                200,
                {
                    "items": [
                        {"id": "alice@example.com", "summary": "Alice", "primary": True},
                        {"id": "team123", "summary": "Team", "description": "Shared"},
                    ]
                },
            )
        )
        calendars = await provider.list_calendars("token")

        assert [c.id for c in calendars] == ["alice@example.com", "team123"]
        assert calendars[0].primary is True
        assert calendars[0].email == "alice@example.com"
        assert calendars[1].email is None
        assert calendars[1].description == "Shared"
        assert all(c.provider == Provider.GOOGLE for c in calendars)

    @pytest.mark.asyncio
    async def test_follows_pages(self, provider):
        provider._send = AsyncMock(
            side_effect=[
                (200, {"items": [{"id": "a", "summary": "A"}], "nextPageToken": "p2"}),
                (200, {"items": [{"id": "b", "summary": "B"}]}),
            ]
        )
        calendars = await provider.list_calendars("token")
        assert [c.id for c in calendars] == ["a", "b"]
        assert provider._send.call_args.kwargs["params"]["pageToken"] == "p2"

    @pytest.mark.asyncio
    async def test_unauthorized(self, provider):
        provider._send = AsyncMock(return_value=(401, {"error": {"message": "Invalid Credentials"}}))
        with pytest.raises(AuthError):
            await provider.list_calendars("expired")


class TestListEvents:
    """Tests for event listing."""

    @pytest.mark.asyncio
    async def test_normalizes_and_sorts(self, provider):
        provider._send = AsyncMock(
            return_value=(
                200,
                {
                    "items": [
                        {
                            "id": "late",
                            "summary": "Review",
                            "start": {"dateTime": "2025-03-10T15:00:00Z"},
                            "end": {"dateTime": "2025-03-10T16:00:00Z"},
                        },
                        {
                            "id": "early",
                            "summary": "Standup",
                            "start": {"dateTime": "2025-03-10T10:00:00+01:00"},
                            "end": {"dateTime": "2025-03-10T10:15:00+01:00"},
                        },
                        {"id": "holiday", "start": {"date": "2025-03-10"}, "end": {"date": "2025-03-11"}},
                    ]
                },
            )
        )
        events = await provider.list_events("token", "primary", START, END)

        assert [e.id for e in events] == ["holiday", "early", "late"]
        assert events[0].all_day is True
        assert events[1].start == datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)
        assert events[2].title == "Review"
        params = provider._send.call_args.kwargs["params"]
        assert params["singleEvents"] == "true"
        assert params["timeMin"] == START.isoformat()

    @pytest.mark.asyncio
    async def test_skips_free_and_cancelled(self, provider):
        provider._send = AsyncMock(
            return_value=(
                200,
                {
                    "items": [
                        {
                            "id": "free",
                            "transparency": "transparent",
                            "start": {"dateTime": "2025-03-10T10:00:00Z"},
                            "end": {"dateTime": "2025-03-10T11:00:00Z"},
                        },
                        {"id": "gone", "status": "cancelled"},
                    ]
                },
            )
        )
        assert await provider.list_events("token", "primary", START, END) == []

    @pytest.mark.asyncio
    async def test_not_found_is_empty(self, provider):
        """A deleted calendar yields no events rather than an error."""
        provider._send = AsyncMock(return_value=(404, {"error": {"message": "Not Found"}}))
        assert await provider.list_events("token", "deleted-cal", START, END) == []

    @pytest.mark.asyncio
    async def test_server_error_is_transient(self, provider):
        provider._send = AsyncMock(return_value=(500, {"error": {"message": "Backend Error"}}))
        with pytest.raises(TransientFetchError):
            await provider.list_events("token", "primary", START, END)

    @pytest.mark.asyncio
    async def test_rate_limited_is_transient(self, provider):
        provider._send = AsyncMock(return_value=(429, {}))
        with pytest.raises(TransientFetchError):
            await provider.list_events("token", "primary", START, END)


# ─────────────────────────────────────────────────────────────────────────────
# Transport
# ─────────────────────────────────────────────────────────────────────────────


class TestSendErrors:
    """Tests for network failure mapping in _send."""

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self, provider):
        import asyncio

        with patch("availnow.providers.base.aiohttp.ClientSession", side_effect=asyncio.TimeoutError):
            with pytest.raises(TransientFetchError, match="timed out"):
                await provider.list_events("token", "primary", START, END)

    @pytest.mark.asyncio
    async def test_connection_error_is_transient(self, provider):
        import aiohttp

        with patch("availnow.providers.base.aiohttp.ClientSession", side_effect=aiohttp.ClientConnectionError("refused")):
            with pytest.raises(TransientFetchError):
                await provider.list_calendars("token")

    def test_timeout_configured(self, provider):
        assert provider.timeout == 10.0
