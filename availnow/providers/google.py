"""
Google Calendar Provider

Read-only calendar access through the Google Calendar API v3.

API Reference:
    - Calendar: https://developers.google.com/calendar/api/v3/reference
    - OAuth: https://developers.google.com/identity/protocols/oauth2/web-server
"""

import logging
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote, urlencode

from availnow.errors import TransientFetchError
from availnow.models import CalendarDescriptor, CalendarEvent, Provider, TokenGrant
from availnow.providers.base import CalendarProvider, format_instant

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_REVOKE_URL = "https://oauth2.googleapis.com/revoke"
CALENDAR_API = "https://www.googleapis.com/calendar/v3"
CALENDAR_LIST_URL = f"{CALENDAR_API}/users/me/calendarList"

DEFAULT_SCOPES = ["https://www.googleapis.com/auth/calendar.readonly"]


def _parse_google_time(value: dict[str, Any]) -> tuple[datetime, bool]:
    """Return (instant, all_day) for a Google start/end object."""
    if "dateTime" in value:
        parsed = datetime.fromisoformat(value["dateTime"].replace("Z", "+00:00"))
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed, False
    # All-day events carry a bare date
    parsed = datetime.fromisoformat(value["date"]).replace(tzinfo=timezone.utc)
    return parsed, True


class GoogleCalendarProvider(CalendarProvider):
    """Google Calendar adapter."""

    requires_pkce = False

    @property
    def provider(self) -> Provider:
        return Provider.GOOGLE

    def build_authorization_url(self, state: str, code_challenge: str | None = None) -> str:
        params = {
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.config.scopes or DEFAULT_SCOPES),
            "access_type": "offline",
            "prompt": "consent",
            "state": state,
        }
        if code_challenge:
            params["code_challenge"] = code_challenge
            params["code_challenge_method"] = "S256"
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str, code_verifier: str | None = None) -> TokenGrant:
        form = {
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "code": code,
            "redirect_uri": self.config.redirect_uri,
            "grant_type": "authorization_code",
        }
        if code_verifier:
            form["code_verifier"] = code_verifier
        return await self._token_request(GOOGLE_TOKEN_URL, form, refreshing=False)

    async def refresh_token(self, refresh_token: str) -> TokenGrant:
        form = {
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }
        return await self._token_request(GOOGLE_TOKEN_URL, form, refreshing=True)

    async def revoke(self, access_token: str) -> None:
        try:
            status, payload = await self._send(
                "POST",
                GOOGLE_REVOKE_URL,
                params={"token": access_token},
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except TransientFetchError as e:
            logger.warning(f"Google token revocation failed: {e}")
            return
        if status != 200:
            logger.warning(f"Google token revocation returned {status}")

    async def list_calendars(self, access_token: str) -> list[CalendarDescriptor]:
        calendars = []
        params: dict[str, Any] = {"minAccessRole": "reader"}

        for _ in range(self.max_pages):
            status, payload = await self._send(
                "GET", CALENDAR_LIST_URL, headers=self._auth_headers(access_token), params=params
            )
            self._raise_for_api_status(status, payload, "List calendars")

            for item in payload.get("items", []):
                calendars.append(self._parse_calendar(item))

            page_token = payload.get("nextPageToken")
            if not page_token:
                break
            params["pageToken"] = page_token

        return calendars

    async def list_events(
        self,
        access_token: str,
        calendar_id: str,
        start: datetime,
        end: datetime,
    ) -> list[CalendarEvent]:
        url = f"{CALENDAR_API}/calendars/{quote(calendar_id, safe='@.')}/events"
        params: dict[str, Any] = {
            "timeMin": format_instant(start),
            "timeMax": format_instant(end),
            "singleEvents": "true",
            "orderBy": "startTime",
            "maxResults": 250,
        }
        events = []

        for _ in range(self.max_pages):
            status, payload = await self._send(
                "GET", url, headers=self._auth_headers(access_token), params=params
            )
            if status == 404:
                logger.info(f"Google calendar {calendar_id} not found, treating as empty")
                return []
            self._raise_for_api_status(status, payload, "List events")

            for item in payload.get("items", []):
                event = self._parse_event(item, calendar_id)
                if event is not None:
                    events.append(event)

            page_token = payload.get("nextPageToken")
            if not page_token:
                break
            params["pageToken"] = page_token
        else:
            logger.warning(f"Stopped paging Google calendar {calendar_id} after {self.max_pages} pages")

        events.sort(key=lambda e: e.start)
        return events

    def _parse_calendar(self, data: dict[str, Any]) -> CalendarDescriptor:
        calendar_id = data.get("id", "")
        return CalendarDescriptor(
            id=calendar_id,
            name=data.get("summaryOverride") or data.get("summary", ""),
            provider=Provider.GOOGLE,
            primary=bool(data.get("primary", False)),
            email=calendar_id if "@" in calendar_id else None,
            description=data.get("description", ""),
        )

    def _parse_event(self, data: dict[str, Any], calendar_id: str) -> CalendarEvent | None:
        """Normalize one event; cancelled and free (transparent) events are not busy."""
        if data.get("status") == "cancelled" or data.get("transparency") == "transparent":
            return None
        if "start" not in data or "end" not in data:
            return None

        start, all_day = _parse_google_time(data["start"])
        end, _ = _parse_google_time(data["end"])

        return CalendarEvent(
            id=data.get("id", ""),
            title=data.get("summary", ""),
            start=start,
            end=end,
            all_day=all_day,
            calendar_id=calendar_id,
            provider=Provider.GOOGLE,
        )
