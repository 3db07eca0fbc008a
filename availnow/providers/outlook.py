"""
Outlook Calendar Provider

Read-only calendar access through Microsoft Graph, authorized with the
Microsoft identity platform (v2.0 endpoints, PKCE).

API Reference:
    - Graph calendar: https://learn.microsoft.com/en-us/graph/api/resources/calendar
    - OAuth: https://learn.microsoft.com/en-us/entra/identity-platform/v2-oauth2-auth-code-flow
"""

import logging
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote, urlencode

from availnow.models import CalendarDescriptor, CalendarEvent, Provider, TokenGrant
from availnow.providers.base import CalendarProvider, format_instant

logger = logging.getLogger(__name__)

MICROSOFT_AUTH_URL = "https://login.microsoftonline.com/{tenant}/oauth2/v2.0/authorize"
MICROSOFT_TOKEN_URL = "https://login.microsoftonline.com/{tenant}/oauth2/v2.0/token"
GRAPH_API = "https://graph.microsoft.com/v1.0"

DEFAULT_SCOPES = ["Calendars.Read", "User.Read", "offline_access"]


def _parse_graph_time(value: dict[str, Any]) -> datetime:
    """Graph returns naive dateTime strings in the zone requested via Prefer."""
    raw = value["dateTime"]
    # Graph emits 7 fractional digits; fromisoformat accepts at most 6
    if "." in raw:
        head, frac = raw.split(".", 1)
        raw = f"{head}.{frac[:6]}"
    parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class OutlookCalendarProvider(CalendarProvider):
    """Microsoft 365 / Outlook.com calendar adapter."""

    requires_pkce = True

    @property
    def provider(self) -> Provider:
        return Provider.OUTLOOK

    @property
    def _tenant(self) -> str:
        return self.config.tenant or "common"

    @property
    def _scope(self) -> str:
        return " ".join(self.config.scopes or DEFAULT_SCOPES)

    def build_authorization_url(self, state: str, code_challenge: str | None = None) -> str:
        if not code_challenge:
            raise ValueError("Outlook authorization requires a PKCE code challenge")
        params = {
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_uri,
            "response_type": "code",
            "response_mode": "query",
            "scope": self._scope,
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
        }
        return f"{MICROSOFT_AUTH_URL.format(tenant=self._tenant)}?{urlencode(params)}"

    async def exchange_code(self, code: str, code_verifier: str | None = None) -> TokenGrant:
        form = {
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "code": code,
            "redirect_uri": self.config.redirect_uri,
            "grant_type": "authorization_code",
            "scope": self._scope,
        }
        if code_verifier:
            form["code_verifier"] = code_verifier
        return await self._token_request(MICROSOFT_TOKEN_URL.format(tenant=self._tenant), form, refreshing=False)

    async def refresh_token(self, refresh_token: str) -> TokenGrant:
        form = {
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
            "scope": self._scope,
        }
        # Microsoft rotates refresh tokens; the grant carries the new one
        return await self._token_request(MICROSOFT_TOKEN_URL.format(tenant=self._tenant), form, refreshing=True)

    async def revoke(self, access_token: str) -> None:
        # The identity platform has no per-token revocation endpoint
        logger.info("Outlook tokens cannot be revoked individually; deleting local credential only")

    async def list_calendars(self, access_token: str) -> list[CalendarDescriptor]:
        calendars = []
        url: str | None = f"{GRAPH_API}/me/calendars"
        params: dict[str, Any] | None = {"$top": 100}

        for _ in range(self.max_pages):
            status, payload = await self._send("GET", url, headers=self._auth_headers(access_token), params=params)
            self._raise_for_api_status(status, payload, "List calendars")

            for item in payload.get("value", []):
                calendars.append(self._parse_calendar(item))

            url = payload.get("@odata.nextLink")
            if not url:
                break
            # nextLink already carries the query string
            params = None

        return calendars

    async def list_events(
        self,
        access_token: str,
        calendar_id: str,
        start: datetime,
        end: datetime,
    ) -> list[CalendarEvent]:
        if calendar_id == "primary":
            url: str | None = f"{GRAPH_API}/me/calendar/calendarView"
        else:
            url = f"{GRAPH_API}/me/calendars/{quote(calendar_id, safe='')}/calendarView"
        params: dict[str, Any] | None = {
            "startDateTime": format_instant(start.astimezone(timezone.utc)),
            "endDateTime": format_instant(end.astimezone(timezone.utc)),
            "$select": "id,subject,start,end,isAllDay,showAs,isCancelled",
            "$top": 250,
        }
        headers = self._auth_headers(access_token)
        headers["Prefer"] = 'outlook.timezone="UTC"'
        events = []

        for _ in range(self.max_pages):
            status, payload = await self._send("GET", url, headers=headers, params=params)
            if status == 404:
                logger.info(f"Outlook calendar {calendar_id} not found, treating as empty")
                return []
            self._raise_for_api_status(status, payload, "List events")

            for item in payload.get("value", []):
                event = self._parse_event(item, calendar_id)
                if event is not None:
                    events.append(event)

            url = payload.get("@odata.nextLink")
            if not url:
                break
            params = None
        else:
            logger.warning(f"Stopped paging Outlook calendar {calendar_id} after {self.max_pages} pages")

        events.sort(key=lambda e: e.start)
        return events

    def _parse_calendar(self, data: dict[str, Any]) -> CalendarDescriptor:
        owner = data.get("owner") or {}
        return CalendarDescriptor(
            id=data.get("id", ""),
            name=data.get("name", ""),
            provider=Provider.OUTLOOK,
            primary=bool(data.get("isDefaultCalendar", False)),
            email=owner.get("address"),
            description="",
        )

    def _parse_event(self, data: dict[str, Any], calendar_id: str) -> CalendarEvent | None:
        """Normalize one event; cancelled and free events are not busy."""
        if data.get("isCancelled") or data.get("showAs") == "free":
            return None
        if "start" not in data or "end" not in data:
            return None

        return CalendarEvent(
            id=data.get("id", ""),
            title=data.get("subject", ""),
            start=_parse_graph_time(data["start"]),
            end=_parse_graph_time(data["end"]),
            all_day=bool(data.get("isAllDay", False)),
            calendar_id=calendar_id,
            provider=Provider.OUTLOOK,
        )
