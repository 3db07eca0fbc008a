"""
Integration Orchestrator

Turns "events for this user's calendars" into provider calls: loads the
credential, refreshes it when it is about to expire, delegates to the
adapter, and degrades transient failures to "no events".

Refresh races are handled at two levels: a per-credential asyncio.Lock
serializes refreshes inside this process, and TokenStore's
compare-and-swap on expires_at stops a slower process from overwriting a
newer token.
"""

import asyncio
import logging
import weakref
from collections.abc import Callable
from datetime import datetime, timedelta

from availnow.errors import AuthError, IntegrationMissingError, TransientFetchError
from availnow.models import CalendarDescriptor, CalendarEvent, OAuthCredential, Provider, SelectedCalendar, utcnow
from availnow.providers import ProviderRegistry
from availnow.storage.selected_calendars import SelectedCalendarStore
from availnow.storage.tokens import TokenStore

logger = logging.getLogger(__name__)

PRIMARY_CALENDAR = "primary"


class IntegrationOrchestrator:
    def __init__(
        self,
        tokens: TokenStore,
        selected: SelectedCalendarStore,
        registry: ProviderRegistry,
        refresh_threshold: timedelta = timedelta(minutes=5),
        max_concurrency: int = 8,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.tokens = tokens
        self.selected = selected
        self.registry = registry
        self.refresh_threshold = refresh_threshold
        self.max_concurrency = max_concurrency
        self.clock = clock
        # Entries vanish once no task holds the lock
        self._refresh_locks: weakref.WeakValueDictionary[tuple[str, Provider], asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    # =========================================================================
    # Credentials
    # =========================================================================

    def _needs_refresh(self, credential: OAuthCredential) -> bool:
        return credential.is_expiring(self.clock(), self.refresh_threshold.total_seconds())

    def _load(self, user_id: str, provider: Provider) -> OAuthCredential:
        credential = self.tokens.get(user_id, provider)
        if credential is None:
            raise IntegrationMissingError(user_id, provider.value)
        return credential

    async def ensure_fresh_credential(self, user_id: str, provider: Provider | str) -> OAuthCredential:
        """
        Return a credential that is not about to expire, refreshing if needed.

        The refreshed token is persisted before this returns.

        Raises:
            IntegrationMissingError: User never connected this provider
            AuthError: Refresh rejected or no refresh token stored
            TransientFetchError: Token endpoint unreachable
        """
        provider = Provider.parse(provider)
        credential = self._load(user_id, provider)
        if not self._needs_refresh(credential):
            return credential

        lock = self._refresh_locks.get((user_id, provider))
        if lock is None:
            lock = asyncio.Lock()
            self._refresh_locks[(user_id, provider)] = lock
        async with lock:
            # Another task may have refreshed while we waited
            credential = self._load(user_id, provider)
            if not self._needs_refresh(credential):
                return credential

            if not credential.refresh_token:
                logger.warning(f"{provider.value} token for {user_id} expired with no refresh token")
                raise AuthError("Reconnect your calendar", provider=provider.value)

            adapter = self.registry.get(provider)
            grant = await adapter.refresh_token(credential.refresh_token)
            expires_at = self.clock() + timedelta(seconds=grant.expires_in)

            swapped = self.tokens.update_access_token(
                user_id,
                provider,
                access_token=grant.access_token,
                expires_at=expires_at,
                expected_expires_at=credential.expires_at,
                refresh_token=grant.refresh_token,
            )
            if swapped:
                logger.info(f"Refreshed {provider.value} token for {user_id}")
            else:
                logger.info(f"{provider.value} token for {user_id} was refreshed concurrently; using stored token")

            return self._load(user_id, provider)

    async def get_access_token(self, user_id: str, provider: Provider | str) -> str:
        credential = await self.ensure_fresh_credential(user_id, provider)
        return credential.access_token

    # =========================================================================
    # Fetching
    # =========================================================================

    async def list_calendars(self, user_id: str, provider: Provider | str) -> list[CalendarDescriptor]:
        """Calendars visible to the user's connection. Errors propagate."""
        provider = Provider.parse(provider)
        access_token = await self.get_access_token(user_id, provider)
        return await self.registry.get(provider).list_calendars(access_token)

    async def fetch_busy_events(
        self,
        user_id: str,
        provider: Provider | str,
        calendar_id: str,
        start: datetime,
        end: datetime,
    ) -> list[CalendarEvent]:
        """
        Busy events for one calendar.

        Transient provider failures, including a timeout while refreshing
        the token, return an empty list; missing integrations and auth
        failures propagate.
        """
        provider = Provider.parse(provider)
        adapter = self.registry.get(provider)

        try:
            access_token = await self.get_access_token(user_id, provider)
            return await adapter.list_events(access_token, calendar_id, start, end)
        except TransientFetchError as e:
            logger.warning(f"Transient failure fetching {provider.value}/{calendar_id} for {user_id}: {e}")
            return []

    def _calendars_to_fetch(self, user_id: str) -> list[SelectedCalendar]:
        selections = self.selected.list_for_user(user_id)
        if selections:
            return selections

        # Nothing selected yet: read each connected provider's default calendar
        return [
            SelectedCalendar(user_id=user_id, calendar_id=PRIMARY_CALENDAR, provider=credential.provider)
            for credential in self.tokens.list_for_user(user_id)
        ]

    async def fetch_busy_events_for_all_selected(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
    ) -> list[CalendarEvent]:
        """
        Union of busy events across the user's selected calendars.

        Calendars are fetched concurrently; a failure in one is logged and
        dropped without affecting the others. The result is unsorted.
        """
        calendars = self._calendars_to_fetch(user_id)
        if not calendars:
            return []

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def fetch_one(calendar: SelectedCalendar) -> list[CalendarEvent]:
            async with semaphore:
                return await self.fetch_busy_events(user_id, calendar.provider, calendar.calendar_id, start, end)

        results = await asyncio.gather(*(fetch_one(c) for c in calendars), return_exceptions=True)

        events: list[CalendarEvent] = []
        for calendar, result in zip(calendars, results):
            if isinstance(result, Exception):
                logger.warning(
                    f"Skipping {calendar.provider.value}/{calendar.calendar_id} for {user_id}: "
                    f"{type(result).__name__}: {result}"
                )
                continue
            if isinstance(result, BaseException):
                raise result
            events.extend(result)

        return events


__all__ = ["IntegrationOrchestrator", "PRIMARY_CALENDAR"]
