"""
Calendar Providers

Adapters for each supported calendar platform, plus the registry that maps
a Provider tag to its adapter.

Supported:
    - google: Google Calendar API v3
    - outlook: Microsoft Graph

Apple and Calendly are recognised tags without adapters.
"""

from availnow.config import AvailNowConfig
from availnow.errors import UnsupportedProviderError
from availnow.models import IMPLEMENTED_PROVIDERS, Provider
from availnow.providers.base import CalendarProvider, generate_pkce_pair
from availnow.providers.google import GoogleCalendarProvider
from availnow.providers.outlook import OutlookCalendarProvider


class ProviderRegistry:
    """Resolves provider tags to adapters."""

    def __init__(self, adapters: dict[Provider, CalendarProvider] | None = None):
        self._adapters: dict[Provider, CalendarProvider] = dict(adapters or {})

    @classmethod
    def from_config(cls, config: AvailNowConfig) -> "ProviderRegistry":
        http = config.http
        return cls(
            {
                Provider.GOOGLE: GoogleCalendarProvider(
                    config.oauth.google, timeout=http.timeout_seconds, max_pages=http.max_pages
                ),
                Provider.OUTLOOK: OutlookCalendarProvider(
                    config.oauth.outlook, timeout=http.timeout_seconds, max_pages=http.max_pages
                ),
            }
        )

    def register(self, adapter: CalendarProvider) -> None:
        self._adapters[adapter.provider] = adapter

    def get(self, provider: Provider | str) -> CalendarProvider:
        tag = Provider.parse(provider)
        adapter = self._adapters.get(tag)
        if adapter is None:
            if tag not in IMPLEMENTED_PROVIDERS:
                raise UnsupportedProviderError(f"{tag.value} calendars are not supported yet")
            raise UnsupportedProviderError(f"{tag.value} is not configured")
        return adapter

    @property
    def providers(self) -> list[Provider]:
        return list(self._adapters)


__all__ = [
    "CalendarProvider",
    "GoogleCalendarProvider",
    "OutlookCalendarProvider",
    "ProviderRegistry",
    "generate_pkce_pair",
]
