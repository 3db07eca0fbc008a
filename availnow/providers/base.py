"""
Calendar Provider Base Class

Abstract interface every calendar provider adapter implements. Adapters
are stateless apart from their OAuth client configuration: tokens are
passed in per call and never held.

Error mapping shared by all adapters:
    timeout / connection failure / 5xx / 429  -> TransientFetchError
    401                                       -> AuthError
    other non-2xx                             -> ProviderError
"""

import asyncio
import base64
import hashlib
import logging
import secrets
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

import aiohttp

from availnow.config import ProviderOAuthConfig
from availnow.errors import AuthError, ProviderError, TransientFetchError
from availnow.models import CalendarDescriptor, CalendarEvent, Provider, TokenGrant

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


def generate_pkce_pair() -> tuple[str, str]:
    """
    Generate PKCE code verifier and challenge pair per RFC 7636.

    Returns:
        Tuple of (code_verifier, code_challenge)
    """
    # 43 random bytes -> 58 base64url characters
    verifier_bytes = secrets.token_bytes(43)
    code_verifier = base64.urlsafe_b64encode(verifier_bytes).rstrip(b"=").decode("ascii")

    challenge_bytes = hashlib.sha256(code_verifier.encode("ascii")).digest()
    code_challenge = base64.urlsafe_b64encode(challenge_bytes).rstrip(b"=").decode("ascii")

    return code_verifier, code_challenge


def error_description(payload: Any, default: str) -> str:
    """Pull the most useful message out of an OAuth or API error body."""
    if isinstance(payload, dict):
        if payload.get("error_description"):
            return str(payload["error_description"])
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
    elif isinstance(payload, str) and payload.strip():
        return payload.strip()[:200]
    return default


def format_instant(value: datetime) -> str:
    """RFC 3339 timestamp accepted by both calendar APIs."""
    return value.isoformat()


class CalendarProvider(ABC):
    """
    Abstract base class for calendar providers.

    Subclasses implement the six capabilities: authorization URL, code
    exchange, calendar listing, event listing, token refresh, revocation.
    """

    requires_pkce: bool = False

    def __init__(self, config: ProviderOAuthConfig, timeout: float = DEFAULT_TIMEOUT_SECONDS, max_pages: int = 10):
        """
        Args:
            config: OAuth client configuration for this provider
            timeout: Total seconds allowed per HTTP call
            max_pages: Upper bound on followed pagination links
        """
        self.config = config
        self.timeout = timeout
        self.max_pages = max_pages

    @property
    @abstractmethod
    def provider(self) -> Provider:
        """Provider tag."""
        pass

    # =========================================================================
    # Capabilities
    # =========================================================================

    @abstractmethod
    def build_authorization_url(self, state: str, code_challenge: str | None = None) -> str:
        """
        Build the consent URL for read-only calendar access.

        Args:
            state: CSRF token echoed back on the callback
            code_challenge: S256 PKCE challenge (required when requires_pkce)

        Returns:
            Absolute authorization URL
        """
        pass

    @abstractmethod
    async def exchange_code(self, code: str, code_verifier: str | None = None) -> TokenGrant:
        """
        Exchange an authorization code for tokens.

        Raises:
            ProviderError: Token endpoint rejected the code
        """
        pass

    @abstractmethod
    async def list_calendars(self, access_token: str) -> list[CalendarDescriptor]:
        """
        List the calendars the token can read.

        Raises:
            AuthError: Token rejected (401)
            TransientFetchError: Network failure or provider outage
        """
        pass

    @abstractmethod
    async def list_events(
        self,
        access_token: str,
        calendar_id: str,
        start: datetime,
        end: datetime,
    ) -> list[CalendarEvent]:
        """
        Busy events intersecting [start, end), sorted by start.

        Recurring events arrive expanded into single instances. An unknown
        calendar (404) yields an empty list.
        """
        pass

    @abstractmethod
    async def refresh_token(self, refresh_token: str) -> TokenGrant:
        """
        Obtain a new access token.

        Raises:
            AuthError: Refresh token rejected
            TransientFetchError: Token endpoint unreachable
        """
        pass

    @abstractmethod
    async def revoke(self, access_token: str) -> None:
        """Best-effort revocation. Never raises."""
        pass

    # =========================================================================
    # HTTP
    # =========================================================================

    async def _send(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
    ) -> tuple[int, Any]:
        """
        Perform one HTTP call.

        Returns:
            (status, payload) where payload is parsed JSON, raw text, or None

        Raises:
            TransientFetchError: Timeout or connection failure
        """
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.request(method, url, headers=headers, params=params, data=data) as resp:
                    if resp.status == 204:
                        return resp.status, None
                    text = await resp.text()
                    try:
                        payload = await resp.json(content_type=None)
                    except ValueError:
                        payload = text
                    return resp.status, payload
        except asyncio.TimeoutError as e:
            logger.warning(f"{self.provider.value} request timed out after {self.timeout}s: {method} {url}")
            raise TransientFetchError(f"{self.provider.value} request timed out") from e
        except aiohttp.ClientError as e:
            logger.warning(f"{self.provider.value} request failed: {e}")
            raise TransientFetchError(f"{self.provider.value} request failed: {e}") from e

    def _auth_headers(self, access_token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {access_token}", "Accept": "application/json"}

    def _raise_for_api_status(self, status: int, payload: Any, action: str) -> None:
        """Map a non-2xx API response to the error taxonomy."""
        if 200 <= status < 300:
            return
        message = error_description(payload, f"HTTP {status}")
        if status == 401:
            raise AuthError(f"{self.provider.value} rejected the access token", provider=self.provider.value)
        if status == 429 or status >= 500:
            raise TransientFetchError(f"{action} failed: {message}", status=status)
        raise ProviderError(f"{action} failed: {message}", status=status, provider=self.provider.value)

    async def _token_request(self, token_url: str, form: dict[str, str], refreshing: bool) -> TokenGrant:
        """POST to a token endpoint and normalize the grant."""
        status, payload = await self._send("POST", token_url, data=form)

        if 200 <= status < 300 and isinstance(payload, dict) and payload.get("access_token"):
            return TokenGrant.from_response(payload)

        message = error_description(payload, f"HTTP {status}")
        if refreshing:
            if status == 429 or status >= 500:
                raise TransientFetchError(f"Token refresh failed: {message}", status=status)
            logger.warning(f"{self.provider.value} refresh token rejected ({status})")
            raise AuthError(f"Token refresh failed: {message}", provider=self.provider.value)

        logger.warning(f"{self.provider.value} code exchange failed ({status}): {message}")
        raise ProviderError(f"Token exchange failed: {message}", status=status, provider=self.provider.value)
