"""
Tool: OAuth Manager
Purpose: Connect and disconnect calendar providers

Flow:
    1. begin_authorization() stores a pending record keyed by a random
       state (with the PKCE verifier when the provider needs one) and
       returns the consent URL.
    2. The provider redirects back with code + state.
    3. complete_authorization() consumes the pending record, exchanges the
       code, stores the credential and lists the user's calendars.

Usage:
    manager = OAuthManager(registry, tokens, pending, selected)
    request = manager.begin_authorization("alice", "outlook")
    result = await manager.complete_authorization("outlook", code, state)
"""

import logging
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta

from availnow.errors import IntegrationMissingError, InterruptedFlowError
from availnow.models import (
    AuthorizationRequest,
    CalendarDescriptor,
    ConnectionResult,
    PendingAuthorization,
    Provider,
    SelectedCalendar,
    utcnow,
)
from availnow.providers import ProviderRegistry, generate_pkce_pair
from availnow.storage.pending_auth import PendingAuthorizationStore
from availnow.storage.selected_calendars import SelectedCalendarStore
from availnow.storage.tokens import TokenStore

logger = logging.getLogger(__name__)


class OAuthManager:
    def __init__(
        self,
        registry: ProviderRegistry,
        tokens: TokenStore,
        pending: PendingAuthorizationStore,
        selected: SelectedCalendarStore,
        pending_ttl: timedelta = timedelta(minutes=10),
        clock: Callable[[], datetime] = utcnow,
    ):
        self.registry = registry
        self.tokens = tokens
        self.pending = pending
        self.selected = selected
        self.pending_ttl = pending_ttl
        self.clock = clock

    def begin_authorization(self, user_id: str, provider: Provider | str) -> AuthorizationRequest:
        """Create a pending authorization and return the consent URL."""
        adapter = self.registry.get(provider)
        state = secrets.token_urlsafe(32)

        code_verifier = code_challenge = None
        if adapter.requires_pkce:
            code_verifier, code_challenge = generate_pkce_pair()

        self.pending.save(
            PendingAuthorization(
                state=state,
                user_id=user_id,
                provider=adapter.provider,
                code_verifier=code_verifier,
                expires_at=self.clock() + self.pending_ttl,
            )
        )

        logger.info(f"Started {adapter.provider.value} authorization for user {user_id}")
        return AuthorizationRequest(
            authorization_url=adapter.build_authorization_url(state, code_challenge),
            state=state,
            provider=adapter.provider,
        )

    async def complete_authorization(
        self,
        provider: Provider | str,
        code: str,
        state: str | None,
    ) -> ConnectionResult:
        """
        Handle the provider callback.

        Raises:
            InterruptedFlowError: Unknown, reused or expired state, or provider mismatch
            ProviderError: Code exchange rejected
        """
        provider = Provider.parse(provider)
        pending = self.pending.consume(state, self.clock())
        if pending.provider != provider:
            logger.warning(f"Callback for {provider.value} carried a {pending.provider.value} state")
            raise InterruptedFlowError("Authorization session does not match this provider")

        adapter = self.registry.get(provider)
        grant = await adapter.exchange_code(code, pending.code_verifier)
        expires_at = self.clock() + timedelta(seconds=grant.expires_in)

        self.tokens.upsert(
            pending.user_id,
            provider,
            access_token=grant.access_token,
            refresh_token=grant.refresh_token,
            expires_at=expires_at,
        )

        calendars = await adapter.list_calendars(grant.access_token)
        logger.info(f"Connected {provider.value} for user {pending.user_id} ({len(calendars)} calendars)")

        return ConnectionResult(
            success=True,
            provider=provider,
            user_id=pending.user_id,
            calendars=calendars,
        )

    def save_selected_calendars(
        self,
        user_id: str,
        calendars: list[CalendarDescriptor] | list[SelectedCalendar],
    ) -> list[SelectedCalendar]:
        """Replace the user's calendar selection."""
        selections = [
            c if isinstance(c, SelectedCalendar)
            else SelectedCalendar(user_id=user_id, calendar_id=c.id, provider=c.provider)
            for c in calendars
        ]
        return self.selected.replace(user_id, selections)

    async def disconnect(self, user_id: str, provider: Provider | str) -> None:
        """
        Revoke (best-effort), delete the credential and the provider's selections.

        Raises:
            IntegrationMissingError: Nothing connected for this provider
        """
        provider = Provider.parse(provider)
        credential = self.tokens.get(user_id, provider)
        if credential is None:
            raise IntegrationMissingError(user_id, provider.value)

        adapter = self.registry.get(provider)
        try:
            await adapter.revoke(credential.access_token)
        except Exception as e:
            logger.warning(f"Revocation failed for {provider.value}/{user_id}: {e}")

        self.tokens.delete(user_id, provider)
        removed = self.selected.delete_for_provider(user_id, provider)
        logger.info(f"Disconnected {provider.value} for user {user_id} ({removed} selections removed)")


__all__ = ["OAuthManager"]
