"""
Pending authorizations, keyed by the OAuth state parameter.

A record is single use: consume() deletes it whether or not it has
expired, so a replayed callback always fails.
"""

import logging
from datetime import datetime

from availnow.errors import InterruptedFlowError
from availnow.models import PendingAuthorization, Provider
from availnow.storage import Store
from availnow.storage.tokens import from_db_time, to_db_time

logger = logging.getLogger(__name__)


class PendingAuthorizationStore:
    def __init__(self, store: Store):
        self.store = store

    def save(self, pending: PendingAuthorization) -> None:
        with self.store.transaction() as conn:
            conn.execute(
                """
                INSERT INTO pending_authorizations (state, user_id, provider, code_verifier, expires_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    pending.state,
                    pending.user_id,
                    pending.provider.value,
                    pending.code_verifier,
                    to_db_time(pending.expires_at),
                ),
            )

    def consume(self, state: str | None, now: datetime) -> PendingAuthorization:
        """
        Remove and return the pending record for state.

        Raises:
            InterruptedFlowError: state unknown, already used, or expired
        """
        if not state:
            raise InterruptedFlowError("Missing authorization state")

        with self.store.transaction() as conn:
            row = conn.execute(
                "SELECT * FROM pending_authorizations WHERE state = ?", (state,)
            ).fetchone()
            if row:
                conn.execute("DELETE FROM pending_authorizations WHERE state = ?", (state,))

        if not row:
            logger.warning("Authorization callback with unknown or reused state")
            raise InterruptedFlowError("Authorization session not found. Please start again.")

        pending = PendingAuthorization(
            state=row["state"],
            user_id=row["user_id"],
            provider=Provider(row["provider"]),
            code_verifier=row["code_verifier"],
            expires_at=from_db_time(row["expires_at"]),
        )
        if pending.expires_at <= now:
            logger.info(f"Authorization for user {pending.user_id} expired before callback")
            raise InterruptedFlowError("Authorization session expired. Please start again.")
        return pending

    def purge_expired(self, now: datetime) -> int:
        with self.store.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM pending_authorizations WHERE expires_at <= ?", (to_db_time(now),)
            )
            return cursor.rowcount


__all__ = ["PendingAuthorizationStore"]
