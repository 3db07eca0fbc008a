"""
Tool: Provider Token Store
Purpose: Persist OAuth credentials, one row per (user, provider)

Refresh decisions do not live here; the orchestrator owns them and uses
update_access_token() as a compare-and-swap so a stale refresh never
overwrites a newer token.
"""

import logging
from datetime import datetime, timezone

from availnow.models import OAuthCredential, Provider, utcnow
from availnow.security.vault import TokenCipher
from availnow.storage import Store

logger = logging.getLogger(__name__)


def to_db_time(value: datetime | None) -> str | None:
    """Normalize an aware datetime to the UTC ISO string stored in SQLite."""
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat()


def from_db_time(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class TokenStore:
    """Keyed store of OAuth credentials."""

    def __init__(self, store: Store, cipher: TokenCipher | None = None):
        self.store = store
        self.cipher = cipher
        if cipher is None:
            logger.warning("Token encryption disabled: OAuth tokens are stored unencrypted")

    def _seal(self, value: str | None) -> str | None:
        if value is None or self.cipher is None:
            return value
        return self.cipher.encrypt(value)

    def _open(self, value: str | None) -> str | None:
        if value is None:
            return None
        if self.cipher is None:
            return value
        return self.cipher.decrypt(value)

    def _row_to_credential(self, row) -> OAuthCredential:
        return OAuthCredential(
            user_id=row["user_id"],
            provider=Provider(row["provider"]),
            access_token=self._open(row["access_token"]),
            refresh_token=self._open(row["refresh_token"]),
            expires_at=from_db_time(row["expires_at"]),
            created_at=from_db_time(row["created_at"]),
            updated_at=from_db_time(row["updated_at"]),
        )

    def get(self, user_id: str, provider: Provider | str) -> OAuthCredential | None:
        """Return the stored credential, or None when the user never connected."""
        provider = Provider.parse(provider)
        with self.store.transaction() as conn:
            row = conn.execute(
                "SELECT * FROM oauth_credentials WHERE user_id = ? AND provider = ?",
                (user_id, provider.value),
            ).fetchone()
        return self._row_to_credential(row) if row else None

    def list_for_user(self, user_id: str) -> list[OAuthCredential]:
        with self.store.transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM oauth_credentials WHERE user_id = ? ORDER BY provider",
                (user_id,),
            ).fetchall()
        return [self._row_to_credential(row) for row in rows]

    def upsert(
        self,
        user_id: str,
        provider: Provider | str,
        access_token: str,
        refresh_token: str | None,
        expires_at: datetime,
    ) -> OAuthCredential:
        """
        Insert or update the credential for (user_id, provider).

        A None refresh_token keeps whatever refresh token is already stored;
        providers only return one on the first consent.
        """
        provider = Provider.parse(provider)
        # Validates the expiry invariant before touching the database
        OAuthCredential(
            user_id=user_id,
            provider=provider,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at,
        )
        now = to_db_time(utcnow())

        with self.store.transaction() as conn:
            conn.execute(
                """
                INSERT INTO oauth_credentials
                    (user_id, provider, access_token, refresh_token, expires_at, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id, provider) DO UPDATE SET
                    access_token = excluded.access_token,
                    refresh_token = COALESCE(excluded.refresh_token, oauth_credentials.refresh_token),
                    expires_at = excluded.expires_at,
                    updated_at = excluded.updated_at
                """,
                (
                    user_id,
                    provider.value,
                    self._seal(access_token),
                    self._seal(refresh_token),
                    to_db_time(expires_at),
                    now,
                    now,
                ),
            )

        logger.info(f"Stored {provider.value} credential for user {user_id}")
        return self.get(user_id, provider)

    def update_access_token(
        self,
        user_id: str,
        provider: Provider | str,
        access_token: str,
        expires_at: datetime,
        expected_expires_at: datetime | None,
        refresh_token: str | None = None,
    ) -> bool:
        """
        Replace the access token only if the stored expiry still matches.

        Returns:
            True if this call won; False if another writer refreshed first
        """
        provider = Provider.parse(provider)
        with self.store.transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE oauth_credentials
                SET access_token = ?,
                    refresh_token = COALESCE(?, refresh_token),
                    expires_at = ?,
                    updated_at = ?
                WHERE user_id = ? AND provider = ? AND expires_at IS ?
                """,
                (
                    self._seal(access_token),
                    self._seal(refresh_token),
                    to_db_time(expires_at),
                    to_db_time(utcnow()),
                    user_id,
                    provider.value,
                    to_db_time(expected_expires_at),
                ),
            )
            return cursor.rowcount == 1

    def delete(self, user_id: str, provider: Provider | str) -> bool:
        provider = Provider.parse(provider)
        with self.store.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM oauth_credentials WHERE user_id = ? AND provider = ?",
                (user_id, provider.value),
            )
            deleted = cursor.rowcount > 0
        if deleted:
            logger.info(f"Deleted {provider.value} credential for user {user_id}")
        return deleted


__all__ = ["TokenStore", "from_db_time", "to_db_time"]
