"""Tests for availnow/storage/tokens.py

The token store keeps one credential per (user, provider):
- Upsert preserves the refresh token when a new one is not supplied
- update_access_token is a compare-and-swap on expiry
- Tokens are encrypted at rest when a cipher is configured
"""

import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from availnow.errors import ValidationError
from availnow.models import Provider
from availnow.security.vault import CIPHERTEXT_PREFIX, TokenCipher
from availnow.storage.tokens import TokenStore


EXPIRY = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


# ─────────────────────────────────────────────────────────────────────────────
# Upsert / Get / Delete
# ─────────────────────────────────────────────────────────────────────────────


class TestUpsert:
    """Tests for credential upsert."""

    def test_insert_then_get(self, token_store, mock_user_id):
        """A new credential is readable with all fields."""
        token_store.upsert(mock_user_id, Provider.GOOGLE, "access-1", "refresh-1", EXPIRY)

        credential = token_store.get(mock_user_id, "google")
        assert credential.access_token == "access-1"
        assert credential.refresh_token == "refresh-1"
        assert credential.expires_at == EXPIRY
        assert credential.provider == Provider.GOOGLE

    def test_missing_returns_none(self, token_store, mock_user_id):
        assert token_store.get(mock_user_id, Provider.OUTLOOK) is None

    def test_update_preserves_refresh_token(self, token_store, mock_user_id):
        """Upsert with refresh_token=None keeps the stored one."""
        token_store.upsert(mock_user_id, Provider.GOOGLE, "access-1", "refresh-1", EXPIRY)
        token_store.upsert(mock_user_id, Provider.GOOGLE, "access-2", None, EXPIRY + timedelta(hours=1))

        credential = token_store.get(mock_user_id, Provider.GOOGLE)
        assert credential.access_token == "access-2"
        assert credential.refresh_token == "refresh-1"
        assert credential.expires_at == EXPIRY + timedelta(hours=1)

    def test_update_replaces_refresh_token_when_given(self, token_store, mock_user_id):
        token_store.upsert(mock_user_id, Provider.OUTLOOK, "a1", "r1", EXPIRY)
        token_store.upsert(mock_user_id, Provider.OUTLOOK, "a2", "r2", EXPIRY)
        assert token_store.get(mock_user_id, Provider.OUTLOOK).refresh_token == "r2"

    def test_one_row_per_user_and_provider(self, token_store, temp_db, mock_user_id):
        """Repeated upserts never create duplicates."""
        for i in range(3):
            token_store.upsert(mock_user_id, Provider.GOOGLE, f"a{i}", None, EXPIRY)
        token_store.upsert(mock_user_id, Provider.OUTLOOK, "o", None, EXPIRY)

        conn = sqlite3.connect(str(temp_db))
        count = conn.execute("SELECT COUNT(*) FROM oauth_credentials").fetchone()[0]
        conn.close()
        assert count == 2

    def test_access_token_requires_expiry(self, token_store, mock_user_id):
        """Storing an access token without expiry is rejected."""
        with pytest.raises(ValidationError):
            token_store.upsert(mock_user_id, Provider.GOOGLE, "a", None, None)

    def test_delete(self, token_store, mock_user_id):
        token_store.upsert(mock_user_id, Provider.GOOGLE, "a", "r", EXPIRY)
        assert token_store.delete(mock_user_id, Provider.GOOGLE) is True
        assert token_store.get(mock_user_id, Provider.GOOGLE) is None
        assert token_store.delete(mock_user_id, Provider.GOOGLE) is False

    def test_list_for_user(self, token_store, mock_user_id):
        token_store.upsert(mock_user_id, Provider.OUTLOOK, "o", None, EXPIRY)
        token_store.upsert(mock_user_id, Provider.GOOGLE, "g", None, EXPIRY)
        token_store.upsert("someone_else", Provider.GOOGLE, "x", None, EXPIRY)

        providers = [c.provider for c in token_store.list_for_user(mock_user_id)]
        assert providers == [Provider.GOOGLE, Provider.OUTLOOK]


# ─────────────────────────────────────────────────────────────────────────────
# Compare-and-swap
# ─────────────────────────────────────────────────────────────────────────────


class TestUpdateAccessToken:
    """Tests for the refresh compare-and-swap."""

    def test_swap_succeeds_when_expiry_matches(self, token_store, mock_user_id):
        token_store.upsert(mock_user_id, Provider.GOOGLE, "old", "r", EXPIRY)
        new_expiry = EXPIRY + timedelta(hours=1)

        assert token_store.update_access_token(
            mock_user_id, Provider.GOOGLE, "new", new_expiry, expected_expires_at=EXPIRY
        ) is True

        credential = token_store.get(mock_user_id, Provider.GOOGLE)
        assert credential.access_token == "new"
        assert credential.expires_at == new_expiry
        assert credential.refresh_token == "r"

    def test_swap_loses_when_expiry_changed(self, token_store, mock_user_id):
        """A stale writer does not overwrite a newer token."""
        token_store.upsert(mock_user_id, Provider.GOOGLE, "newer", "r", EXPIRY + timedelta(hours=2))

        assert token_store.update_access_token(
            mock_user_id, Provider.GOOGLE, "stale", EXPIRY + timedelta(hours=1), expected_expires_at=EXPIRY
        ) is False
        assert token_store.get(mock_user_id, Provider.GOOGLE).access_token == "newer"

    def test_swap_stores_rotated_refresh_token(self, token_store, mock_user_id):
        token_store.upsert(mock_user_id, Provider.OUTLOOK, "a", "r-old", EXPIRY)
        token_store.update_access_token(
            mock_user_id, Provider.OUTLOOK, "b", EXPIRY + timedelta(hours=1), EXPIRY, refresh_token="r-new"
        )
        assert token_store.get(mock_user_id, Provider.OUTLOOK).refresh_token == "r-new"


# ─────────────────────────────────────────────────────────────────────────────
# Encryption at rest
# ─────────────────────────────────────────────────────────────────────────────


class TestEncryption:
    """Tests for encrypted token columns."""

    @pytest.fixture
    def cipher(self) -> TokenCipher:
        return TokenCipher("test-master-key")

    def test_tokens_encrypted_in_database(self, store, temp_db, cipher, mock_user_id):
        """Raw rows never contain the plaintext token."""
        TokenStore(store, cipher).upsert(mock_user_id, Provider.GOOGLE, "secret-access", "secret-refresh", EXPIRY)

        conn = sqlite3.connect(str(temp_db))
        access, refresh = conn.execute("SELECT access_token, refresh_token FROM oauth_credentials").fetchone()
        conn.close()

        assert access.startswith(CIPHERTEXT_PREFIX)
        assert "secret-access" not in access
        assert "secret-refresh" not in refresh

    def test_round_trip_through_store(self, store, cipher, mock_user_id):
        tokens = TokenStore(store, cipher)
        tokens.upsert(mock_user_id, Provider.GOOGLE, "secret-access", "secret-refresh", EXPIRY)
        credential = tokens.get(mock_user_id, Provider.GOOGLE)
        assert credential.access_token == "secret-access"
        assert credential.refresh_token == "secret-refresh"

    def test_compare_and_swap_with_encryption(self, store, cipher, mock_user_id):
        """Expiry stays plaintext so the swap still matches."""
        tokens = TokenStore(store, cipher)
        tokens.upsert(mock_user_id, Provider.GOOGLE, "a", "r", EXPIRY)
        assert tokens.update_access_token(mock_user_id, Provider.GOOGLE, "b", EXPIRY + timedelta(hours=1), EXPIRY)
        assert tokens.get(mock_user_id, Provider.GOOGLE).access_token == "b"
