"""
Tool: Token Vault
Purpose: Encrypt OAuth tokens before they reach the database

Features:
- AES-256-GCM encryption at rest
- HKDF-derived salt + PBKDF2 key derivation (100k iterations) from a master key
- Versioned ciphertext prefix so plaintext rows are recognisable

Security Notes:
    - Master key is read from AVAILNOW_MASTER_KEY (configurable)
    - Never logs decrypted values
    - Ciphertext from a different master key fails to decrypt
"""

import base64
import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from availnow.errors import PersistenceError

logger = logging.getLogger(__name__)

# HKDF purpose string for deterministic salt derivation
HKDF_SALT_INFO = b"availnow-token-salt-v1"

# Prefix marking an encrypted value
CIPHERTEXT_PREFIX = "enc:v1:"

KDF_ITERATIONS = 100000

NONCE_SIZE = 12


def _derive_salt(master_key: str) -> bytes:
    """Derive a deterministic salt from the master key using HKDF."""
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=None,
        info=HKDF_SALT_INFO,
    )
    return hkdf.derive(master_key.encode())


def _derive_key(master_key: str) -> bytes:
    """Derive the AES key from the master key using PBKDF2."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=_derive_salt(master_key),
        iterations=KDF_ITERATIONS,
    )
    return kdf.derive(master_key.encode())


class TokenCipher:
    """AES-GCM cipher for token columns. Key derivation runs once per instance."""

    def __init__(self, master_key: str):
        if not master_key:
            raise ValueError("master key must not be empty")
        self._aesgcm = AESGCM(_derive_key(master_key))

    @classmethod
    def from_env(cls, env_var: str = "AVAILNOW_MASTER_KEY") -> "TokenCipher | None":
        master_key = os.environ.get(env_var)
        if not master_key:
            return None
        return cls(master_key)

    @staticmethod
    def is_encrypted(value: str | None) -> bool:
        return bool(value) and value.startswith(CIPHERTEXT_PREFIX)

    def encrypt(self, plaintext: str) -> str:
        nonce = os.urandom(NONCE_SIZE)
        ciphertext = self._aesgcm.encrypt(nonce, plaintext.encode(), None)
        return CIPHERTEXT_PREFIX + base64.urlsafe_b64encode(nonce + ciphertext).decode()

    def decrypt(self, value: str) -> str:
        if not self.is_encrypted(value):
            # Rows written before encryption was enabled
            return value
        try:
            raw = base64.urlsafe_b64decode(value[len(CIPHERTEXT_PREFIX):])
            plaintext = self._aesgcm.decrypt(raw[:NONCE_SIZE], raw[NONCE_SIZE:], None)
        except (InvalidTag, ValueError) as e:
            logger.error("Stored token could not be decrypted with the configured master key")
            raise PersistenceError("Stored token could not be decrypted") from e
        return plaintext.decode()


__all__ = ["TokenCipher", "CIPHERTEXT_PREFIX"]
