"""Token encryption at rest."""

from availnow.security.vault import TokenCipher


__all__ = ["TokenCipher"]
