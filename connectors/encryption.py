"""
Token encryption — encrypt / decrypt OAuth tokens at rest.

Uses Fernet (AES-128-CBC + HMAC-SHA256) from the ``cryptography`` library.
The key is loaded from ``config.token_encryption_key``
(env var: ``TOKEN_ENCRYPTION_KEY``).  A proper Fernet key is used as-is;
any other secret is padded (or truncated) to 32 bytes and used as the
key material.  Generate a proper key with::

    python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"

There is no plaintext mode: a token that cannot be decrypted raises
``CryptoError`` and must be treated as absent by the caller.
"""

from __future__ import annotations

import base64
import binascii
import logging

from cryptography.fernet import Fernet, InvalidToken

from connectors.exceptions import CryptoError

logger = logging.getLogger(__name__)

_KEY_LENGTH = 32


def derive_fernet_key(secret: str | bytes) -> bytes:
    """Return a urlsafe-base64 Fernet key for ``secret``."""
    raw = secret.encode() if isinstance(secret, str) else secret
    if not raw:
        raise CryptoError("Token encryption key is empty")

    try:
        if len(base64.urlsafe_b64decode(raw)) == _KEY_LENGTH:
            return raw
    except (binascii.Error, ValueError):
        pass

    padded = raw[:_KEY_LENGTH].ljust(_KEY_LENGTH, b"\0")
    return base64.urlsafe_b64encode(padded)


class TokenCipher:
    """Symmetric cipher for token strings stored in the database."""

    def __init__(self, secret: str | bytes) -> None:
        try:
            self._fernet = Fernet(derive_fernet_key(secret))
        except ValueError as exc:
            raise CryptoError(f"Invalid token encryption key: {exc}") from exc

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a token string; returns URL-safe base64 ciphertext."""
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt a stored token; raises ``CryptoError`` on any failure."""
        try:
            return self._fernet.decrypt(ciphertext.encode()).decode()
        except (InvalidToken, UnicodeError, AttributeError) as exc:
            logger.error("Failed to decrypt stored token (%s)", type(exc).__name__)
            raise CryptoError("Stored token could not be decrypted") from exc
