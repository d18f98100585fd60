"""
Error taxonomy for the integration core.

Every error carries a machine-readable ``code``; ``status_code`` is a hint
for the web layer and has no meaning inside the core.
"""

from __future__ import annotations

from typing import Optional


class IntegrationError(Exception):
    code = "integration_error"
    status_code = 500

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_dict(self) -> dict:
        return {"error": self.code, "error_description": self.message}


class NotConfigured(IntegrationError):
    """No IntegrationConfiguration exists for the (tenant, provider) pair."""

    code = "not_configured"
    status_code = 404


class InvalidState(IntegrationError):
    """The OAuth ``state`` echoed by the provider was not issued by us."""

    code = "invalid_state"
    status_code = 400


class CryptoError(IntegrationError):
    """A stored secret could not be decrypted, or the key is unusable."""

    code = "crypto_error"
    status_code = 500


class Unsupported(IntegrationError):
    """The provider variant does not implement the requested flow."""

    code = "unsupported"
    status_code = 501


class Unauthenticated(IntegrationError):
    code = "unauthenticated"
    status_code = 401


class OAuthException(IntegrationError):
    """
    The provider rejected an exchange or answered with an unexpected shape.

    ``error`` is the provider's (or our) machine-readable code,
    ``error_description`` the human-readable text.
    """

    status_code = 502

    def __init__(self, error: str, error_description: Optional[str] = None) -> None:
        super().__init__(error_description or error)
        self.error = error
        self.error_description = error_description or error

    @property
    def code(self) -> str:  # type: ignore[override]
        return self.error
