"""
BaseConnector — the per-provider OAuth2 capability.

Every provider (GitHub, Slack, Google, Jira) implements ``exchange_code``
and, where the provider supports it, ``refresh``.  Connectors are looked
up by ``Provider`` in the registry's dispatch table; they hold no state
and never touch storage.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlencode

import httpx

from connectors.catalog import Provider, split_scopes
from connectors.exceptions import OAuthException, Unsupported
from database.models import IntegrationConfiguration

logger = logging.getLogger(__name__)


@dataclass
class TokenGrant:
    """Normalised token-endpoint response."""

    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    expires_in: Optional[int] = None
    scope: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], provider: Provider) -> "TokenGrant":
        access_token = payload.get("access_token")
        if not access_token or not isinstance(access_token, str):
            raise OAuthException(
                "invalid_response",
                f"{provider.display_name} token response did not contain an access_token",
            )
        expires_in = payload.get("expires_in")
        try:
            expires_in = int(expires_in) if expires_in not in (None, "") else None
        except (TypeError, ValueError):
            raise OAuthException(
                "invalid_response",
                f"{provider.display_name} returned a non-numeric expires_in: {expires_in!r}",
            ) from None
        return cls(
            access_token=access_token,
            refresh_token=payload.get("refresh_token") or None,
            token_type=(payload.get("token_type") or "bearer").lower(),
            expires_in=expires_in,
            scope=payload.get("scope") or None,
            raw=payload,
        )

    def expires_at(self, now: datetime) -> Optional[datetime]:
        """Absolute expiry, or None for a non-expiring token."""
        if self.expires_in is None:
            return None
        return now + timedelta(seconds=self.expires_in)

    def scopes(self, fallback: str = "") -> str:
        """Granted scopes as a comma-separated string."""
        return ",".join(split_scopes(self.scope or fallback))


async def request_token(
    client: httpx.AsyncClient,
    provider: Provider,
    data: Dict[str, str],
    *,
    auth: Optional[Tuple[str, str]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """
    POST a form-encoded request to the provider's token endpoint.

    Returns the decoded JSON body.  Transport errors, timeouts, HTTP error
    statuses and ``error`` payloads are all raised as ``OAuthException``.
    """
    request_headers = {"Accept": "application/json"}
    request_headers.update(headers or {})
    logger.debug("POST %s token endpoint (grant_type=%s)", provider.value, data.get("grant_type", "authorization_code"))
    try:
        resp = await client.post(
            provider.token_url,
            data=data,
            auth=auth,
            headers=request_headers,
        )
    except httpx.TimeoutException as exc:
        raise OAuthException(
            "timeout", f"{provider.display_name} token endpoint timed out"
        ) from exc
    except httpx.HTTPError as exc:
        raise OAuthException(
            "http_error", f"{provider.display_name} token endpoint unreachable: {exc}"
        ) from exc

    try:
        payload = resp.json()
    except ValueError:
        payload = None

    if not isinstance(payload, dict):
        if resp.status_code >= 400:
            raise OAuthException(
                f"http_{resp.status_code}",
                f"{provider.display_name} token endpoint returned HTTP {resp.status_code}",
            )
        raise OAuthException(
            "invalid_response", f"{provider.display_name} token endpoint did not return a JSON object"
        )

    if resp.status_code >= 400 or payload.get("error"):
        error = payload.get("error") or f"http_{resp.status_code}"
        raise OAuthException(
            str(error),
            payload.get("error_description")
            or f"{provider.display_name} rejected the token request: {error}",
        )
    return payload


class BaseConnector(ABC):
    """Abstract OAuth2 capability for one provider."""

    # Separator used when rendering scopes into the authorization URL.
    scope_separator = " "

    # ── Identity ────────────────────────────────────────────────────────
    @property
    @abstractmethod
    def provider(self) -> Provider:
        ...

    @property
    def display_name(self) -> str:
        return self.provider.display_name

    # ── OAuth flow ──────────────────────────────────────────────────────

    def authorize_params(self) -> Dict[str, str]:
        """Provider-specific extras appended to the authorization URL."""
        return {}

    def get_auth_url(self, config: IntegrationConfiguration, state: str) -> str:
        """
        Build the provider's OAuth2 authorization URL.

        Parameters
        ----------
        config : IntegrationConfiguration
            The tenant's client credentials, redirect URI and scopes.
        state : str
            Single-use CSRF state.
        """
        params = {
            "client_id": config.client_id,
            "redirect_uri": config.redirect_uri,
            "response_type": "code",
            "scope": self.render_scopes(config.scopes or self.provider.default_scopes),
            "state": state,
        }
        params.update(self.authorize_params())
        return f"{self.provider.authorization_url}?{urlencode(params)}"

    def render_scopes(self, scopes: str) -> str:
        return self.scope_separator.join(split_scopes(scopes))

    @abstractmethod
    async def exchange_code(
        self,
        client: httpx.AsyncClient,
        config: IntegrationConfiguration,
        code: str,
    ) -> TokenGrant:
        """Exchange an authorization code for tokens."""
        ...

    async def refresh(
        self,
        client: httpx.AsyncClient,
        config: IntegrationConfiguration,
        refresh_token: str,
    ) -> TokenGrant:
        """
        Obtain a new access token from a refresh token.

        The returned grant carries a new refresh token when the provider
        rotated it.
        """
        raise Unsupported(f"Token refresh is not implemented for {self.display_name}")

