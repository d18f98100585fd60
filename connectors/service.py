"""
OAuthService — drives the authorization-code flow for every provider.

The service owns the provider-independent skeleton: configuration lookup,
CSRF state, metrics and token persistence.  Provider-specific request and
response shapes come from the connector picked out of the registry.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional
from urllib.parse import quote

import httpx

from connectors.catalog import Provider, split_scopes
from connectors.configurations import IntegrationConfigStore
from connectors.exceptions import CryptoError, InvalidState, NotConfigured, OAuthException
from connectors.metrics import MetricsLedger
from connectors.registry import ConnectorRegistry
from connectors.state import OAuthStateStore
from connectors.token_store import Clock, TokenStore, utcnow
from database.models import IntegrationConfiguration, IntegrationToken

logger = logging.getLogger(__name__)

HttpClientFactory = Callable[[], httpx.AsyncClient]


class OAuthService:
    def __init__(
        self,
        *,
        configs: IntegrationConfigStore,
        tokens: TokenStore,
        ledger: MetricsLedger,
        registry: ConnectorRegistry,
        states: OAuthStateStore,
        redirect_base: str,
        http_timeout: float = 30.0,
        http_client_factory: Optional[HttpClientFactory] = None,
        clock: Clock = utcnow,
    ) -> None:
        self.configs = configs
        self.tokens = tokens
        self.ledger = ledger
        self.registry = registry
        self.states = states
        self._redirect_base = redirect_base.rstrip("/")
        self._http_client_factory = http_client_factory or (
            lambda: httpx.AsyncClient(timeout=http_timeout)
        )
        self._clock = clock

    def redirect_uri_for(self, tenant_id: str, provider: Provider) -> str:
        return f"{self._redirect_base}/api/v1/integrations/{quote(tenant_id, safe='')}/{provider.value}/callback"

    # ── Configuration ───────────────────────────────────────────────────

    async def configure(
        self,
        tenant_id: str,
        provider: Provider | str,
        client_id: str,
        client_secret: str,
        *,
        scopes: Optional[str] = None,
        redirect_uri: Optional[str] = None,
    ) -> IntegrationConfiguration:
        """Create or update the tenant's client credentials for ``provider``."""
        provider = Provider.parse(provider)
        if not client_id or not client_secret:
            raise ValueError("client_id and client_secret are required")
        return await self.configs.upsert(
            tenant_id,
            provider,
            client_id=client_id,
            client_secret=client_secret,
            redirect_uri=redirect_uri or self.redirect_uri_for(tenant_id, provider),
            scopes=",".join(split_scopes(scopes or provider.default_scopes)),
        )

    # ── OAuth flow ──────────────────────────────────────────────────────

    async def generate_oauth_url(
        self, tenant_id: str, provider: Provider | str, subject: str = ""
    ) -> str:
        """
        Authorization URL for the tenant's configured client.

        A fresh single-use state is issued and bound to ``subject`` (the
        authenticated user asking), so only that user's callback can use it.
        """
        provider = Provider.parse(provider)
        config = await self.configs.require(tenant_id, provider)
        state = self.states.issue(tenant_id, provider, subject)
        self.ledger.record_attempt(tenant_id, provider)
        return self.registry.get(provider).get_auth_url(config, state)

    async def handle_oauth_callback(
        self,
        tenant_id: str,
        provider: Provider | str,
        code: Optional[str],
        state: str,
        subject: str = "",
        *,
        error: Optional[str] = None,
        error_description: Optional[str] = None,
    ) -> IntegrationToken:
        """
        Validate ``state``, exchange ``code`` and store the resulting token.

        Raises ``InvalidState`` on a state mismatch (nothing is written),
        ``NotConfigured`` when the configuration vanished, and
        ``OAuthException`` for anything that goes wrong at the provider.
        """
        provider = Provider.parse(provider)

        if not self.states.consume(state, tenant_id, provider, subject):
            logger.warning(
                "Rejected OAuth callback with unknown or mismatched state — tenant=%s provider=%s",
                tenant_id,
                provider.name,
            )
            self.ledger.record_failure(tenant_id, provider, InvalidState.code)
            raise InvalidState("OAuth state does not match the value issued for this session")

        if error:
            self.ledger.record_failure(tenant_id, provider, error)
            raise OAuthException(error, error_description or f"{provider.display_name} returned {error}")
        if not code:
            self.ledger.record_failure(tenant_id, provider, "missing_code")
            raise OAuthException("missing_code", "Callback did not include an authorization code")

        try:
            config = await self.configs.require(tenant_id, provider)
        except NotConfigured as exc:
            self.ledger.record_failure(tenant_id, provider, exc.code)
            raise

        connector = self.registry.get(provider)
        try:
            async with self._http_client_factory() as client:
                grant = await connector.exchange_code(client, config, code)
            token = await self.tokens.store_token(
                tenant_id,
                provider,
                grant.access_token,
                grant.refresh_token,
                grant.token_type,
                grant.expires_at(self._clock()),
                grant.scopes(config.scopes),
            )
        except OAuthException as exc:
            self.ledger.record_failure(tenant_id, provider, exc.error)
            raise
        except Exception as exc:
            logger.exception("Token exchange failed for %s/%s", tenant_id, provider.name)
            self.ledger.record_failure(tenant_id, provider, "exchange_failed")
            raise OAuthException(
                "exchange_failed", f"{provider.display_name} token exchange failed: {exc}"
            ) from exc

        self.ledger.record_success(tenant_id, provider)
        return token

    # ── Status / tokens ─────────────────────────────────────────────────

    async def get_access_token(self, tenant_id: str, provider: Provider | str) -> Optional[str]:
        """
        Valid access token for business-API calls, or None.

        A token that cannot be decrypted counts as absent.
        """
        provider = Provider.parse(provider)
        try:
            return await self.tokens.valid_access_token(tenant_id, provider)
        except CryptoError:
            logger.error(
                "Stored %s token for tenant %s is unreadable; treating as disconnected",
                provider.name,
                tenant_id,
            )
            return None

    async def is_connected(self, tenant_id: str, provider: Provider | str) -> bool:
        # Decrypts rather than using has_valid_token: an unreadable token is not a connection.
        return await self.get_access_token(tenant_id, provider) is not None

    async def disconnect(self, tenant_id: str, provider: Provider | str) -> bool:
        """
        Delete the pair's token and configuration.

        Idempotent: returns False (and records nothing) when the pair was
        already disconnected.
        """
        provider = Provider.parse(provider)
        token_deleted = await self.tokens.delete_token(tenant_id, provider)
        config_deleted = await self.configs.delete(tenant_id, provider)
        if not (token_deleted or config_deleted):
            logger.info("Disconnect for %s/%s: nothing to remove", tenant_id, provider.name)
            return False
        self.ledger.record_disconnect(tenant_id, provider)
        return True

    # ── Refresh ─────────────────────────────────────────────────────────

    async def refresh(self, config: IntegrationConfiguration) -> Optional[IntegrationToken]:
        """
        Renew the pair's access token with its refresh token.

        Returns None when there is nothing to do: no refresh token is
        stored, or the token was disconnected or replaced while the
        provider call was in flight (the renewed token is then dropped).
        Provider errors propagate; metrics are left to the caller.
        """
        provider = Provider.parse(config.provider)
        record = await self.tokens.get_record(config.tenant_id, provider)
        refresh_token = self.tokens.decrypt_refresh_token(record)
        if not refresh_token:
            logger.info(
                "%s token for tenant %s has no refresh token; leaving it to lapse",
                provider.name,
                config.tenant_id,
            )
            return None

        connector = self.registry.get(provider)
        async with self._http_client_factory() as client:
            grant = await connector.refresh(client, config, refresh_token)

        return await self.tokens.store_token(
            config.tenant_id,
            provider,
            grant.access_token,
            grant.refresh_token or refresh_token,
            grant.token_type,
            grant.expires_at(self._clock()),
            grant.scopes(config.scopes),
            if_match=record.access_token,
        )
