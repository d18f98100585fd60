"""
SlackConnector — OAuth v2 for Slack apps.

Slack authenticates the client with HTTP Basic on ``oauth.v2.access`` and
reports failures as ``{"ok": false, "error": "..."}`` with HTTP 200.
Refresh tokens only exist for apps that opted into token rotation.
"""

from __future__ import annotations

from typing import Any, Dict

import httpx

from connectors.base import BaseConnector, TokenGrant, request_token
from connectors.catalog import Provider
from connectors.exceptions import OAuthException
from database.models import IntegrationConfiguration


class SlackConnector(BaseConnector):
    scope_separator = ","

    @property
    def provider(self) -> Provider:
        return Provider.SLACK

    def _grant(self, payload: Dict[str, Any]) -> TokenGrant:
        if payload.get("ok") is False:
            error = payload.get("error") or "slack_error"
            raise OAuthException(str(error), f"Slack rejected the token request: {error}")
        return TokenGrant.from_payload(payload, self.provider)

    async def exchange_code(
        self,
        client: httpx.AsyncClient,
        config: IntegrationConfiguration,
        code: str,
    ) -> TokenGrant:
        payload = await request_token(
            client,
            self.provider,
            {"code": code, "redirect_uri": config.redirect_uri},
            auth=(config.client_id, config.client_secret),
        )
        return self._grant(payload)

    async def refresh(
        self,
        client: httpx.AsyncClient,
        config: IntegrationConfiguration,
        refresh_token: str,
    ) -> TokenGrant:
        payload = await request_token(
            client,
            self.provider,
            {"grant_type": "refresh_token", "refresh_token": refresh_token},
            auth=(config.client_id, config.client_secret),
        )
        return self._grant(payload)
