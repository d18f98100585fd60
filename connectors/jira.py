"""
JiraConnector — Atlassian OAuth 2.0 (3LO) for Jira Cloud.

Atlassian rotates refresh tokens: every refresh response carries a new
one and the previous token stops working after a short grace period.
The ``offline_access`` scope is required to receive a refresh token.
"""

from __future__ import annotations

from typing import Dict

import httpx

from connectors.base import BaseConnector, TokenGrant, request_token
from connectors.catalog import Provider
from database.models import IntegrationConfiguration


class JiraConnector(BaseConnector):
    @property
    def provider(self) -> Provider:
        return Provider.JIRA

    def authorize_params(self) -> Dict[str, str]:
        return {"audience": "api.atlassian.com", "prompt": "consent"}

    async def exchange_code(
        self,
        client: httpx.AsyncClient,
        config: IntegrationConfiguration,
        code: str,
    ) -> TokenGrant:
        payload = await request_token(
            client,
            self.provider,
            {
                "grant_type": "authorization_code",
                "client_id": config.client_id,
                "client_secret": config.client_secret,
                "code": code,
                "redirect_uri": config.redirect_uri,
            },
        )
        return TokenGrant.from_payload(payload, self.provider)

    async def refresh(
        self,
        client: httpx.AsyncClient,
        config: IntegrationConfiguration,
        refresh_token: str,
    ) -> TokenGrant:
        payload = await request_token(
            client,
            self.provider,
            {
                "grant_type": "refresh_token",
                "client_id": config.client_id,
                "client_secret": config.client_secret,
                "refresh_token": refresh_token,
            },
        )
        return TokenGrant.from_payload(payload, self.provider)
