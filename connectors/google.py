"""
GoogleConnector — OAuth2 web flow for Google (Drive, Calendar).

``access_type=offline`` plus ``prompt=consent`` makes Google issue a
refresh token on every consent.
"""

from __future__ import annotations

from typing import Dict

import httpx

from connectors.base import BaseConnector, TokenGrant, request_token
from connectors.catalog import Provider
from database.models import IntegrationConfiguration


class GoogleConnector(BaseConnector):
    """OAuth2 connector for Google."""

    @property
    def provider(self) -> Provider:
        return Provider.GOOGLE

    def authorize_params(self) -> Dict[str, str]:
        return {
            "access_type": "offline",       # gets refresh_token
            "prompt": "consent",            # force consent to always get refresh_token
            "include_granted_scopes": "true",
        }

    async def exchange_code(
        self,
        client: httpx.AsyncClient,
        config: IntegrationConfiguration,
        code: str,
    ) -> TokenGrant:
        """Exchange auth code for tokens."""
        payload = await request_token(
            client,
            self.provider,
            {
                "code": code,
                "client_id": config.client_id,
                "client_secret": config.client_secret,
                "redirect_uri": config.redirect_uri,
                "grant_type": "authorization_code",
            },
        )
        return TokenGrant.from_payload(payload, self.provider)

    async def refresh(
        self,
        client: httpx.AsyncClient,
        config: IntegrationConfiguration,
        refresh_token: str,
    ) -> TokenGrant:
        """Use refresh token to get a new access token."""
        payload = await request_token(
            client,
            self.provider,
            {
                "client_id": config.client_id,
                "client_secret": config.client_secret,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            },
        )
        return TokenGrant.from_payload(payload, self.provider)
