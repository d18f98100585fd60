"""
GitHubConnector — OAuth2 for GitHub.

Classic OAuth App tokens never expire and come without a refresh token.
GitHub Apps with "Expire user authorization tokens" enabled return an
8-hour access token plus a rotating refresh token.
"""

from __future__ import annotations

import httpx

from connectors.base import BaseConnector, TokenGrant, request_token
from connectors.catalog import Provider
from database.models import IntegrationConfiguration


class GitHubConnector(BaseConnector):
    """OAuth2 connector for GitHub."""

    @property
    def provider(self) -> Provider:
        return Provider.GITHUB

    async def exchange_code(
        self,
        client: httpx.AsyncClient,
        config: IntegrationConfiguration,
        code: str,
    ) -> TokenGrant:
        # GitHub answers errors with HTTP 200 and an "error" field,
        # which request_token turns into OAuthException.
        payload = await request_token(
            client,
            self.provider,
            {
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
        """
        Refresh the access token using a GitHub App refresh token.

        GitHub rotates the refresh token on every use; the new one is in
        the response.
        """
        payload = await request_token(
            client,
            self.provider,
            {
                "client_id": config.client_id,
                "client_secret": config.client_secret,
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
            },
        )
        return TokenGrant.from_payload(payload, self.provider)
