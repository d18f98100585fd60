"""
Token store — get / store / delete per-tenant OAuth tokens.

This is the single interface the rest of the core uses to read a token
for a tenant + provider combination.  Secrets are encrypted on write and
decrypted on read; at most one row exists per (tenant, provider).
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from connectors.catalog import Provider
from connectors.encryption import TokenCipher
from connectors.locks import KeyedLocks
from database.models import IntegrationToken

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat those as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class TokenStore:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cipher: TokenCipher,
        *,
        clock: Clock = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._cipher = cipher
        self._clock = clock
        self._locks = KeyedLocks()

    # ── Writes ───────────────────────────────────────────────────────────

    async def store_token(
        self,
        tenant_id: str,
        provider: Provider,
        access_token: str,
        refresh_token: Optional[str] = None,
        token_type: str = "bearer",
        expires_at: Optional[datetime] = None,
        scopes: str = "",
        *,
        if_match: Optional[str] = None,
    ) -> Optional[IntegrationToken]:
        """
        Replace whatever token the pair holds with a new one.

        The delete and insert share one transaction, and writers for the
        same pair are serialised, so readers see either the old row or the
        new row and never zero or two.

        With ``if_match`` (the access-token ciphertext of the row the caller
        started from) the write only happens if that row is still the
        current one.  Returns None, writing nothing, when it was deleted or
        replaced in the meantime.
        """
        encrypted_access = self._cipher.encrypt(access_token)
        encrypted_refresh = self._cipher.encrypt(refresh_token) if refresh_token else None

        async with self._locks.hold((tenant_id, provider.value)):
            async with self._session_factory() as session:
                async with session.begin():
                    if if_match is not None:
                        current = await session.execute(
                            select(IntegrationToken.access_token).where(
                                IntegrationToken.tenant_id == tenant_id,
                                IntegrationToken.provider == provider.value,
                            )
                        )
                        if current.scalar_one_or_none() != if_match:
                            logger.info(
                                "%s token for tenant %s changed since it was read; not overwriting",
                                provider.value,
                                tenant_id,
                            )
                            return None
                    await session.execute(
                        delete(IntegrationToken).where(
                            IntegrationToken.tenant_id == tenant_id,
                            IntegrationToken.provider == provider.value,
                        )
                    )
                    token = IntegrationToken(
                        tenant_id=tenant_id,
                        provider=provider.value,
                        access_token=encrypted_access,
                        refresh_token=encrypted_refresh,
                        token_type=token_type or "bearer",
                        expires_at=as_utc(expires_at),
                        scopes=scopes or "",
                    )
                    session.add(token)

        logger.debug(
            "Stored %s token for tenant %s (expires_at=%s)",
            provider.value,
            tenant_id,
            expires_at.isoformat() if expires_at else "never",
        )
        return token

    async def delete_token(self, tenant_id: str, provider: Provider) -> bool:
        """Delete the pair's token; returns False when there was none."""
        async with self._locks.hold((tenant_id, provider.value)):
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(
                        delete(IntegrationToken).where(
                            IntegrationToken.tenant_id == tenant_id,
                            IntegrationToken.provider == provider.value,
                        )
                    )
        return bool(result.rowcount)

    # ── Reads ────────────────────────────────────────────────────────────

    async def get_record(self, tenant_id: str, provider: Provider) -> Optional[IntegrationToken]:
        """Raw row (ciphertext columns), or None."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(IntegrationToken).where(
                    IntegrationToken.tenant_id == tenant_id,
                    IntegrationToken.provider == provider.value,
                )
            )
            return result.scalar_one_or_none()

    def is_expired(self, token: IntegrationToken) -> bool:
        expires_at = as_utc(token.expires_at)
        return expires_at is not None and expires_at <= self._clock()

    async def valid_access_token(self, tenant_id: str, provider: Provider) -> Optional[str]:
        """
        Decrypted access token, or None when there is no row or it has
        expired.  Raises ``CryptoError`` if the stored value is unreadable.
        """
        token = await self.get_record(tenant_id, provider)
        if token is None or self.is_expired(token):
            return None
        return self._cipher.decrypt(token.access_token)

    async def refresh_token(self, tenant_id: str, provider: Provider) -> Optional[str]:
        """Decrypted refresh token regardless of access-token expiry."""
        return self.decrypt_refresh_token(await self.get_record(tenant_id, provider))

    def decrypt_refresh_token(self, token: Optional[IntegrationToken]) -> Optional[str]:
        if token is None or not token.refresh_token:
            return None
        return self._cipher.decrypt(token.refresh_token)

    async def expires_at(self, tenant_id: str, provider: Provider) -> Optional[datetime]:
        token = await self.get_record(tenant_id, provider)
        return as_utc(token.expires_at) if token is not None else None

    async def has_valid_token(self, tenant_id: str, provider: Provider) -> bool:
        token = await self.get_record(tenant_id, provider)
        return token is not None and not self.is_expired(token)
