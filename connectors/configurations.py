"""
Integration configuration store — one row per (tenant, provider).

Reads go through an explicit TTL cache; every write evicts the key.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from connectors.cache import TTLCache
from connectors.catalog import Provider
from connectors.exceptions import NotConfigured
from connectors.locks import KeyedLocks
from database.models import IntegrationConfiguration

logger = logging.getLogger(__name__)


class IntegrationConfigStore:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cache: Optional[TTLCache[IntegrationConfiguration]] = None,
    ) -> None:
        self._session_factory = session_factory
        self._cache = cache if cache is not None else TTLCache(ttl_seconds=60)
        self._locks = KeyedLocks()

    async def get(self, tenant_id: str, provider: Provider) -> Optional[IntegrationConfiguration]:
        key = (tenant_id, provider.value)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        async with self._session_factory() as session:
            result = await session.execute(
                select(IntegrationConfiguration).where(
                    IntegrationConfiguration.tenant_id == tenant_id,
                    IntegrationConfiguration.provider == provider.value,
                )
            )
            row = result.scalar_one_or_none()

        if row is not None:
            self._cache.set(key, row)
        return row

    async def require(self, tenant_id: str, provider: Provider) -> IntegrationConfiguration:
        """Like ``get`` but raises ``NotConfigured`` when the row is missing."""
        row = await self.get(tenant_id, provider)
        if row is None:
            raise NotConfigured(f"{provider.display_name} is not configured for tenant {tenant_id}")
        return row

    async def upsert(
        self,
        tenant_id: str,
        provider: Provider,
        *,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        scopes: str,
    ) -> IntegrationConfiguration:
        key = (tenant_id, provider.value)
        async with self._locks.hold(key):
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(
                        select(IntegrationConfiguration).where(
                            IntegrationConfiguration.tenant_id == tenant_id,
                            IntegrationConfiguration.provider == provider.value,
                        )
                    )
                    row = result.scalar_one_or_none()
                    if row is None:
                        row = IntegrationConfiguration(tenant_id=tenant_id, provider=provider.value)
                        session.add(row)
                        logger.info("Created %s configuration for tenant %s", provider.value, tenant_id)
                    else:
                        logger.info("Updated %s configuration for tenant %s", provider.value, tenant_id)
                    row.client_id = client_id
                    row.client_secret = client_secret
                    row.redirect_uri = redirect_uri
                    row.scopes = scopes
            self._cache.evict(key)
        return row

    async def delete(self, tenant_id: str, provider: Provider) -> bool:
        """Delete the configuration; returns False when there was none."""
        key = (tenant_id, provider.value)
        async with self._locks.hold(key):
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(
                        delete(IntegrationConfiguration).where(
                            IntegrationConfiguration.tenant_id == tenant_id,
                            IntegrationConfiguration.provider == provider.value,
                        )
                    )
            self._cache.evict(key)
        return bool(result.rowcount)

    async def list_all(self) -> List[IntegrationConfiguration]:
        """Every configuration across all tenants and providers."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(IntegrationConfiguration).order_by(
                    IntegrationConfiguration.tenant_id, IntegrationConfiguration.provider
                )
            )
            return list(result.scalars().all())
