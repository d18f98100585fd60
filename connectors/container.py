"""
Process-wide wiring of the integration core.

``get_services()`` builds everything once from ``config`` and the default
database engine; the metrics ledger therefore lives exactly as long as
the process.  Tests build their own ``Services`` with ``build_services``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.settings import Settings, config as default_settings
from connectors.cache import TTLCache
from connectors.configurations import IntegrationConfigStore
from connectors.encryption import TokenCipher
from connectors.metrics import MetricsLedger
from connectors.registry import ConnectorRegistry
from connectors.scheduler import RefreshScheduler
from connectors.service import HttpClientFactory, OAuthService
from connectors.state import OAuthStateStore
from connectors.token_store import Clock, TokenStore, utcnow

logger = logging.getLogger(__name__)


@dataclass
class Services:
    cipher: TokenCipher
    configs: IntegrationConfigStore
    tokens: TokenStore
    ledger: MetricsLedger
    registry: ConnectorRegistry
    states: OAuthStateStore
    oauth: OAuthService
    scheduler: RefreshScheduler


def build_services(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings = default_settings,
    *,
    registry: Optional[ConnectorRegistry] = None,
    http_client_factory: Optional[HttpClientFactory] = None,
    clock: Clock = utcnow,
) -> Services:
    cipher = TokenCipher(settings.token_encryption_key)
    configs = IntegrationConfigStore(
        session_factory, TTLCache(ttl_seconds=settings.config_cache_ttl_seconds)
    )
    tokens = TokenStore(session_factory, cipher, clock=clock)
    ledger = MetricsLedger(clock=clock)
    registry = registry or ConnectorRegistry()
    states = OAuthStateStore(ttl_seconds=settings.oauth_state_ttl_seconds)
    oauth = OAuthService(
        configs=configs,
        tokens=tokens,
        ledger=ledger,
        registry=registry,
        states=states,
        redirect_base=settings.oauth_redirect_base,
        http_timeout=settings.http_timeout_seconds,
        http_client_factory=http_client_factory,
        clock=clock,
    )
    scheduler = RefreshScheduler(
        oauth,
        configs,
        tokens,
        ledger,
        interval_seconds=settings.token_refresh_interval_seconds,
        lookahead_seconds=settings.token_refresh_lookahead_seconds,
        clock=clock,
    )
    return Services(
        cipher=cipher,
        configs=configs,
        tokens=tokens,
        ledger=ledger,
        registry=registry,
        states=states,
        oauth=oauth,
        scheduler=scheduler,
    )


_services: Optional[Services] = None


def get_services() -> Services:
    """Lazily build the process-wide services (FastAPI dependency)."""
    global _services
    if _services is None:
        from database.session import async_session_factory

        _services = build_services(async_session_factory)
        logger.info("Integration services initialised (%d providers)", len(_services.registry.providers()))
    return _services
