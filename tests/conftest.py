"""
Shared fixtures: a throwaway SQLite database, a controllable clock and a
stub provider token endpoint built on ``httpx.MockTransport``.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Callable, Dict, List, Union
from urllib.parse import parse_qs

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.settings import Settings
from connectors.container import Services, build_services
from connectors.encryption import TokenCipher
from connectors.metrics import MetricsLedger
from connectors.token_store import TokenStore
from database.models import IntegrationToken
from database.session import build_engine, build_session_factory, init_models

TEST_KEY = "test-token-encryption-secret"

Responder = Union[dict, httpx.Response, Exception, Callable[[httpx.Request], httpx.Response]]


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class ProviderStub:
    """
    Stands in for every provider token endpoint.

    Queue responses per URL with ``add``; each request pops the next one
    (the last response repeats).  Requests are recorded for assertions.
    """

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self._responses: Dict[str, List[Responder]] = {}

    def add(self, url: str, *responses: Responder) -> None:
        self._responses.setdefault(url, []).extend(responses)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self._responses.get(str(request.url))
        if not queue:
            return httpx.Response(404, json={"error": "not_found"})
        responder = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(responder, Exception):
            raise responder
        if isinstance(responder, httpx.Response):
            return responder
        if callable(responder):
            return responder(request)
        return httpx.Response(200, json=responder)

    def client_factory(self) -> Callable[[], httpx.AsyncClient]:
        return lambda: httpx.AsyncClient(transport=httpx.MockTransport(self.handler), timeout=5)

    def requests_to(self, url: str) -> List[httpx.Request]:
        return [r for r in self.requests if str(r.url) == url]


def form(request: httpx.Request) -> Dict[str, str]:
    """Decode a form-encoded request body into a flat dict."""
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


def body(response: httpx.Response) -> dict:
    return json.loads(response.content)


async def count_tokens(session_factory: async_sessionmaker[AsyncSession], tenant_id: str, provider: str) -> int:
    async with session_factory() as session:
        result = await session.execute(
            select(func.count()).select_from(IntegrationToken).where(
                IntegrationToken.tenant_id == tenant_id,
                IntegrationToken.provider == provider,
            )
        )
        return result.scalar_one()


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'integrations.db'}")
    await init_models(engine)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def cipher() -> TokenCipher:
    return TokenCipher(TEST_KEY)


@pytest.fixture
def token_store(session_factory, cipher, clock) -> TokenStore:
    return TokenStore(session_factory, cipher, clock=clock)


@pytest.fixture
def ledger(clock) -> MetricsLedger:
    return MetricsLedger(clock=clock)


@pytest.fixture
def provider_stub() -> ProviderStub:
    return ProviderStub()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        token_encryption_key=TEST_KEY,
        oauth_redirect_base="https://app.example.com",
        config_cache_ttl_seconds=60,
        token_refresh_interval_seconds=300,
        token_refresh_lookahead_seconds=600,
    )


@pytest.fixture
def services(session_factory, settings, provider_stub, clock) -> Services:
    return build_services(
        session_factory,
        settings,
        http_client_factory=provider_stub.client_factory(),
        clock=clock,
    )
