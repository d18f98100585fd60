"""
Tests for the token store — single-token invariant, expiry and encryption.
"""

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import update

from conftest import count_tokens
from connectors.catalog import Provider
from connectors.exceptions import CryptoError
from database.models import IntegrationToken


class TestStoreToken:
    @pytest.mark.asyncio
    async def test_single_row_after_repeated_stores(self, token_store, session_factory):
        for i in range(3):
            await token_store.store_token("acme", Provider.GITHUB, f"access-{i}", f"refresh-{i}")

        assert await count_tokens(session_factory, "acme", "github") == 1
        assert await token_store.valid_access_token("acme", Provider.GITHUB) == "access-2"
        assert await token_store.refresh_token("acme", Provider.GITHUB) == "refresh-2"

    @pytest.mark.asyncio
    async def test_concurrent_stores_leave_one_row(self, token_store, session_factory):
        await asyncio.gather(
            *(token_store.store_token("acme", Provider.SLACK, f"access-{i}") for i in range(10))
        )
        assert await count_tokens(session_factory, "acme", "slack") == 1

    @pytest.mark.asyncio
    async def test_keys_are_independent(self, token_store, session_factory):
        await token_store.store_token("acme", Provider.GITHUB, "a1")
        await token_store.store_token("acme", Provider.SLACK, "a2")
        await token_store.store_token("globex", Provider.GITHUB, "a3")

        assert await token_store.valid_access_token("acme", Provider.GITHUB) == "a1"
        assert await token_store.valid_access_token("acme", Provider.SLACK) == "a2"
        assert await token_store.valid_access_token("globex", Provider.GITHUB) == "a3"

    @pytest.mark.asyncio
    async def test_secrets_are_encrypted_at_rest(self, token_store, cipher):
        await token_store.store_token("acme", Provider.GITHUB, "plain-access", "plain-refresh")
        row = await token_store.get_record("acme", Provider.GITHUB)
        assert row.access_token != "plain-access"
        assert row.refresh_token != "plain-refresh"
        assert cipher.decrypt(row.access_token) == "plain-access"

    @pytest.mark.asyncio
    async def test_refresh_token_optional(self, token_store):
        await token_store.store_token("acme", Provider.GITHUB, "access")
        row = await token_store.get_record("acme", Provider.GITHUB)
        assert row.refresh_token is None
        assert await token_store.refresh_token("acme", Provider.GITHUB) is None

    @pytest.mark.asyncio
    async def test_returns_stored_record(self, token_store, clock):
        expires = clock() + timedelta(hours=1)
        token = await token_store.store_token(
            "acme", Provider.JIRA, "access", "refresh", "Bearer", expires, "read:jira-work"
        )
        assert token.tenant_id == "acme"
        assert token.provider == "jira"
        assert token.token_type == "Bearer"
        assert token.scopes == "read:jira-work"


class TestExpiry:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "offset, valid",
        [
            (timedelta(hours=1), True),
            (timedelta(seconds=1), True),
            (timedelta(0), False),
            (timedelta(seconds=-1), False),
            (timedelta(days=-30), False),
        ],
    )
    async def test_has_valid_token_follows_clock(self, token_store, clock, offset, valid):
        await token_store.store_token("acme", Provider.GOOGLE, "access", expires_at=clock() + offset)
        assert await token_store.has_valid_token("acme", Provider.GOOGLE) is valid
        assert (await token_store.valid_access_token("acme", Provider.GOOGLE) is not None) is valid

    @pytest.mark.asyncio
    async def test_token_expires_as_clock_advances(self, token_store, clock):
        await token_store.store_token("acme", Provider.GOOGLE, "access", expires_at=clock() + timedelta(minutes=5))
        assert await token_store.has_valid_token("acme", Provider.GOOGLE)
        clock.advance(minutes=6)
        assert not await token_store.has_valid_token("acme", Provider.GOOGLE)

    @pytest.mark.asyncio
    async def test_non_expiring_token_is_always_valid(self, token_store, clock):
        await token_store.store_token("acme", Provider.GITHUB, "access", expires_at=None)
        clock.advance(days=3650)
        assert await token_store.has_valid_token("acme", Provider.GITHUB)
        assert await token_store.expires_at("acme", Provider.GITHUB) is None

    @pytest.mark.asyncio
    async def test_missing_token(self, token_store):
        assert not await token_store.has_valid_token("acme", Provider.GITHUB)
        assert await token_store.valid_access_token("acme", Provider.GITHUB) is None
        assert await token_store.expires_at("acme", Provider.GITHUB) is None

    @pytest.mark.asyncio
    async def test_refresh_token_available_after_expiry(self, token_store, clock):
        await token_store.store_token(
            "acme", Provider.SLACK, "access", "refresh", expires_at=clock() - timedelta(seconds=1)
        )
        assert await token_store.valid_access_token("acme", Provider.SLACK) is None
        assert await token_store.refresh_token("acme", Provider.SLACK) == "refresh"

    @pytest.mark.asyncio
    async def test_expires_at_is_timezone_aware(self, token_store, clock):
        expires = clock() + timedelta(minutes=30)
        await token_store.store_token("acme", Provider.SLACK, "access", expires_at=expires)
        assert await token_store.expires_at("acme", Provider.SLACK) == expires


class TestDeleteAndCorruption:
    @pytest.mark.asyncio
    async def test_delete_token(self, token_store, session_factory):
        await token_store.store_token("acme", Provider.GITHUB, "access")
        assert await token_store.delete_token("acme", Provider.GITHUB) is True
        assert await token_store.delete_token("acme", Provider.GITHUB) is False
        assert await count_tokens(session_factory, "acme", "github") == 0

    @pytest.mark.asyncio
    async def test_corrupt_ciphertext_raises(self, token_store, session_factory):
        await token_store.store_token("acme", Provider.GITHUB, "access", "refresh")
        async with session_factory() as session:
            async with session.begin():
                await session.execute(
                    update(IntegrationToken)
                    .where(IntegrationToken.tenant_id == "acme")
                    .values(access_token="garbage", refresh_token="garbage")
                )

        with pytest.raises(CryptoError):
            await token_store.valid_access_token("acme", Provider.GITHUB)
        with pytest.raises(CryptoError):
            await token_store.refresh_token("acme", Provider.GITHUB)


class TestConditionalStore:
    @pytest.mark.asyncio
    async def test_writes_when_row_unchanged(self, token_store):
        current = await token_store.store_token("acme", Provider.GOOGLE, "old", "r-old")

        stored = await token_store.store_token(
            "acme", Provider.GOOGLE, "new", "r-old", if_match=current.access_token
        )

        assert stored is not None
        assert await token_store.valid_access_token("acme", Provider.GOOGLE) == "new"

    @pytest.mark.asyncio
    async def test_skips_when_row_replaced(self, token_store, session_factory):
        stale = await token_store.store_token("acme", Provider.GOOGLE, "old", "r-old")
        await token_store.store_token("acme", Provider.GOOGLE, "reconnected", "r-user")

        stored = await token_store.store_token(
            "acme", Provider.GOOGLE, "refreshed", "r-old", if_match=stale.access_token
        )

        assert stored is None
        assert await token_store.valid_access_token("acme", Provider.GOOGLE) == "reconnected"
        assert await count_tokens(session_factory, "acme", "google") == 1

    @pytest.mark.asyncio
    async def test_skips_when_row_deleted(self, token_store, session_factory):
        stale = await token_store.store_token("acme", Provider.GOOGLE, "old", "r-old")
        await token_store.delete_token("acme", Provider.GOOGLE)

        stored = await token_store.store_token(
            "acme", Provider.GOOGLE, "refreshed", "r-old", if_match=stale.access_token
        )

        assert stored is None
        assert await count_tokens(session_factory, "acme", "google") == 0
