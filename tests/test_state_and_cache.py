"""
Tests for OAuth state issuing and the TTL cache.
"""

from connectors.cache import TTLCache
from connectors.catalog import Provider
from connectors.state import OAuthStateStore


class Ticker:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestOAuthStateStore:
    def test_issued_state_is_accepted_once(self):
        states = OAuthStateStore()
        state = states.issue("acme", Provider.GITHUB, "user-1")
        assert states.consume(state, "acme", Provider.GITHUB, "user-1")
        assert not states.consume(state, "acme", Provider.GITHUB, "user-1")

    def test_states_are_unique(self):
        states = OAuthStateStore()
        issued = {states.issue("acme", Provider.GITHUB) for _ in range(50)}
        assert len(issued) == 50

    def test_unknown_state_rejected(self):
        states = OAuthStateStore()
        states.issue("acme", Provider.GITHUB)
        assert not states.consume("forged", "acme", Provider.GITHUB)
        assert not states.consume("", "acme", Provider.GITHUB)

    def test_state_bound_to_tenant_provider_and_subject(self):
        states = OAuthStateStore()
        s1 = states.issue("acme", Provider.GITHUB, "user-1")
        s2 = states.issue("acme", Provider.GITHUB, "user-1")
        s3 = states.issue("acme", Provider.GITHUB, "user-1")
        assert not states.consume(s1, "globex", Provider.GITHUB, "user-1")
        assert not states.consume(s2, "acme", Provider.SLACK, "user-1")
        assert not states.consume(s3, "acme", Provider.GITHUB, "user-2")

    def test_expired_state_rejected(self):
        ticker = Ticker()
        states = OAuthStateStore(ttl_seconds=600, clock=ticker)
        state = states.issue("acme", Provider.GITHUB)
        ticker.now = 601
        assert not states.consume(state, "acme", Provider.GITHUB)

    def test_expired_states_purged_on_issue(self):
        ticker = Ticker()
        states = OAuthStateStore(ttl_seconds=10, clock=ticker)
        states.issue("acme", Provider.GITHUB)
        ticker.now = 11
        states.issue("acme", Provider.GITHUB)
        assert len(states) == 1


class TestTTLCache:
    def test_get_set_and_expiry(self):
        ticker = Ticker()
        cache = TTLCache(ttl_seconds=60, clock=ticker)
        cache.set("k", "v")
        assert cache.get("k") == "v"
        ticker.now = 60
        assert cache.get("k") is None
        assert "k" not in cache

    def test_evict(self):
        cache = TTLCache(ttl_seconds=60)
        cache.set("k", "v")
        cache.evict("k")
        assert cache.get("k", "default") == "default"

    def test_size_bound_evicts_oldest(self):
        cache = TTLCache(ttl_seconds=60, max_entries=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)
        assert "a" not in cache
        assert cache.get("b") == 2
        assert cache.get("c") == 3
        assert len(cache) == 2

    def test_zero_ttl_disables_caching(self):
        cache = TTLCache(ttl_seconds=0)
        cache.set("k", "v")
        assert cache.get("k") is None
