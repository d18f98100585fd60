"""
Tests for the metrics ledger.
"""

import threading

from connectors.catalog import Provider
from connectors.metrics import HEALTHY, UNHEALTHY, IntegrationMetrics, MetricsLedger, metrics_key


class TestMetricsLedger:
    def test_unknown_pair_is_all_zero(self, ledger):
        snap = ledger.snapshot("acme", Provider.GITHUB)
        assert snap == IntegrationMetrics()
        assert snap.success_rate == 0.0
        assert not snap.healthy

    def test_counters(self, ledger, clock):
        ledger.record_attempt("acme", Provider.GITHUB)
        ledger.record_attempt("acme", Provider.GITHUB)
        ledger.record_success("acme", Provider.GITHUB)
        ledger.record_failure("acme", Provider.GITHUB, "invalid_state")
        ledger.record_refresh("acme", Provider.GITHUB, True)
        ledger.record_refresh("acme", Provider.GITHUB, False)
        ledger.record_disconnect("acme", Provider.GITHUB)

        snap = ledger.snapshot("acme", Provider.GITHUB)
        assert snap.oauth_attempts == 2
        assert snap.successful_connections == 1
        assert snap.failed_connections == 1
        assert snap.successful_refreshes == 1
        assert snap.failed_refreshes == 1
        assert snap.disconnections == 1
        assert snap.last_successful_connection == clock()
        assert snap.last_successful_refresh == clock()

    def test_pairs_are_isolated(self, ledger):
        ledger.record_success("acme", Provider.GITHUB)
        assert ledger.snapshot("acme", Provider.SLACK).successful_connections == 0
        assert ledger.snapshot("globex", Provider.GITHUB).successful_connections == 0

    def test_snapshot_is_a_copy(self, ledger):
        ledger.record_success("acme", Provider.GITHUB)
        snap = ledger.snapshot("acme", Provider.GITHUB)
        snap.successful_connections = 99
        assert ledger.snapshot("acme", Provider.GITHUB).successful_connections == 1

    def test_failed_refresh_does_not_touch_last_refresh(self, ledger):
        ledger.record_refresh("acme", Provider.JIRA, False)
        assert ledger.snapshot("acme", Provider.JIRA).last_successful_refresh is None

    def test_key_format(self):
        assert metrics_key("acme", Provider.GITHUB) == "acme:GITHUB"

    def test_concurrent_increments(self):
        ledger = MetricsLedger()

        def hammer():
            for _ in range(1000):
                ledger.record_attempt("acme", Provider.SLACK)
                ledger.record_refresh("acme", Provider.SLACK, True)

        threads = [threading.Thread(target=hammer) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        snap = ledger.snapshot("acme", Provider.SLACK)
        assert snap.oauth_attempts == 8000
        assert snap.successful_refreshes == 8000


class TestHealth:
    def test_healthy_when_successes_dominate(self, ledger):
        for _ in range(3):
            ledger.record_success("acme", Provider.GITHUB)
        ledger.record_failure("acme", Provider.GITHUB)

        health = ledger.health("acme", Provider.GITHUB)
        assert health["status"] == HEALTHY
        assert health["success_rate"] == 0.75

    def test_unhealthy_when_failures_equal_successes(self, ledger):
        ledger.record_success("acme", Provider.GITHUB)
        ledger.record_failure("acme", Provider.GITHUB)

        health = ledger.health("acme", Provider.GITHUB)
        assert health["status"] == UNHEALTHY
        assert health["success_rate"] == 0.5

    def test_unhealthy_without_any_connection(self, ledger):
        assert ledger.health("acme", Provider.GITHUB) == {
            "status": UNHEALTHY,
            "success_rate": 0.0,
            "last_successful_connection": None,
            "last_successful_refresh": None,
        }

    def test_to_dict_serialises_timestamps(self, ledger, clock):
        ledger.record_success("acme", Provider.GITHUB)
        data = ledger.snapshot("acme", Provider.GITHUB).to_dict()
        assert data["successful_connections"] == 1
        assert data["last_successful_connection"] == clock().isoformat()
        assert data["last_successful_refresh"] is None
