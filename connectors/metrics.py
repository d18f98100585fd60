"""
Metrics ledger — per (tenant, provider) OAuth and refresh counters.

Counters live in process memory only: they start at zero when the process
starts and are lost on restart.  Every record_* call also writes the
matching log line, so the ledger doubles as the integration audit log.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from connectors.catalog import Provider

logger = logging.getLogger(__name__)

HEALTHY = "HEALTHY"
UNHEALTHY = "UNHEALTHY"


@dataclass
class IntegrationMetrics:
    oauth_attempts: int = 0
    successful_connections: int = 0
    failed_connections: int = 0
    successful_refreshes: int = 0
    failed_refreshes: int = 0
    disconnections: int = 0
    last_successful_connection: Optional[datetime] = None
    last_successful_refresh: Optional[datetime] = None

    @property
    def healthy(self) -> bool:
        return (
            self.successful_connections > 0
            and self.failed_connections < self.successful_connections
        )

    @property
    def success_rate(self) -> float:
        total = self.successful_connections + self.failed_connections
        return self.successful_connections / total if total else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "oauth_attempts": self.oauth_attempts,
            "successful_connections": self.successful_connections,
            "failed_connections": self.failed_connections,
            "successful_refreshes": self.successful_refreshes,
            "failed_refreshes": self.failed_refreshes,
            "disconnections": self.disconnections,
            "last_successful_connection": _iso(self.last_successful_connection),
            "last_successful_refresh": _iso(self.last_successful_refresh),
        }

    def health(self) -> Dict[str, Any]:
        return {
            "status": HEALTHY if self.healthy else UNHEALTHY,
            "success_rate": self.success_rate,
            "last_successful_connection": _iso(self.last_successful_connection),
            "last_successful_refresh": _iso(self.last_successful_refresh),
        }


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def metrics_key(tenant_id: str, provider: Provider) -> str:
    return f"{tenant_id}:{provider.name}"


class MetricsLedger:
    """Thread-safe, monotonic counters keyed by ``tenant:PROVIDER``."""

    def __init__(self, clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)) -> None:
        self._metrics: Dict[str, IntegrationMetrics] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def _entry(self, tenant_id: str, provider: Provider) -> IntegrationMetrics:
        # caller holds self._lock
        key = metrics_key(tenant_id, provider)
        entry = self._metrics.get(key)
        if entry is None:
            entry = self._metrics[key] = IntegrationMetrics()
        return entry

    def record_attempt(self, tenant_id: str, provider: Provider) -> None:
        with self._lock:
            self._entry(tenant_id, provider).oauth_attempts += 1
        logger.info("OAuth flow initiated — tenant=%s provider=%s", tenant_id, provider.name)

    def record_success(self, tenant_id: str, provider: Provider) -> None:
        with self._lock:
            entry = self._entry(tenant_id, provider)
            entry.successful_connections += 1
            entry.last_successful_connection = self._clock()
        logger.info("OAuth flow completed — tenant=%s provider=%s", tenant_id, provider.name)

    def record_failure(self, tenant_id: str, provider: Provider, error: str = "") -> None:
        with self._lock:
            self._entry(tenant_id, provider).failed_connections += 1
        logger.error(
            "OAuth flow failed — tenant=%s provider=%s error=%s", tenant_id, provider.name, error
        )

    def record_refresh(self, tenant_id: str, provider: Provider, success: bool) -> None:
        with self._lock:
            entry = self._entry(tenant_id, provider)
            if success:
                entry.successful_refreshes += 1
                entry.last_successful_refresh = self._clock()
            else:
                entry.failed_refreshes += 1
        if success:
            logger.info("Token refresh succeeded — tenant=%s provider=%s", tenant_id, provider.name)
        else:
            logger.error("Token refresh failed — tenant=%s provider=%s", tenant_id, provider.name)

    def record_disconnect(self, tenant_id: str, provider: Provider) -> None:
        with self._lock:
            self._entry(tenant_id, provider).disconnections += 1
        logger.info("Integration disconnected — tenant=%s provider=%s", tenant_id, provider.name)

    def snapshot(self, tenant_id: str, provider: Provider) -> IntegrationMetrics:
        """Copy of the pair's counters (all zero if nothing was recorded)."""
        with self._lock:
            entry = self._metrics.get(metrics_key(tenant_id, provider))
            return replace(entry) if entry is not None else IntegrationMetrics()

    def health(self, tenant_id: str, provider: Provider) -> Dict[str, Any]:
        return self.snapshot(tenant_id, provider).health()
