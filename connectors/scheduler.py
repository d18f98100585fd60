"""
RefreshScheduler — periodic sweep that renews tokens nearing expiry.

One sweep walks every configured (tenant, provider) pair.  A failure for
one pair is logged and counted as a failed refresh; it never stops the
sweep for the others.  Sweeps are single-flight: a sweep requested while
another is running is skipped.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from connectors.catalog import Provider
from connectors.configurations import IntegrationConfigStore
from connectors.exceptions import Unsupported
from connectors.metrics import MetricsLedger
from connectors.service import OAuthService
from connectors.token_store import Clock, TokenStore, utcnow
from database.models import IntegrationConfiguration

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    generation: int
    checked: int = 0
    refreshed: int = 0
    skipped: int = 0
    failed: int = 0
    skipped_overlap: bool = False


class RefreshScheduler:
    """Service that refreshes expiring tokens for all tenants on a fixed interval."""

    def __init__(
        self,
        service: OAuthService,
        configs: IntegrationConfigStore,
        tokens: TokenStore,
        ledger: MetricsLedger,
        *,
        interval_seconds: float = 300,
        lookahead_seconds: float = 600,
        clock: Clock = utcnow,
    ) -> None:
        self._service = service
        self._configs = configs
        self._tokens = tokens
        self._ledger = ledger
        self.interval_seconds = interval_seconds
        self.lookahead = timedelta(seconds=lookahead_seconds)
        self._clock = clock
        self._sweep_lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        self.generation = 0
        self.last_report: Optional[SweepReport] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background sweep loop."""
        if self.running:
            return
        logger.info(
            "Starting token refresh scheduler (interval=%ss, lookahead=%ss)",
            self.interval_seconds,
            int(self.lookahead.total_seconds()),
        )
        self._task = asyncio.create_task(self._run(), name="token-refresh-scheduler")

    async def stop(self) -> None:
        """Cancel the loop; a sweep in progress is abandoned."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Stopped token refresh scheduler")

    async def _run(self) -> None:
        """Main scheduler loop."""
        while True:
            try:
                await self.sweep()
            except Exception:
                logger.exception("Token refresh sweep aborted")
            await asyncio.sleep(self.interval_seconds)

    async def sweep(self) -> SweepReport:
        """Run one sweep now, or skip if another is still in progress."""
        if self._sweep_lock.locked():
            logger.warning("Token refresh sweep %d still running; skipping tick", self.generation)
            return SweepReport(generation=self.generation, skipped_overlap=True)

        async with self._sweep_lock:
            self.generation += 1
            report = SweepReport(generation=self.generation)
            logger.debug("Token refresh sweep %d started", report.generation)

            for config in await self._configs.list_all():
                report.checked += 1
                outcome = await self._sweep_one(config)
                if outcome == "refreshed":
                    report.refreshed += 1
                elif outcome == "failed":
                    report.failed += 1
                else:
                    report.skipped += 1

            logger.info(
                "Token refresh sweep %d finished — checked=%d refreshed=%d skipped=%d failed=%d",
                report.generation,
                report.checked,
                report.refreshed,
                report.skipped,
                report.failed,
            )
            self.last_report = report
            return report

    def needs_refresh(self, expires_at: Optional[datetime]) -> bool:
        """Expiring within the lookahead window, or already expired."""
        return expires_at is not None and expires_at <= self._clock() + self.lookahead

    async def _sweep_one(self, config: IntegrationConfiguration) -> str:
        tenant_id = config.tenant_id
        try:
            provider = Provider.parse(config.provider)
        except ValueError:
            logger.error("Skipping configuration with unknown provider %r", config.provider)
            return "skipped"

        try:
            expires_at = await self._tokens.expires_at(tenant_id, provider)
            if not self.needs_refresh(expires_at):
                return "skipped"

            token = await self._service.refresh(config)
            if token is None:
                logger.debug(
                    "%s token for tenant %s (expires at %s) not refreshed",
                    provider.name,
                    tenant_id,
                    expires_at.isoformat(),
                )
                return "skipped"
        except Unsupported as exc:
            logger.warning("Refresh unsupported for %s/%s: %s", tenant_id, provider.name, exc)
            self._ledger.record_refresh(tenant_id, provider, False)
            return "failed"
        except Exception:
            logger.exception("Refreshing %s token for tenant %s failed", provider.name, tenant_id)
            self._ledger.record_refresh(tenant_id, provider, False)
            return "failed"

        self._ledger.record_refresh(tenant_id, provider, True)
        return "refreshed"
