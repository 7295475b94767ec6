"""
Periodic removal of credential files for past dates
"""

import asyncio
from typing import Optional

from core.logging import get_audit_logger_safe, get_error_logger_safe
from core.monitoring.prometheus_metrics import PrometheusMetricsCollector
from .credential_cache import CredentialCache


class CredentialSweeper:
    """Background task calling ``CredentialCache.sweep_expired`` on an interval.

    An interval of zero or less leaves the sweeper disabled; ``start`` is then
    a no-op.
    """

    def __init__(
        self,
        credential_cache: CredentialCache,
        interval_seconds: float = 0,
        prometheus_metrics: Optional[PrometheusMetricsCollector] = None,
    ):
        self.credential_cache = credential_cache
        self.interval_seconds = interval_seconds
        self.prom_metrics = prometheus_metrics
        self.logger = get_audit_logger_safe("credential_sweeper")
        self.error_logger = get_error_logger_safe("credential_sweeper_errors")

        self._running = False
        self._sweep_task: Optional[asyncio.Task] = None

    @property
    def enabled(self) -> bool:
        return self.interval_seconds > 0

    def sweep_once(self) -> int:
        """Run one sweep and return the number of deleted files."""
        deleted = self.credential_cache.sweep_expired()
        if self.prom_metrics:
            self.prom_metrics.record_swept(len(deleted))
        self.logger.info("Credential sweep finished", deleted=len(deleted))
        return len(deleted)

    async def start(self):
        if not self.enabled:
            self.logger.info("Credential sweeper disabled")
            return
        if self._running:
            self.logger.warning("Credential sweeper already running")
            return

        self._running = True
        self._sweep_task = asyncio.create_task(self._sweep_loop())
        self.logger.info("Credential sweeper started", interval_seconds=self.interval_seconds)

    async def stop(self):
        if not self._running:
            return
        self._running = False

        if self._sweep_task:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None

        self.logger.info("Credential sweeper stopped")

    async def _sweep_loop(self):
        while self._running:
            try:
                await asyncio.to_thread(self.sweep_once)
                await asyncio.sleep(self.interval_seconds)
            except asyncio.CancelledError:
                break
            except Exception as e:
                # The sweep is housekeeping; keep the loop alive
                self.error_logger.error("Credential sweep failed", error=str(e), exc_info=True)
                await asyncio.sleep(self.interval_seconds)
