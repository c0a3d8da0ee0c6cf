"""Periodic health checker.

A single background task that, every ``interval_s`` seconds, asks each
registered backend whether it is currently usable and feeds the answer into
the health tracker.  It runs concurrently with live traffic; the tracker's
lock is only taken for the bookkeeping after each probe returns.

Backends whose initialization has not succeeded yet are re-initialized
instead of probed, so a backend that was down at startup can still join the
rotation later.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from multistore.shared.observability.metrics import HEALTH_CHECK_CYCLES

if TYPE_CHECKING:
    from multistore.shared.providers.registry import ProviderRegistry

logger = structlog.get_logger(__name__)

DEFAULT_INTERVAL_S = 300.0


class PeriodicHealthChecker:
    """Cancellable health-check loop owned by the registry's lifecycle."""

    def __init__(
        self,
        registry: ProviderRegistry,
        *,
        interval_s: float = DEFAULT_INTERVAL_S,
        timeout_s: float = 10.0,
    ) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self._registry = registry
        self._interval = interval_s
        self._timeout = timeout_s
        self._task: asyncio.Task[None] | None = None
        self._stopped = False

    @property
    def interval_s(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the loop.  Only the first call has an effect."""
        if self._task is not None or self._stopped:
            logger.warning("health_checker_already_started", stopped=self._stopped)
            return
        self._task = asyncio.create_task(self._loop(), name="storage-health-checker")
        logger.info("health_checker_started", interval_s=self._interval)

    async def stop(self) -> None:
        """Cancel the loop and wait for it.  Only the first call has an effect."""
        if self._stopped:
            return
        self._stopped = True
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.info("health_checker_stopped")

    async def run_once(self) -> dict[str, bool]:
        """Run one check cycle over every registered backend."""
        keys = self._registry.provider_keys()
        pending = set(self._registry.uninitialized_keys())

        results = await asyncio.gather(
            *(
                self._reinitialize(key) if key in pending else self._probe(key)
                for key in keys
            )
        )
        report = dict(zip(keys, results))

        HEALTH_CHECK_CYCLES.inc()
        logger.info(
            "health_check_completed",
            healthy=sum(1 for ok in report.values() if ok),
            total=len(report),
        )
        return report

    # ── Internals ────────────────────────────────────────────
    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.run_once()
            except Exception as exc:
                logger.exception("health_check_cycle_failed", error=str(exc))

    async def _probe(self, key: str) -> bool:
        backend = self._registry.backend(key)
        error: str | None = None
        try:
            usable = bool(await asyncio.wait_for(backend.is_configured(), timeout=self._timeout))
        except asyncio.TimeoutError:
            usable, error = False, f"Health probe timed out after {self._timeout}s"
        except Exception as exc:
            usable, error = False, f"{type(exc).__name__}: {exc}"

        health = self._registry.health
        if usable:
            health.record_success(key)
            logger.debug("health_check_passed", provider=key)
        else:
            health.record_failure(key, error or "Backend reported not configured")
            logger.warning("health_check_failed", provider=key, error=error)
        return usable

    async def _reinitialize(self, key: str) -> bool:
        return await self._registry.initialize_backend(key)
