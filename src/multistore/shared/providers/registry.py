"""Provider registry — the single entry point for redundant storage.

Composes HealthTracker, RedundancyPolicy, WriteCoordinator, ReadCoordinator
and PeriodicHealthChecker around one set of backend adapters.  Callers hand
in bytes and a filename; the registry decides which backends to use, keeps
their health signal fresh, and only surfaces an error when the policy as a
whole cannot be satisfied.

Construct one registry at application start and pass it explicitly to every
consumer.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from types import TracebackType

import structlog

from multistore.domain.enums import RedundancyLevel, StorageOperation
from multistore.domain.exceptions import AllProvidersFailedError, NotInitializedError
from multistore.domain.value_objects import DeleteReceipt, WriteReceipt, validate_filename
from multistore.ports.outbound import StorageBackendPort
from multistore.shared.observability.metrics import STORAGE_OPERATIONS
from multistore.shared.providers.checker import DEFAULT_INTERVAL_S, PeriodicHealthChecker
from multistore.shared.providers.dispatch import call_backend
from multistore.shared.providers.health import HealthTracker
from multistore.shared.providers.policy import RedundancyPolicy
from multistore.shared.providers.reader import ReadCoordinator
from multistore.shared.providers.types import ProviderStatus, StorageStatistics, WritePlan
from multistore.shared.providers.writer import WriteCoordinator

logger = structlog.get_logger(__name__)


class ProviderRegistry:
    """Owns the backends, their lifecycle, and the active redundancy level.

    Usage::

        registry = ProviderRegistry(redundancy_level=RedundancyLevel.TRIPLE)
        registry.register("local", LocalDirectoryBackend("/var/lib/store", encryptor))
        registry.register("redis", RedisStorageBackend(url, encryptor))
        await registry.initialize_all()

        receipt = await registry.store(b"...", "notes.json", key)
        data = await registry.retrieve("notes.json", key)

        await registry.shutdown()
    """

    def __init__(
        self,
        backends: Mapping[str, StorageBackendPort] | None = None,
        *,
        policy: RedundancyPolicy | None = None,
        redundancy_level: RedundancyLevel = RedundancyLevel.DUAL,
        preferred_backend: str | None = None,
        timeout_s: float = 30.0,
        health_check_interval_s: float = DEFAULT_INTERVAL_S,
    ) -> None:
        # One lock for every piece of mutable state; the tracker shares it.
        self._lock = threading.RLock()
        self._health = HealthTracker(lock=self._lock)
        self._policy = policy or RedundancyPolicy()
        self._level = RedundancyLevel.parse(redundancy_level)
        self._preferred: str | None = None
        self._timeout = timeout_s

        self._backends: dict[str, StorageBackendPort] = {}
        self._uninitialized: set[str] = set()

        self._initialized = False
        self._closing = False
        self._in_flight = 0
        self._idle = asyncio.Event()
        self._idle.set()

        self._writer = WriteCoordinator(self, timeout_s=timeout_s)
        self._reader = ReadCoordinator(self, timeout_s=timeout_s)
        self._checker = PeriodicHealthChecker(
            self,
            interval_s=health_check_interval_s,
            timeout_s=timeout_s,
        )

        for key, backend in (backends or {}).items():
            self.register(key, backend)
        if preferred_backend:
            self.set_preferred_backend(preferred_backend)

    # ── Registration & lifecycle ─────────────────────────────
    def register(self, key: str, backend: StorageBackendPort) -> None:
        """Add a backend.

        Backends registered after ``initialize_all`` stay out of every
        candidate set until ``initialize_backend(key)`` succeeds for them.
        """
        if not key:
            raise ValueError("Backend key must not be empty")
        with self._lock:
            if key in self._backends:
                raise ValueError(f"Backend {key!r} is already registered")
            self._backends[key] = backend
            self._uninitialized.add(key)
            self._health.register(key)
        logger.info("storage_provider_registered", provider=key, initialized=self._initialized)

    async def initialize_all(self) -> dict[str, bool]:
        """Initialize every registered backend concurrently.

        Individual failures are recorded, not fatal.  If every backend fails
        the registry stays uninitialized and ``AllProvidersFailedError`` is
        raised.  On the first success the periodic health checker starts.
        """
        if self._closing:
            raise RuntimeError("Registry has been shut down")

        keys = self.provider_keys()
        if not keys:
            raise AllProvidersFailedError()

        results = await asyncio.gather(*(self.initialize_backend(key) for key in keys))
        report = dict(zip(keys, results))

        if not any(results):
            errors = {key: self._health.status(key).last_error or "initialization failed" for key in keys}
            logger.error("storage_initialization_failed", errors=errors)
            raise AllProvidersFailedError(errors)

        with self._lock:
            first_activation = not self._initialized
            self._initialized = True
        if first_activation:
            self._checker.start()

        logger.info(
            "storage_initialized",
            healthy=sum(1 for ok in results if ok),
            total=len(keys),
            level=self._level.value,
        )
        return report

    async def initialize_backend(self, key: str) -> bool:
        """(Re-)initialize a single backend and record the outcome."""
        backend = self.backend(key)
        outcome = await call_backend(
            key,
            StorageOperation.INITIALIZE,
            backend.initialize,
            timeout_s=self._timeout,
        )
        with self._lock:
            if outcome.ok:
                self._uninitialized.discard(key)
            else:
                self._uninitialized.add(key)

        if outcome.ok:
            self._health.record_success(key)
            logger.info("storage_provider_initialized", provider=key)
        else:
            self._health.record_failure(key, outcome.error_message)
            logger.warning("storage_provider_initialization_failed", provider=key, error=outcome.error_message)
        return outcome.ok

    async def shutdown(self) -> None:
        """Stop the checker, drain in-flight operations, close every backend.

        New operations are refused as soon as shutdown begins.  Calling this
        more than once is harmless.
        """
        with self._lock:
            if self._closing:
                return
            self._closing = True
            self._initialized = False

        await self._checker.stop()
        if self._in_flight:
            logger.info("storage_shutdown_draining", in_flight=self._in_flight)
            await self._idle.wait()

        results = await asyncio.gather(
            *(backend.close() for backend in self._backends.values()),
            return_exceptions=True,
        )
        for key, result in zip(self._backends, results):
            if isinstance(result, Exception):
                logger.error("storage_provider_close_failed", provider=key, error=str(result))
        logger.info("storage_shutdown")

    async def __aenter__(self) -> ProviderRegistry:
        await self.initialize_all()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.shutdown()

    # ── Configuration ────────────────────────────────────────
    @property
    def redundancy_level(self) -> RedundancyLevel:
        with self._lock:
            return self._level

    def set_redundancy_level(self, level: RedundancyLevel | str) -> None:
        """Switch policy; takes effect on the next operation."""
        parsed = RedundancyLevel.parse(level)
        requirement = self._policy.requirement_for(parsed)
        with self._lock:
            self._level = parsed
        logger.info(
            "redundancy_level_set",
            level=parsed.value,
            required_providers=requirement.required_providers,
            minimum_required=requirement.minimum_required,
        )

    @property
    def redundancy_enabled(self) -> bool:
        return self.redundancy_level != RedundancyLevel.SINGLE

    def set_redundancy(self, enabled: bool) -> None:
        """Coarse switch: enabling from ``single`` goes to ``dual``; disabling goes to ``single``."""
        with self._lock:
            current = self._level
        if enabled and current == RedundancyLevel.SINGLE:
            self.set_redundancy_level(RedundancyLevel.DUAL)
        elif not enabled:
            self.set_redundancy_level(RedundancyLevel.SINGLE)

    @property
    def preferred_backend(self) -> str | None:
        with self._lock:
            return self._preferred

    def set_preferred_backend(self, key: str | None) -> None:
        """Tiebreak hint between equally healthy backends; never overrides health."""
        with self._lock:
            if key is not None and key not in self._backends:
                logger.warning("preferred_backend_unknown", provider=key)
                return
            self._preferred = key
        logger.info("preferred_backend_set", provider=key)

    @property
    def policy(self) -> RedundancyPolicy:
        return self._policy

    # ── Coordinator-facing state ─────────────────────────────
    @property
    def health(self) -> HealthTracker:
        return self._health

    @property
    def checker(self) -> PeriodicHealthChecker:
        return self._checker

    def backend(self, key: str) -> StorageBackendPort:
        with self._lock:
            return self._backends[key]

    def provider_keys(self) -> list[str]:
        """Registered keys in registration order."""
        return self._health.keys()

    def uninitialized_keys(self) -> set[str]:
        with self._lock:
            return set(self._uninitialized)

    def is_initialized(self) -> bool:
        with self._lock:
            return self._initialized and not self._closing

    def require_initialized(self) -> None:
        if not self.is_initialized():
            raise NotInitializedError()

    def read_order(self) -> list[str]:
        """Healthy, initialized backends, best first."""
        with self._lock:
            return self._health.ranked_healthy(preferred=self._preferred, exclude=self._uninitialized)

    def write_plan(self) -> WritePlan:
        """Level, quorum and ranking captured together under the lock."""
        with self._lock:
            level = self._level
            requirement = self._policy.plan_for(level, len(self._backends))
            ranked = self._health.ranked_healthy(preferred=self._preferred, exclude=self._uninitialized)
        return WritePlan(level=level, requirement=requirement, ranked_healthy=tuple(ranked))

    # ── Storage operations ───────────────────────────────────
    async def store(self, data: bytes, filename: str, credential: str) -> WriteReceipt:
        validate_filename(filename)
        async with self._operation(StorageOperation.STORE):
            return await self._writer.store(data, filename, credential)

    async def retrieve(self, filename: str, credential: str) -> bytes:
        validate_filename(filename)
        async with self._operation(StorageOperation.RETRIEVE):
            return await self._reader.retrieve(filename, credential)

    async def delete(self, filename: str) -> DeleteReceipt:
        validate_filename(filename)
        async with self._operation(StorageOperation.DELETE):
            return await self._writer.delete(filename)

    async def exists(self, filename: str) -> bool:
        """Never raises; ``False`` when uninitialized."""
        if not self.is_initialized():
            return False
        async with self._operation(StorageOperation.EXISTS):
            return await self._reader.exists(filename)

    async def list_files(self) -> set[str]:
        async with self._operation(StorageOperation.LIST):
            return await self._reader.list_files()

    async def perform_health_check(self) -> dict[str, bool]:
        """Run one health-check cycle now, outside the periodic schedule.

        Gated like a storage operation: refused before ``initialize_all``
        succeeds and once shutdown begins, and drained by ``shutdown``.
        """
        async with self._operation(StorageOperation.HEALTH_CHECK):
            return await self._checker.run_once()

    # ── Observation ──────────────────────────────────────────
    def provider_statuses(self) -> list[ProviderStatus]:
        return self._health.snapshot()

    def statistics(self) -> StorageStatistics:
        return self._health.statistics(self.redundancy_level)

    # ── Internals ────────────────────────────────────────────
    @asynccontextmanager
    async def _operation(self, operation: StorageOperation) -> AsyncIterator[None]:
        """Gate an operation on initialization and count it as in flight."""
        with self._lock:
            if not self._initialized or self._closing:
                STORAGE_OPERATIONS.labels(operation=operation.value, status="rejected").inc()
                raise NotInitializedError()
            self._in_flight += 1
            self._idle.clear()
        try:
            yield
        except Exception:
            STORAGE_OPERATIONS.labels(operation=operation.value, status="failure").inc()
            raise
        else:
            STORAGE_OPERATIONS.labels(operation=operation.value, status="success").inc()
        finally:
            with self._lock:
                self._in_flight -= 1
                if self._in_flight == 0:
                    self._idle.set()


__all__ = ["ProviderRegistry"]
