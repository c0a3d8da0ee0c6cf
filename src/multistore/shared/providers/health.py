"""Rolling health tracker for every registered storage provider.

Each provider carries a score in [0, 1]: a success adds 0.1, a failure
subtracts 0.2, both clamped.  The ``is_healthy`` flag follows the most recent
outcome report, so a single failure takes a provider out of rotation until
something (a live operation or the periodic checker) reports it healthy
again.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from datetime import datetime, timezone

import structlog

from multistore.domain.enums import RedundancyLevel
from multistore.shared.observability.metrics import PROVIDER_HEALTH_SCORE, PROVIDER_HEALTHY
from multistore.shared.providers.types import ProviderStatus, StorageStatistics

logger = structlog.get_logger(__name__)

SUCCESS_REWARD = 0.1
FAILURE_PENALTY = 0.2


@dataclass
class _Entry:
    index: int
    status: ProviderStatus


class HealthTracker:
    """Thread-safe health bookkeeping shared by live operations and the checker.

    The lock is only ever held for the bookkeeping itself, never across a
    backend call.  It is re-entrant so the registry can share it and read its
    own configuration together with the ranking in one critical section.
    """

    def __init__(
        self,
        *,
        lock: threading.RLock | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._lock = lock or threading.RLock()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._entries: dict[str, _Entry] = {}

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    # ── Registration ─────────────────────────────────────────
    def register(self, key: str) -> ProviderStatus:
        with self._lock:
            if key in self._entries:
                raise ValueError(f"Provider {key!r} is already tracked")
            status = ProviderStatus(key=key, last_checked=self._clock())
            self._entries[key] = _Entry(index=len(self._entries), status=status)
        self._publish(status)
        return status

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def keys(self) -> list[str]:
        """All tracked keys in registration order."""
        with self._lock:
            return [k for k, _ in sorted(self._entries.items(), key=lambda kv: kv[1].index)]

    # ── Recording ────────────────────────────────────────────
    def record_success(self, key: str) -> ProviderStatus:
        with self._lock:
            entry = self._entry(key)
            previous = entry.status
            entry.status = replace(
                previous,
                is_healthy=True,
                health_score=_clamp(previous.health_score + SUCCESS_REWARD),
                consecutive_failures=0,
                last_checked=self._clock(),
                last_error=None,
            )
            current = entry.status

        if not previous.is_healthy:
            logger.info("provider_recovered", provider=key, health_score=current.health_score)
        self._publish(current)
        return current

    def record_failure(self, key: str, error: str | None = None) -> ProviderStatus:
        with self._lock:
            entry = self._entry(key)
            previous = entry.status
            entry.status = replace(
                previous,
                is_healthy=False,
                health_score=_clamp(previous.health_score - FAILURE_PENALTY),
                consecutive_failures=previous.consecutive_failures + 1,
                last_checked=self._clock(),
                last_error=error,
            )
            current = entry.status

        if previous.is_healthy:
            logger.warning(
                "provider_marked_unhealthy",
                provider=key,
                health_score=current.health_score,
                error=error,
            )
        self._publish(current)
        return current

    # ── Queries ──────────────────────────────────────────────
    def status(self, key: str) -> ProviderStatus:
        with self._lock:
            return self._entry(key).status

    def snapshot(self) -> list[ProviderStatus]:
        """Every provider's status in registration order."""
        with self._lock:
            entries = sorted(self._entries.values(), key=lambda e: e.index)
            return [e.status for e in entries]

    def ranked_healthy(
        self,
        *,
        preferred: str | None = None,
        exclude: Iterable[str] = (),
    ) -> list[str]:
        """Healthy keys, best score first.

        Ties are broken by the preferred key (if any) and then by
        registration order, so the ranking is stable and predictable.
        """
        skip = set(exclude)
        with self._lock:
            healthy = [
                (-entry.status.health_score, 0 if key == preferred else 1, entry.index, key)
                for key, entry in self._entries.items()
                if entry.status.is_healthy and key not in skip
            ]
        healthy.sort()
        return [key for *_, key in healthy]

    def healthy_count(self, *, exclude: Iterable[str] = ()) -> int:
        skip = set(exclude)
        with self._lock:
            return sum(
                1 for key, e in self._entries.items() if e.status.is_healthy and key not in skip
            )

    def statistics(self, level: RedundancyLevel) -> StorageStatistics:
        with self._lock:
            statuses = [e.status for e in self._entries.values()]
        total = len(statuses)
        average = sum(s.health_score for s in statuses) / max(1, total)
        return StorageStatistics(
            total_providers=total,
            healthy_providers=sum(1 for s in statuses if s.is_healthy),
            average_health_score=round(average, 4),
            redundancy_level=level,
        )

    # ── Internals ────────────────────────────────────────────
    def _entry(self, key: str) -> _Entry:
        """Caller holds lock.  Unknown keys are a programming error."""
        try:
            return self._entries[key]
        except KeyError:
            raise KeyError(f"Provider {key!r} is not registered with the health tracker") from None

    @staticmethod
    def _publish(status: ProviderStatus) -> None:
        PROVIDER_HEALTH_SCORE.labels(provider=status.key).set(status.health_score)
        PROVIDER_HEALTHY.labels(provider=status.key).set(1 if status.is_healthy else 0)


def _clamp(score: float) -> float:
    # Rounded so repeated +0.1/-0.2 steps land on exact tenths.
    return round(min(1.0, max(0.0, score)), 6)
