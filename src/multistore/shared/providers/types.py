"""Core types for the storage redundancy layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from multistore.domain.enums import RedundancyLevel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RedundancyRequirement:
    """How many providers a write is attempted on and how many must succeed.

    Attributes:
        required_providers: Providers a write is dispatched to.
        minimum_required:   Successful writes that make the write durable.
    """

    required_providers: int
    minimum_required: int

    def __post_init__(self) -> None:
        if self.minimum_required < 1:
            raise ValueError("minimum_required must be at least 1")
        if self.required_providers < self.minimum_required:
            raise ValueError(
                f"required_providers ({self.required_providers}) must be >= "
                f"minimum_required ({self.minimum_required})"
            )


@dataclass(frozen=True)
class ProviderStatus:
    """Read-only snapshot of a provider's current health.

    ``is_healthy`` is the flag set by the most recent outcome report; it is
    not derived from ``health_score``.
    """

    key: str
    is_healthy: bool = True
    health_score: float = 1.0
    last_checked: datetime = field(default_factory=_utcnow)
    consecutive_failures: int = 0
    last_error: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "key": self.key,
            "is_healthy": self.is_healthy,
            "health_score": self.health_score,
            "last_checked": self.last_checked.isoformat(),
            "consecutive_failures": self.consecutive_failures,
            "last_error": self.last_error,
        }


@dataclass(frozen=True)
class StorageStatistics:
    """Aggregate view over every registered provider."""

    total_providers: int
    healthy_providers: int
    average_health_score: float
    redundancy_level: RedundancyLevel

    def to_dict(self) -> dict[str, object]:
        return {
            "total_providers": self.total_providers,
            "healthy_providers": self.healthy_providers,
            "average_health_score": self.average_health_score,
            "redundancy_level": self.redundancy_level.value,
        }


@dataclass(frozen=True)
class WritePlan:
    """Everything a write needs, captured under the state lock at call start."""

    level: RedundancyLevel
    requirement: RedundancyRequirement
    ranked_healthy: tuple[str, ...]

    @property
    def candidates(self) -> tuple[str, ...]:
        return self.ranked_healthy[: self.requirement.required_providers]
