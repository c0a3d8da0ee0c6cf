"""Multi-backend storage redundancy framework.

Provides quorum writes, health-ordered failover reads, rolling health
tracking and periodic background health checks for any set of storage
backends.
"""

from multistore.shared.providers.types import (
    ProviderStatus,
    RedundancyRequirement,
    StorageStatistics,
    WritePlan,
)
from multistore.shared.providers.health import HealthTracker
from multistore.shared.providers.policy import DEFAULT_REQUIREMENTS, RedundancyPolicy
from multistore.shared.providers.dispatch import CallOutcome, call_backend
from multistore.shared.providers.writer import WriteCoordinator
from multistore.shared.providers.reader import ReadCoordinator
from multistore.shared.providers.checker import PeriodicHealthChecker
from multistore.shared.providers.registry import ProviderRegistry

__all__ = [
    "CallOutcome",
    "DEFAULT_REQUIREMENTS",
    "HealthTracker",
    "PeriodicHealthChecker",
    "ProviderRegistry",
    "ProviderStatus",
    "ReadCoordinator",
    "RedundancyPolicy",
    "RedundancyRequirement",
    "StorageStatistics",
    "WriteCoordinator",
    "WritePlan",
    "call_backend",
]
