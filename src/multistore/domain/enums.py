"""Domain enumerations for the storage layer."""

from __future__ import annotations

import enum


class RedundancyLevel(str, enum.Enum):
    """How many backends a write is attempted on, and how many must succeed.

    The numbers behind each level live in ``RedundancyPolicy``; the enum is
    only the configuration handle.
    """

    SINGLE = "single"
    DUAL = "dual"
    TRIPLE = "triple"
    MAXIMUM = "maximum"

    @classmethod
    def parse(cls, raw: str | RedundancyLevel) -> RedundancyLevel:
        """Accept values case-insensitively ("Dual", "DUAL", "dual")."""
        if isinstance(raw, cls):
            return raw
        try:
            return cls(str(raw).strip().lower())
        except ValueError as exc:
            allowed = ", ".join(m.value for m in cls)
            raise ValueError(f"Unknown redundancy level {raw!r} (expected one of: {allowed})") from exc


class StorageLocation(str, enum.Enum):
    """Where an adapter actually placed an object."""

    REMOTE = "remote"
    LOCAL_FALLBACK = "local_fallback"


class StorageOperation(str, enum.Enum):
    """Operation labels used for logging and metrics."""

    INITIALIZE = "initialize"
    STORE = "store"
    RETRIEVE = "retrieve"
    DELETE = "delete"
    EXISTS = "exists"
    LIST = "list"
    HEALTH_CHECK = "health_check"
