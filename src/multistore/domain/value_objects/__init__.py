"""Domain value objects — immutable, self-validating types.

Value objects have *no identity*; two instances with equal fields are equal.
They enforce invariants at construction time so the rest of the domain can
trust their contents without re-checking.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from multistore.domain.enums import RedundancyLevel, StorageLocation


# ═══════════════════════════════════════════════════════════════
#  Filename
# ═══════════════════════════════════════════════════════════════
def validate_filename(filename: str) -> str:
    """Reject names that cannot be stored safely on every backend."""
    if not filename or not filename.strip():
        raise ValueError("filename must not be empty")
    if "\x00" in filename:
        raise ValueError("filename must not contain NUL bytes")
    parts = filename.replace("\\", "/").split("/")
    if filename.startswith("/") or any(p in ("", ".", "..") for p in parts):
        raise ValueError(f"Invalid filename: {filename!r}")
    return filename


# ═══════════════════════════════════════════════════════════════
#  ObjectRef
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True, slots=True)
class ObjectRef:
    """Where an adapter put a stored object.

    ``location`` says explicitly whether ``reference`` names a remote object
    (e.g. a content hash) or a copy kept in the adapter's local fallback
    directory.
    """

    filename: str
    reference: str
    location: StorageLocation = StorageLocation.REMOTE
    size: int = 0
    stored_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_local_fallback(self) -> bool:
        return self.location == StorageLocation.LOCAL_FALLBACK

    def to_dict(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "reference": self.reference,
            "location": self.location.value,
            "size": self.size,
            "stored_at": self.stored_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ObjectRef:
        return cls(
            filename=data["filename"],
            reference=data["reference"],
            location=StorageLocation(data.get("location", StorageLocation.REMOTE.value)),
            size=int(data.get("size", 0)),
            stored_at=datetime.fromisoformat(data["stored_at"])
            if data.get("stored_at")
            else datetime.now(timezone.utc),
        )


# ═══════════════════════════════════════════════════════════════
#  Receipts
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True, slots=True)
class WriteReceipt:
    """Outcome of a successful quorum write.

    ``errors`` holds the per-backend failures tolerated by the quorum; they
    are diagnostics only.
    """

    filename: str
    level: RedundancyLevel
    stored_on: tuple[str, ...]
    attempted: tuple[str, ...]
    minimum_required: int
    errors: dict[str, str] = field(default_factory=dict)
    completed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def success_count(self) -> int:
        return len(self.stored_on)

    def to_dict(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "level": self.level.value,
            "stored_on": list(self.stored_on),
            "attempted": list(self.attempted),
            "success_count": self.success_count,
            "minimum_required": self.minimum_required,
            "errors": dict(self.errors),
            "completed_at": self.completed_at.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class DeleteReceipt:
    """Outcome of a delete fan-out."""

    filename: str
    deleted_from: tuple[str, ...]
    errors: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "deleted_from": list(self.deleted_from),
            "errors": dict(self.errors),
        }
