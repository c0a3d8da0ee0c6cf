"""Unit tests for storage domain types: enums, exceptions and value objects."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from multistore.domain.enums import RedundancyLevel, StorageLocation
from multistore.domain.exceptions import (
    AllProvidersFailedError,
    BackendError,
    InsufficientProvidersError,
    NotInitializedError,
    RedundancyError,
    RedundancyNotMetError,
    StorageError,
    StoredFileNotFoundError,
    UploadFailedError,
)
from multistore.domain.value_objects import DeleteReceipt, ObjectRef, WriteReceipt, validate_filename


# ═══════════════════════════════════════════════════════════════
#  RedundancyLevel
# ═══════════════════════════════════════════════════════════════
class TestRedundancyLevel:
    @pytest.mark.parametrize("raw", ["dual", "Dual", "DUAL", " dual "])
    def test_parse_is_case_insensitive(self, raw: str) -> None:
        assert RedundancyLevel.parse(raw) == RedundancyLevel.DUAL

    def test_parse_passes_members_through(self) -> None:
        assert RedundancyLevel.parse(RedundancyLevel.TRIPLE) is RedundancyLevel.TRIPLE

    def test_parse_rejects_unknown(self) -> None:
        with pytest.raises(ValueError, match="single, dual, triple, maximum"):
            RedundancyLevel.parse("quintuple")


# ═══════════════════════════════════════════════════════════════
#  Exceptions
# ═══════════════════════════════════════════════════════════════
class TestExceptions:
    def test_hierarchy(self) -> None:
        assert issubclass(NotInitializedError, RedundancyError)
        assert issubclass(RedundancyError, StorageError)
        assert issubclass(StoredFileNotFoundError, BackendError)
        assert not issubclass(BackendError, RedundancyError)

    def test_not_initialized(self) -> None:
        exc = NotInitializedError()
        assert exc.code == "NOT_INITIALIZED"
        assert "not initialized" in exc.message

    def test_insufficient_providers(self) -> None:
        exc = InsufficientProvidersError(required=2, available=1)
        assert exc.message == "Insufficient healthy providers: need 2, have 1"

    def test_redundancy_not_met_copies_errors(self) -> None:
        errors = {"B": "boom"}
        exc = RedundancyNotMetError(achieved=1, required=2, errors=errors)
        errors["C"] = "later"
        assert exc.errors == {"B": "boom"}
        assert exc.message == "Redundancy not met: achieved 1, required 2"

    def test_all_providers_failed_lists_keys(self) -> None:
        exc = AllProvidersFailedError({"A": "x", "B": "y"})
        assert exc.message == "All storage providers failed: A, B"
        assert exc.not_found is False
        assert AllProvidersFailedError().message == "All storage providers failed"

    def test_backend_error_prefixes_provider(self) -> None:
        exc = UploadFailedError("redis", "quota exceeded")
        assert exc.provider == "redis"
        assert exc.message == "[redis] quota exceeded"
        assert exc.code == "UPLOAD_FAILED"


# ═══════════════════════════════════════════════════════════════
#  Value objects
# ═══════════════════════════════════════════════════════════════
class TestValidateFilename:
    @pytest.mark.parametrize("name", ["a.txt", "dir/sub/a.txt", "weird name (1).json"])
    def test_accepts(self, name: str) -> None:
        assert validate_filename(name) == name

    @pytest.mark.parametrize("name", ["", "   ", "/abs", "../up", "a/../b", "a//b", "./a", "nul\x00byte", "a\\..\\b"])
    def test_rejects(self, name: str) -> None:
        with pytest.raises(ValueError):
            validate_filename(name)


class TestObjectRef:
    def test_dict_round_trip(self) -> None:
        ref = ObjectRef(
            filename="f.txt",
            reference="Qm123",
            location=StorageLocation.LOCAL_FALLBACK,
            size=42,
            stored_at=datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc),
        )
        assert ObjectRef.from_dict(ref.to_dict()) == ref
        assert ref.is_local_fallback is True

    def test_from_dict_defaults_to_remote(self) -> None:
        ref = ObjectRef.from_dict({"filename": "f", "reference": "Qm1"})
        assert ref.location == StorageLocation.REMOTE
        assert ref.size == 0


class TestReceipts:
    def test_write_receipt(self) -> None:
        receipt = WriteReceipt(
            filename="f",
            level=RedundancyLevel.TRIPLE,
            stored_on=("A", "C"),
            attempted=("A", "B", "C"),
            minimum_required=2,
            errors={"B": "timeout"},
        )
        data = receipt.to_dict()
        assert receipt.success_count == 2
        assert data["level"] == "triple"
        assert data["stored_on"] == ["A", "C"]
        assert data["errors"] == {"B": "timeout"}

    def test_delete_receipt(self) -> None:
        receipt = DeleteReceipt(filename="f", deleted_from=("A",))
        assert receipt.to_dict() == {"filename": "f", "deleted_from": ["A"], "errors": {}}
