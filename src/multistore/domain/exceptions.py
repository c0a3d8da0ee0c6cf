"""Storage exception hierarchy.

All exceptions inherit from ``StorageError`` so callers can catch the entire
family in one clause while still discriminating on subclass.

Two branches matter to callers:

* ``RedundancyError`` — aggregate outcomes of the orchestration layer.  These
  are the only errors a caller of ``ProviderRegistry`` ever sees.
* ``BackendError`` — raised by a single adapter.  The coordinators recover
  from these locally (health signal + continue) and only report them as
  diagnostics inside an aggregate error.
"""

from __future__ import annotations


class StorageError(Exception):
    """Base class for all storage errors."""

    def __init__(self, message: str, *, code: str = "STORAGE_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(message)


# ── Redundancy (caller-visible) ──────────────────────────────
class RedundancyError(StorageError):
    """Base for aggregate orchestration failures."""


class NotInitializedError(RedundancyError):
    def __init__(self) -> None:
        super().__init__(
            "Storage redundancy manager not initialized",
            code="NOT_INITIALIZED",
        )


class InsufficientProvidersError(RedundancyError):
    def __init__(self, required: int, available: int) -> None:
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient healthy providers: need {required}, have {available}",
            code="INSUFFICIENT_PROVIDERS",
        )


class RedundancyNotMetError(RedundancyError):
    def __init__(
        self,
        achieved: int,
        required: int,
        errors: dict[str, str] | None = None,
    ) -> None:
        self.achieved = achieved
        self.required = required
        self.errors = dict(errors or {})
        super().__init__(
            f"Redundancy not met: achieved {achieved}, required {required}",
            code="REDUNDANCY_NOT_MET",
        )


class AllProvidersFailedError(RedundancyError):
    """Every candidate backend failed (or there were none to try)."""

    def __init__(
        self,
        errors: dict[str, str] | None = None,
        *,
        not_found: bool = False,
    ) -> None:
        self.errors = dict(errors or {})
        self.not_found = not_found
        detail = f": {', '.join(self.errors)}" if self.errors else ""
        super().__init__(
            f"All storage providers failed{detail}",
            code="ALL_PROVIDERS_FAILED",
        )


# ── Backend (adapter-level) ──────────────────────────────────
class BackendError(StorageError):
    """Base for errors raised by a single storage backend."""

    def __init__(self, provider: str, message: str, *, code: str = "BACKEND_ERROR") -> None:
        self.provider = provider
        super().__init__(f"[{provider}] {message}", code=code)


class ConfigurationError(BackendError):
    def __init__(self, provider: str, message: str = "Backend is not configured") -> None:
        super().__init__(provider, message, code="CONFIGURATION_ERROR")


class BackendNotInitializedError(BackendError):
    def __init__(self, provider: str) -> None:
        super().__init__(provider, "Backend not initialized", code="BACKEND_NOT_INITIALIZED")


class EncryptionFailedError(BackendError):
    def __init__(self, provider: str = "encryption", message: str = "Encryption failed") -> None:
        super().__init__(provider, message, code="ENCRYPTION_FAILED")


class DecryptionFailedError(BackendError):
    def __init__(self, provider: str = "encryption", message: str = "Decryption failed") -> None:
        super().__init__(provider, message, code="DECRYPTION_FAILED")


class UploadFailedError(BackendError):
    def __init__(self, provider: str, message: str = "Upload failed") -> None:
        super().__init__(provider, message, code="UPLOAD_FAILED")


class DownloadFailedError(BackendError):
    def __init__(self, provider: str, message: str = "Download failed") -> None:
        super().__init__(provider, message, code="DOWNLOAD_FAILED")


class StoredFileNotFoundError(BackendError):
    def __init__(self, provider: str, filename: str) -> None:
        self.filename = filename
        super().__init__(provider, f"File {filename!r} not found", code="FILE_NOT_FOUND")
