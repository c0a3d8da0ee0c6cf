"""Outbound ports — interfaces that infrastructure adapters must implement.

These are the *driven* ports in hexagonal architecture.  The orchestration
layer depends only on these abstractions, never on concrete implementations
(HTTP clients, Redis, the filesystem, ...).  Backends are resolved by
registry key, never by inspecting their concrete type.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# ═══════════════════════════════════════════════════════════════
#  Storage backend port
# ═══════════════════════════════════════════════════════════════
class StorageBackendPort(ABC):
    """A single independent storage system (object store, content network, drive...)."""

    @abstractmethod
    async def initialize(self) -> None:
        """Establish a usable session.

        Raises ``ConfigurationError`` when credentials or the session cannot
        be established.  Must be safe to call again.
        """
        ...

    @abstractmethod
    async def store(self, data: bytes, filename: str, credential: str) -> None:
        """Encrypt and upload ``data``.

        Raises ``EncryptionFailedError``, ``UploadFailedError`` or
        ``BackendNotInitializedError``.
        """
        ...

    @abstractmethod
    async def retrieve(self, filename: str, credential: str) -> bytes:
        """Download and decrypt a stored object.

        Raises ``StoredFileNotFoundError``, ``DownloadFailedError``,
        ``DecryptionFailedError`` or ``BackendNotInitializedError``.
        """
        ...

    @abstractmethod
    async def delete(self, filename: str) -> None:
        """Remove an object.  May raise ``StoredFileNotFoundError``."""
        ...

    @abstractmethod
    async def list(self) -> set[str]:
        """Known filenames (membership only)."""
        ...

    @abstractmethod
    async def exists(self, filename: str) -> bool:
        """Lightweight existence probe.  Must never raise."""
        ...

    async def is_configured(self) -> bool:
        """Cheap "is this backend currently usable" probe used by the health checker."""
        return True

    async def close(self) -> None:
        """Release network clients and other resources."""
        return None


# ═══════════════════════════════════════════════════════════════
#  Encryption port
# ═══════════════════════════════════════════════════════════════
class EncryptionPort(ABC):
    """Symmetric transform applied at the adapter boundary.

    The orchestration layer never inspects plaintext; adapters encrypt before
    upload and decrypt after download.
    """

    @abstractmethod
    def encrypt(self, data: bytes, credential: str) -> bytes:
        """Return ciphertext or raise ``EncryptionFailedError``."""
        ...

    @abstractmethod
    def decrypt(self, data: bytes, credential: str) -> bytes:
        """Return plaintext or raise ``DecryptionFailedError``."""
        ...
