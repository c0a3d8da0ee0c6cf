"""Shared behaviour for every storage backend adapter.

``BaseStorageBackend`` implements ``StorageBackendPort`` once: the
initialized gate, encryption at the boundary and normalisation of unexpected
exceptions into the ``BackendError`` family.  Concrete adapters only move
opaque ciphertext bytes through a handful of ``_``-prefixed hooks.
"""

from __future__ import annotations

from abc import abstractmethod

import structlog

from multistore.domain.exceptions import (
    BackendError,
    BackendNotInitializedError,
    ConfigurationError,
    DownloadFailedError,
    UploadFailedError,
)
from multistore.ports.outbound import EncryptionPort, StorageBackendPort

logger = structlog.get_logger(__name__)


class BaseStorageBackend(StorageBackendPort):
    """Template for adapters; subclasses implement the transport hooks."""

    def __init__(self, name: str, encryptor: EncryptionPort) -> None:
        self.name = name
        self._encryptor = encryptor
        self._initialized = False
        self._log = logger.bind(provider=name)

    @property
    def initialized(self) -> bool:
        return self._initialized

    # ── StorageBackendPort implementation ─────────────────────
    async def initialize(self) -> None:
        try:
            await self._connect()
        except BackendError:
            self._initialized = False
            raise
        except Exception as exc:
            self._initialized = False
            raise ConfigurationError(self.name, f"Could not connect: {exc}") from exc
        self._initialized = True
        self._log.info("storage_backend_ready")

    async def store(self, data: bytes, filename: str, credential: str) -> None:
        self._require_initialized()
        ciphertext = self._encryptor.encrypt(data, credential)
        try:
            await self._put(filename, ciphertext)
        except BackendError:
            raise
        except Exception as exc:
            raise UploadFailedError(self.name, f"Upload of {filename!r} failed: {exc}") from exc
        self._log.debug("storage_backend_stored", filename=filename, size=len(ciphertext))

    async def retrieve(self, filename: str, credential: str) -> bytes:
        self._require_initialized()
        try:
            ciphertext = await self._get(filename)
        except BackendError:
            raise
        except Exception as exc:
            raise DownloadFailedError(self.name, f"Download of {filename!r} failed: {exc}") from exc
        return self._encryptor.decrypt(ciphertext, credential)

    async def delete(self, filename: str) -> None:
        self._require_initialized()
        try:
            await self._remove(filename)
        except BackendError:
            raise
        except Exception as exc:
            raise BackendError(self.name, f"Delete of {filename!r} failed: {exc}") from exc

    async def list(self) -> set[str]:
        self._require_initialized()
        try:
            return set(await self._list_names())
        except BackendError:
            raise
        except Exception as exc:
            raise DownloadFailedError(self.name, f"Listing failed: {exc}") from exc

    async def exists(self, filename: str) -> bool:
        if not self._initialized:
            return False
        try:
            return await self._contains(filename)
        except Exception as exc:
            self._log.debug("storage_backend_exists_failed", filename=filename, error=str(exc))
            return False

    async def is_configured(self) -> bool:
        if not self._initialized:
            return False
        try:
            return await self._ping()
        except Exception as exc:
            self._log.warning("storage_backend_ping_failed", error=str(exc))
            return False

    async def close(self) -> None:
        self._initialized = False
        await self._disconnect()

    # ── Transport hooks ──────────────────────────────────────
    @abstractmethod
    async def _connect(self) -> None: ...

    @abstractmethod
    async def _put(self, filename: str, blob: bytes) -> None: ...

    @abstractmethod
    async def _get(self, filename: str) -> bytes:
        """Return stored bytes or raise ``StoredFileNotFoundError``."""
        ...

    @abstractmethod
    async def _remove(self, filename: str) -> None:
        """Remove stored bytes or raise ``StoredFileNotFoundError``."""
        ...

    @abstractmethod
    async def _list_names(self) -> set[str]: ...

    async def _contains(self, filename: str) -> bool:
        return filename in await self._list_names()

    async def _ping(self) -> bool:
        return True

    async def _disconnect(self) -> None:
        return None

    # ── Internals ────────────────────────────────────────────
    def _require_initialized(self) -> None:
        if not self._initialized:
            raise BackendNotInitializedError(self.name)
