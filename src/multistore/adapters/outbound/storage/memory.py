"""In-process storage backend for development and tests."""

from __future__ import annotations

import structlog

from multistore.adapters.outbound.storage.base import BaseStorageBackend
from multistore.domain.exceptions import StoredFileNotFoundError
from multistore.ports.outbound import EncryptionPort

logger = structlog.get_logger(__name__)


class MemoryStorageBackend(BaseStorageBackend):
    """Dictionary-backed store; contents vanish with the process."""

    def __init__(self, encryptor: EncryptionPort, *, name: str = "memory") -> None:
        super().__init__(name, encryptor)
        self._objects: dict[str, bytes] = {}

    async def _connect(self) -> None:
        logger.info("memory_backend_initialized", provider=self.name)

    async def _put(self, filename: str, blob: bytes) -> None:
        self._objects[filename] = blob

    async def _get(self, filename: str) -> bytes:
        try:
            return self._objects[filename]
        except KeyError:
            raise StoredFileNotFoundError(self.name, filename) from None

    async def _remove(self, filename: str) -> None:
        if self._objects.pop(filename, None) is None:
            raise StoredFileNotFoundError(self.name, filename)

    async def _list_names(self) -> set[str]:
        return set(self._objects)

    async def _contains(self, filename: str) -> bool:
        return filename in self._objects
