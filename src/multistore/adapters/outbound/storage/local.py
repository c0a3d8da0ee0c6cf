"""Local directory storage backend.

Each object is a file below ``root``; nested filenames become nested
directories.  Blocking filesystem calls run in a worker thread so they never
stall the event loop.  Writes land in a unique temp file under ``.staging``
and are renamed into place, so concurrent writers of one name end up with
the last rename winning.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import tempfile
from pathlib import Path

import structlog

from multistore.adapters.outbound.storage.base import BaseStorageBackend
from multistore.domain.exceptions import ConfigurationError, StoredFileNotFoundError, UploadFailedError
from multistore.domain.value_objects import validate_filename
from multistore.ports.outbound import EncryptionPort

logger = structlog.get_logger(__name__)

# Top-level directory holding uniquely named temp files; never listed.
STAGING_DIR = ".staging"


class LocalDirectoryBackend(BaseStorageBackend):
    """Stores ciphertext as plain files in a directory."""

    def __init__(self, root: str | Path, encryptor: EncryptionPort, *, name: str = "local") -> None:
        super().__init__(name, encryptor)
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    async def _connect(self) -> None:
        try:
            await asyncio.to_thread(self._root.mkdir, parents=True, exist_ok=True)
        except OSError as exc:
            raise ConfigurationError(self.name, f"Cannot create {self._root}: {exc}") from exc
        if not os.access(self._root, os.W_OK):
            raise ConfigurationError(self.name, f"{self._root} is not writable")
        logger.info("local_backend_initialized", provider=self.name, root=str(self._root))

    async def _put(self, filename: str, blob: bytes) -> None:
        path = self._path_for(filename)
        await asyncio.to_thread(self._write_atomic, path, blob)

    async def _get(self, filename: str) -> bytes:
        path = self._path_for(filename)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError:
            raise StoredFileNotFoundError(self.name, filename) from None

    async def _remove(self, filename: str) -> None:
        path = self._path_for(filename)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            raise StoredFileNotFoundError(self.name, filename) from None

    async def _list_names(self) -> set[str]:
        return await asyncio.to_thread(self._scan)

    async def _contains(self, filename: str) -> bool:
        return await asyncio.to_thread(self._path_for(filename).is_file)

    async def _ping(self) -> bool:
        return await asyncio.to_thread(lambda: self._root.is_dir() and os.access(self._root, os.W_OK))

    # ── Internals ────────────────────────────────────────────
    def _path_for(self, filename: str) -> Path:
        try:
            validate_filename(filename)
        except ValueError as exc:
            raise UploadFailedError(self.name, str(exc)) from exc
        if filename.replace("\\", "/").split("/", 1)[0] == STAGING_DIR:
            raise UploadFailedError(self.name, f"{STAGING_DIR!r} is reserved for in-progress writes")
        root = self._root.resolve()
        path = (root / filename).resolve()
        if not path.is_relative_to(root):
            raise UploadFailedError(self.name, f"Path {filename!r} escapes the storage directory")
        return path

    def _scan(self) -> set[str]:
        if not self._root.is_dir():
            return set()
        names = set()
        for p in self._root.rglob("*"):
            rel = p.relative_to(self._root)
            if rel.parts[0] == STAGING_DIR or not p.is_file():
                continue
            names.add(rel.as_posix())
        return names

    def _write_atomic(self, path: Path, blob: bytes) -> None:
        staging = self._root.resolve() / STAGING_DIR
        staging.mkdir(exist_ok=True)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=staging, prefix="tmp-")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(blob)
            os.replace(tmp, path)
        except BaseException:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(tmp)
            raise
