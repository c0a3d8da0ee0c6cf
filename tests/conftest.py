"""Shared test fixtures."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import pytest

from multistore.adapters.outbound.encryption import AesGcmEncryptor, generate_key
from multistore.domain.enums import RedundancyLevel
from multistore.domain.exceptions import (
    BackendError,
    ConfigurationError,
    DownloadFailedError,
    StoredFileNotFoundError,
    UploadFailedError,
)
from multistore.ports.outbound import StorageBackendPort
from multistore.shared.providers import ProviderRegistry


class FakeBackend(StorageBackendPort):
    """Scriptable in-memory backend.

    Flip the ``fail_*`` flags or set ``delay`` at any point in a test to
    change how the next call behaves.  Every call is appended to ``calls``.
    """

    def __init__(
        self,
        name: str,
        *,
        fail_init: bool = False,
        fail_store: bool = False,
        fail_retrieve: bool = False,
        fail_delete: bool = False,
        fail_list: bool = False,
        configured: bool = True,
        delay: float = 0.0,
    ) -> None:
        self.name = name
        self.fail_init = fail_init
        self.fail_store = fail_store
        self.fail_retrieve = fail_retrieve
        self.fail_delete = fail_delete
        self.fail_list = fail_list
        self.configured = configured
        self.delay = delay
        self.objects: dict[str, bytes] = {}
        self.calls: list[tuple[str, str]] = []
        self.closed = False

    def count(self, operation: str) -> int:
        return sum(1 for op, _ in self.calls if op == operation)

    async def _pause(self) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)

    async def initialize(self) -> None:
        self.calls.append(("initialize", ""))
        if self.fail_init:
            raise ConfigurationError(self.name, "unreachable")

    async def store(self, data: bytes, filename: str, credential: str) -> None:
        self.calls.append(("store", filename))
        await self._pause()
        if self.fail_store:
            raise UploadFailedError(self.name)
        self.objects[filename] = data

    async def retrieve(self, filename: str, credential: str) -> bytes:
        self.calls.append(("retrieve", filename))
        await self._pause()
        if self.fail_retrieve:
            raise DownloadFailedError(self.name)
        if filename not in self.objects:
            raise StoredFileNotFoundError(self.name, filename)
        return self.objects[filename]

    async def delete(self, filename: str) -> None:
        self.calls.append(("delete", filename))
        if self.fail_delete:
            raise BackendError(self.name, "delete rejected")
        if self.objects.pop(filename, None) is None:
            raise StoredFileNotFoundError(self.name, filename)

    async def list(self) -> set[str]:
        self.calls.append(("list", ""))
        if self.fail_list:
            raise DownloadFailedError(self.name, "listing failed")
        return set(self.objects)

    async def exists(self, filename: str) -> bool:
        self.calls.append(("exists", filename))
        await self._pause()
        return filename in self.objects

    async def is_configured(self) -> bool:
        self.calls.append(("is_configured", ""))
        return self.configured

    async def close(self) -> None:
        self.closed = True


# ═══════════════════════════════════════════════════════════════
#  Fixtures
# ═══════════════════════════════════════════════════════════════
@pytest.fixture
def make_backend() -> Callable[..., FakeBackend]:
    return FakeBackend


@pytest.fixture
def backends() -> dict[str, FakeBackend]:
    """Four equally healthy backends registered as A, B, C, D."""
    return {key: FakeBackend(key) for key in ("A", "B", "C", "D")}


@pytest.fixture
def make_registry() -> Callable[..., ProviderRegistry]:
    def _make(
        backends: dict[str, StorageBackendPort],
        *,
        level: RedundancyLevel | str = RedundancyLevel.DUAL,
        **kwargs: Any,
    ) -> ProviderRegistry:
        kwargs.setdefault("timeout_s", 1.0)
        kwargs.setdefault("health_check_interval_s", 3600.0)
        return ProviderRegistry(backends, redundancy_level=RedundancyLevel.parse(level), **kwargs)

    return _make


@pytest.fixture
def encryptor() -> AesGcmEncryptor:
    return AesGcmEncryptor()


@pytest.fixture
def storage_key() -> str:
    return generate_key()
