"""Redis storage backend.

Objects are stored as raw bytes under ``<prefix><filename>``; listing walks
the prefix with ``SCAN`` so it never blocks the server the way ``KEYS`` would.
"""

from __future__ import annotations

import redis.asyncio as redis
import structlog

from multistore.adapters.outbound.storage.base import BaseStorageBackend
from multistore.domain.exceptions import ConfigurationError, StoredFileNotFoundError
from multistore.ports.outbound import EncryptionPort

logger = structlog.get_logger(__name__)


class RedisStorageBackend(BaseStorageBackend):
    """Async Redis adapter; ``is_configured`` is a ``PING``."""

    def __init__(
        self,
        url: str,
        encryptor: EncryptionPort,
        *,
        name: str = "redis",
        key_prefix: str = "multistore:",
        max_connections: int = 50,
        client: redis.Redis | None = None,
    ) -> None:
        super().__init__(name, encryptor)
        self._url = url
        self._prefix = key_prefix
        self._max_connections = max_connections
        self._client = client
        self._pool: redis.ConnectionPool | None = None

    async def _connect(self) -> None:
        if self._client is None:
            if not self._url:
                raise ConfigurationError(self.name, "redis_url is not set")
            self._pool = redis.ConnectionPool.from_url(
                self._url,
                max_connections=self._max_connections,
            )
            self._client = redis.Redis(connection_pool=self._pool)
        try:
            await self._client.ping()
        except redis.RedisError as exc:
            logger.error("redis_backend_connect_failed", provider=self.name, error=str(exc))
            raise ConfigurationError(self.name, f"Redis ping failed: {exc}") from exc
        logger.info("redis_backend_initialized", provider=self.name, prefix=self._prefix)

    async def _put(self, filename: str, blob: bytes) -> None:
        await self._redis.set(self._key(filename), blob)

    async def _get(self, filename: str) -> bytes:
        blob = await self._redis.get(self._key(filename))
        if blob is None:
            raise StoredFileNotFoundError(self.name, filename)
        return bytes(blob)

    async def _remove(self, filename: str) -> None:
        removed = await self._redis.delete(self._key(filename))
        if not removed:
            raise StoredFileNotFoundError(self.name, filename)

    async def _list_names(self) -> set[str]:
        names: set[str] = set()
        async for raw in self._redis.scan_iter(match=f"{self._prefix}*"):
            key = raw.decode() if isinstance(raw, bytes) else str(raw)
            names.add(key[len(self._prefix):])
        return names

    async def _contains(self, filename: str) -> bool:
        return bool(await self._redis.exists(self._key(filename)))

    async def _ping(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except redis.RedisError:
            return False

    async def _disconnect(self) -> None:
        if self._client is not None:
            await self._client.aclose()
        if self._pool is not None:
            await self._pool.aclose()

    # ── Internals ────────────────────────────────────────────
    @property
    def _redis(self) -> redis.Redis:
        if self._client is None:
            raise ConfigurationError(self.name, "Redis client not created")
        return self._client

    def _key(self, filename: str) -> str:
        return f"{self._prefix}{filename}"
