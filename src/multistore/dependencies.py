"""Dependency injection container — wires adapters to ports.

The registry is built once per application from ``Settings`` and kept on
``app.state``; FastAPI's ``Depends()`` hands it to route handlers.
"""

from __future__ import annotations

from functools import lru_cache

import structlog
from fastapi import Header, HTTPException, Request, status

from multistore.adapters.outbound.encryption import AesGcmEncryptor
from multistore.adapters.outbound.storage import (
    HttpObjectStoreBackend,
    IPFSStorageBackend,
    LocalDirectoryBackend,
    MemoryStorageBackend,
    RedisStorageBackend,
)
from multistore.config import Settings, get_settings
from multistore.ports.outbound import EncryptionPort, StorageBackendPort
from multistore.shared.providers import ProviderRegistry

logger = structlog.get_logger(__name__)


# ── Settings ─────────────────────────────────────────────────
@lru_cache(maxsize=1)
def get_cached_settings() -> Settings:
    return get_settings()


# ── Factories ────────────────────────────────────────────────
def build_backends(settings: Settings, encryptor: EncryptionPort) -> dict[str, StorageBackendPort]:
    """Instantiate every backend the settings enable, keyed by registry name."""
    timeout = settings.backend_timeout_seconds
    backends: dict[str, StorageBackendPort] = {}

    if settings.memory_backend_enabled:
        backends["memory"] = MemoryStorageBackend(encryptor)
    if settings.local_storage_dir:
        backends["local"] = LocalDirectoryBackend(settings.local_storage_dir, encryptor)
    if settings.redis_url:
        backends["redis"] = RedisStorageBackend(
            settings.redis_url,
            encryptor,
            key_prefix=settings.redis_key_prefix,
            max_connections=settings.redis_max_connections,
        )
    if settings.http_store_url:
        backends["http"] = HttpObjectStoreBackend(
            settings.http_store_url,
            encryptor,
            token=settings.http_store_token,
            timeout=timeout,
        )
    if settings.ipfs_api_url:
        backends["ipfs"] = IPFSStorageBackend(
            settings.ipfs_api_url,
            encryptor,
            gateway_url=settings.ipfs_gateway_url,
            index_path=settings.ipfs_index_path or None,
            local_fallback_dir=settings.ipfs_local_fallback_dir or None,
            timeout=timeout,
        )

    logger.info("storage_backends_built", backends=list(backends))
    return backends


def build_registry(settings: Settings, encryptor: EncryptionPort | None = None) -> ProviderRegistry:
    return ProviderRegistry(
        build_backends(settings, encryptor or AesGcmEncryptor()),
        redundancy_level=settings.redundancy_level,
        preferred_backend=settings.preferred_backend,
        timeout_s=settings.backend_timeout_seconds,
        health_check_interval_s=settings.health_check_interval_seconds,
    )


# ── Request-scoped ───────────────────────────────────────────
def get_registry(request: Request) -> ProviderRegistry:
    registry: ProviderRegistry | None = getattr(request.app.state, "registry", None)
    if registry is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Storage registry is not available",
        )
    return registry


def get_storage_key(x_storage_key: str = Header(..., alias="X-Storage-Key")) -> str:
    """Per-request encryption credential (base64 AES-256 key)."""
    if not x_storage_key.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Storage-Key header is required",
        )
    return x_storage_key
