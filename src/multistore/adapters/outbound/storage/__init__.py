"""Storage backend adapters implementing StorageBackendPort."""

from multistore.adapters.outbound.storage.base import BaseStorageBackend
from multistore.adapters.outbound.storage.http_store import HttpObjectStoreBackend
from multistore.adapters.outbound.storage.ipfs import IPFSStorageBackend
from multistore.adapters.outbound.storage.local import LocalDirectoryBackend
from multistore.adapters.outbound.storage.memory import MemoryStorageBackend
from multistore.adapters.outbound.storage.redis_store import RedisStorageBackend

__all__ = [
    "BaseStorageBackend",
    "HttpObjectStoreBackend",
    "IPFSStorageBackend",
    "LocalDirectoryBackend",
    "MemoryStorageBackend",
    "RedisStorageBackend",
]
