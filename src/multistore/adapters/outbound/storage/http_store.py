"""HTTP object-store backend.

Talks to a minimal REST object service:

    PUT    /objects/{name}    body = bytes
    GET    /objects/{name}
    DELETE /objects/{name}
    HEAD   /objects/{name}
    GET    /objects           → ["name", ...] or {"objects": [...]}

Authentication is a bearer token.  Transient network failures are retried
with exponential backoff; HTTP status errors are not.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx
import structlog
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from multistore.adapters.outbound.storage.base import BaseStorageBackend
from multistore.domain.exceptions import ConfigurationError, StoredFileNotFoundError
from multistore.ports.outbound import EncryptionPort

logger = structlog.get_logger(__name__)


# Shared retry policy for object-store interactions
_store_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((httpx.NetworkError, httpx.TimeoutException)),
    before_sleep=before_sleep_log(logger, "WARNING"),
    reraise=True,
)


class HttpObjectStoreBackend(BaseStorageBackend):
    """REST object store reached over httpx."""

    def __init__(
        self,
        base_url: str,
        encryptor: EncryptionPort,
        *,
        name: str = "http",
        token: str = "",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(name, encryptor)
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._base_url = base_url
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @_store_retry
    async def _connect(self) -> None:
        if not self._base_url:
            raise ConfigurationError(self.name, "http_store_url is not set")
        resp = await self._client.get("/objects")
        if resp.status_code in (401, 403):
            raise ConfigurationError(self.name, f"Object store rejected credentials ({resp.status_code})")
        resp.raise_for_status()
        logger.info("http_backend_initialized", provider=self.name, base_url=self._base_url)

    @_store_retry
    async def _put(self, filename: str, blob: bytes) -> None:
        resp = await self._client.put(
            _object_path(filename),
            content=blob,
            headers={"Content-Type": "application/octet-stream"},
        )
        resp.raise_for_status()

    @_store_retry
    async def _get(self, filename: str) -> bytes:
        resp = await self._client.get(_object_path(filename))
        if resp.status_code == 404:
            raise StoredFileNotFoundError(self.name, filename)
        resp.raise_for_status()
        return resp.content

    @_store_retry
    async def _remove(self, filename: str) -> None:
        resp = await self._client.delete(_object_path(filename))
        if resp.status_code == 404:
            raise StoredFileNotFoundError(self.name, filename)
        resp.raise_for_status()

    @_store_retry
    async def _list_names(self) -> set[str]:
        resp = await self._client.get("/objects")
        resp.raise_for_status()
        return _parse_listing(resp.json())

    async def _contains(self, filename: str) -> bool:
        resp = await self._client.head(_object_path(filename))
        return resp.status_code == 200

    async def _ping(self) -> bool:
        try:
            resp = await self._client.get("/objects")
        except httpx.HTTPError:
            return False
        return resp.is_success

    async def _disconnect(self) -> None:
        await self._client.aclose()


def _object_path(filename: str) -> str:
    return f"/objects/{quote(filename, safe='')}"


def _parse_listing(payload: Any) -> set[str]:
    if isinstance(payload, dict):
        payload = payload.get("objects", [])
    names: set[str] = set()
    for item in payload or []:
        if isinstance(item, dict):
            name = item.get("name")
            if name:
                names.add(str(name))
        else:
            names.add(str(item))
    return names
