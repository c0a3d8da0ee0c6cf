"""IPFS storage backend.

Uploads go through the node's HTTP API (``/api/v0/add``); reads come back
through a public gateway by content hash.  Since IPFS addresses content, not
names, the adapter keeps a filename → ``ObjectRef`` index, persisted as JSON
when ``index_path`` is set.

Content on IPFS is immutable: ``delete`` only forgets the mapping.

When a local fallback directory is configured and the remote add fails, the
ciphertext is written there instead and the index entry is tagged
``StorageLocation.LOCAL_FALLBACK`` so nobody mistakes it for a remote copy.
"""

from __future__ import annotations

import asyncio
import hashlib
from pathlib import Path

import httpx
import orjson
import structlog
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from multistore.adapters.outbound.storage.base import BaseStorageBackend
from multistore.domain.enums import StorageLocation
from multistore.domain.exceptions import (
    BackendError,
    ConfigurationError,
    DownloadFailedError,
    StoredFileNotFoundError,
    UploadFailedError,
)
from multistore.domain.value_objects import ObjectRef
from multistore.ports.outbound import EncryptionPort

logger = structlog.get_logger(__name__)

DEFAULT_GATEWAY_URL = "https://ipfs.io/ipfs"

_ipfs_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((httpx.NetworkError, httpx.TimeoutException)),
    before_sleep=before_sleep_log(logger, "WARNING"),
    reraise=True,
)


class IPFSStorageBackend(BaseStorageBackend):
    """Content-addressed storage with a local name index."""

    def __init__(
        self,
        api_url: str,
        encryptor: EncryptionPort,
        *,
        name: str = "ipfs",
        gateway_url: str = DEFAULT_GATEWAY_URL,
        index_path: str | Path | None = None,
        local_fallback_dir: str | Path | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(name, encryptor)
        self._api_url = api_url
        self._index_path = Path(index_path) if index_path else None
        self._fallback_dir = Path(local_fallback_dir) if local_fallback_dir else None
        self._index: dict[str, ObjectRef] = {}
        self._api = httpx.AsyncClient(base_url=api_url, timeout=timeout, transport=transport)
        self._gateway = httpx.AsyncClient(
            base_url=gateway_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            follow_redirects=True,
        )

    # ── Extra operations ─────────────────────────────────────
    def object_ref(self, filename: str) -> ObjectRef | None:
        """Where ``filename`` lives, or ``None`` if this backend does not know it."""
        return self._index.get(filename)

    async def pin(self, filename: str) -> None:
        """Ask the node to pin the content behind ``filename``."""
        ref = self._remote_ref(filename)
        resp = await self._api.post("/api/v0/pin/add", params={"arg": ref.reference})
        if not resp.is_success:
            raise BackendError(self.name, f"Pinning {filename!r} failed ({resp.status_code})", code="PIN_FAILED")
        logger.info("ipfs_pinned", provider=self.name, filename=filename, cid=ref.reference)

    async def unpin(self, filename: str) -> None:
        ref = self._remote_ref(filename)
        resp = await self._api.post("/api/v0/pin/rm", params={"arg": ref.reference})
        if not resp.is_success:
            raise BackendError(self.name, f"Unpinning {filename!r} failed ({resp.status_code})", code="UNPIN_FAILED")
        logger.info("ipfs_unpinned", provider=self.name, filename=filename, cid=ref.reference)

    # ── Transport hooks ──────────────────────────────────────
    @_ipfs_retry
    async def _connect(self) -> None:
        if not self._api_url:
            raise ConfigurationError(self.name, "ipfs_api_url is not set")
        resp = await self._api.post("/api/v0/version")
        if not resp.is_success:
            raise ConfigurationError(self.name, f"IPFS node unreachable ({resp.status_code})")
        version = resp.json().get("Version", "unknown")
        self._index = await asyncio.to_thread(self._load_index)
        logger.info(
            "ipfs_backend_initialized",
            provider=self.name,
            version=version,
            mappings=len(self._index),
        )

    async def _put(self, filename: str, blob: bytes) -> None:
        try:
            ref = await self._add_remote(filename, blob)
        except (httpx.HTTPError, UploadFailedError) as exc:
            if self._fallback_dir is None:
                raise
            logger.warning("ipfs_add_failed_using_local_fallback", provider=self.name, filename=filename, error=str(exc))
            ref = await asyncio.to_thread(self._write_fallback, filename, blob)
        self._index[filename] = ref
        await asyncio.to_thread(self._save_index)

    async def _get(self, filename: str) -> bytes:
        ref = self._index.get(filename)
        if ref is None:
            raise StoredFileNotFoundError(self.name, filename)
        if ref.is_local_fallback:
            try:
                return await asyncio.to_thread(self._fallback_path(ref.reference).read_bytes)
            except FileNotFoundError:
                raise StoredFileNotFoundError(self.name, filename) from None
        resp = await self._gateway.get(f"/{ref.reference}")
        if not resp.is_success:
            raise DownloadFailedError(self.name, f"Gateway returned {resp.status_code} for {ref.reference}")
        return resp.content

    async def _remove(self, filename: str) -> None:
        ref = self._index.pop(filename, None)
        if ref is None:
            raise StoredFileNotFoundError(self.name, filename)
        if ref.is_local_fallback:
            await asyncio.to_thread(self._fallback_path(ref.reference).unlink, missing_ok=True)
        await asyncio.to_thread(self._save_index)
        logger.info("ipfs_mapping_removed", provider=self.name, filename=filename, cid=ref.reference)

    async def _list_names(self) -> set[str]:
        return set(self._index)

    async def _contains(self, filename: str) -> bool:
        return filename in self._index

    async def _ping(self) -> bool:
        try:
            resp = await self._api.post("/api/v0/version")
        except httpx.HTTPError:
            return False
        return resp.is_success

    async def _disconnect(self) -> None:
        await self._api.aclose()
        await self._gateway.aclose()

    # ── Internals ────────────────────────────────────────────
    @_ipfs_retry
    async def _add_remote(self, filename: str, blob: bytes) -> ObjectRef:
        resp = await self._api.post(
            "/api/v0/add",
            files={"file": (filename, blob, "application/octet-stream")},
        )
        if not resp.is_success:
            raise UploadFailedError(self.name, f"IPFS add returned {resp.status_code}")
        cid = resp.json().get("Hash")
        if not cid:
            raise UploadFailedError(self.name, "IPFS add response carried no hash")
        logger.info("ipfs_uploaded", provider=self.name, filename=filename, cid=cid)
        return ObjectRef(filename=filename, reference=cid, size=len(blob))

    def _remote_ref(self, filename: str) -> ObjectRef:
        self._require_initialized()
        ref = self._index.get(filename)
        if ref is None:
            raise StoredFileNotFoundError(self.name, filename)
        if ref.is_local_fallback:
            raise BackendError(self.name, f"{filename!r} is only held in the local fallback", code="NOT_REMOTE")
        return ref

    def _fallback_path(self, reference: str) -> Path:
        assert self._fallback_dir is not None
        return self._fallback_dir / reference

    def _write_fallback(self, filename: str, blob: bytes) -> ObjectRef:
        assert self._fallback_dir is not None
        self._fallback_dir.mkdir(parents=True, exist_ok=True)
        reference = hashlib.sha256(filename.encode("utf-8")).hexdigest()
        self._fallback_path(reference).write_bytes(blob)
        return ObjectRef(
            filename=filename,
            reference=reference,
            location=StorageLocation.LOCAL_FALLBACK,
            size=len(blob),
        )

    def _load_index(self) -> dict[str, ObjectRef]:
        if self._index_path is None or not self._index_path.exists():
            return dict(self._index)
        raw = orjson.loads(self._index_path.read_bytes())
        return {name: ObjectRef.from_dict(entry) for name, entry in raw.items()}

    def _save_index(self) -> None:
        if self._index_path is None:
            return
        self._index_path.parent.mkdir(parents=True, exist_ok=True)
        payload = {name: ref.to_dict() for name, ref in self._index.items()}
        tmp = self._index_path.with_name(self._index_path.name + ".partial")
        tmp.write_bytes(orjson.dumps(payload, option=orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS))
        tmp.replace(self._index_path)
