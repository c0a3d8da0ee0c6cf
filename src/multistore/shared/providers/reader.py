"""Health-ordered failover reads.

Reads are intentionally sequential: the best-ranked healthy backend is asked
first and the first success wins, so no work is wasted on lower-ranked
copies.  Each failure (timeout, not-found, decrypt error, ...) is recorded
against the backend before moving on to the next candidate.
"""

from __future__ import annotations

import asyncio
from functools import partial
from typing import TYPE_CHECKING

import structlog

from multistore.domain.enums import StorageOperation
from multistore.domain.exceptions import AllProvidersFailedError, StoredFileNotFoundError
from multistore.shared.providers.dispatch import call_backend

if TYPE_CHECKING:
    from multistore.shared.providers.registry import ProviderRegistry

logger = structlog.get_logger(__name__)


class ReadCoordinator:
    """Retrieve, existence and listing across the registered backends."""

    def __init__(self, registry: ProviderRegistry, *, timeout_s: float = 30.0) -> None:
        self._registry = registry
        self._timeout = timeout_s

    async def retrieve(self, filename: str, credential: str) -> bytes:
        """Return the first copy of ``filename`` a healthy backend can produce.

        Raises:
            NotInitializedError: The registry has not been initialized.
            AllProvidersFailedError: No healthy backend, or every one failed.
                ``not_found`` is set when every failure was a missing file.
        """
        self._registry.require_initialized()
        chain = self._registry.read_order()
        if not chain:
            logger.warning("retrieve_no_healthy_providers", filename=filename)
            raise AllProvidersFailedError()

        health = self._registry.health
        errors: dict[str, str] = {}
        only_missing = True

        for key in chain:
            backend = self._registry.backend(key)
            outcome = await call_backend(
                key,
                StorageOperation.RETRIEVE,
                partial(backend.retrieve, filename, credential),
                timeout_s=self._timeout,
            )
            if outcome.ok:
                health.record_success(key)
                if errors:
                    logger.info(
                        "retrieve_failover_success",
                        filename=filename,
                        provider=key,
                        attempts=len(errors) + 1,
                        failed_providers=list(errors),
                    )
                else:
                    logger.info("retrieve_completed", filename=filename, provider=key)
                return outcome.value

            health.record_failure(key, outcome.error_message)
            errors[key] = outcome.error_message or "unknown error"
            if not isinstance(outcome.error, StoredFileNotFoundError):
                only_missing = False

        logger.error("retrieve_all_providers_failed", filename=filename, errors=errors)
        raise AllProvidersFailedError(errors, not_found=only_missing)

    async def exists(self, filename: str) -> bool:
        """True if any healthy backend reports the file.  Never raises.

        Probes do not feed the health tracker: a missing file says nothing
        about the backend.
        """
        if not self._registry.is_initialized():
            return False

        for key in self._registry.read_order():
            backend = self._registry.backend(key)
            try:
                found = await asyncio.wait_for(backend.exists(filename), timeout=self._timeout)
            except asyncio.TimeoutError:
                logger.debug("exists_probe_timeout", provider=key, filename=filename)
                continue
            except Exception as exc:
                logger.debug("exists_probe_failed", provider=key, filename=filename, error=str(exc))
                continue
            if found:
                return True
        return False

    async def list_files(self) -> set[str]:
        """Union of the filenames known to every healthy backend."""
        self._registry.require_initialized()
        chain = self._registry.read_order()
        if not chain:
            raise AllProvidersFailedError()

        outcomes = await asyncio.gather(
            *(
                call_backend(
                    key,
                    StorageOperation.LIST,
                    self._registry.backend(key).list,
                    timeout_s=self._timeout,
                )
                for key in chain
            )
        )

        health = self._registry.health
        names: set[str] = set()
        errors: dict[str, str] = {}
        for outcome in outcomes:
            if outcome.ok:
                health.record_success(outcome.key)
                names.update(outcome.value)
            else:
                health.record_failure(outcome.key, outcome.error_message)
                errors[outcome.key] = outcome.error_message or "unknown error"

        if len(errors) == len(chain):
            raise AllProvidersFailedError(errors)
        return names
