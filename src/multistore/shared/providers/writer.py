"""Quorum write coordinator.

A write is dispatched concurrently to the ``required_providers`` best-ranked
healthy backends and accepted once ``minimum_required`` of them succeed.
Every in-flight call is allowed to finish (bounded by the per-call timeout)
so each backend's outcome reaches the health tracker; nothing is cancelled
early once the quorum is reached.

No compensating rollback is attempted when the quorum is missed: copies that
did land stay where they are.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from functools import partial
from typing import TYPE_CHECKING, Any

import structlog

from multistore.domain.enums import StorageOperation
from multistore.domain.exceptions import (
    AllProvidersFailedError,
    InsufficientProvidersError,
    RedundancyNotMetError,
    StoredFileNotFoundError,
)
from multistore.domain.value_objects import DeleteReceipt, WriteReceipt
from multistore.ports.outbound import StorageBackendPort
from multistore.shared.providers.dispatch import CallOutcome, call_backend

if TYPE_CHECKING:
    from multistore.shared.providers.registry import ProviderRegistry

logger = structlog.get_logger(__name__)


class WriteCoordinator:
    """Fans writes and deletes out to several backends at once."""

    def __init__(self, registry: ProviderRegistry, *, timeout_s: float = 30.0) -> None:
        self._registry = registry
        self._timeout = timeout_s

    # ── Store ────────────────────────────────────────────────
    async def store(self, data: bytes, filename: str, credential: str) -> WriteReceipt:
        """Store ``data`` under ``filename`` with the active redundancy level.

        Raises:
            NotInitializedError: The registry has not been initialized.
            InsufficientProvidersError: Fewer healthy backends than the quorum;
                no backend was touched.
            RedundancyNotMetError: Fewer than ``minimum_required`` writes landed.
        """
        self._registry.require_initialized()
        plan = self._registry.write_plan()
        requirement = plan.requirement
        available = len(plan.ranked_healthy)

        if available < requirement.minimum_required:
            logger.warning(
                "store_insufficient_providers",
                filename=filename,
                level=plan.level.value,
                required=requirement.minimum_required,
                available=available,
            )
            raise InsufficientProvidersError(
                required=requirement.minimum_required,
                available=available,
            )

        candidates = plan.candidates
        outcomes = await asyncio.gather(
            *(
                self._attempt(
                    key,
                    StorageOperation.STORE,
                    partial(self._registry.backend(key).store, data, filename, credential),
                )
                for key in candidates
            )
        )

        stored_on = tuple(o.key for o in outcomes if o.ok)
        errors = {o.key: o.error_message or "unknown error" for o in outcomes if not o.ok}

        if len(stored_on) < requirement.minimum_required:
            logger.error(
                "store_redundancy_not_met",
                filename=filename,
                level=plan.level.value,
                achieved=len(stored_on),
                required=requirement.minimum_required,
                errors=errors,
            )
            raise RedundancyNotMetError(
                achieved=len(stored_on),
                required=requirement.minimum_required,
                errors=errors,
            )

        log = logger.bind(
            filename=filename,
            level=plan.level.value,
            stored_on=list(stored_on),
            attempted=len(candidates),
        )
        if errors:
            log.warning("store_completed_partial", failed_providers=list(errors))
        else:
            log.info("store_completed")

        return WriteReceipt(
            filename=filename,
            level=plan.level,
            stored_on=stored_on,
            attempted=tuple(candidates),
            minimum_required=requirement.minimum_required,
            errors=errors,
        )

    # ── Delete ───────────────────────────────────────────────
    async def delete(self, filename: str) -> DeleteReceipt:
        """Delete ``filename`` from every healthy backend.

        A backend that reports the file as absent counts as a success, so
        deleting twice is harmless.
        """
        self._registry.require_initialized()
        targets = self._registry.read_order()
        if not targets:
            logger.warning("delete_no_healthy_providers", filename=filename)
            raise AllProvidersFailedError()

        outcomes = await asyncio.gather(
            *(
                self._attempt(
                    key,
                    StorageOperation.DELETE,
                    partial(_delete_idempotent, self._registry.backend(key), filename),
                )
                for key in targets
            )
        )

        deleted_from = tuple(o.key for o in outcomes if o.ok)
        errors = {o.key: o.error_message or "unknown error" for o in outcomes if not o.ok}
        if not deleted_from:
            logger.error("delete_failed_everywhere", filename=filename, errors=errors)
            raise AllProvidersFailedError(errors)

        logger.info("delete_completed", filename=filename, deleted_from=list(deleted_from))
        return DeleteReceipt(filename=filename, deleted_from=deleted_from, errors=errors)

    # ── Internals ────────────────────────────────────────────
    async def _attempt(
        self,
        key: str,
        operation: StorageOperation,
        request_fn: Callable[[], Awaitable[Any]],
    ) -> CallOutcome:
        outcome = await call_backend(key, operation, request_fn, timeout_s=self._timeout)
        if outcome.ok:
            self._registry.health.record_success(key)
        else:
            self._registry.health.record_failure(key, outcome.error_message)
        return outcome


async def _delete_idempotent(backend: StorageBackendPort, filename: str) -> None:
    try:
        await backend.delete(filename)
    except StoredFileNotFoundError:
        logger.debug("delete_already_absent", filename=filename)
