"""Single bounded call into one backend.

Wraps an adapter coroutine with an explicit timeout, latency measurement,
metrics and logging, and turns every failure into a ``CallOutcome`` so the
coordinators can recover locally instead of unwinding.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import structlog

from multistore.domain.enums import StorageOperation
from multistore.shared.observability.metrics import BACKEND_CALLS, BACKEND_LATENCY

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CallOutcome:
    key: str
    ok: bool
    value: Any = None
    error: BaseException | None = None
    error_message: str | None = None
    latency_ms: float = 0.0
    timed_out: bool = False


async def call_backend(
    key: str,
    operation: StorageOperation,
    request_fn: Callable[[], Awaitable[Any]],
    *,
    timeout_s: float,
) -> CallOutcome:
    """Run ``request_fn`` against backend ``key`` with a timeout.

    Cancellation of the caller propagates; every other exception becomes a
    failed outcome.
    """
    log = logger.bind(provider=key, operation=operation.value)
    start = time.monotonic()
    try:
        value = await asyncio.wait_for(request_fn(), timeout=timeout_s)
    except asyncio.TimeoutError as exc:
        latency_ms = (time.monotonic() - start) * 1000
        _observe(key, operation, "timeout", latency_ms)
        log.warning("backend_call_timeout", timeout_s=timeout_s)
        return CallOutcome(
            key=key,
            ok=False,
            error=exc,
            error_message=f"Timeout after {timeout_s}s",
            latency_ms=latency_ms,
            timed_out=True,
        )
    except Exception as exc:
        latency_ms = (time.monotonic() - start) * 1000
        error_msg = f"{type(exc).__name__}: {exc}"
        _observe(key, operation, "failure", latency_ms)
        log.warning("backend_call_failed", error=error_msg, latency_ms=float(f"{latency_ms:.1f}"))
        return CallOutcome(
            key=key,
            ok=False,
            error=exc,
            error_message=error_msg,
            latency_ms=latency_ms,
        )

    latency_ms = (time.monotonic() - start) * 1000
    _observe(key, operation, "success", latency_ms)
    log.debug("backend_call_success", latency_ms=float(f"{latency_ms:.1f}"))
    return CallOutcome(key=key, ok=True, value=value, latency_ms=latency_ms)


def _observe(key: str, operation: StorageOperation, status: str, latency_ms: float) -> None:
    BACKEND_CALLS.labels(provider=key, operation=operation.value, status=status).inc()
    BACKEND_LATENCY.labels(provider=key, operation=operation.value).observe(latency_ms / 1000)
