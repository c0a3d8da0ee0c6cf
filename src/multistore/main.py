"""FastAPI application entry-point.

Assembles routers, middleware, exception handlers, and lifecycle hooks.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from multistore.adapters.inbound.rest.routers import (
    files_router,
    health_router,
    providers_router,
)
from multistore.config import Settings, get_settings
from multistore.dependencies import build_registry
from multistore.domain.exceptions import AllProvidersFailedError
from multistore.shared.errors import register_exception_handlers
from multistore.shared.middleware import (
    LoggingMiddleware,
    MetricsMiddleware,
    RequestIdMiddleware,
)
from multistore.shared.observability import configure_logging
from multistore.shared.providers import ProviderRegistry

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifecycle — startup & shutdown hooks."""
    settings: Settings = app.state.settings
    configure_logging(
        log_level=settings.log_level,
        json_logs=settings.json_logs or settings.is_production,
    )

    registry: ProviderRegistry | None = app.state.registry
    if registry is None:
        registry = build_registry(settings)
        app.state.registry = registry

    logger.info(
        "application_starting",
        env=settings.app_env.value,
        backends=registry.provider_keys(),
        redundancy_level=registry.redundancy_level.value,
    )
    try:
        await registry.initialize_all()
    except AllProvidersFailedError as exc:
        # Serve anyway: /health reports degraded and storage routes return 503.
        logger.error("storage_unavailable_at_startup", errors=exc.errors)

    yield

    await registry.shutdown()
    logger.info("application_shutdown")


def create_app(
    settings: Settings | None = None,
    registry: ProviderRegistry | None = None,
) -> FastAPI:
    """Application factory — creates a fully configured FastAPI instance."""
    settings = settings or get_settings()

    app = FastAPI(
        title="multistore",
        description=(
            "Redundant encrypted file storage across independent backends. "
            "Writes are replicated to a quorum of healthy providers and reads "
            "fail over in health order."
        ),
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    # Store settings and the (optional) injected registry for lifecycle access
    app.state.settings = settings
    app.state.registry = registry

    # ── Middleware (order matters: first added = outermost) ───
    cors_origins = settings.cors_origins
    allow_all_origins = "*" in cors_origins

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[] if allow_all_origins else cors_origins,
        allow_origin_regex=".*" if allow_all_origins else None,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    # ── Exception handlers ───────────────────────────────────
    register_exception_handlers(app)

    # ── REST routers (versioned) ─────────────────────────────
    api_v1 = "/api/v1"
    app.include_router(health_router, prefix=api_v1)
    app.include_router(files_router, prefix=api_v1)
    app.include_router(providers_router, prefix=api_v1)

    return app


# Uvicorn entry-point
app = create_app()
