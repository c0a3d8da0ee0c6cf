"""Global exception handlers — map storage errors to HTTP responses."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse
import structlog

from multistore.domain.exceptions import (
    AllProvidersFailedError,
    BackendError,
    InsufficientProvidersError,
    NotInitializedError,
    RedundancyNotMetError,
    StorageError,
)

logger = structlog.get_logger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    """Register all storage→HTTP exception mappings."""

    @app.exception_handler(NotInitializedError)
    async def handle_not_initialized(request: Request, exc: NotInitializedError) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=503,
            content={"code": exc.code, "message": exc.message},
        )

    @app.exception_handler(InsufficientProvidersError)
    async def handle_insufficient(request: Request, exc: InsufficientProvidersError) -> ORJSONResponse:
        logger.warning("insufficient_providers_http", required=exc.required, available=exc.available)
        return ORJSONResponse(
            status_code=503,
            content={
                "code": exc.code,
                "message": exc.message,
                "details": {"required": exc.required, "available": exc.available},
            },
        )

    @app.exception_handler(RedundancyNotMetError)
    async def handle_redundancy_not_met(request: Request, exc: RedundancyNotMetError) -> ORJSONResponse:
        logger.error("redundancy_not_met_http", achieved=exc.achieved, required=exc.required)
        return ORJSONResponse(
            status_code=502,
            content={
                "code": exc.code,
                "message": exc.message,
                "details": {"achieved": exc.achieved, "required": exc.required, "errors": exc.errors},
            },
        )

    @app.exception_handler(AllProvidersFailedError)
    async def handle_all_failed(request: Request, exc: AllProvidersFailedError) -> ORJSONResponse:
        if exc.not_found:
            return ORJSONResponse(
                status_code=404,
                content={"code": "FILE_NOT_FOUND", "message": "File not found on any provider"},
            )
        logger.error("all_providers_failed_http", errors=exc.errors)
        return ORJSONResponse(
            status_code=502,
            content={"code": exc.code, "message": exc.message, "details": {"errors": exc.errors}},
        )

    @app.exception_handler(BackendError)
    async def handle_backend(request: Request, exc: BackendError) -> ORJSONResponse:
        logger.error("backend_error_http", provider=exc.provider, message=exc.message)
        return ORJSONResponse(
            status_code=502,
            content={"code": exc.code, "message": exc.message},
        )

    @app.exception_handler(StorageError)
    async def handle_storage(request: Request, exc: StorageError) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=400,
            content={"code": exc.code, "message": exc.message},
        )

    @app.exception_handler(ValueError)
    async def handle_value_error(request: Request, exc: ValueError) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=422,
            content={"code": "VALIDATION_ERROR", "message": str(exc)},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception("unhandled_exception", error=str(exc))
        return ORJSONResponse(
            status_code=500,
            content={
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
            },
        )
