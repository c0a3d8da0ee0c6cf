"""Health, Files, Providers — REST routers."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import ORJSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from multistore.application.dtos import (
    DeleteReceiptResponse,
    ExistsResponse,
    FileListResponse,
    HealthCheckResponse,
    HealthResponse,
    ProviderStatusResponse,
    RedundancyUpdateRequest,
    StatisticsResponse,
    WriteReceiptResponse,
)
from multistore.dependencies import get_cached_settings, get_registry, get_storage_key
from multistore.shared.providers import ProviderRegistry


# ═══════════════════════════════════════════════════════════════
#  Health
# ═══════════════════════════════════════════════════════════════
health_router = APIRouter(tags=["Health"])


@health_router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> ORJSONResponse:
    settings = getattr(request.app.state, "settings", None) or get_cached_settings()
    registry: ProviderRegistry | None = getattr(request.app.state, "registry", None)

    services: dict[str, str] = {}
    overall = "degraded"
    if registry is not None:
        for provider in registry.provider_statuses():
            services[provider.key] = "healthy" if provider.is_healthy else "unhealthy"
        stats = registry.statistics()
        if registry.is_initialized() and stats.healthy_providers > 0:
            overall = "ok"
        services["redundancy_level"] = stats.redundancy_level.value

    resp = HealthResponse(
        status=overall,
        environment=settings.app_env.value,
        services=services,
    )
    status_code = 200 if overall == "ok" else 503
    return ORJSONResponse(content=resp.model_dump(), status_code=status_code)


@health_router.get("/metrics")
async def prometheus_metrics() -> Response:
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )


# ═══════════════════════════════════════════════════════════════
#  Files
# ═══════════════════════════════════════════════════════════════
files_router = APIRouter(prefix="/files", tags=["Files"])


@files_router.get("", response_model=FileListResponse)
async def list_files(
    registry: ProviderRegistry = Depends(get_registry),
) -> FileListResponse:
    """Union of filenames across every healthy provider."""
    names = sorted(await registry.list_files())
    return FileListResponse(total=len(names), files=names)


@files_router.get("/{filename:path}/exists", response_model=ExistsResponse)
async def file_exists(
    filename: str,
    registry: ProviderRegistry = Depends(get_registry),
) -> ExistsResponse:
    return ExistsResponse(filename=filename, exists=await registry.exists(filename))


@files_router.head("/{filename:path}")
async def head_file(
    filename: str,
    registry: ProviderRegistry = Depends(get_registry),
) -> Response:
    found = await registry.exists(filename)
    return Response(status_code=200 if found else 404)


@files_router.put("/{filename:path}", response_model=WriteReceiptResponse, status_code=201)
async def store_file(
    filename: str,
    request: Request,
    credential: str = Depends(get_storage_key),
    registry: ProviderRegistry = Depends(get_registry),
) -> WriteReceiptResponse:
    """Store the raw request body with the active redundancy level."""
    data = await request.body()
    receipt = await registry.store(data, filename, credential)
    return WriteReceiptResponse(**receipt.to_dict())


@files_router.get("/{filename:path}")
async def retrieve_file(
    filename: str,
    credential: str = Depends(get_storage_key),
    registry: ProviderRegistry = Depends(get_registry),
) -> Response:
    data = await registry.retrieve(filename, credential)
    return Response(content=data, media_type="application/octet-stream")


@files_router.delete("/{filename:path}", response_model=DeleteReceiptResponse)
async def delete_file(
    filename: str,
    registry: ProviderRegistry = Depends(get_registry),
) -> DeleteReceiptResponse:
    receipt = await registry.delete(filename)
    return DeleteReceiptResponse(**receipt.to_dict())


# ═══════════════════════════════════════════════════════════════
#  Providers
# ═══════════════════════════════════════════════════════════════
providers_router = APIRouter(prefix="/providers", tags=["Provider Health"])


@providers_router.get("/health", response_model=list[ProviderStatusResponse])
async def provider_health(
    registry: ProviderRegistry = Depends(get_registry),
) -> list[ProviderStatusResponse]:
    """Health snapshots for all registered storage providers."""
    return [ProviderStatusResponse(**s.to_dict()) for s in registry.provider_statuses()]


@providers_router.get("/statistics", response_model=StatisticsResponse)
async def provider_statistics(
    registry: ProviderRegistry = Depends(get_registry),
) -> StatisticsResponse:
    return _statistics(registry)


@providers_router.put("/redundancy", response_model=StatisticsResponse)
async def update_redundancy(
    body: RedundancyUpdateRequest,
    registry: ProviderRegistry = Depends(get_registry),
) -> StatisticsResponse:
    """Change the redundancy level, the coarse on/off switch, or the preferred provider."""
    if body.level is not None:
        registry.set_redundancy_level(body.level)
    elif body.enabled is not None:
        registry.set_redundancy(body.enabled)
    if "preferred_backend" in body.model_fields_set:
        registry.set_preferred_backend(body.preferred_backend)
    return _statistics(registry)


@providers_router.post("/health-check", response_model=HealthCheckResponse)
async def run_health_check(
    registry: ProviderRegistry = Depends(get_registry),
) -> HealthCheckResponse:
    """Run one health-check cycle immediately."""
    results = await registry.perform_health_check()
    return HealthCheckResponse(
        results=results,
        healthy=sum(1 for ok in results.values() if ok),
        total=len(results),
    )


def _statistics(registry: ProviderRegistry) -> StatisticsResponse:
    stats = registry.statistics()
    return StatisticsResponse(
        **stats.to_dict(),
        redundancy_enabled=registry.redundancy_enabled,
        preferred_backend=registry.preferred_backend,
    )
