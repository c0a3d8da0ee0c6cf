"""Data Transfer Objects — Pydantic models for API boundaries.

DTOs handle serialisation, validation, and documentation.  They adapt
between the HTTP surface and the storage layer's own value objects.
"""

from __future__ import annotations

from datetime import datetime

from typing import Any

from pydantic import BaseModel, Field, field_validator

from multistore.domain.enums import RedundancyLevel


# ═══════════════════════════════════════════════════════════════
#  Common
# ═══════════════════════════════════════════════════════════════
class ErrorResponse(BaseModel):
    code: str
    message: str
    details: dict | None = None  # type: ignore[type-arg]


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    environment: str = "development"
    services: dict[str, str] = Field(default_factory=dict)


# ═══════════════════════════════════════════════════════════════
#  Files
# ═══════════════════════════════════════════════════════════════
class WriteReceiptResponse(BaseModel):
    filename: str
    level: RedundancyLevel
    stored_on: list[str]
    attempted: list[str]
    success_count: int
    minimum_required: int
    errors: dict[str, str] = Field(default_factory=dict)
    completed_at: datetime


class DeleteReceiptResponse(BaseModel):
    filename: str
    deleted_from: list[str]
    errors: dict[str, str] = Field(default_factory=dict)


class ExistsResponse(BaseModel):
    filename: str
    exists: bool


class FileListResponse(BaseModel):
    total: int
    files: list[str]


# ═══════════════════════════════════════════════════════════════
#  Providers
# ═══════════════════════════════════════════════════════════════
class ProviderStatusResponse(BaseModel):
    key: str
    is_healthy: bool
    health_score: float = Field(..., ge=0.0, le=1.0)
    last_checked: datetime
    consecutive_failures: int
    last_error: str | None = None


class StatisticsResponse(BaseModel):
    total_providers: int
    healthy_providers: int
    average_health_score: float
    redundancy_level: RedundancyLevel
    redundancy_enabled: bool
    preferred_backend: str | None = None


class RedundancyUpdateRequest(BaseModel):
    """Either an explicit level, or the coarse on/off switch."""

    level: RedundancyLevel | None = None
    enabled: bool | None = None
    preferred_backend: str | None = None

    @field_validator("level", mode="before")
    @classmethod
    def _parse_level(cls, v: Any) -> Any:
        return None if v is None else RedundancyLevel.parse(v)


class HealthCheckResponse(BaseModel):
    results: dict[str, bool]
    healthy: int
    total: int
