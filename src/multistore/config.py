"""multistore — Application Configuration."""

from __future__ import annotations

import enum
from typing import Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from multistore.domain.enums import RedundancyLevel


class Environment(str, enum.Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Centralised, validated configuration loaded from environment / .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ──────────────────────────────────────────
    app_name: str = "multistore"
    app_env: Environment = Environment.DEVELOPMENT
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    log_level: str = "INFO"
    json_logs: bool = False
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    # ── Redundancy ───────────────────────────────────────────
    redundancy_level: RedundancyLevel = RedundancyLevel.DUAL
    preferred_backend: str | None = None
    backend_timeout_seconds: float = Field(30.0, gt=0)
    health_check_interval_seconds: float = Field(300.0, gt=0)

    # ── Backends (each enabled when its setting is non-empty) ─
    memory_backend_enabled: bool = False
    local_storage_dir: str = ""

    redis_url: str = ""
    redis_key_prefix: str = "multistore:"
    redis_max_connections: int = 50

    http_store_url: str = ""
    http_store_token: str = ""

    ipfs_api_url: str = ""
    ipfs_gateway_url: str = "https://ipfs.io/ipfs"
    ipfs_index_path: str = ""
    ipfs_local_fallback_dir: str = ""

    # ── Derived helpers ──────────────────────────────────────
    @property
    def is_production(self) -> bool:
        return self.app_env == Environment.PRODUCTION

    @property
    def configured_backends(self) -> list[str]:
        """Keys of the backends these settings enable, in registration order."""
        enabled = {
            "memory": self.memory_backend_enabled,
            "local": bool(self.local_storage_dir),
            "redis": bool(self.redis_url),
            "http": bool(self.http_store_url),
            "ipfs": bool(self.ipfs_api_url),
        }
        return [key for key, on in enabled.items() if on]

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, v: str) -> str:
        return v.upper()

    @field_validator("redundancy_level", mode="before")
    @classmethod
    def _parse_redundancy_level(cls, v: Any) -> RedundancyLevel:
        return RedundancyLevel.parse(v)

    @field_validator("preferred_backend", mode="before")
    @classmethod
    def _blank_preferred_is_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("redis_url")
    @classmethod
    def _validate_redis_url(cls, v: str) -> str:
        if v and not v.startswith(("redis://", "rediss://", "unix://")):
            raise ValueError("redis_url must start with 'redis://', 'rediss://' or 'unix://'")
        return v

    @model_validator(mode="after")
    def _guard_production_backends(self) -> Settings:
        """Production must not start with nothing to store into."""
        if self.app_env == Environment.PRODUCTION:
            if not self.configured_backends:
                raise ValueError("at least one storage backend must be configured in production")
            if self.configured_backends == ["memory"]:
                import warnings
                warnings.warn(
                    "only the in-memory backend is enabled in production; data will not survive a restart",
                    UserWarning,
                    stacklevel=2,
                )
        return self


def get_settings(**overrides: Any) -> Settings:
    """Factory that allows test-time overrides."""
    return Settings(**overrides)
