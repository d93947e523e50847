"""Configuration for the API auth SDK.

Uses Pydantic v2 for validation with sensible defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any, Self

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    field_validator,
)

from .errors import InvalidConfigError

DEFAULT_BASE_URL = "http://localhost:8080/api"

DEFAULT_PUBLIC_PATHS: tuple[str, ...] = (
    "/auth/login",
    "/auth/register",
    "/auth/forgot-password",
    "/auth/verify-reset-otp",
    "/auth/reset-password",
    "/auth/refresh",
    "/locations",
)


class TelemetryConfig(BaseModel):
    """Logging and tracing configuration."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    service_name: str = "api-auth-sdk"
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a known level name."""
        supported = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in supported:
            msg = f"Unsupported log level: {v}. Supported: {supported}"
            raise ValueError(msg)
        return v.upper()


class ClientConfig(BaseModel):
    """Main configuration for the API auth SDK."""

    model_config = ConfigDict(frozen=True, validate_default=True)

    base_url: HttpUrl = DEFAULT_BASE_URL  # type: ignore[assignment]

    # HTTP settings
    timeout: Annotated[float, Field(gt=0, le=300)] = 30.0
    connect_timeout: Annotated[float, Field(gt=0, le=60)] = 10.0

    # Refresh settings
    refresh_path: str = "/auth/refresh"
    refresh_timeout: Annotated[float, Field(gt=0, le=300)] = 30.0
    wait_timeout: Annotated[float, Field(gt=0)] | None = None
    public_paths: tuple[str, ...] = DEFAULT_PUBLIC_PATHS

    # Credential persistence (in-memory when unset)
    credentials_path: Path | None = None

    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)

    @field_validator("refresh_path")
    @classmethod
    def validate_refresh_path(cls, v: str) -> str:
        """Refresh path must be relative to the base URL."""
        if not v.startswith("/"):
            msg = f"refresh_path must start with '/': {v!r}"
            raise ValueError(msg)
        return v

    @field_validator("public_paths")
    @classmethod
    def validate_public_paths(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Reject empty fragments, which would make every path public."""
        if any(not fragment for fragment in v):
            msg = "public_paths must not contain empty fragments"
            raise ValueError(msg)
        return v

    @property
    def base_url_str(self) -> str:
        """Get base URL as string without trailing slash."""
        return str(self.base_url).rstrip("/")

    def with_overrides(self, **kwargs: Any) -> Self:
        """Create new config with overridden values."""
        data = self.model_dump()
        data.update(kwargs)
        return self.__class__(**data)

    @classmethod
    def from_env(cls, prefix: str = "API_") -> Self:
        """Create config from environment variables."""
        import os

        def get_env(key: str, default: Any = None) -> Any:
            return os.environ.get(f"{prefix}{key}", default)

        def get_float(key: str, default: str) -> float:
            raw = get_env(key, default)
            try:
                return float(raw)
            except ValueError as e:
                msg = f"{prefix}{key} must be a number, got {raw!r}"
                raise InvalidConfigError(msg, field=key.lower()) from e

        data: dict[str, Any] = {
            "base_url": get_env("BASE_URL", DEFAULT_BASE_URL),
            "timeout": get_float("TIMEOUT", "30.0"),
            "refresh_timeout": get_float("REFRESH_TIMEOUT", "30.0"),
        }

        credentials_path = get_env("CREDENTIALS_PATH")
        if credentials_path:
            data["credentials_path"] = Path(credentials_path)

        log_level = get_env("LOG_LEVEL")
        if log_level:
            data["telemetry"] = TelemetryConfig(log_level=log_level)

        return cls(**data)
