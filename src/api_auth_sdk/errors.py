"""Error classes for the API auth SDK.

Closed error hierarchy with error codes and correlation IDs so callers can
match on the failure kind instead of inspecting response shapes.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import httpx


class ErrorCode(StrEnum):
    """Standardized error codes for the API auth SDK."""

    # Authentication errors (1xxx)
    AUTH_EXPIRED = "AUTH_1001"
    NO_REFRESH_TOKEN = "AUTH_1002"
    REFRESH_FAILED = "AUTH_1003"

    # Network errors (3xxx)
    TRANSPORT_ERROR = "NET_3001"
    TIMEOUT_ERROR = "NET_3002"

    # Upstream errors (4xxx)
    UPSTREAM_ERROR = "UPS_4001"

    # Configuration errors (5xxx)
    INVALID_CONFIG = "CFG_5001"


class ApiClientError(Exception):
    """Base error for the API auth SDK with structured error information."""

    def __init__(
        self,
        message: str,
        code: ErrorCode | str,
        *,
        status_code: int | None = None,
        correlation_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code.value if isinstance(code, ErrorCode) else code
        self.status_code = status_code
        self.correlation_id = correlation_id
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error": self.message,
            "code": self.code,
            "status_code": self.status_code,
            "correlation_id": self.correlation_id,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


class AuthExpiredError(ApiClientError):
    """Request was rejected as unauthenticated after its one refresh retry."""

    def __init__(
        self,
        message: str = "Access token has expired",
        *,
        response: httpx.Response | None = None,
        correlation_id: str | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.AUTH_EXPIRED,
            status_code=401,
            correlation_id=correlation_id,
        )
        self.response = response


class NoRefreshTokenError(ApiClientError):
    """No refresh token was stored when a refresh was needed."""

    def __init__(
        self,
        message: str = "No refresh token available",
        *,
        correlation_id: str | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.NO_REFRESH_TOKEN,
            status_code=401,
            correlation_id=correlation_id,
        )


class RefreshFailedError(ApiClientError):
    """The refresh endpoint rejected the refresh token or could not be reached."""

    def __init__(
        self,
        message: str = "Failed to refresh token",
        *,
        status_code: int | None = 401,
        correlation_id: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.REFRESH_FAILED,
            status_code=status_code,
            correlation_id=correlation_id,
            details={"cause": str(cause)} if cause else None,
        )
        self.__cause__ = cause


class TransportError(ApiClientError):
    """Network request failed."""

    def __init__(
        self,
        message: str = "Network request failed",
        *,
        code: ErrorCode = ErrorCode.TRANSPORT_ERROR,
        correlation_id: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            message,
            code,
            correlation_id=correlation_id,
            details={"cause": str(cause)} if cause else None,
        )
        self.__cause__ = cause


class RequestTimeoutError(TransportError):
    """Request, or the wait for a credential refresh, timed out."""

    def __init__(
        self,
        message: str = "Request timed out",
        *,
        correlation_id: str | None = None,
        timeout_seconds: float | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            message,
            code=ErrorCode.TIMEOUT_ERROR,
            correlation_id=correlation_id,
            cause=cause,
        )
        self.status_code = 408
        if timeout_seconds:
            self.details["timeout_seconds"] = timeout_seconds


class UpstreamError(ApiClientError):
    """Upstream API answered with a non-auth failure."""

    def __init__(
        self,
        message: str = "Upstream request failed",
        *,
        status_code: int | None = None,
        correlation_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.UPSTREAM_ERROR,
            status_code=status_code,
            correlation_id=correlation_id,
            details=details,
        )


class InvalidConfigError(ApiClientError):
    """Invalid SDK configuration."""

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.INVALID_CONFIG,
            details={"field": field} if field else None,
        )
