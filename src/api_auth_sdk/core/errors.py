"""Centralized error factory for the API auth SDK.

Provides consistent error creation and transformation across the dispatcher,
the refresh backend and the clients.
"""

from __future__ import annotations

import uuid
from typing import Any

import httpx

from ..errors import (
    ApiClientError,
    AuthExpiredError,
    RefreshFailedError,
    RequestTimeoutError,
    TransportError,
    UpstreamError,
)

DEFAULT_ERROR_MESSAGE = "An unexpected error occurred"


class ErrorFactory:
    """Centralized error creation with consistent structure.

    All errors created through this factory include:
    - Standardized error codes
    - Correlation IDs for tracing
    - The upstream message when the body carries one
    """

    @staticmethod
    def generate_correlation_id() -> str:
        """Generate a unique correlation ID."""
        return str(uuid.uuid4())

    @staticmethod
    def extract_message(response: httpx.Response) -> str | None:
        """Pull the human readable message out of an error body.

        The localized ``vietnameseMessage`` wins over ``message``.
        """
        try:
            body = response.json()
        except ValueError:
            return None
        if not isinstance(body, dict):
            return None
        for key in ("vietnameseMessage", "vietnamese_message", "message", "error_description", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
        return None

    @staticmethod
    def from_http_response(
        response: httpx.Response,
        *,
        correlation_id: str | None = None,
    ) -> ApiClientError:
        """Create SDK error from a failed HTTP response.

        Args:
            response: HTTP response object.
            correlation_id: Optional correlation ID for tracing.

        Returns:
            ``AuthExpiredError`` for 401, ``UpstreamError`` otherwise.
        """
        correlation_id = correlation_id or ErrorFactory.generate_correlation_id()

        if response.status_code == 401:
            return ErrorFactory.auth_expired(response, correlation_id=correlation_id)

        return ErrorFactory.upstream(response, correlation_id=correlation_id)

    @staticmethod
    def upstream(
        response: httpx.Response,
        *,
        correlation_id: str | None = None,
    ) -> UpstreamError:
        """Create error for a failed response the caller asked to be raised.

        Args:
            response: Failed HTTP response.
            correlation_id: Optional correlation ID.

        Returns:
            UpstreamError carrying the upstream message and status.
        """
        details: dict[str, Any] = {"url": str(response.request.url)} if _has_request(response) else {}
        return UpstreamError(
            ErrorFactory.extract_message(response)
            or f"Request failed with status {response.status_code}",
            status_code=response.status_code,
            correlation_id=correlation_id or ErrorFactory.generate_correlation_id(),
            details=details,
        )

    @staticmethod
    def auth_expired(
        response: httpx.Response,
        *,
        correlation_id: str | None = None,
    ) -> AuthExpiredError:
        """Create the error for a 401 that will not be recovered."""
        return AuthExpiredError(
            ErrorFactory.extract_message(response) or "Access token has expired",
            response=response,
            correlation_id=correlation_id or ErrorFactory.generate_correlation_id(),
        )

    @staticmethod
    def from_exception(
        exc: Exception,
        *,
        correlation_id: str | None = None,
    ) -> ApiClientError:
        """Create SDK error from exception.

        Args:
            exc: Original exception.
            correlation_id: Optional correlation ID for tracing.

        Returns:
            Appropriate ApiClientError subclass.
        """
        correlation_id = correlation_id or ErrorFactory.generate_correlation_id()

        if isinstance(exc, ApiClientError):
            if exc.correlation_id is None:
                exc.correlation_id = correlation_id
            return exc

        if isinstance(exc, httpx.TimeoutException):
            return RequestTimeoutError(
                f"Request timed out: {exc}",
                correlation_id=correlation_id,
                cause=exc,
            )

        if isinstance(exc, httpx.HTTPStatusError):
            return ErrorFactory.from_http_response(
                exc.response,
                correlation_id=correlation_id,
            )

        if isinstance(exc, httpx.HTTPError):
            return TransportError(
                f"HTTP error: {exc}",
                correlation_id=correlation_id,
                cause=exc,
            )

        return TransportError(
            f"Unexpected error: {exc}",
            correlation_id=correlation_id,
            cause=exc,
        )

    @staticmethod
    def refresh_failed(
        exc: Exception | None = None,
        *,
        response: httpx.Response | None = None,
        correlation_id: str | None = None,
    ) -> RefreshFailedError:
        """Create the refresh failure broadcast to every queued caller.

        Args:
            exc: Underlying exception, if any.
            response: Rejecting response from the refresh endpoint, if any.
            correlation_id: Optional correlation ID.

        Returns:
            RefreshFailedError describing why the refresh did not succeed.
        """
        correlation_id = correlation_id or ErrorFactory.generate_correlation_id()

        if isinstance(exc, RefreshFailedError):
            return exc

        if response is not None:
            message = ErrorFactory.extract_message(response)
            return RefreshFailedError(
                message or f"Refresh rejected with status {response.status_code}",
                status_code=response.status_code,
                correlation_id=correlation_id,
            )

        if isinstance(exc, httpx.TimeoutException):
            return RefreshFailedError(
                "Token refresh timed out",
                status_code=None,
                correlation_id=correlation_id,
                cause=exc,
            )

        if exc is not None:
            return RefreshFailedError(
                f"Token refresh failed: {exc}",
                status_code=None,
                correlation_id=correlation_id,
                cause=exc,
            )

        return RefreshFailedError(correlation_id=correlation_id)


def _has_request(response: httpx.Response) -> bool:
    try:
        response.request
    except RuntimeError:
        return False
    return True
