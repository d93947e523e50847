"""Token refresh backend for the API auth SDK.

Talks to ``POST /auth/refresh``. Every way the call can go wrong (non-2xx,
transport failure, timeout, a body without tokens) surfaces as
``RefreshFailedError``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

import httpx
from pydantic import ValidationError

from .core.errors import ErrorFactory
from .errors import RefreshFailedError
from .models import TokenPair, unwrap_data
from .telemetry import get_logger, trace_operation

if TYPE_CHECKING:
    from .config import ClientConfig


class AuthBackend(Protocol):
    """Remote endpoint exchanging a refresh token for a new pair."""

    def refresh(self, refresh_token: str) -> TokenPair:
        """Exchange refresh token."""
        ...


class AsyncAuthBackend(Protocol):
    """Async remote endpoint exchanging a refresh token for a new pair."""

    async def refresh(self, refresh_token: str) -> TokenPair:
        """Exchange refresh token."""
        ...


def parse_token_pair(response: httpx.Response) -> TokenPair:
    """Parse a refresh response into a token pair.

    Args:
        response: Response from the refresh endpoint.

    Returns:
        The new token pair.

    Raises:
        RefreshFailedError: If the response is not a 2xx carrying both tokens.
    """
    if not response.is_success:
        raise ErrorFactory.refresh_failed(response=response)

    try:
        body = response.json()
    except ValueError as e:
        raise ErrorFactory.refresh_failed(e) from e

    try:
        return TokenPair.model_validate(unwrap_data(body))
    except ValidationError as e:
        raise RefreshFailedError(
            "Refresh response did not include tokens",
            status_code=response.status_code,
        ) from e


class HttpAuthBackend:
    """Synchronous refresh backend over httpx."""

    def __init__(
        self,
        client: httpx.Client,
        *,
        refresh_path: str = "/auth/refresh",
        timeout: float = 30.0,
    ) -> None:
        self._client = client
        self.refresh_path = refresh_path
        self.timeout = timeout
        self._logger = get_logger()

    @classmethod
    def from_config(cls, client: httpx.Client, config: ClientConfig) -> HttpAuthBackend:
        return cls(client, refresh_path=config.refresh_path, timeout=config.refresh_timeout)

    def refresh(self, refresh_token: str) -> TokenPair:
        """Exchange a refresh token for a new token pair.

        Args:
            refresh_token: Current refresh token.

        Returns:
            New token pair.

        Raises:
            RefreshFailedError: If the refresh did not succeed.
        """
        with trace_operation("auth_refresh", attributes={"http.url": self.refresh_path}):
            try:
                response = self._client.post(
                    self.refresh_path,
                    params={"refreshToken": refresh_token},
                    timeout=self.timeout,
                )
            except httpx.HTTPError as e:
                self._logger.warning("Refresh request failed", error=str(e))
                raise ErrorFactory.refresh_failed(e) from e

            return parse_token_pair(response)


class AsyncHttpAuthBackend:
    """Asynchronous refresh backend over httpx."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        refresh_path: str = "/auth/refresh",
        timeout: float = 30.0,
    ) -> None:
        self._client = client
        self.refresh_path = refresh_path
        self.timeout = timeout
        self._logger = get_logger()

    @classmethod
    def from_config(
        cls, client: httpx.AsyncClient, config: ClientConfig
    ) -> AsyncHttpAuthBackend:
        return cls(client, refresh_path=config.refresh_path, timeout=config.refresh_timeout)

    async def refresh(self, refresh_token: str) -> TokenPair:
        """Exchange a refresh token for a new token pair.

        Args:
            refresh_token: Current refresh token.

        Returns:
            New token pair.

        Raises:
            RefreshFailedError: If the refresh did not succeed.
        """
        with trace_operation("auth_refresh", attributes={"http.url": self.refresh_path}):
            try:
                response = await self._client.post(
                    self.refresh_path,
                    params={"refreshToken": refresh_token},
                    timeout=self.timeout,
                )
            except httpx.HTTPError as e:
                self._logger.warning("Refresh request failed", error=str(e))
                raise ErrorFactory.refresh_failed(e) from e

            return parse_token_pair(response)
