"""HTTP client factories for the API auth SDK."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from .config import ClientConfig

USER_AGENT = "api-auth-sdk/0.1.0 Python"


def _timeout(config: ClientConfig) -> httpx.Timeout:
    return httpx.Timeout(
        connect=config.connect_timeout,
        read=config.timeout,
        write=config.timeout,
        pool=config.timeout,
    )


def _headers() -> dict[str, str]:
    return {
        "User-Agent": USER_AGENT,
        "Accept": "application/json",
    }


def create_http_client(
    config: ClientConfig,
    *,
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    """Create configured sync HTTP client.

    Args:
        config: SDK configuration.
        transport: Optional transport override.

    Returns:
        Configured httpx.Client.
    """
    return httpx.Client(
        base_url=config.base_url_str,
        timeout=_timeout(config),
        headers=_headers(),
        follow_redirects=False,
        transport=transport,
    )


def create_async_http_client(
    config: ClientConfig,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create configured async HTTP client.

    Args:
        config: SDK configuration.
        transport: Optional transport override.

    Returns:
        Configured httpx.AsyncClient.
    """
    return httpx.AsyncClient(
        base_url=config.base_url_str,
        timeout=_timeout(config),
        headers=_headers(),
        follow_redirects=False,
        transport=transport,
    )
