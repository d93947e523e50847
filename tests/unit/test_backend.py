"""Unit tests for the refresh backends.

The refresh endpoint is faked with ``httpx.MockTransport``.
"""

from __future__ import annotations

import asyncio

import httpx
import pytest

from api_auth_sdk.backend import AsyncHttpAuthBackend, HttpAuthBackend, parse_token_pair
from api_auth_sdk.config import ClientConfig
from api_auth_sdk.errors import RefreshFailedError
from api_auth_sdk.http import create_async_http_client, create_http_client

BASE_URL = "https://api.example.com/api"


def make_sync_backend(handler, config: ClientConfig) -> HttpAuthBackend:
    client = create_http_client(config, transport=httpx.MockTransport(handler))
    return HttpAuthBackend.from_config(client, config)


class TestParseTokenPair:
    """Tests for parse_token_pair."""

    def test_enveloped_pair(self, refreshed_body: dict) -> None:
        """Tokens inside the envelope data are parsed."""
        pair = parse_token_pair(httpx.Response(200, json=refreshed_body))

        assert (pair.access_token, pair.refresh_token) == ("T2", "R2")

    def test_bare_pair(self) -> None:
        """A bare snake_case token object is accepted."""
        pair = parse_token_pair(
            httpx.Response(200, json={"access_token": "T2", "refresh_token": "R2"})
        )

        assert pair.access_token == "T2"

    def test_rejecting_status(self) -> None:
        """Non-2xx is a refresh failure carrying the status."""
        with pytest.raises(RefreshFailedError) as exc_info:
            parse_token_pair(httpx.Response(401, json={"message": "Refresh token expired"}))

        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "Refresh token expired"

    def test_missing_tokens(self) -> None:
        """A 2xx without tokens is a refresh failure."""
        with pytest.raises(RefreshFailedError, match="did not include tokens"):
            parse_token_pair(
                httpx.Response(200, json={"success": True, "message": "ok", "data": {"accessToken": "T2"}})
            )

    def test_non_json_body(self) -> None:
        """A 2xx that is not JSON is a refresh failure."""
        with pytest.raises(RefreshFailedError):
            parse_token_pair(httpx.Response(200, content=b"OK"))


class TestHttpAuthBackend:
    """Tests for the sync backend."""

    def test_posts_refresh_token_as_parameter(self, config: ClientConfig, refreshed_body: dict) -> None:
        """Refresh token is sent as the refreshToken query parameter."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=refreshed_body)

        pair = make_sync_backend(handler, config).refresh("R1")

        assert pair.access_token == "T2"
        assert len(seen) == 1
        assert seen[0].method == "POST"
        assert seen[0].url.path == "/api/auth/refresh"
        assert seen[0].url.params["refreshToken"] == "R1"
        assert "Authorization" not in seen[0].headers

    def test_timeout_is_refresh_failure(self, config: ClientConfig) -> None:
        """A timed-out refresh is a refresh failure."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(RefreshFailedError, match="timed out"):
            make_sync_backend(handler, config).refresh("R1")

    def test_connect_error_is_refresh_failure(self, config: ClientConfig) -> None:
        """Transport failures are refresh failures."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(RefreshFailedError) as exc_info:
            make_sync_backend(handler, config).refresh("R1")

        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    def test_server_error_is_refresh_failure(self, config: ClientConfig) -> None:
        """5xx from the refresh endpoint is a refresh failure."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503)

        with pytest.raises(RefreshFailedError) as exc_info:
            make_sync_backend(handler, config).refresh("R1")

        assert exc_info.value.status_code == 503

    def test_uses_configured_path_and_timeout(self, config: ClientConfig, refreshed_body: dict) -> None:
        """Refresh path and timeout come from config."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=refreshed_body)

        custom = config.with_overrides(refresh_path="/token/renew", refresh_timeout=2.0)
        backend = make_sync_backend(handler, custom)
        backend.refresh("R1")

        assert backend.timeout == 2.0
        assert seen[0].url.path == "/api/token/renew"
        assert seen[0].extensions["timeout"]["read"] == 2.0


class TestAsyncHttpAuthBackend:
    """Tests for the async backend."""

    def test_refresh(self, config: ClientConfig, refreshed_body: dict) -> None:
        """Async backend parses the new pair."""

        async def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["refreshToken"] == "R1"
            return httpx.Response(200, json=refreshed_body)

        async def run() -> str:
            async with create_async_http_client(config, transport=httpx.MockTransport(handler)) as client:
                pair = await AsyncHttpAuthBackend.from_config(client, config).refresh("R1")
            return pair.access_token

        assert asyncio.run(run()) == "T2"

    def test_rejected(self, config: ClientConfig) -> None:
        """Rejected async refresh raises RefreshFailedError."""

        async def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"message": "Invalid refresh token"})

        async def run() -> None:
            async with create_async_http_client(config, transport=httpx.MockTransport(handler)) as client:
                await AsyncHttpAuthBackend.from_config(client, config).refresh("R1")

        with pytest.raises(RefreshFailedError, match="Invalid refresh token"):
            asyncio.run(run())
