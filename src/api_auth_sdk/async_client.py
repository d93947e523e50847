"""Async API client with transparent token refresh.

Any number of tasks may share one client; tasks that hit an expired access
token at the same time wait on a single refresh.
"""

from __future__ import annotations

from typing import Any, Self

import httpx

from .backend import AsyncAuthBackend, AsyncHttpAuthBackend
from .client import CURRENT_USER_PATH, LOGIN_PATH, logout_descriptor, decode_data, store_login
from .config import ClientConfig
from .coordinator import AsyncRefreshCoordinator
from .dispatcher import AsyncRequestDispatcher, RequestDescriptor
from .endpoints import PublicEndpointClassifier
from .http import create_async_http_client
from .models import LoginResult, UserInfo
from .store import CredentialStore, create_credential_store
from .telemetry import configure_telemetry, get_logger, trace_operation


class AsyncApiClient:
    """Asynchronous API client."""

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        store: CredentialStore | None = None,
        backend: AsyncAuthBackend | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize async client.

        Args:
            config: SDK configuration (read from the environment if omitted).
            store: Credential store (built from ``config.credentials_path`` if omitted).
            backend: Refresh backend (``POST /auth/refresh`` if omitted).
            transport: Optional httpx transport, mainly for tests.
        """
        self.config = config or ClientConfig.from_env()
        configure_telemetry(self.config.telemetry)

        self._http = create_async_http_client(self.config, transport=transport)
        self._store = store or create_credential_store(self.config.credentials_path)
        self._backend = backend or AsyncHttpAuthBackend.from_config(self._http, self.config)
        self._coordinator = AsyncRefreshCoordinator(
            self._store,
            self._backend,
            wait_timeout=self.config.wait_timeout,
        )
        self._dispatcher = AsyncRequestDispatcher(
            self._http,
            self._store,
            PublicEndpointClassifier(self.config.public_paths),
            self._coordinator,
        )
        self._logger = get_logger()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Abandon any in-flight refresh and close the HTTP client."""
        await self._coordinator.aclose()
        await self._http.aclose()

    @property
    def store(self) -> CredentialStore:
        return self._store

    @property
    def coordinator(self) -> AsyncRefreshCoordinator:
        return self._coordinator

    @property
    def is_authenticated(self) -> bool:
        """Check if an access token is stored."""
        return self._store.get_access_token() is not None

    @property
    def user_info(self) -> UserInfo | None:
        """Get the cached profile of the signed-in user."""
        return self._store.get_user_info()

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        data: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send an authenticated request.

        Non-401 responses are returned whatever their status.
        """
        descriptor = RequestDescriptor(
            method=method,
            path=path,
            params=params,
            json=json,
            data=data,
            headers=dict(headers or {}),
        )
        return await self._dispatcher.send(descriptor)

    async def get(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", path, **kwargs)

    async def patch(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PATCH", path, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", path, **kwargs)

    async def request_data(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request and return the decoded ``data`` of a 2xx response.

        Raises:
            UpstreamError: For non-2xx responses.
        """
        return decode_data(await self.request(method, path, **kwargs))

    async def login(self, username: str, password: str) -> LoginResult:
        """Sign in and store the returned tokens and profile.

        Args:
            username: Account username.
            password: Account password.

        Returns:
            Login payload.

        Raises:
            UpstreamError: If the credentials are rejected or no tokens come back.
        """
        with trace_operation("login"):
            data = await self.request_data(
                "POST",
                LOGIN_PATH,
                json={"username": username, "password": password},
            )
            result = store_login(self._store, data)
            self._logger.info("Signed in", username=username)
            return result

    async def logout(self) -> None:
        """Sign out; local credentials are cleared even if the server call fails."""
        refresh_token = self._store.get_refresh_token()
        try:
            if refresh_token:
                with trace_operation("logout"):
                    decode_data(await self._dispatcher.send(logout_descriptor()))
        finally:
            self._store.clear()
            self._coordinator.reset()
            self._logger.info("Signed out")

    async def current_user(self) -> UserInfo:
        """Fetch the signed-in user's profile from the server."""
        return UserInfo.model_validate(await self.request_data("GET", CURRENT_USER_PATH))
