"""Synchronous API client with transparent token refresh."""

from __future__ import annotations

from typing import Any, Self

import httpx
from pydantic import ValidationError

from .backend import AuthBackend, HttpAuthBackend
from .config import ClientConfig
from .coordinator import RefreshCoordinator
from .core.errors import DEFAULT_ERROR_MESSAGE, ErrorFactory
from .dispatcher import RequestDescriptor, RequestDispatcher
from .endpoints import PublicEndpointClassifier
from .errors import UpstreamError
from .http import create_http_client
from .models import ApiEnvelope, LoginResult, UserInfo, unwrap_data
from .store import CredentialStore, create_credential_store
from .telemetry import configure_telemetry, get_logger, trace_operation

LOGIN_PATH = "/auth/login"
LOGOUT_PATH = "/auth/logout"
CURRENT_USER_PATH = "/auth/me"


def decode_data(response: httpx.Response) -> Any:
    """Decode a response body, unwrapping the backend envelope.

    Args:
        response: HTTP response.

    Returns:
        The envelope's ``data``, the raw JSON body, the text body, or None.

    Raises:
        UpstreamError: If the response is not a 2xx or the envelope reports failure.
    """
    if not response.is_success:
        raise ErrorFactory.upstream(response)
    if not response.content:
        return None
    try:
        body = response.json()
    except ValueError:
        return response.text
    if ApiEnvelope.is_enveloped(body) and body.get("success") is False:
        raise UpstreamError(
            body.get("message") or DEFAULT_ERROR_MESSAGE,
            status_code=response.status_code,
        )
    return unwrap_data(body)


def logout_descriptor() -> RequestDescriptor:
    """Build the logout call; the refresh token is bound when it is sent."""
    return RequestDescriptor(method="POST", path=LOGOUT_PATH, refresh_token_param="refreshToken")


def store_login(store: CredentialStore, data: Any) -> LoginResult:
    """Persist the tokens and profile from a login payload.

    A payload without both tokens clears the store so no partial session
    survives.
    """
    try:
        result = LoginResult.model_validate(data)
    except ValidationError as e:
        store.clear()
        raise UpstreamError("Login response did not include tokens") from e

    store.set(result.to_credential())
    if result.user_info is not None:
        store.set_user_info(result.user_info)
    return result


class ApiClient:
    """Synchronous API client.

    Safe to share between threads: concurrent 401s are funnelled into one
    refresh by the client's ``RefreshCoordinator``.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        store: CredentialStore | None = None,
        backend: AuthBackend | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize client.

        Args:
            config: SDK configuration (read from the environment if omitted).
            store: Credential store (built from ``config.credentials_path`` if omitted).
            backend: Refresh backend (``POST /auth/refresh`` if omitted).
            transport: Optional httpx transport, mainly for tests.
        """
        self.config = config or ClientConfig.from_env()
        configure_telemetry(self.config.telemetry)

        self._http = create_http_client(self.config, transport=transport)
        self._store = store or create_credential_store(self.config.credentials_path)
        self._backend = backend or HttpAuthBackend.from_config(self._http, self.config)
        self._coordinator = RefreshCoordinator(
            self._store,
            self._backend,
            wait_timeout=self.config.wait_timeout,
        )
        self._dispatcher = RequestDispatcher(
            self._http,
            self._store,
            PublicEndpointClassifier(self.config.public_paths),
            self._coordinator,
        )
        self._logger = get_logger()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def close(self) -> None:
        """Abandon any in-flight refresh and close the HTTP client."""
        self._coordinator.reset()
        self._http.close()

    @property
    def store(self) -> CredentialStore:
        return self._store

    @property
    def coordinator(self) -> RefreshCoordinator:
        return self._coordinator

    @property
    def is_authenticated(self) -> bool:
        """Check if an access token is stored."""
        return self._store.get_access_token() is not None

    @property
    def user_info(self) -> UserInfo | None:
        """Get the cached profile of the signed-in user."""
        return self._store.get_user_info()

    def request(
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
        return self._dispatcher.send(descriptor)

    def get(self, path: str, **kwargs: Any) -> httpx.Response:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs: Any) -> httpx.Response:
        return self.request("POST", path, **kwargs)

    def put(self, path: str, **kwargs: Any) -> httpx.Response:
        return self.request("PUT", path, **kwargs)

    def patch(self, path: str, **kwargs: Any) -> httpx.Response:
        return self.request("PATCH", path, **kwargs)

    def delete(self, path: str, **kwargs: Any) -> httpx.Response:
        return self.request("DELETE", path, **kwargs)

    def request_data(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request and return the decoded ``data`` of a 2xx response.

        Raises:
            UpstreamError: For non-2xx responses.
        """
        return decode_data(self.request(method, path, **kwargs))

    def login(self, username: str, password: str) -> LoginResult:
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
            data = self.request_data(
                "POST",
                LOGIN_PATH,
                json={"username": username, "password": password},
            )
            result = store_login(self._store, data)
            self._logger.info("Signed in", username=username)
            return result

    def logout(self) -> None:
        """Sign out; local credentials are cleared even if the server call fails."""
        refresh_token = self._store.get_refresh_token()
        try:
            if refresh_token:
                with trace_operation("logout"):
                    decode_data(self._dispatcher.send(logout_descriptor()))
        finally:
            self._store.clear()
            self._coordinator.reset()
            self._logger.info("Signed out")

    def current_user(self) -> UserInfo:
        """Fetch the signed-in user's profile from the server."""
        return UserInfo.model_validate(self.request_data("GET", CURRENT_USER_PATH))

