"""Request dispatchers for the API auth SDK.

A dispatcher executes one logical call: it attaches the current bearer token
(unless the endpoint is public), sends the request, and on a 401 asks the
refresh coordinator for a fresh token and replays the request exactly once.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from .core.errors import ErrorFactory
from .errors import AuthExpiredError
from .telemetry import get_logger, mask_token, trace_operation

if TYPE_CHECKING:
    from .coordinator import AsyncRefreshCoordinator, RefreshCoordinator
    from .endpoints import PublicEndpointClassifier
    from .store import CredentialStore


@dataclass
class RequestDescriptor:
    """One logical request and whether it already used its refresh retry."""

    method: str
    path: str
    params: dict[str, Any] | None = None
    json: Any = None
    data: Any = None
    headers: dict[str, str] = field(default_factory=dict)
    # Query parameter carrying the stored refresh token, read at send time.
    refresh_token_param: str | None = None
    retried: bool = False

    def build_kwargs(
        self,
        authorization: str | None,
        refresh_token: str | None = None,
    ) -> dict[str, Any]:
        """Build httpx request arguments with the given Authorization value."""
        headers = {k: v for k, v in self.headers.items() if k.lower() != "authorization"}
        if authorization:
            headers["Authorization"] = authorization
        kwargs: dict[str, Any] = {"headers": headers}
        params = dict(self.params or {})
        if self.refresh_token_param and refresh_token:
            params[self.refresh_token_param] = refresh_token
        if params:
            kwargs["params"] = params
        if self.json is not None:
            kwargs["json"] = self.json
        if self.data is not None:
            kwargs["data"] = self.data
        return kwargs


class _DispatcherBase:
    """Header and auth-expiry decisions shared by both dispatchers."""

    def __init__(
        self,
        store: CredentialStore,
        classifier: PublicEndpointClassifier,
    ) -> None:
        self._store = store
        self._classifier = classifier
        self._logger = get_logger()

    def _authorization(
        self,
        descriptor: RequestDescriptor,
        access_token: str | None = None,
    ) -> str | None:
        if self._classifier.is_public(descriptor.path):
            return None
        token = access_token or self._store.get_access_token()
        return f"Bearer {token}" if token else None

    def _request_kwargs(
        self,
        descriptor: RequestDescriptor,
        authorization: str | None,
    ) -> dict[str, Any]:
        refresh_token = self._store.get_refresh_token() if descriptor.refresh_token_param else None
        return descriptor.build_kwargs(authorization, refresh_token)

    def is_auth_expired(
        self,
        descriptor: RequestDescriptor,
        response: httpx.Response,
    ) -> bool:
        """Check if the response means the access token is no longer valid.

        A 401 from a public endpoint (bad login, rejected refresh) is an
        ordinary response, not an expired session.
        """
        return response.status_code == 401 and not self._classifier.is_public(descriptor.path)

    def _log_request(self, descriptor: RequestDescriptor, authorization: str | None) -> None:
        self._logger.debug(
            "Request",
            method=descriptor.method.upper(),
            path=descriptor.path,
            token=mask_token(authorization.removeprefix("Bearer ") if authorization else None),
            retried=descriptor.retried,
        )

    def _log_response(self, descriptor: RequestDescriptor, response: httpx.Response) -> None:
        if response.is_error:
            self._logger.warning(
                "Error response",
                method=descriptor.method.upper(),
                path=descriptor.path,
                status=response.status_code,
            )
        else:
            self._logger.debug(
                "Response",
                method=descriptor.method.upper(),
                path=descriptor.path,
                status=response.status_code,
            )

    def _expired(self, descriptor: RequestDescriptor, response: httpx.Response) -> AuthExpiredError:
        self._logger.warning(
            "Request still unauthorized after refresh",
            method=descriptor.method.upper(),
            path=descriptor.path,
        )
        return ErrorFactory.auth_expired(response)


class RequestDispatcher(_DispatcherBase):
    """Synchronous dispatcher."""

    def __init__(
        self,
        client: httpx.Client,
        store: CredentialStore,
        classifier: PublicEndpointClassifier,
        coordinator: RefreshCoordinator,
    ) -> None:
        """Initialize sync dispatcher.

        Args:
            client: HTTP client.
            store: Credential store read for every request.
            classifier: Public endpoint classifier.
            coordinator: Refresh coordinator shared by all requests.
        """
        super().__init__(store, classifier)
        self._client = client
        self._coordinator = coordinator

    def send(self, descriptor: RequestDescriptor) -> httpx.Response:
        """Send a request, refreshing the credential once on 401.

        Args:
            descriptor: Request to send.

        Returns:
            The response (any status other than an unrecovered 401).

        Raises:
            AuthExpiredError: If the request is still unauthorized after its retry.
            NoRefreshTokenError: If a refresh was needed but no refresh token is stored.
            RefreshFailedError: If the refresh failed.
            TransportError: On network failure.
        """
        with trace_operation(
            "api_request",
            attributes={"http.method": descriptor.method.upper(), "http.url": descriptor.path},
        ):
            response = self._transmit(descriptor)
            while self.is_auth_expired(descriptor, response):
                if descriptor.retried:
                    raise self._expired(descriptor, response)
                descriptor.retried = True
                access_token = self._coordinator.obtain_fresh_credential()
                response = self._transmit(descriptor, access_token)
            return response

    def _transmit(
        self,
        descriptor: RequestDescriptor,
        access_token: str | None = None,
    ) -> httpx.Response:
        authorization = self._authorization(descriptor, access_token)
        self._log_request(descriptor, authorization)
        try:
            response = self._client.request(
                descriptor.method.upper(),
                descriptor.path,
                **self._request_kwargs(descriptor, authorization),
            )
        except httpx.HTTPError as e:
            self._logger.error("No response from server", path=descriptor.path, error=str(e))
            raise ErrorFactory.from_exception(e) from e
        self._log_response(descriptor, response)
        return response


class AsyncRequestDispatcher(_DispatcherBase):
    """Asynchronous dispatcher."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        store: CredentialStore,
        classifier: PublicEndpointClassifier,
        coordinator: AsyncRefreshCoordinator,
    ) -> None:
        """Initialize async dispatcher.

        Args:
            client: Async HTTP client.
            store: Credential store read for every request.
            classifier: Public endpoint classifier.
            coordinator: Refresh coordinator shared by all requests.
        """
        super().__init__(store, classifier)
        self._client = client
        self._coordinator = coordinator

    async def send(self, descriptor: RequestDescriptor) -> httpx.Response:
        """Send a request, refreshing the credential once on 401.

        Args:
            descriptor: Request to send.

        Returns:
            The response (any status other than an unrecovered 401).

        Raises:
            AuthExpiredError: If the request is still unauthorized after its retry.
            NoRefreshTokenError: If a refresh was needed but no refresh token is stored.
            RefreshFailedError: If the refresh failed.
            TransportError: On network failure.
        """
        with trace_operation(
            "api_request",
            attributes={"http.method": descriptor.method.upper(), "http.url": descriptor.path},
        ):
            response = await self._transmit(descriptor)
            while self.is_auth_expired(descriptor, response):
                if descriptor.retried:
                    raise self._expired(descriptor, response)
                descriptor.retried = True
                access_token = await self._coordinator.obtain_fresh_credential()
                response = await self._transmit(descriptor, access_token)
            return response

    async def _transmit(
        self,
        descriptor: RequestDescriptor,
        access_token: str | None = None,
    ) -> httpx.Response:
        authorization = self._authorization(descriptor, access_token)
        self._log_request(descriptor, authorization)
        try:
            response = await self._client.request(
                descriptor.method.upper(),
                descriptor.path,
                **self._request_kwargs(descriptor, authorization),
            )
        except httpx.HTTPError as e:
            self._logger.error("No response from server", path=descriptor.path, error=str(e))
            raise ErrorFactory.from_exception(e) from e
        self._log_response(descriptor, response)
        return response
