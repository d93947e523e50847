"""API auth SDK: authenticated HTTP calls with single-flight token refresh."""

from .async_client import AsyncApiClient
from .client import ApiClient
from .config import ClientConfig, TelemetryConfig
from .coordinator import AsyncRefreshCoordinator, CoordinatorState, RefreshCoordinator
from .dispatcher import AsyncRequestDispatcher, RequestDescriptor, RequestDispatcher
from .endpoints import PublicEndpointClassifier
from .errors import (
    ApiClientError,
    AuthExpiredError,
    InvalidConfigError,
    NoRefreshTokenError,
    RefreshFailedError,
    RequestTimeoutError,
    TransportError,
    UpstreamError,
)
from .models import Credential, LoginResult, TokenPair, UserInfo
from .store import CredentialStore, FileCredentialStore, MemoryCredentialStore

__all__ = [
    "ApiClient",
    "AsyncApiClient",
    "ClientConfig",
    "TelemetryConfig",
    "RefreshCoordinator",
    "AsyncRefreshCoordinator",
    "CoordinatorState",
    "RequestDispatcher",
    "AsyncRequestDispatcher",
    "RequestDescriptor",
    "PublicEndpointClassifier",
    "ApiClientError",
    "AuthExpiredError",
    "NoRefreshTokenError",
    "RefreshFailedError",
    "TransportError",
    "RequestTimeoutError",
    "UpstreamError",
    "InvalidConfigError",
    "Credential",
    "TokenPair",
    "LoginResult",
    "UserInfo",
    "CredentialStore",
    "MemoryCredentialStore",
    "FileCredentialStore",
]

__version__ = "0.1.0"
