"""
Shared test fixtures for API auth SDK tests.

Provides common fixtures for configuration, credential stores
and canned backend payloads.
"""

import pytest
from hypothesis import settings

from api_auth_sdk.config import ClientConfig, TelemetryConfig
from api_auth_sdk.models import Credential
from api_auth_sdk.store import MemoryCredentialStore

settings.register_profile("ci", max_examples=100, deadline=None)
settings.register_profile("dev", max_examples=25, deadline=None)
settings.load_profile("dev")


@pytest.fixture
def config() -> ClientConfig:
    """Provide a client configuration with telemetry disabled."""
    return ClientConfig(
        base_url="https://api.example.com/api",
        timeout=5.0,
        refresh_timeout=5.0,
        telemetry=TelemetryConfig(enabled=False),
    )


@pytest.fixture
def store() -> MemoryCredentialStore:
    """Provide an empty in-memory credential store."""
    return MemoryCredentialStore()


@pytest.fixture
def signed_in_store() -> MemoryCredentialStore:
    """Provide a store holding an (expired) access token and a refresh token."""
    store = MemoryCredentialStore()
    store.set(Credential(access_token="T1", refresh_token="R1"))
    return store


@pytest.fixture
def refreshed_body() -> dict:
    """Provide a refresh endpoint response issuing T2/R2."""
    return {
        "success": True,
        "message": "Token refreshed",
        "data": {"accessToken": "T2", "refreshToken": "R2"},
        "timestamp": "2025-12-01T10:00:00",
    }


@pytest.fixture
def sample_user_info() -> dict:
    """Provide a user profile as returned by the backend."""
    return {
        "userId": "user-123",
        "keycloakId": "kc-456",
        "username": "supplier01",
        "email": "supplier01@example.com",
        "fullName": "Nguyen Van A",
        "roles": ["SUPPLIER"],
        "status": "ACTIVE",
        "userType": "SUPPLIER",
    }
