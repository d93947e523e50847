"""Pydantic models for the API auth SDK.

Wire models for the auth endpoints and the stored credential. Token payloads
accept both the camelCase shape the backend returns and the older snake_case
shape.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
)

T = TypeVar("T")


class Credential(BaseModel):
    """Access/refresh token pair held by the credential store."""

    model_config = ConfigDict(frozen=True)

    access_token: str = Field(..., min_length=1)
    refresh_token: str | None = None

    def __repr__(self) -> str:
        return "Credential(access_token='***', refresh_token='***')"


class TokenPair(BaseModel):
    """Token pair returned by the login and refresh endpoints."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    access_token: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("accessToken", "access_token"),
    )
    refresh_token: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("refreshToken", "refresh_token"),
    )
    expires_in: int | None = None
    refresh_expires_in: int | None = None
    token_type: str | None = None

    def to_credential(self) -> Credential:
        """Convert to the stored credential."""
        return Credential(access_token=self.access_token, refresh_token=self.refresh_token)


class UserInfo(BaseModel):
    """Cached profile of the signed-in user."""

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    user_id: str = Field(..., alias="userId")
    username: str
    email: str
    keycloak_id: str | None = Field(default=None, alias="keycloakId")
    phone_number: str | None = Field(default=None, alias="phoneNumber")
    full_name: str | None = Field(default=None, alias="fullName")
    avatar_url: str | None = Field(default=None, alias="avatarUrl")
    roles: list[str] = Field(default_factory=list)
    status: str | None = None
    user_type: str | None = Field(default=None, alias="userType")
    created_at: str | None = Field(default=None, alias="createdAt")
    updated_at: str | None = Field(default=None, alias="updatedAt")

    def to_json(self) -> str:
        """Serialize with the backend's camelCase keys."""
        return self.model_dump_json(by_alias=True, exclude_none=True)


class LoginResult(TokenPair):
    """Login payload: the token pair plus the user's profile."""

    user_info: UserInfo | None = Field(
        default=None,
        validation_alias=AliasChoices("userInfo", "user_info"),
    )


class ApiEnvelope(BaseModel, Generic[T]):
    """Standard response wrapper used by the backend."""

    model_config = ConfigDict(extra="ignore")

    success: bool = True
    message: str | None = None
    data: T | None = None
    timestamp: str | None = None

    @classmethod
    def is_enveloped(cls, body: Any) -> bool:
        """Check whether a decoded JSON body uses the envelope shape."""
        return isinstance(body, dict) and "data" in body and (
            "success" in body or "message" in body or "timestamp" in body
        )


def unwrap_data(body: Any) -> Any:
    """Return the envelope ``data`` if the body is enveloped, else the body."""
    if ApiEnvelope.is_enveloped(body):
        return ApiEnvelope[Any].model_validate(body).data
    return body
