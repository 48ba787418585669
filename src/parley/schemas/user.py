"""User-related Pydantic schemas."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class UserRegister(BaseModel):
    """Schema for creating an account."""

    display_name: str = Field(..., min_length=1, max_length=100)


class UserResponse(BaseModel):
    """Schema for user information returned by the API."""

    id: str
    display_name: str
    public_key_jwk: dict[str, Any] | None = None

    model_config = ConfigDict(from_attributes=True)


class PublicKeyUpload(BaseModel):
    """ECDH P-256 public key exported as a JWK."""

    public_key_jwk: dict[str, Any] = Field(..., alias="publicKeyJwk")

    model_config = ConfigDict(populate_by_name=True)


class PublicKeyResponse(BaseModel):
    user_id: str
    public_key_jwk: dict[str, Any] | None


class TokenResponse(BaseModel):
    """Bearer token issued at registration."""

    access_token: str
    token_type: str = "bearer"
    user: UserResponse
