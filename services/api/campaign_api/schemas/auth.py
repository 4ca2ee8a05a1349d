"""Request/response models for authentication endpoints."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class RegisterRequest(BaseModel):
    """Self-service registration. Admins are provisioned out of band."""

    username: str = Field(..., min_length=3, max_length=50)
    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=254)
    password: str = Field(..., min_length=8, max_length=128)
    role: Literal["analyst", "viewer"] = Field(default="viewer")


class LoginRequest(BaseModel):
    email: str = Field(..., pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=1)


class UserResponse(BaseModel):
    id: str
    username: str
    email: str
    role: str


class AuthResponse(BaseModel):
    """Access token plus the authenticated user; the refresh token travels in a cookie."""

    access_token: str
    token_type: str = "bearer"
    expires_in_seconds: int
    user: UserResponse
