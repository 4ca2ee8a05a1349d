from __future__ import annotations

import logging
import uuid
from typing import Any

from fastapi import APIRouter, Cookie, Depends, HTTPException, Response

from campaign_api.api.errors import conflict, error_detail
from campaign_api.auth.dependencies import get_current_user
from campaign_api.auth.passwords import hash_password, verify_password
from campaign_api.auth.tokens import InvalidTokenError
from campaign_api.auth.types import AuthUser, TokenType
from campaign_api.db.engine import get_engine
from campaign_api.db.queries import (
    blacklist_token,
    cleanup_expired_tokens,
    create_refresh_token,
    create_user,
    get_active_refresh_token,
    get_user_by_email,
    get_user_by_id,
    get_user_by_username,
    revoke_refresh_token,
)
from campaign_api.schemas.auth import AuthResponse, LoginRequest, RegisterRequest, UserResponse
from campaign_api.services import AppServices, get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

REFRESH_COOKIE = "refresh_token"


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(status_code=401, detail=error_detail("AUTH_REQUIRED", message))


def _user_response(user: dict[str, Any]) -> UserResponse:
    return UserResponse(
        id=str(user["id"]),
        username=user["username"],
        email=user["email"],
        role=user["role"],
    )


def _issue_tokens(services: AppServices, user: dict[str, Any], response: Response) -> AuthResponse:
    """Issue an access token and set a fresh refresh-token cookie."""
    access = services.tokens.create_access_token(user)
    refresh = services.tokens.create_refresh_token(user)
    create_refresh_token(get_engine(), user["id"], refresh.token, refresh.expires_at)

    response.set_cookie(
        REFRESH_COOKIE,
        refresh.token,
        httponly=True,
        secure=services.settings.auth.secure_cookies,
        samesite="strict",
        max_age=services.settings.auth.refresh_token_days * 24 * 60 * 60,
        path="/api/auth",
    )
    return AuthResponse(
        access_token=access.token,
        expires_in_seconds=services.settings.auth.access_token_minutes * 60,
        user=_user_response(user),
    )


@router.post("/register", status_code=201)
def register(
    request: RegisterRequest,
    response: Response,
    services: AppServices = Depends(get_services),
) -> AuthResponse:
    """Create a viewer or analyst account and sign it in."""
    engine = get_engine()
    email = request.email.strip().lower()
    if get_user_by_email(engine, email):
        raise conflict("Email already exists.")
    if get_user_by_username(engine, request.username):
        raise conflict("Username already exists.")

    user = create_user(
        engine,
        username=request.username,
        email=email,
        password_hash=hash_password(request.password, services.settings.auth.bcrypt_rounds),
        role=request.role,
    )
    logger.info("Registered user %s with role %s", user["username"], user["role"])
    return _issue_tokens(services, user, response)


@router.post("/login")
def login(
    request: LoginRequest,
    response: Response,
    services: AppServices = Depends(get_services),
) -> AuthResponse:
    """Exchange email + password for tokens."""
    user = get_user_by_email(get_engine(), request.email.strip().lower())
    if not user or not verify_password(request.password, user["password_hash"]):
        raise _unauthorized("Invalid credentials.")
    return _issue_tokens(services, user, response)


@router.post("/refresh")
def refresh(
    response: Response,
    refresh_token: str | None = Cookie(default=None),
    services: AppServices = Depends(get_services),
) -> AuthResponse:
    """Rotate the refresh token and issue a new access token."""
    if not refresh_token:
        raise _unauthorized("No refresh token provided.")

    try:
        claims = services.tokens.verify(refresh_token, TokenType.REFRESH)
    except InvalidTokenError as exc:
        raise _unauthorized("Invalid refresh token.") from exc

    engine = get_engine()
    if not get_active_refresh_token(engine, refresh_token):
        raise _unauthorized("Refresh token not found or revoked.")

    user = get_user_by_id(engine, uuid.UUID(claims.user_id))
    if not user:
        raise _unauthorized("User not found.")

    revoke_refresh_token(engine, refresh_token)
    return _issue_tokens(services, user, response)


@router.post("/logout")
def logout(
    response: Response,
    refresh_token: str | None = Cookie(default=None),
    user: AuthUser = Depends(get_current_user),
) -> dict[str, str]:
    """Revoke the current access token and refresh cookie."""
    engine = get_engine()
    blacklist_token(engine, user.token, user.token_expires_at)
    if refresh_token:
        revoke_refresh_token(engine, refresh_token)
    response.delete_cookie(REFRESH_COOKIE, path="/api/auth")
    purged = cleanup_expired_tokens(engine)
    if purged:
        logger.debug("Purged %d expired token rows", purged)
    return {"message": "Logged out successfully"}


@router.get("/me")
def me(user: AuthUser = Depends(get_current_user)) -> dict[str, UserResponse]:
    """Return the authenticated user's profile."""
    row = get_user_by_id(get_engine(), uuid.UUID(user.user_id))
    if not row:
        raise HTTPException(status_code=404, detail=error_detail("NOT_FOUND", "User not found."))
    return {"user": _user_response(row)}
