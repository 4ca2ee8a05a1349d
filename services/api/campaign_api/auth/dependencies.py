from __future__ import annotations

import uuid
from typing import Callable

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from campaign_api.api.errors import error_detail
from campaign_api.auth.tokens import InvalidTokenError
from campaign_api.auth.types import AuthUser, Role, TokenType
from campaign_api.db.engine import get_engine
from campaign_api.db.queries import get_user_by_id, is_token_blacklisted
from campaign_api.services import AppServices, get_services

security = HTTPBearer(auto_error=False)


def _auth_required(message: str = "Missing or invalid token.") -> HTTPException:
    """Return the standard 401 error for missing/invalid auth."""
    return HTTPException(
        status_code=401,
        detail=error_detail("AUTH_REQUIRED", message),
    )


def _rbac_forbidden() -> HTTPException:
    """Return the standard 403 error for RBAC rejections."""
    return HTTPException(
        status_code=403,
        detail=error_detail("RBAC_FORBIDDEN", "Role not permitted."),
    )


def resolve_user_from_token(services: AppServices, token: str) -> AuthUser:
    """Resolve an AuthUser from an access token."""
    try:
        claims = services.tokens.verify(token, TokenType.ACCESS)
    except InvalidTokenError as exc:
        raise _auth_required() from exc

    engine = get_engine()
    if is_token_blacklisted(engine, token):
        raise HTTPException(
            status_code=401,
            detail=error_detail("TOKEN_REVOKED", "Token has been revoked."),
        )

    try:
        user_id = uuid.UUID(claims.user_id)
    except ValueError as exc:
        raise _auth_required() from exc

    user = get_user_by_id(engine, user_id)
    if not user:
        raise _auth_required("User no longer exists.")

    try:
        role = Role(user["role"])
    except ValueError as exc:
        raise _rbac_forbidden() from exc

    return AuthUser(
        user_id=str(user["id"]),
        username=user["username"],
        role=role,
        token=token,
        token_expires_at=claims.expires_at,
    )


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    services: AppServices = Depends(get_services),
) -> AuthUser:
    """Verify the bearer access token and load the user's current role."""
    if not credentials or credentials.scheme.lower() != "bearer":
        raise _auth_required()

    return resolve_user_from_token(services, credentials.credentials)


def require_roles(*allowed: Role) -> Callable[[AuthUser], AuthUser]:
    """Require the current user to be in the allowed role set."""
    allowed_set = set(allowed)

    def _require(user: AuthUser = Depends(get_current_user)) -> AuthUser:
        if user.role not in allowed_set:
            raise _rbac_forbidden()
        return user

    return _require
