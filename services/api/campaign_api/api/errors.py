from __future__ import annotations

from typing import TypedDict

from fastapi import HTTPException


class ErrorDetail(TypedDict):
    code: str
    message: str


def error_detail(code: str, message: str) -> ErrorDetail:
    """Create a standardized error detail payload."""
    return {"code": code, "message": message}


def not_found(resource: str) -> HTTPException:
    """Return the standard 404 error for a missing resource."""
    return HTTPException(
        status_code=404,
        detail=error_detail("NOT_FOUND", f"{resource} not found."),
    )


def conflict(message: str) -> HTTPException:
    return HTTPException(status_code=409, detail=error_detail("CONFLICT", message))
