"""
HTTP error helpers to reduce code duplication in routes.

Usage:
    from ollama_relay.utils.exceptions import error_response, raise_bad_request

    raise_bad_request("Missing required field")
    return error_response("Ollama API timeout", str(e), 504)
"""

from typing import NoReturn, Optional

from fastapi import HTTPException, status
from fastapi.responses import JSONResponse


def error_response(
    message: str,
    details: Optional[str] = None,
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
    headers: Optional[dict] = None,
) -> JSONResponse:
    """Structured {error, message, details} body used by every relay failure."""
    body = {"error": True, "message": message}
    if details is not None:
        body["details"] = details
    return JSONResponse(body, status_code=status_code, headers=headers)


def unauthorized_response(message: str = "Unauthorized") -> JSONResponse:
    """HTTP 401 Unauthorized with WWW-Authenticate header."""
    return error_response(
        message,
        status_code=status.HTTP_401_UNAUTHORIZED,
        headers={"WWW-Authenticate": "Bearer"},
    )


def raise_bad_request(detail: str) -> NoReturn:
    """Raise HTTP 400 Bad Request."""
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=detail,
    )
