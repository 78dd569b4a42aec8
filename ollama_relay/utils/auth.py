"""
Access control for relay endpoints.

When ACCESS_CODE is configured, callers must send it as a bearer token.
"""

import bcrypt
import logging
from typing import Optional

from fastapi import Request

from ollama_relay.config import settings
from ollama_relay.relay.errors import AuthenticationFailure

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    """Hash a password using bcrypt with automatic salt."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=12)).decode()


def verify_password(password: str, stored_hash: str) -> bool:
    """Verify a password against a stored bcrypt hash (constant-time comparison)."""
    try:
        return bcrypt.checkpw(password.encode(), stored_hash.encode())
    except (ValueError, TypeError):
        return False


def get_token_from_request(request: Request) -> Optional[str]:
    """Extract the bearer token from the Authorization header."""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:].strip()
    return None


def verify_access(token: Optional[str]) -> None:
    """Raise AuthenticationFailure unless `token` matches the access code."""
    stored_hash = settings.access_code_hash
    if not stored_hash:
        return

    if not token:
        raise AuthenticationFailure("Missing access code")
    if not verify_password(token, stored_hash):
        raise AuthenticationFailure("Wrong access code")


async def check_access(request: Request) -> None:
    """Dependency guarding relay routes; runs before any backend call."""
    try:
        verify_access(get_token_from_request(request))
    except AuthenticationFailure as e:
        logger.warning(f"[Auth] Rejected {request.url.path}: {e}")
        raise
