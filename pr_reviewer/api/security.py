"""
API Security Module

Static bearer-token authentication. Two tokens are configured: the admin
token unlocks every route, the user token only the read-only ones.

Design Decisions:
- Use constant-time comparison to prevent timing attacks
- Reject before the request body is decoded or any storage is touched
- Empty tokens never match, even if a token is configured empty
"""

import hmac
from typing import Optional

from fastapi import Request

from pr_reviewer.config import Settings
from pr_reviewer.errors import Unauthorized
from pr_reviewer.logging_config import get_logger

logger = get_logger(__name__)


class StaticTokenAuth:
    """Validates bearer tokens against the configured admin/user tokens."""

    def __init__(self, admin_token: str, user_token: str):
        self._admin_token = admin_token
        self._user_token = user_token

    @classmethod
    def from_settings(cls, settings: Settings) -> "StaticTokenAuth":
        return cls(settings.admin_token, settings.user_token)

    @staticmethod
    def _matches(token: str, expected: str) -> bool:
        if not token or not expected:
            return False
        return hmac.compare_digest(token.encode(), expected.encode())

    def validate_admin_token(self, token: str) -> bool:
        return self._matches(token, self._admin_token)

    def validate_user_token(self, token: str) -> bool:
        return self._matches(token, self._admin_token) or self._matches(token, self._user_token)


def extract_bearer_token(request: Request) -> Optional[str]:
    """
    Extract the token from the Authorization header.

    Accepts ``Bearer <token>`` as well as a bare token.
    """
    header = request.headers.get("Authorization")
    if not header:
        return None
    if header.startswith("Bearer "):
        return header[len("Bearer "):].strip()
    return header.strip()


def _authenticate(request: Request, require_admin: bool) -> None:
    auth: StaticTokenAuth = request.app.state.auth
    token = extract_bearer_token(request)

    if token is None:
        logger.warning("Missing authorization header", path=request.url.path)
        raise Unauthorized()

    valid = auth.validate_admin_token(token) if require_admin else auth.validate_user_token(token)
    if not valid:
        logger.warning("Invalid token", path=request.url.path, require_admin=require_admin)
        raise Unauthorized("invalid token")


def require_admin(request: Request) -> None:
    """FastAPI dependency guarding admin routes."""
    _authenticate(request, require_admin=True)


def require_user(request: Request) -> None:
    """FastAPI dependency guarding read-only routes (admin token also accepted)."""
    _authenticate(request, require_admin=False)
