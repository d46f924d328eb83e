"""
Auth "middleware" helpers.

require_login() is a FastAPI dependency that moves each request through
NoToken -> TokenPresent -> {Verified, Rejected}:
- Reads the bearer token from the Authorization header
- Verifies it with the TokenService
- Resolves the user through the storage adapter and attaches it to
  request.state.user

authorize(*roles) layers a role check on top of it.
"""

from __future__ import annotations

from typing import Iterable, Optional

from fastapi import Depends, Request

from taskhub.auth.models import User
from taskhub.core.container import Services
from taskhub.utils.exceptions import AuthenticationError, AuthorizationError, TokenError
from taskhub.utils.logger import get_logger

logger = get_logger(__name__)

MIN_TOKEN_LENGTH = 10


def get_services(request: Request) -> Services:
    return request.app.state.services


def extract_bearer_token(auth_header: Optional[str]) -> str:
    """Return the token from "Bearer <token>" or raise AuthenticationError."""
    if not auth_header:
        raise AuthenticationError("Access denied. No token provided.")
    if not auth_header.startswith("Bearer "):
        raise AuthenticationError("Invalid token format.")
    token = auth_header[7:].strip()
    if not token or token in ("null", "undefined") or len(token) < MIN_TOKEN_LENGTH:
        raise AuthenticationError("Invalid token format.")
    return token


def require_login(request: Request, services: Services = Depends(get_services)) -> User:
    """
    Dependency for protected routes.

    Raises 401 if the token is missing, malformed, expired, or points to a
    user that no longer exists.
    """
    token = extract_bearer_token(request.headers.get("Authorization"))
    try:
        user_id = services.tokens.verify_access(token)
    except TokenError as e:
        logger.info("Access token rejected", reason=e.reason, path=request.url.path)
        raise AuthenticationError("Invalid or expired token.")

    user = services.storage.get_user_by_id(user_id)
    if user is None:
        logger.info("Access token for unknown user", user_id=user_id)
        raise AuthenticationError("Invalid token. User not found.")

    request.state.user = user
    return user


def check_roles(user: Optional[User], roles: Iterable[str]) -> User:
    """401 when there is no identity, 403 when its role is not allowed."""
    if user is None:
        raise AuthenticationError("Access denied. User not authenticated.")
    if user.role not in tuple(roles):
        raise AuthorizationError("Access denied. Insufficient permissions.")
    return user


def authorize(*roles: str):
    """Dependency factory for role-based access control"""
    async def role_checker(current_user: User = Depends(require_login)) -> User:
        return check_roles(current_user, roles)

    return role_checker


require_admin = authorize("admin")
