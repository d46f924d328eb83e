"""
FastAPI routes for authentication.

Prefix: /auth (mounted under /api/v1)

The refresh token travels in an http-only cookie; access tokens go in the
Authorization header.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse

from taskhub.auth.models import LoginRequest, SignupRequest, User
from taskhub.core.config import Settings
from taskhub.core.container import Services

from .auth_middleware import get_services, require_login
from .errors import envelope


router = APIRouter(prefix="/auth", tags=["auth"])

REFRESH_COOKIE = "refreshToken"


def _set_refresh_cookie(response: Response, token: str, settings: Settings) -> None:
    """Attach the refresh token as an http-only cookie that lives as long as the token."""
    response.set_cookie(
        key=REFRESH_COOKIE,
        value=token,
        max_age=int(settings.refresh_token_ttl.total_seconds()),
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


@router.post("/signup", status_code=status.HTTP_201_CREATED)
def signup(payload: SignupRequest, services: Services = Depends(get_services)) -> JSONResponse:
    """
    Register a new user.

    Request (JSON):
        name, email, password

    Response data:
        { "accessToken": "...", "refreshToken": "..." }
    """
    tokens = services.auth.signup(payload.name, payload.email, payload.password)
    response = envelope("User created successfully", tokens, status_code=status.HTTP_201_CREATED)
    _set_refresh_cookie(response, tokens.refresh_token, services.settings)
    return response


@router.post("/login")
def login(payload: LoginRequest, services: Services = Depends(get_services)) -> JSONResponse:
    """Log in an existing user. Same response shape as /signup."""
    tokens = services.auth.login(payload.email, payload.password)
    response = envelope("Login successful", tokens)
    _set_refresh_cookie(response, tokens.refresh_token, services.settings)
    return response


@router.post("/refresh-token")
def refresh_token(request: Request, services: Services = Depends(get_services)) -> JSONResponse:
    """Exchange the refresh cookie for a new access token."""
    access_token = services.auth.refresh(request.cookies.get(REFRESH_COOKIE))
    return envelope("Token refreshed successfully", {"accessToken": access_token})


@router.post("/logout")
def logout(services: Services = Depends(get_services)) -> JSONResponse:
    """Clear the refresh cookie. Always succeeds."""
    response = envelope("Logout successful")
    response.delete_cookie(
        REFRESH_COOKIE,
        httponly=True,
        secure=services.settings.is_production,
        samesite="lax",
    )
    return response


@router.get("/profile")
def profile(current_user: User = Depends(require_login)) -> JSONResponse:
    return envelope("Profile retrieved successfully", current_user)
