"""Session routes: exchange the access token for a cookie session."""

from datetime import timedelta
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from ..auth import AUTH_COOKIE_NAME, create_session_token, verify_api_secret
from ..config import Settings, get_settings
from ..logging_config import get_logger, log_auth_event
from ..models import LoginRequest, SuccessResponse, TokenResponse
from ..rate_limit import limiter

logger = get_logger("beliefsync.server.auth")
router = APIRouter(prefix="/api/auth", tags=["auth"])

# =============================================================================
# Cookie-based Auth Helpers
# =============================================================================

COOKIE_MAX_AGE = 365 * 24 * 60 * 60  # 1 year in seconds


def set_auth_cookie(response: Response, token: str, settings: Settings):
    """Set httpOnly auth cookie."""
    response.set_cookie(
        key=AUTH_COOKIE_NAME,
        value=token,
        max_age=COOKIE_MAX_AGE,
        httponly=True,
        secure=settings.secure_cookies,
        samesite="lax",
        path="/",
    )


def clear_auth_cookie(response: Response, settings: Settings):
    """Clear the auth cookie (logout)."""
    response.delete_cookie(
        key=AUTH_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=settings.secure_cookies,
        samesite="lax",
    )


@router.post("/login", response_model=TokenResponse)
@limiter.limit("10/minute")
async def login(
    request: Request,
    response: Response,
    login_request: LoginRequest,
    settings: Annotated[Settings, Depends(get_settings)],
):
    """
    Exchange the shared access token for a session token.

    The session token is returned in the body and also set as an
    httpOnly cookie for browser clients.
    """
    if not verify_api_secret(login_request.token, settings):
        log_auth_event("login", False)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    expires = timedelta(minutes=settings.jwt_expire_minutes)
    token = create_session_token(settings, expires)
    set_auth_cookie(response, token, settings)
    log_auth_event("login", True)

    return TokenResponse(
        access_token=token,
        expires_in=int(expires.total_seconds()),
    )


@router.post("/logout", response_model=SuccessResponse)
async def logout(
    response: Response,
    settings: Annotated[Settings, Depends(get_settings)],
):
    """Clear auth cookie and logout."""
    clear_auth_cookie(response, settings)
    log_auth_event("logout", True)
    return SuccessResponse()
