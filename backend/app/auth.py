"""Authentication for the state service.

A request is authenticated by a token sent either as
``Authorization: Bearer <token>`` or as the ``auth-token`` cookie. The token
is valid if it is the configured API secret, or a session token issued by
``POST /api/auth/login``. With no API secret configured, nothing is accepted.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from .config import Settings, get_settings
from .logging_config import log_auth_event

# Cookie carrying the access token for browser clients
AUTH_COOKIE_NAME = "auth-token"

# Make bearer optional to allow cookie fallback
security = HTTPBearer(auto_error=False)

AUTH_METHOD_SECRET = "api_secret"
AUTH_METHOD_SESSION = "session"


def verify_api_secret(token: str, settings: Settings) -> bool:
    """Constant-time comparison against the configured API secret."""
    if not settings.api_secret:
        return False
    return secrets.compare_digest(token.encode(), settings.api_secret.encode())


def create_session_token(settings: Settings, expires_delta: timedelta | None = None) -> str:
    """Create a signed session token."""
    if not settings.signing_key:
        raise ValueError("No signing key configured (set API_SECRET or JWT_SECRET_KEY)")
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    to_encode = {
        "sub": "session",
        "type": AUTH_METHOD_SESSION,
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.signing_key, algorithm=settings.jwt_algorithm)


def decode_session_token(token: str, settings: Settings) -> dict | None:
    """Decode a session token, or None if it is invalid or expired."""
    if not settings.signing_key:
        return None
    try:
        payload = jwt.decode(token, settings.signing_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    if payload.get("type") != AUTH_METHOD_SESSION:
        return None
    return payload


class AuthContext:
    """How the current request authenticated."""

    def __init__(self, method: str):
        self.method = method

    @property
    def is_session(self) -> bool:
        return self.method == AUTH_METHOD_SESSION


def authenticate_token(token: str | None, settings: Settings) -> AuthContext | None:
    """Resolve a raw token to an AuthContext, or None if it is not accepted."""
    if not token or not settings.api_secret:
        return None
    if verify_api_secret(token, settings):
        return AuthContext(method=AUTH_METHOD_SECRET)
    if decode_session_token(token, settings) is not None:
        return AuthContext(method=AUTH_METHOD_SESSION)
    return None


async def get_current_session(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    settings: Annotated[Settings, Depends(get_settings)],
    request: Request,
) -> AuthContext:
    """Authenticate the request from the bearer header or the auth cookie."""
    # Try Authorization header first, then fall back to cookie
    if credentials:
        token = credentials.credentials
    else:
        token = request.cookies.get(AUTH_COOKIE_NAME)

    auth = authenticate_token(token, settings)
    if auth is None:
        log_auth_event("request", False, request.url.path)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return auth


# Type alias for dependency injection
CurrentSession = Annotated[AuthContext, Depends(get_current_session)]
