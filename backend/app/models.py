"""Pydantic models for API requests and responses."""

from typing import Any

from pydantic import BaseModel, Field

# =============================================================================
# State Models
# =============================================================================


class StateWriteRequest(BaseModel):
    """Request to upsert a key. ``value`` is required but may be JSON null."""
    key: str = Field(..., min_length=1)
    value: Any


class StateResponse(BaseModel):
    """A stored value and the server time it was last written."""
    data: Any
    updated_at: int


class SuccessResponse(BaseModel):
    success: bool = True


# =============================================================================
# Auth Models
# =============================================================================


class LoginRequest(BaseModel):
    """Exchange the access token for a session."""
    token: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    """Session token response."""
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # Seconds


# =============================================================================
# Health
# =============================================================================


class HealthResponse(BaseModel):
    status: str
    database: str
