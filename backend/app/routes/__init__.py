"""API routes."""

from .auth import router as auth_router
from .state import router as state_router

__all__ = [
    "auth_router",
    "state_router",
]
