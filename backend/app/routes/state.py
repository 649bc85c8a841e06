"""Key/value state routes used by the client sync engine."""

import sqlite3

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import JSONResponse

from ..auth import CurrentSession
from ..database import Database, delete_state, get_state, upsert_state
from ..logging_config import get_logger, log_state_operation
from ..models import StateResponse, StateWriteRequest, SuccessResponse
from ..rate_limit import limiter, state_rate_limit

logger = get_logger("beliefsync.server.state")
router = APIRouter(prefix="/api/state", tags=["state"])


def _require_key(key: str | None) -> str:
    if not key:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing key")
    return key


def _internal_error() -> HTTPException:
    # Return generic message to client to avoid leaking internal details
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal server error",
    )


@router.get("", response_model=StateResponse)
@limiter.limit(state_rate_limit)
async def read_state(
    request: Request,
    auth: CurrentSession,
    db: Database,
    key: str | None = None,
):
    """
    Read one key.

    Returns the stored value with the server time it was last written,
    or 404 with ``{"data": null}`` when the key does not exist.
    """
    key = _require_key(key)
    try:
        record = await get_state(db, key)
    except (sqlite3.Error, ValueError) as e:
        logger.error(f"Database error reading {key}: {e}")
        log_state_operation("get", key, False, str(e))
        raise _internal_error()

    if record is None:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"data": None})

    log_state_operation("get", key, True)
    return StateResponse(data=record["value"], updated_at=record["updated_at"])


@router.post("", response_model=SuccessResponse)
@limiter.limit(state_rate_limit)
async def write_state(
    request: Request,
    body: StateWriteRequest,
    auth: CurrentSession,
    db: Database,
):
    """Insert or overwrite a key. The server stamps ``updated_at``."""
    try:
        updated_at = await upsert_state(db, body.key, body.value)
    except (sqlite3.Error, TypeError, ValueError) as e:
        logger.error(f"Database error writing {body.key}: {e}")
        log_state_operation("set", body.key, False, str(e))
        raise _internal_error()

    logger.debug(f"SET | {body.key} | updated_at={updated_at}")
    log_state_operation("set", body.key, True)
    return SuccessResponse()


@router.delete("", response_model=SuccessResponse)
@limiter.limit(state_rate_limit)
async def remove_state(
    request: Request,
    auth: CurrentSession,
    db: Database,
    key: str | None = None,
):
    """Delete a key. Succeeds whether or not the key existed."""
    key = _require_key(key)
    try:
        existed = await delete_state(db, key)
    except sqlite3.Error as e:
        logger.error(f"Database error deleting {key}: {e}")
        log_state_operation("delete", key, False, str(e))
        raise _internal_error()

    log_state_operation("delete", key, True, None if existed else "not found")
    return SuccessResponse()
