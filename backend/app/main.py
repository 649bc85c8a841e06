"""beliefsync state service - FastAPI application."""

import sqlite3
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .config import get_settings
from .database import check_database, get_state_store
from .logging_config import configure_logging, get_logger
from .models import HealthResponse
from .rate_limit import limiter
from .routes import auth_router, state_router

logger = get_logger("beliefsync.server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    settings = get_settings()
    configure_logging(settings.debug)
    store = get_state_store(settings)
    if not settings.api_secret:
        logger.warning("API_SECRET is not set; every protected request will be rejected")
    logger.info(f"Starting state service (debug={settings.debug}, db={store.db_path})")
    yield
    # Shutdown
    logger.info("Shutting down state service")


app = FastAPI(
    title="beliefsync state service",
    description="Key/value state store for offline-first belief map clients",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report malformed requests as 400 rather than FastAPI's default 422."""
    errors = exc.errors()
    fields = [".".join(p for p in err.get("loc", ())[1:] if isinstance(p, str)) for err in errors]
    detail = "Invalid request"
    if fields and all(fields):
        detail = f"Invalid request: {', '.join(fields)}"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": detail})


# CORS middleware
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth_router)
app.include_router(state_router)


@app.get("/api/health", response_model=HealthResponse)
async def health():
    """Health check with actual database verification. No auth required."""
    try:
        db_ok = await check_database(get_state_store())
    except (OSError, sqlite3.Error) as e:
        logger.warning(f"Database unavailable: {e}")
        db_ok = False

    return HealthResponse(
        status="healthy" if db_ok else "degraded",
        database="connected" if db_ok else "error",
    )
