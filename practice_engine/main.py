"""Main FastAPI application for the Adaptive Practice Engine."""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from fastapi import FastAPI, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from practice_engine.routers import sessions
from practice_engine.db.init_db import init_db
from practice_engine.db.database import get_db
from practice_engine.db.store import SnapshotStore
from practice_engine.logging_config import setup_logging, get_logger
from practice_engine.config import settings
from practice_engine.rate_limit import limiter
from practice_engine.services.catalog import load_catalog
from practice_engine.services.session import SessionRegistry

# Set up logging on module import
log_level = settings.LOG_LEVEL if settings.LOG_LEVEL else None
setup_logging(log_level)
logger = get_logger(__name__)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize the database on startup and drop live sessions on shutdown."""
    logger.info("Application startup initiated")
    try:
        init_db()
        logger.info("Database initialization completed successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)
        raise

    yield

    app.state.registry.clear()
    logger.info("Application shutdown complete")


app = FastAPI(
    title="Adaptive Practice Engine API",
    description="""
    Adaptive selection, reverse mode and achievement tracking for drill practice.

    ## Session Flow

    1. **Start Session**: POST to `/api/sessions` with pool groups or item keys
    2. **Next Item**: GET `/api/sessions/{session_id}/next` for the item and direction
    3. **Submit Answer**: POST `/api/sessions/{session_id}/answer` after the learner responds
    4. **Review**: GET `/stats` and `/achievements` for progress

    ## Learning Algorithm

    - Items are drawn by weighted random sampling; wrong answers raise an item's
      weight, correct answers lower it, and immediate repeats are down-weighted
    - Reverse mode may flip after a run of correct answers, never after a wrong one
    - Achievements are evaluated after every answer against the updated stats
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_tags=[
        {
            "name": "sessions",
            "description": "Practice sessions: selection, answers, stats and achievements"
        },
        {
            "name": "health",
            "description": "Service health and readiness checks"
        }
    ]
)

# Shared, read-only catalog and per-process session registry
catalog = load_catalog(settings.ACHIEVEMENT_CATALOG_PATH)
app.state.catalog = catalog
app.state.registry = SessionRegistry(settings.MAX_LIVE_SESSIONS)
app.state.store = SnapshotStore(catalog.achievements, settings.engine_tuning)

# Add rate limiting middleware
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

logger.info(f"Rate limiting {'enabled' if limiter.enabled else 'disabled'}")

# Include routers
app.include_router(sessions.router)


@app.get("/health", tags=["health"])
async def health_check(db: Session = Depends(get_db)):
    """Health check endpoint with database verification.

    Returns:
        200 OK: Service is healthy and database is accessible
        503 Service Unavailable: Database connection failed

    Example Response (Healthy):
        {
            "status": "healthy",
            "database": "connected",
            "achievements": 10,
            "live_sessions": 3,
            "timestamp": "2025-11-29T10:30:00.000000Z",
            "environment": "production"
        }
    """
    timestamp = _timestamp()

    try:
        db.execute(text("SELECT 1"))
        logger.debug("Health check passed")

        return {
            "status": "healthy",
            "database": "connected",
            "achievements": len(app.state.catalog.achievements),
            "live_sessions": len(app.state.registry),
            "timestamp": timestamp,
            "environment": settings.ENVIRONMENT
        }
    except Exception as e:
        logger.error(f"Health check failed: {e}", exc_info=True)

        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "database": "disconnected",
                "error": str(e),
                "timestamp": timestamp
            }
        )


@app.get("/readiness", tags=["health"])
async def readiness_check(db: Session = Depends(get_db)):
    """Readiness check for container orchestration.

    Returns:
        200 OK: Service is ready
        503 Service Unavailable: Service is not ready
    """
    try:
        db.execute(text("SELECT 1"))
        return {"status": "ready", "timestamp": _timestamp()}
    except Exception as e:
        logger.error(f"Readiness check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={"status": "not ready", "error": str(e)}
        )
