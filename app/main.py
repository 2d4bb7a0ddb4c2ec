"""FastAPI application for the Dax progress service."""

from contextlib import asynccontextmanager
from typing import Any, Dict, Tuple

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
import structlog
from prometheus_fastapi_instrumentator import Instrumentator

from app.core.config import settings
from app.core.database import engine, get_db, init_db
from app.core.dependencies import get_redis_cache
from app.core.exceptions import (
    AuthorizationError,
    ConcurrencyConflict,
    NotFoundError,
    ProgressServiceError,
    ValidationError,
)
from app.core.logging import setup_logging
from app.routers import games, gamification, progress

setup_logging()
logger = structlog.get_logger()

ERROR_STATUS: Tuple[Tuple[type, int], ...] = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConcurrencyConflict, status.HTTP_409_CONFLICT),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and connect the cache before serving; release the pool after."""
    logger.info("Progress service starting", version=settings.APP_VERSION, environment=settings.ENVIRONMENT)

    await init_db()
    app.state.redis_cache = await get_redis_cache()

    logger.info("Progress service ready")
    yield

    await engine.dispose()
    logger.info("Progress service stopped")


app = FastAPI(
    title=settings.APP_NAME,
    description="Learner progress, points, streaks, badges and leaderboards for Dax",
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url=None if settings.is_production() else "/docs",
    redoc_url=None if settings.is_production() else "/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Instrumentation middleware has to be registered before the app starts
if settings.ENABLE_METRICS:
    Instrumentator().instrument(app).expose(app, endpoint="/metrics")

app.include_router(progress.router, prefix="/api/progress", tags=["progress"])
app.include_router(gamification.router, prefix="/api/gamification", tags=["gamification"])
app.include_router(games.router, prefix="/api/games", tags=["games"])


@app.exception_handler(ProgressServiceError)
async def progress_error_handler(request: Request, exc: ProgressServiceError):
    """Map the service error hierarchy onto HTTP status codes."""
    status_code = next(
        (code for error_type, code in ERROR_STATUS if isinstance(exc, error_type)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )

    body = exc.to_dict()
    if isinstance(exc, ValidationError) and exc.field:
        body["field"] = exc.field
    if isinstance(exc, ConcurrencyConflict):
        body["retryable"] = True

    return JSONResponse(status_code=status_code, content=body)


async def _check_database() -> str:
    async for session in get_db():
        await session.execute(text("SELECT 1"))
    return "healthy"


async def _check_cache(request: Request) -> str:
    cache = getattr(request.app.state, "redis_cache", None)
    if cache is None:
        return "not configured"
    await cache.exists("health_check")
    return "healthy"


@app.get("/", tags=["root"])
async def root():
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "status": "operational",
    }


@app.get("/health", tags=["health"])
async def health_check(request: Request):
    """Database and cache reachability. 503 when either check fails."""
    checks: Dict[str, str] = {}
    healthy = True

    for name, check in (("database", _check_database()), ("cache", _check_cache(request))):
        try:
            checks[name] = await check
        except Exception as e:
            logger.warning("Health check failed", check=name, error=str(e))
            checks[name] = f"unhealthy: {e}"
            healthy = False

    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "healthy" if healthy else "degraded",
            "service": settings.SERVICE_NAME,
            "version": settings.APP_VERSION,
            "checks": checks,
        },
    )


@app.get("/config", tags=["debug"])
async def get_config():
    """Effective gamification and storage settings (not exposed in production)."""
    if settings.is_production():
        return JSONResponse(status_code=403, content={"error": "Not available in production"})

    config: Dict[str, Any] = {
        "environment": settings.ENVIRONMENT,
        "game_points": {
            "per_score_unit": settings.POINTS_PER_SCORE_UNIT,
            "accuracy_excellent": settings.POINTS_ACCURACY_EXCELLENT,
            "accuracy_good": settings.POINTS_ACCURACY_GOOD,
            "speed_bonus": settings.POINTS_SPEED_BONUS,
            "hint_penalty": settings.POINTS_HINT_PENALTY,
            "mistake_penalty": settings.POINTS_MISTAKE_PENALTY,
            "minimum_award": settings.POINTS_MINIMUM_AWARD,
        },
        "points_per_level": settings.POINTS_PER_LEVEL,
        "weekly_stats_window": settings.WEEKLY_STATS_WINDOW,
        "write_retry_attempts": settings.WRITE_RETRY_ATTEMPTS,
        "database_driver": settings.DATABASE_URL.split("://", 1)[0],
        "leaderboard": {
            "size": settings.LEADERBOARD_SIZE,
            "cache_ttl": settings.LEADERBOARD_CACHE_TTL,
        },
    }
    return config


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=settings.SERVICE_PORT,
        reload=settings.ENVIRONMENT == "development",
        log_config=None,  # structlog owns output
    )
