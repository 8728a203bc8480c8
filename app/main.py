"""
FastAPI main application for the Test Pulse analytics API.

Provides REST API endpoints for test run trends and flaky test detection.
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from app.config import get_settings

# Configure logging from settings
settings = get_settings()
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper()),
    format=settings.LOG_FORMAT,
    handlers=[
        logging.StreamHandler(),  # Console output
    ]
)
logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.
    Handles startup and shutdown events.
    """
    logger.info("Starting Test Pulse Analytics API")
    logger.info(f"Rate limiting enabled: {settings.RATE_LIMIT_ENABLED}")
    logger.info(f"API key authentication: {'enabled' if settings.API_KEY else 'disabled'}")

    yield

    logger.info("Shutting down Test Pulse Analytics API")


# Create FastAPI application
app = FastAPI(
    title="Test Pulse Analytics API",
    description="""
    Organization-scoped analytics over CI test runs and test executions:
    run trends, duration statistics, flaky test detection and impact scoring.

    ## Authentication

    - The organization is resolved by the upstream auth layer and forwarded in the
      `X-Organization-Id` header. Requests without an organization are rejected with 401.
    - Set `API_KEY` to additionally require the `X-API-Key` request header.
    """,
    version=API_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure rate limiting
if settings.RATE_LIMIT_ENABLED:
    rate_limit_string = f"{settings.RATE_LIMIT_PER_MINUTE}/minute"
    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[rate_limit_string]
    )
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    logger.info(f"Rate limiting enabled: {rate_limit_string}")
else:
    limiter = Limiter(key_func=get_remote_address, enabled=False)
    app.state.limiter = limiter
    logger.info("Rate limiting disabled")

# Configure CORS with specific allowed origins
allowed_origins = settings.ALLOWED_ORIGINS.split(",") if settings.ALLOWED_ORIGINS else []
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-API-Key", settings.ORGANIZATION_HEADER],
)

if settings.RATE_LIMIT_ENABLED:
    app.add_middleware(SlowAPIMiddleware)


# Global exception handlers
@app.exception_handler(SQLAlchemyError)
async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
    """Handle record store errors; no partial report is ever returned."""
    logger.error(f"Database error: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Database error",
            "detail": "An error occurred while accessing the database"
        }
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    """Handle ValueError exceptions (often from invalid input)."""
    logger.warning(f"Value error: {exc}")
    return JSONResponse(
        status_code=400,
        content={
            "error": "Invalid input",
            "detail": str(exc)
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": "An unexpected error occurred"
        }
    )


# Health check endpoints
@app.get("/health", tags=["System"])
async def health_check():
    """
    Basic health check endpoint - returns minimal status.
    """
    return {
        "status": "healthy",
        "version": API_VERSION
    }


@app.get("/health/detailed", tags=["System"])
async def detailed_health_check():
    """
    Detailed health check endpoint for monitoring systems.

    Checks:
    - Application status
    - Record store connectivity
    """
    from app.database import SessionLocal

    health_status = {
        "status": "healthy",
        "version": API_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {}
    }

    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
        health_status["checks"]["database"] = {
            "status": "healthy",
            "message": "Database connection successful"
        }
    except SQLAlchemyError as e:
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = {
            "status": "unhealthy",
            "message": f"Database connection failed: {str(e)}"
        }
        logger.error(f"Database health check failed: {e}")

    health_status["checks"]["rate_limiting"] = {
        "status": "enabled" if settings.RATE_LIMIT_ENABLED else "disabled",
        "limit_per_minute": settings.RATE_LIMIT_PER_MINUTE
    }

    return health_status


@app.get("/health/live", tags=["System"])
async def liveness_probe():
    """
    Kubernetes liveness probe endpoint.
    """
    return {"status": "alive"}


@app.get("/health/ready", tags=["System"])
async def readiness_probe():
    """
    Kubernetes readiness probe endpoint.

    Returns 200 if the record store is reachable, 503 if not.
    """
    from app.database import SessionLocal

    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
        return {"status": "ready"}
    except SQLAlchemyError as e:
        logger.error(f"Readiness probe failed: {e}")
        return JSONResponse(
            status_code=503,
            content={"status": "not ready", "reason": "database unavailable"}
        )


@app.get("/api/v1", tags=["System"])
async def api_root():
    """
    API root endpoint.
    """
    return {
        "message": "Test Pulse Analytics API",
        "version": API_VERSION,
        "docs": "/docs",
        "health": {
            "basic": "/health",
            "detailed": "/health/detailed",
            "liveness": "/health/live",
            "readiness": "/health/ready"
        }
    }


# Import and register routers with API versioning
from app.routers import analytics

app.include_router(analytics.router, prefix="/api/v1/test-analytics", tags=["Test Analytics v1"])

# Maintain backward compatibility with /api/* (alias to v1)
app.include_router(analytics.router, prefix="/api/test-analytics", tags=["Test Analytics"], include_in_schema=False)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info"
    )
