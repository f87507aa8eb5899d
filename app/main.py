"""
Federation Rankings Backend API - Main Application
"""
import logging
import sys
import traceback
import uuid
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import uvicorn

from .core.config import settings
from .database import SessionLocal, get_db, init_db
from .api.v1 import api_router
from .services.ranking_period_service import ranking_period_service
from .services.scheduler_service import scheduler_service

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
    ]
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info("Starting Federation Rankings API...")

    try:
        logger.info(f"Database: {settings.DATABASE_HOST}:{settings.DATABASE_PORT}/{settings.DATABASE_NAME}")
        init_db()
        logger.info("Database initialized successfully")

        # Points accumulate into the active period; open one if none exists
        db = SessionLocal()
        try:
            period = ranking_period_service.get_or_create_active_period(db)
            logger.info(f"Active ranking period: {period.name} ({period.start_date} to {period.end_date})")
        finally:
            db.close()

        # Start the scheduler service
        scheduler_service.start()
        logger.info("Scheduler service started")

        logger.info(f"API running at: http://{settings.API_HOST}:{settings.API_PORT} (debug={settings.DEBUG})")

    except Exception as e:
        logger.error(f"Failed to initialize backend: {e}")
        raise

    yield  # Application runs here

    # Shutdown
    logger.info("Shutting down Federation Rankings API...")

    try:
        scheduler_service.shutdown()
        logger.info("Scheduler service stopped")

    except Exception as e:
        logger.error(f"Error during shutdown: {e}")


# Create FastAPI application
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Pickleball federation rankings: tournament points, standings and history",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    lifespan=lifespan,
    redirect_slashes=False
)

# Initialize rate limiter
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    enabled=settings.RATE_LIMIT_ENABLED
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unexpected errors."""
    # Generate a unique error ID for tracking
    error_id = str(uuid.uuid4())[:8]

    # Always log the full error on the server
    logger.error(
        f"[ERROR_ID: {error_id}] Unhandled exception on {request.method} {request.url.path}",
        exc_info=True
    )

    if settings.DEBUG:
        # Development: return detailed error for debugging
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "detail": str(exc),
                "error_id": error_id,
                "type": type(exc).__name__,
                "path": str(request.url.path),
                "traceback": traceback.format_exc()
            }
        )
    else:
        # Production: return generic error, hide internal details
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "detail": "An internal server error occurred. Please try again later.",
                "error_id": error_id
            }
        )


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "service": settings.PROJECT_NAME,
        "version": "1.0.0",
        "status": "running",
        "environment": settings.ENVIRONMENT,
        "docs_url": "/docs" if settings.DEBUG else "disabled",
        "features": [
            "Tournament ranking points",
            "Ranking periods",
            "State and national standings",
            "Points history",
            "Background recalculation"
        ]
    }


# Health check endpoint
@app.get("/health")
async def health_check(db: Session = Depends(get_db)):
    """Health check endpoint for monitoring."""
    from app.utils.time_utils import to_utc_isoformat, utc_now

    database = {"status": "connected", "host": settings.DATABASE_HOST}
    rankings = {"active_period": None}
    try:
        db.execute(text("SELECT 1"))
        period = ranking_period_service.get_active_period(db)
        if period:
            rankings["active_period"] = period.name
    except SQLAlchemyError as e:
        logger.error(f"Health check database probe failed: {e}")
        database["status"] = "unreachable"

    scheduler_running = scheduler_service.running
    nightly_job = scheduler_service.scheduler.get_job('nightly_ranking_recalculation')
    rankings["nightly_recalculation"] = (
        to_utc_isoformat(nightly_job.next_run_time)
        if nightly_job and nightly_job.next_run_time else None
    )

    return {
        "status": "healthy" if database["status"] == "connected" else "degraded",
        "timestamp": to_utc_isoformat(utc_now()),
        "service": "federation-rankings-api",
        "version": "1.0.0",
        "services": {
            "database": database,
            "scheduler": {
                "status": "running" if scheduler_running else "stopped",
                "scheduled_jobs": len(scheduler_service.get_scheduled_jobs())
            },
            "rankings": rankings
        }
    }


# Include API router
app.include_router(api_router, prefix=settings.API_V1_PREFIX)


if __name__ == "__main__":
    # Run the application
    uvicorn.run(
        "app.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
