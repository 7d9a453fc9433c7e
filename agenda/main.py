"""
FastAPI Application Entry Point

This module initializes the FastAPI application and integrates:
- Scheduling API routes
- Database connections
- Error mapping for scheduling exceptions
- Lifecycle events
"""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from agenda.api import scheduling_router
from agenda.config import settings
from agenda.db.repository import DatabaseError, ScheduleNotFoundError
from agenda.db.session import check_database_connection, close_database_connection
from agenda.models.schemas import ScheduleConfigurationError

VERSION = "0.1.0"

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
    ]
)
logger = logging.getLogger(__name__)

logger.info("=" * 60)
logger.info("Agenda Availability Service")
logger.info("=" * 60)
logger.info(f"Debug mode: {settings.debug}")
logger.info(f"Log level: {settings.log_level}")
logger.info(f"Database URL: {settings.database_url_str.split('@')[0]}@***")
logger.info(f"Business timezone: {settings.business_timezone}")
logger.info("=" * 60)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Verifies the database on startup and disposes the engine on shutdown.
    """
    logger.info("🚀 Starting application...")

    db_healthy = await check_database_connection()
    if db_healthy:
        logger.info("✅ Database connection verified")
    else:
        logger.error("❌ Database connection failed!")
        logger.warning("Application will start but database operations will fail")

    yield

    logger.info("🛑 Shutting down application...")
    await close_database_connection()
    logger.info("✅ Application shutdown complete")


app = FastAPI(
    title="Agenda Availability Service",
    description=(
        "Appointment availability engine. Lists bookable slots for a "
        "professional's schedule and validates and books appointments "
        "without conflicts."
    ),
    version=VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.debug else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ScheduleNotFoundError)
async def schedule_not_found_handler(request: Request, exc: ScheduleNotFoundError):
    return JSONResponse(status_code=404, content={"error": "schedule_not_found", "message": str(exc)})


@app.exception_handler(ScheduleConfigurationError)
async def schedule_configuration_handler(request: Request, exc: ScheduleConfigurationError):
    # Administrator problem; clients only get a generic message
    logger.error(f"Schedule configuration error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "schedule_misconfigured",
            "message": "This schedule is not configured correctly. Please contact the business.",
        },
    )


@app.exception_handler(DatabaseError)
async def database_error_handler(request: Request, exc: DatabaseError):
    logger.error(f"Database error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=503,
        content={"error": "database_error", "message": "Please try again in a moment."},
    )


@app.get("/")
async def root():
    """Basic API information."""
    return {
        "message": "Agenda Availability Service API",
        "version": VERSION,
        "status": "running",
        "endpoints": {
            "health": "/health",
            "docs": "/docs" if settings.debug else "disabled in production",
            "available_slots": "/schedules/{schedule_id}/available-slots",
            "validate": "/schedules/{schedule_id}/validate",
            "appointments": "/schedules/{schedule_id}/appointments",
        }
    }


@app.get("/health")
async def health_check():
    """
    Application health check endpoint.

    Returns 200 when the database answers, 503 otherwise.
    """
    db_healthy = await check_database_connection()

    return JSONResponse(
        status_code=200 if db_healthy else 503,
        content={
            "status": "healthy" if db_healthy else "degraded",
            "api": "operational",
            "database": "connected" if db_healthy else "disconnected",
            "version": VERSION,
        }
    )


app.include_router(scheduling_router)

logger.info("✅ FastAPI application initialized")


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Starting uvicorn on {settings.app_host}:{settings.app_port}")

    uvicorn.run(
        "agenda.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
