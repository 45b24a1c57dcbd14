"""
Main FastAPI application for the ride-hailing backend.
Serves fare quotes, the ride lifecycle and the admin console API.
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ridehail.core.config import settings
from ridehail.core.database import engine, Base, AsyncSessionLocal, utcnow
from ridehail.core.exceptions import RideHailError
from ridehail.core.logging import setup_logging
from ridehail.api.v1.api import api_router
from ridehail.api.v1.schemas import ErrorResponse, HealthResponse
from ridehail.maps.client import MapsClient
from ridehail.services.catalog import seed_catalog

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan events."""
    # Startup
    logger.info(f"Starting {settings.PROJECT_NAME} ({settings.ENVIRONMENT})...")

    # Create database tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    if settings.SEED_CATALOG:
        async with AsyncSessionLocal() as session:
            await seed_catalog(session)

    app.state.maps_client = MapsClient.from_settings()
    if not settings.MAPBOX_TOKEN:
        logger.warning("MAPBOX_TOKEN is not set; trips will be priced on straight-line distance")

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    await app.state.maps_client.aclose()
    await engine.dispose()

# Create FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Ride-hailing backend with dynamic pricing and ride lifecycle management",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(RideHailError)
async def ride_hail_error_handler(request: Request, exc: RideHailError):
    """Render domain errors with the standard error body."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    body = ErrorResponse(error=exc.error, message=exc.message, details=exc.details)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())

# Include API routes
app.include_router(api_router, prefix=settings.API_V1_STR)

@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": settings.PROJECT_NAME,
        "version": "1.0.0",
        "docs": "/docs"
    }

@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    database_connected = True
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Health check could not reach the database: {e}")
        database_connected = False

    return HealthResponse(
        status="healthy" if database_connected else "degraded",
        service="ridehail-api",
        timestamp=utcnow(),
        database_connected=database_connected
    )

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "ridehail.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development(),
        log_level=settings.LOG_LEVEL.lower()
    )
