"""
FastAPI application initialization
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from api.routes import health, sync
from api.middleware import RequestContextMiddleware
from core.config import settings
from core.database import mask_url
from core.exceptions import (
    ConfigurationError,
    ExtractionError,
    PersistenceError,
    SyncException,
)
from core.logging import setup_logging
from ingestion.scheduler import GrowiSyncScheduler
import logging

setup_logging()
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Growi Sync API",
    description="Pulls Growi partner content statistics into Postgres",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(RequestContextMiddleware)

scheduler = GrowiSyncScheduler()

app.include_router(health.router)
app.include_router(sync.router)


def _error_response(request: Request, status_code: int, code: str, error: SyncException) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {"code": code, "message": error.message},
            "request_id": getattr(request.state, "request_id", None),
        },
    )


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    return _error_response(request, 400, "invalid_sync_parameters", exc)


@app.exception_handler(ExtractionError)
async def extraction_error_handler(request: Request, exc: ExtractionError):
    return _error_response(request, 502, "growi_upstream_error", exc)


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    return _error_response(request, 500, "persistence_error", exc)


@app.exception_handler(SyncException)
async def sync_error_handler(request: Request, exc: SyncException):
    logger.error(f"Unhandled sync error: {exc}")
    return _error_response(request, 500, "sync_failed", exc)


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    logger.info("Starting Growi Sync API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {mask_url(settings.DATABASE_URL)}")

    if settings.SYNC_SCHEDULE_ENABLED:
        scheduler.start()


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info("Shutting down Growi Sync API")
    scheduler.stop()


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Growi Sync API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "sync_private": "/sync/growi/private",
            "sync_public": "/sync/growi/public"
        }
    }
