"""
FastAPI application entry point.
Sets up the API, storage error mapping and Prometheus metrics.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from mediastore.config import settings
from mediastore.api.router import api_router
from mediastore.middleware.metrics_middleware import MetricsMiddleware
from mediastore.storage.dependencies import get_storage_config
from mediastore.storage.errors import ConfigurationError, StorageError
from mediastore.utils.logging import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup/shutdown events.
    - Startup: configure logging and check the storage configuration
    - Shutdown: nothing to release (boto3 clients need no explicit close)
    """
    # Configure structured JSON logging
    configure_logging('mediastore-api', settings.log_level)

    # Storage settings are validated eagerly in production only; elsewhere
    # a missing setting surfaces on the first storage call instead
    try:
        get_storage_config().validate()
    except ConfigurationError as e:
        if settings.environment == "production":
            raise
        logger.warning(f"Storage configuration incomplete: {e.message}")

    yield


# Create FastAPI app
app = FastAPI(
    title="Media Store API",
    description="Object storage and media management for the back-office file browser",
    version="0.1.0",
    lifespan=lifespan
)

# CORS middleware (for the browser frontend)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Metrics middleware (must be after CORS to track all requests)
app.add_middleware(MetricsMiddleware)


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    """Map the storage error taxonomy onto HTTP status codes."""
    if exc.status_code >= 500:
        logger.warning(
            f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}",
            extra={"event": "request_failed", "error": type(exc).__name__, "key": exc.key},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": type(exc).__name__},
    )


# Include API routes
app.include_router(api_router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Media Store API",
        "version": "0.1.0",
        "environment": settings.environment
    }


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )
