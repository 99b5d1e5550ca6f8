"""
API router aggregator.
Includes all route modules.
"""
from fastapi import APIRouter
from mediastore.api import health, files, images
from mediastore.schemas.files import ErrorResponse

# Storage errors share one body shape (see the handler in main.py)
STORAGE_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid input"},
    403: {"model": ErrorResponse, "description": "Admin role required"},
    404: {"model": ErrorResponse, "description": "Object not found"},
    409: {"model": ErrorResponse, "description": "Move left both keys in place"},
    502: {"model": ErrorResponse, "description": "Storage backend failure"},
    503: {"model": ErrorResponse, "description": "Storage not configured"},
}

api_router = APIRouter()

# Include route modules
api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(files.router, prefix="/files", tags=["files"], responses=STORAGE_ERROR_RESPONSES)
api_router.include_router(images.router, prefix="/images", tags=["images"], responses=STORAGE_ERROR_RESPONSES)
