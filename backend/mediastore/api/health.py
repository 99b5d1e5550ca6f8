"""
Health check endpoint.
Verifies that the storage bucket is reachable.
"""
from fastapi import APIRouter, Depends, HTTPException

from mediastore.storage.blob_store import BlobStore
from mediastore.storage.dependencies import get_blob_store
from mediastore.storage.errors import StorageError

router = APIRouter()


@router.get("")
def health_check(store: BlobStore = Depends(get_blob_store)):
    """
    Health check endpoint.
    Returns status of the storage backend connection.
    """
    health_status = {
        "status": "healthy",
        "storage": "unknown",
    }

    try:
        store.check_connection()
        health_status["storage"] = "connected"
    except StorageError as e:
        health_status["storage"] = f"error: {e.message}"
        health_status["status"] = "unhealthy"

    if health_status["status"] == "unhealthy":
        raise HTTPException(status_code=503, detail=health_status)

    return health_status
