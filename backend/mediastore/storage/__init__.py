"""
Storage module for S3-compatible object storage (Cloudflare R2).

Services are wired per request in ``mediastore.storage.dependencies``; this
package root only re-exports the backend-neutral types.
"""
from mediastore.storage.blob_store import BlobContent, BlobStore, ListPage, StoredObject
from mediastore.storage.errors import (
    AuthorizationError,
    BackendTransportError,
    ConfigurationError,
    InvalidInputError,
    MoveIncompleteError,
    NotFoundError,
    StorageError,
)
from mediastore.storage.keys import CategoryRoot, build_key, build_object_key

__all__ = [
    "BlobContent",
    "BlobStore",
    "ListPage",
    "StoredObject",
    "StorageError",
    "ConfigurationError",
    "InvalidInputError",
    "AuthorizationError",
    "NotFoundError",
    "BackendTransportError",
    "MoveIncompleteError",
    "CategoryRoot",
    "build_key",
    "build_object_key",
]
