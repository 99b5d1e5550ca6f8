"""
FastAPI providers for the storage services.

The StorageConfig and the BlobStore are built once per process; the
services are cheap and built per request around them. Tests replace
``get_blob_store`` and ``get_storage_config`` through
``app.dependency_overrides``.
"""
from typing import Optional

from fastapi import Depends

from mediastore.config import StorageConfig, settings
from mediastore.storage.blob_store import BlobStore
from mediastore.storage.deletion import DeletionAuthority
from mediastore.storage.images import ImageOptimizer
from mediastore.storage.listing import ObjectLister
from mediastore.storage.presign import PresignService
from mediastore.storage.s3_store import S3BlobStore

# Singleton instances
_storage_config: Optional[StorageConfig] = None
_blob_store: Optional[BlobStore] = None


def get_storage_config() -> StorageConfig:
    """Get the process-wide storage configuration."""
    global _storage_config
    if _storage_config is None:
        _storage_config = StorageConfig.from_settings(settings)
    return _storage_config


def get_blob_store() -> BlobStore:
    """
    Get the singleton blob store.

    Returns:
        S3BlobStore (may or may not be configured; the first call fails
        with ConfigurationError when it is not)
    """
    global _blob_store
    if _blob_store is None:
        _blob_store = S3BlobStore(get_storage_config())
    return _blob_store


def get_lister(
    store: BlobStore = Depends(get_blob_store),
    config: StorageConfig = Depends(get_storage_config),
) -> ObjectLister:
    return ObjectLister(store, config)


def get_presign_service(
    store: BlobStore = Depends(get_blob_store),
    config: StorageConfig = Depends(get_storage_config),
) -> PresignService:
    return PresignService(store, config)


def get_image_optimizer(
    store: BlobStore = Depends(get_blob_store),
    config: StorageConfig = Depends(get_storage_config),
) -> ImageOptimizer:
    return ImageOptimizer(store, config)


def get_deletion_authority(
    store: BlobStore = Depends(get_blob_store),
    config: StorageConfig = Depends(get_storage_config),
) -> DeletionAuthority:
    return DeletionAuthority(store, config)
