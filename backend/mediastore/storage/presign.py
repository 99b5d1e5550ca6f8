"""
Presigned URL generation service.

Handles short-lived signed access to single objects and the direct upload
flow used by the file browser.

Upload flow:
1. Client requests a presigned URL with prefix, filename, content type, size
2. Backend validates the target prefix and size, generates a unique key
3. Backend returns the presigned PUT URL and the key
4. Client PUTs the bytes directly to the bucket

Read flow:
Listings return keys only. A signed GET URL is issued when a specific
preview or download is requested, one key per call.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from mediastore.config import StorageConfig
from mediastore.storage.blob_store import DEFAULT_CONTENT_TYPE, BlobContent, BlobStore
from mediastore.storage.errors import InvalidInputError
from mediastore.storage.keys import (
    build_object_key,
    has_allowed_root,
    public_url,
    validate_key,
    validate_prefix,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignedAccessGrant:
    """Read access to one key until ``expires_at``. Never persisted."""
    key: str
    url: str
    expires_at: datetime


@dataclass(frozen=True)
class UploadGrant:
    """Presigned PUT for a freshly generated key."""
    key: str
    url: str
    expires_in: int
    content_type: str
    public_url: Optional[str] = None


class PresignService:
    """
    Service for issuing presigned URLs.

    Responsibilities:
    - Validate upload requests (root, size, filename)
    - Generate unique object keys
    - Sign GET/PUT URLs for exactly one key
    - Open objects for the streaming proxy
    """

    def __init__(self, store: BlobStore, config: StorageConfig):
        self._store = store
        self._config = config

    def presign(self, key: str, ttl: Optional[int] = None) -> SignedAccessGrant:
        """
        Issue a time-limited GET URL for one object.

        Args:
            key: Object key
            ttl: Lifetime in seconds (default from config, one hour)

        Returns:
            SignedAccessGrant with URL and expiry

        Raises:
            NotFoundError: If the key does not exist
        """
        validate_key(key)
        expires_in = ttl if ttl is not None else self._config.presign_read_expiration
        if expires_in <= 0:
            raise InvalidInputError("Presign TTL must be positive")

        # Signing never touches the backend; check existence explicitly so
        # that a stale key is reported instead of producing a dead link
        self._store.head(key)

        issued_at = datetime.now(timezone.utc)
        url = self._store.presign_get(key, expires_in)
        return SignedAccessGrant(key=key, url=url, expires_at=issued_at + timedelta(seconds=expires_in))

    def presign_upload(
        self,
        prefix: str,
        filename: str,
        content_type: Optional[str],
        size: int,
    ) -> UploadGrant:
        """
        Create a presigned upload URL for a new object under ``prefix``.

        Args:
            prefix: Target folder; must sit under an allow-listed root
            filename: Original filename, sanitized into the key
            content_type: MIME type the client will send
            size: Declared size in bytes

        Returns:
            UploadGrant with the key and the PUT URL

        Raises:
            InvalidInputError: Disallowed prefix, missing filename or bad size
        """
        folder = validate_prefix(prefix)
        if not folder or not has_allowed_root(folder, self._config.allowed_roots):
            raise InvalidInputError(f"Uploads are not allowed under '{prefix}'")
        if not filename or not filename.strip():
            raise InvalidInputError("Filename is required")
        if size is None or size <= 0:
            raise InvalidInputError("File size must be positive")
        if size > self._config.max_upload_bytes:
            raise InvalidInputError(
                f"File too large: {size} bytes (limit {self._config.max_upload_bytes})"
            )

        content_type = (content_type or "").strip() or DEFAULT_CONTENT_TYPE
        key = build_object_key(folder, filename)
        expires_in = self._config.presign_upload_expiration
        url = self._store.presign_put(key, content_type, expires_in)

        logger.info(
            f"Created presigned upload: key={key}, size={size}, content_type={content_type}",
            extra={"event": "upload_presigned", "key": key, "size": size},
        )

        base_url = self._config.public_base_url
        return UploadGrant(
            key=key,
            url=url,
            expires_in=expires_in,
            content_type=content_type,
            public_url=public_url(base_url, key) if base_url else None,
        )

    def open(self, key: str) -> BlobContent:
        """
        Open an object for the preview/download proxy.

        Raises:
            NotFoundError: If the key does not exist
        """
        validate_key(key)
        return self._store.get(key)
