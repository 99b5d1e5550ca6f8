"""
Image optimization pipeline.

Every uploaded image goes through the same path: decode, apply EXIF
orientation, shrink so the longest side fits the configured bound, encode
as WebP. The output gets a fresh random key so it can be cached forever.
"""
import io
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from mediastore.config import StorageConfig
from mediastore.storage.blob_store import BlobStore
from mediastore.storage.errors import BestEffortCleanupFailure, InvalidInputError, StorageError
from mediastore.storage.keys import (
    has_allowed_root,
    key_from_public_url,
    public_url,
    validate_prefix,
)
from mediastore.utils.logging import log_cleanup_failed, log_object_uploaded
from mediastore.utils.metrics import (
    cleanup_failures_total,
    image_optimization_duration_seconds,
    image_optimizations_total,
)

logger = logging.getLogger(__name__)

CANONICAL_FORMAT = "WEBP"
CANONICAL_CONTENT_TYPE = "image/webp"
CANONICAL_EXTENSION = "webp"
IMMUTABLE_CACHE_CONTROL = "public, max-age=31536000, immutable"


@dataclass(frozen=True)
class EncodedImage:
    """Result of the decode/resize/encode step."""
    data: bytes
    width: int
    height: int
    source_width: int
    source_height: int
    content_type: str = CANONICAL_CONTENT_TYPE


class ImageOptimizer:
    """
    Validates, resizes and re-encodes uploaded images, then stores them.

    Responsibilities:
    - Reject non-image uploads
    - Bound the longest side without ever upscaling
    - Re-encode to the canonical format
    - Best-effort removal of the asset being replaced
    """

    def __init__(self, store: BlobStore, config: StorageConfig):
        self._store = store
        self._config = config

    def transform(self, data: bytes) -> EncodedImage:
        """
        Decode, resize and re-encode image bytes.

        Args:
            data: Raw image bytes in any format Pillow can read

        Returns:
            EncodedImage with WebP bytes and the before/after dimensions

        Raises:
            InvalidInputError: If the bytes are not a decodable image, or the
                image has more pixels than the configured limit
        """
        start_time = time.time()
        try:
            with Image.open(io.BytesIO(data)) as source:
                # Only the header has been read so far
                pixels = source.width * source.height
                if pixels > self._config.image_max_pixels:
                    image_optimizations_total.labels(status="invalid").inc()
                    raise InvalidInputError(
                        f"Image too large: {source.width}x{source.height} "
                        f"exceeds {self._config.image_max_pixels} pixels"
                    )
                source.load()
                image = ImageOps.exif_transpose(source)
        except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as e:
            image_optimizations_total.labels(status="invalid").inc()
            raise InvalidInputError(f"Cannot decode image: {e}") from e

        # exif_transpose may swap the axes
        oriented_width, oriented_height = image.size

        bound = self._config.image_max_dimension
        # thumbnail() only ever shrinks and keeps the aspect ratio
        image.thumbnail((bound, bound), Image.Resampling.LANCZOS)

        if image.mode not in ("RGB", "RGBA"):
            has_alpha = image.mode in ("LA", "PA") or (
                image.mode == "P" and "transparency" in image.info
            )
            image = image.convert("RGBA" if has_alpha else "RGB")

        output = io.BytesIO()
        image.save(output, format=CANONICAL_FORMAT, quality=self._config.image_quality, method=4)

        image_optimization_duration_seconds.observe(time.time() - start_time)
        return EncodedImage(
            data=output.getvalue(),
            width=image.width,
            height=image.height,
            source_width=oriented_width,
            source_height=oriented_height,
        )

    def optimize(
        self,
        data: bytes,
        content_type: str,
        destination_folder: str,
        previous_asset_url: Optional[str] = None,
    ) -> str:
        """
        Store an optimized copy of an uploaded image.

        Args:
            data: Raw uploaded bytes
            content_type: Declared MIME type, must start with ``image/``
            destination_folder: Prefix the derivative is stored under
            previous_asset_url: Public URL of the image being replaced, if any

        Returns:
            Public URL of the stored derivative

        Raises:
            InvalidInputError: Non-image content type, undecodable bytes or bad folder
            ConfigurationError: Public base URL not configured
        """
        if not (content_type or "").lower().startswith("image/"):
            image_optimizations_total.labels(status="invalid").inc()
            raise InvalidInputError(f"Only images can be optimized, got '{content_type}'")

        folder = validate_prefix(destination_folder)
        if not folder:
            raise InvalidInputError("Destination folder is required")
        if not has_allowed_root(folder, self._config.allowed_roots):
            raise InvalidInputError(f"Images cannot be stored under '{destination_folder}'")

        base_url = self._config.require("public_base_url")

        encoded = self.transform(data)
        key = f"{folder}{uuid.uuid4().hex}.{CANONICAL_EXTENSION}"

        start_time = time.time()
        stored = self._store.put(
            key,
            encoded.data,
            content_type=encoded.content_type,
            cache_control=IMMUTABLE_CACHE_CONTROL,
        )
        image_optimizations_total.labels(status="ok").inc()
        log_object_uploaded(
            logger,
            key=stored.key,
            size=stored.size,
            content_type=stored.content_type,
            duration_ms=(time.time() - start_time) * 1000,
            width=encoded.width,
            height=encoded.height,
            original_size=len(data),
        )

        if previous_asset_url:
            try:
                self._remove_previous(previous_asset_url, base_url, folder=folder, replacement_key=key)
            except BestEffortCleanupFailure as e:
                cleanup_failures_total.inc()
                log_cleanup_failed(logger, reason=e.message, key=e.key, url=previous_asset_url)

        return public_url(base_url, key)

    def _remove_previous(self, url: str, base_url: str, folder: str, replacement_key: str) -> None:
        """
        Delete the superseded asset.

        Only a derivative stored directly in the destination folder can be
        replaced this way. Anything else goes through DeletionAuthority.

        Raises:
            BestEffortCleanupFailure: Key not derivable or outside the folder,
                object missing or backend error
        """
        previous_key = key_from_public_url(base_url, url)
        if previous_key is None:
            raise BestEffortCleanupFailure("key not derivable from URL")
        name = previous_key[len(folder):]
        if (
            not previous_key.startswith(folder)
            or "/" in name
            or not name.endswith(f".{CANONICAL_EXTENSION}")
        ):
            raise BestEffortCleanupFailure(
                f"previous asset is not an image in {folder}", key=previous_key
            )
        if previous_key == replacement_key:
            return

        try:
            self._store.delete(previous_key)
        except StorageError as e:
            raise BestEffortCleanupFailure(f"{type(e).__name__}: {e.message}", key=previous_key) from e
        logger.info(f"Removed superseded asset {previous_key}")
