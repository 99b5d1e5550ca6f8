"""
S3-compatible blob store (Cloudflare R2, MinIO, AWS S3).

Uses boto3 with the S3 API and path-style addressing. This is the only
module that knows about boto3; everything above it talks to BlobStore.

Why presigned URLs?
- Browsers upload directly to the bucket (no backend proxy for large files)
- Bucket stays private - only presigned URLs can access
"""
import logging
import time
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from mediastore.config import StorageConfig
from mediastore.storage.blob_store import (
    DEFAULT_CONTENT_TYPE,
    BlobContent,
    BlobStore,
    ListPage,
    StoredObject,
    guess_content_type,
)
from mediastore.storage.errors import BackendTransportError, ConfigurationError, NotFoundError
from mediastore.utils.logging import log_backend_failure
from mediastore.utils.metrics import (
    storage_operation_duration_seconds,
    storage_operations_total,
)

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}

STREAM_CHUNK_SIZE = 64 * 1024


class S3BlobStore(BlobStore):
    """
    BlobStore backed by boto3.

    The boto3 client is created lazily on first use, so a service without
    credentials can still boot; the first storage call then fails with a
    ConfigurationError naming the missing setting.
    """

    def __init__(self, config: StorageConfig, client=None):
        """
        Args:
            config: Storage configuration
            client: Pre-built boto3 S3 client (tests pass a moto-backed one)
        """
        self._config = config
        self._client = client

    @property
    def bucket(self) -> str:
        """Get configured bucket name."""
        return self._config.require("bucket")

    @property
    def client(self):
        """boto3 S3 client, built on first access."""
        if self._client is None:
            endpoint = self._config.require("endpoint")
            access_key = self._config.require("access_key")
            secret_key = self._config.require("secret_key")
            bucket = self._config.require("bucket")

            # Use signature_version='s3v4' for R2 compatibility
            self._client = boto3.client(
                's3',
                endpoint_url=endpoint,
                aws_access_key_id=access_key,
                aws_secret_access_key=secret_key,
                region_name=self._config.region,
                config=Config(
                    signature_version='s3v4',
                    s3={'addressing_style': 'path'}  # R2 uses path-style
                )
            )
            logger.info(f"S3 client initialized for bucket: {bucket}")
        return self._client

    def _call(self, operation: str, key: Optional[str] = None, **params):
        """
        Invoke a boto3 operation with metrics and error translation.

        Args:
            operation: boto3 client method name
            key: Object key, for error messages and logs
            **params: Operation parameters (Bucket is added here)

        Returns:
            The raw boto3 response

        Raises:
            NotFoundError: Backend reported a missing key
            BackendTransportError: Any other backend or network failure
        """
        client = self.client
        params.setdefault("Bucket", self.bucket)
        start_time = time.time()
        try:
            response = getattr(client, operation)(**params)
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            status = "not_found" if code in NOT_FOUND_CODES else "error"
            storage_operations_total.labels(operation=operation, status=status).inc()
            if status == "not_found":
                raise NotFoundError(f"Object not found: {key}", key=key) from e
            log_backend_failure(
                logger,
                operation=operation,
                error=str(e),
                key=key,
                duration_ms=(time.time() - start_time) * 1000,
            )
            raise BackendTransportError(f"Storage backend error during {operation}: {code or e}", key=key) from e
        except BotoCoreError as e:
            storage_operations_total.labels(operation=operation, status="error").inc()
            log_backend_failure(
                logger,
                operation=operation,
                error=str(e),
                key=key,
                duration_ms=(time.time() - start_time) * 1000,
                include_traceback=True,
            )
            raise BackendTransportError(f"Storage backend unreachable during {operation}: {e}", key=key) from e

        storage_operations_total.labels(operation=operation, status="ok").inc()
        storage_operation_duration_seconds.labels(operation=operation).observe(time.time() - start_time)
        return response

    def put(
        self,
        key: str,
        data: bytes,
        content_type: str = DEFAULT_CONTENT_TYPE,
        cache_control: Optional[str] = None,
    ) -> StoredObject:
        params = {
            "Key": key,
            "Body": data,
            "ContentType": content_type,
        }
        if cache_control:
            params["CacheControl"] = cache_control

        self._call("put_object", key=key, **params)
        logger.debug(f"Stored {key} ({len(data)} bytes, {content_type})")
        return StoredObject(key=key, size=len(data), content_type=content_type)

    def get(self, key: str) -> BlobContent:
        response = self._call("get_object", key=key, Key=key)
        body = response["Body"]
        info = StoredObject(
            key=key,
            size=response.get("ContentLength", 0),
            content_type=response.get("ContentType") or DEFAULT_CONTENT_TYPE,
            last_modified=response.get("LastModified"),
        )
        return BlobContent(info=info, chunks=body.iter_chunks(chunk_size=STREAM_CHUNK_SIZE))

    def head(self, key: str) -> StoredObject:
        response = self._call("head_object", key=key, Key=key)
        return StoredObject(
            key=key,
            size=response.get("ContentLength", 0),
            content_type=response.get("ContentType") or DEFAULT_CONTENT_TYPE,
            last_modified=response.get("LastModified"),
        )

    def list_page(
        self,
        prefix: str,
        delimiter: Optional[str] = None,
        continuation_token: Optional[str] = None,
        max_keys: Optional[int] = None,
    ) -> ListPage:
        params = {
            "Prefix": prefix,
            "MaxKeys": max_keys or self._config.list_page_size,
        }
        if delimiter:
            params["Delimiter"] = delimiter
        if continuation_token:
            params["ContinuationToken"] = continuation_token

        response = self._call("list_objects_v2", key=prefix, **params)

        # ListObjectsV2 does not return content types; listings report the
        # one implied by the extension, head() and get() the stored one
        objects = [
            StoredObject(
                key=item["Key"],
                size=item.get("Size", 0),
                content_type=guess_content_type(item["Key"]),
                last_modified=item.get("LastModified"),
            )
            for item in response.get("Contents", [])
        ]
        common_prefixes = [item["Prefix"] for item in response.get("CommonPrefixes", [])]
        next_token = response.get("NextContinuationToken") if response.get("IsTruncated") else None

        return ListPage(objects=objects, common_prefixes=common_prefixes, next_token=next_token)

    def delete(self, key: str) -> None:
        # S3 DeleteObject succeeds for missing keys; check first so a
        # missing key is reported instead of silently accepted
        self.head(key)
        self._call("delete_object", key=key, Key=key)
        logger.debug(f"Deleted object {key}")

    def copy(self, source_key: str, destination_key: str) -> StoredObject:
        self._call(
            "copy_object",
            key=source_key,
            Key=destination_key,
            CopySource={"Bucket": self.bucket, "Key": source_key},
            MetadataDirective="COPY",
        )
        return self.head(destination_key)

    def presign_get(self, key: str, expires_in: int) -> str:
        return self._presign("get_object", key, {"Key": key}, expires_in)

    def presign_put(self, key: str, content_type: str, expires_in: int) -> str:
        return self._presign("put_object", key, {"Key": key, "ContentType": content_type}, expires_in)

    def _presign(self, client_method: str, key: str, params: dict, expires_in: int) -> str:
        client = self.client
        try:
            url = client.generate_presigned_url(
                ClientMethod=client_method,
                Params={"Bucket": self.bucket, **params},
                ExpiresIn=expires_in,
            )
        except (ClientError, BotoCoreError) as e:
            log_backend_failure(logger, operation=f"presign_{client_method}", error=str(e), key=key)
            raise BackendTransportError(f"Failed to generate presigned URL: {e}", key=key) from e

        logger.debug(f"Generated presigned {client_method} URL for {key} (expires in {expires_in}s)")
        return url

    def check_connection(self) -> None:
        try:
            self._call("head_bucket")
        except NotFoundError as e:
            raise ConfigurationError(
                f"Bucket {self.bucket} does not exist",
                setting="STORAGE_BUCKET",
            ) from e
