"""
Application configuration using Pydantic Settings.
All environment variables are loaded here with sensible defaults.

The storage services never read ``settings`` directly: a StorageConfig is
built once at startup and handed to the BlobStore and the services, so tests
can construct their own without touching the environment.
"""
from dataclasses import dataclass, replace
from typing import List, Optional, Tuple
from urllib.parse import urlparse

from pydantic_settings import BaseSettings, SettingsConfigDict

from mediastore.storage.errors import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Environment
    environment: str = "dev"
    log_level: str = "INFO"

    # S3-compatible object storage (Cloudflare R2, MinIO, AWS S3)
    storage_endpoint: Optional[str] = None  # e.g., https://<account_id>.r2.cloudflarestorage.com
    storage_bucket: Optional[str] = None
    storage_access_key: Optional[str] = None
    storage_secret_key: Optional[str] = None
    storage_region: str = "auto"  # R2 uses "auto" for region
    storage_public_base_url: Optional[str] = None  # e.g., https://pub-xxxx.r2.dev

    # Presigned URLs
    presign_read_expiration: int = 3600  # Preview/download links (1 hour)
    presign_upload_expiration: int = 600  # Direct upload links (10 min)
    max_upload_bytes: int = 100 * 1024 * 1024

    # Image pipeline
    image_max_dimension: int = 2560
    image_quality: int = 80
    image_max_pixels: int = 178_000_000  # Decompression bomb guard, checked before decoding

    # Listing
    list_page_size: int = 1000  # S3 ListObjectsV2 maximum
    list_max_pages: int = 50  # Safety cap for recursive listing

    # Access rules
    allowed_roots: List[str] = ["clients/", "montages/", "orders/", "tasks/", "partners/"]
    allowed_move_roots: List[str] = ["clients/"]
    admin_roles: List[str] = ["admin", "owner"]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Env variable names reported in ConfigurationError messages
_SETTING_NAMES = {
    "endpoint": "STORAGE_ENDPOINT",
    "bucket": "STORAGE_BUCKET",
    "access_key": "STORAGE_ACCESS_KEY",
    "secret_key": "STORAGE_SECRET_KEY",
    "public_base_url": "STORAGE_PUBLIC_BASE_URL",
}


@dataclass(frozen=True)
class StorageConfig:
    """
    Explicit storage configuration passed into the BlobStore and services.

    Backend fields are optional so that a partially configured deployment
    can still boot; each one is checked by ``require`` at the point it is
    first needed.
    """

    endpoint: Optional[str] = None
    bucket: Optional[str] = None
    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    region: str = "auto"
    public_base_url: Optional[str] = None
    presign_read_expiration: int = 3600
    presign_upload_expiration: int = 600
    max_upload_bytes: int = 100 * 1024 * 1024
    image_max_dimension: int = 2560
    image_quality: int = 80
    image_max_pixels: int = 178_000_000
    list_page_size: int = 1000
    list_max_pages: int = 50
    allowed_roots: Tuple[str, ...] = ("clients/", "montages/", "orders/", "tasks/", "partners/")
    allowed_move_roots: Tuple[str, ...] = ("clients/",)
    admin_roles: Tuple[str, ...] = ("admin", "owner")

    @classmethod
    def from_settings(cls, source: Settings) -> "StorageConfig":
        """Build the storage config from application settings."""
        public_base_url = source.storage_public_base_url
        if public_base_url:
            public_base_url = public_base_url.strip().rstrip("/")
        return cls(
            endpoint=source.storage_endpoint,
            bucket=source.storage_bucket,
            access_key=source.storage_access_key,
            secret_key=source.storage_secret_key,
            region=source.storage_region,
            public_base_url=public_base_url,
            presign_read_expiration=source.presign_read_expiration,
            presign_upload_expiration=source.presign_upload_expiration,
            max_upload_bytes=source.max_upload_bytes,
            image_max_dimension=source.image_max_dimension,
            image_quality=source.image_quality,
            image_max_pixels=source.image_max_pixels,
            list_page_size=source.list_page_size,
            list_max_pages=source.list_max_pages,
            allowed_roots=tuple(source.allowed_roots),
            allowed_move_roots=tuple(source.allowed_move_roots),
            admin_roles=tuple(role.lower() for role in source.admin_roles),
        )

    def require(self, name: str) -> str:
        """
        Return a backend setting, failing fast when it is missing.

        Args:
            name: Attribute name (endpoint, bucket, access_key, secret_key, public_base_url)

        Returns:
            The non-empty setting value

        Raises:
            ConfigurationError: If the setting is empty; the message names the env variable
        """
        value = getattr(self, name)
        if value is None or not str(value).strip():
            env_name = _SETTING_NAMES.get(name, name.upper())
            raise ConfigurationError(
                f"Storage is not configured: {env_name} is missing",
                setting=env_name,
            )
        return str(value).strip()

    @property
    def is_configured(self) -> bool:
        """Check whether every backend credential is present."""
        return all([self.endpoint, self.bucket, self.access_key, self.secret_key])

    def validate(self) -> "StorageConfig":
        """
        Validate the full backend configuration.

        Used by the startup check in production and by the health endpoint.
        Mirrors the checks the settings form applies before saving.

        Returns:
            A copy with the public base URL normalised (no trailing slash)

        Raises:
            ConfigurationError: On the first missing or malformed setting
        """
        for name in ("endpoint", "bucket", "access_key", "secret_key", "public_base_url"):
            self.require(name)

        if len(self.require("secret_key")) < 16:
            raise ConfigurationError(
                "STORAGE_SECRET_KEY must be at least 16 characters long",
                setting="STORAGE_SECRET_KEY",
            )

        for name in ("endpoint", "public_base_url"):
            parsed = urlparse(self.require(name))
            if parsed.scheme != "https" or not parsed.netloc:
                env_name = _SETTING_NAMES[name]
                raise ConfigurationError(
                    f"{env_name} must be an https URL",
                    setting=env_name,
                )

        return replace(self, public_base_url=self.require("public_base_url").rstrip("/"))


# Global settings instance
settings = Settings()
