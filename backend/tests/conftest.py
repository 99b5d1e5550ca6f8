"""
Test configuration and fixtures.
Storage runs against an in-memory BlobStore; the boto3 adapter is tested
separately against moto.
"""
import os

# Set test environment before any imports
os.environ["ENVIRONMENT"] = "test"

import pytest
from typing import AsyncGenerator, Dict, Optional

from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport

from mediastore.config import StorageConfig
from mediastore.storage.deletion import Principal

from fakes import PUBLIC_BASE_URL, InMemoryBlobStore

ADMIN_HEADERS = {"X-User-Id": "1", "X-User-Role": "admin"}
MEMBER_HEADERS = {"X-User-Id": "2", "X-User-Role": "installer"}


@pytest.fixture
def config() -> StorageConfig:
    """Fully configured storage settings with a tiny page size."""
    return StorageConfig(
        endpoint="https://account.r2.cloudflarestorage.com",
        bucket="media",
        access_key="test-access-key",
        secret_key="test-secret-key-0123456789",
        public_base_url=PUBLIC_BASE_URL,
        list_page_size=3,
        list_max_pages=50,
        max_upload_bytes=5 * 1024 * 1024,
    )


@pytest.fixture
def store() -> InMemoryBlobStore:
    return InMemoryBlobStore(page_size=3)


@pytest.fixture
def admin() -> Principal:
    return Principal(user_id="1", role="admin")


@pytest.fixture
def member() -> Principal:
    return Principal(user_id="2", role="installer")


def get_test_app(store: InMemoryBlobStore, config: StorageConfig) -> FastAPI:
    """Create a test FastAPI app with overridden dependencies."""
    from mediastore.main import app
    from mediastore.storage.dependencies import get_blob_store, get_storage_config

    app.dependency_overrides[get_blob_store] = lambda: store
    app.dependency_overrides[get_storage_config] = lambda: config

    return app


def make_client(app: FastAPI, headers: Optional[Dict[str, str]] = None) -> AsyncClient:
    """Create async HTTP client for API testing."""
    transport = ASGITransport(app=app)
    return AsyncClient(transport=transport, base_url="http://test", headers=headers or {})


@pytest.fixture(scope="function")
async def client(store: InMemoryBlobStore, config: StorageConfig) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client authenticated as an admin."""
    app = get_test_app(store, config)
    async with make_client(app, ADMIN_HEADERS) as ac:
        yield ac

    # Clean up overrides
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def member_client(store: InMemoryBlobStore, config: StorageConfig) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client authenticated without an elevated role."""
    app = get_test_app(store, config)
    async with make_client(app, MEMBER_HEADERS) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def anonymous_client(store: InMemoryBlobStore, config: StorageConfig) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client with no identity headers."""
    app = get_test_app(store, config)
    async with make_client(app, None) as ac:
        yield ac

    app.dependency_overrides.clear()
