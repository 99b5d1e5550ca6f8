"""
Base class for blob storage backends.
All adapters implement this interface so that listing, presigning, the image
pipeline and deletion never depend on a specific SDK's types.
"""
import mimetypes
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Iterator, List, Optional

from mediastore.storage.errors import NotFoundError


DEFAULT_CONTENT_TYPE = "application/octet-stream"


def guess_content_type(key: str) -> str:
    """Content type implied by the key's extension."""
    return mimetypes.guess_type(key)[0] or DEFAULT_CONTENT_TYPE


@dataclass(frozen=True)
class StoredObject:
    """Metadata of one stored object. The key is its only identity."""
    key: str
    size: int
    content_type: str = DEFAULT_CONTENT_TYPE
    last_modified: Optional[datetime] = None

    @property
    def name(self) -> str:
        """Last key segment."""
        return self.key.rsplit("/", 1)[-1]


@dataclass
class BlobContent:
    """An object's metadata plus its body as a chunk iterator."""
    info: StoredObject
    chunks: Iterable[bytes]

    def __iter__(self) -> Iterator[bytes]:
        return iter(self.chunks)

    def read(self) -> bytes:
        """Drain the body into memory."""
        return b"".join(self.chunks)


@dataclass
class ListPage:
    """
    One page of a ListObjectsV2-style call.

    ``next_token`` is the backend's opaque continuation token, None on the
    last page.
    """
    objects: List[StoredObject] = field(default_factory=list)
    common_prefixes: List[str] = field(default_factory=list)
    next_token: Optional[str] = None


class BlobStore(ABC):
    """
    Abstract blob store.

    Adapters translate backend failures into the storage error taxonomy:
    missing objects raise NotFoundError, transport problems raise
    BackendTransportError.
    """

    @abstractmethod
    def put(
        self,
        key: str,
        data: bytes,
        content_type: str = DEFAULT_CONTENT_TYPE,
        cache_control: Optional[str] = None,
    ) -> StoredObject:
        """
        Store bytes under a key, replacing nothing (keys are never reused).

        Args:
            key: Object key
            data: Object body
            content_type: MIME type stored with the object
            cache_control: Optional Cache-Control header stored with the object

        Returns:
            Metadata of the stored object
        """

    @abstractmethod
    def get(self, key: str) -> BlobContent:
        """
        Fetch an object.

        Raises:
            NotFoundError: If the key does not exist
        """

    @abstractmethod
    def head(self, key: str) -> StoredObject:
        """
        Fetch object metadata without the body.

        Raises:
            NotFoundError: If the key does not exist
        """

    def exists(self, key: str) -> bool:
        """Check if an object exists."""
        try:
            self.head(key)
            return True
        except NotFoundError:
            return False

    @abstractmethod
    def list_page(
        self,
        prefix: str,
        delimiter: Optional[str] = None,
        continuation_token: Optional[str] = None,
        max_keys: Optional[int] = None,
    ) -> ListPage:
        """
        List one page of keys under a prefix.

        Args:
            prefix: Key prefix
            delimiter: When set, keys are grouped into common prefixes one level down
            continuation_token: Token from the previous page, passed back unmodified
            max_keys: Page size

        Returns:
            ListPage with objects, common prefixes and the next token
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """
        Delete exactly one object. Never cascades to keys sharing the prefix.

        Raises:
            NotFoundError: If the key does not exist
        """

    @abstractmethod
    def copy(self, source_key: str, destination_key: str) -> StoredObject:
        """
        Server-side copy, preserving content type.

        Raises:
            NotFoundError: If the source does not exist
        """

    @abstractmethod
    def presign_get(self, key: str, expires_in: int) -> str:
        """Time-limited GET URL for one key."""

    @abstractmethod
    def presign_put(self, key: str, content_type: str, expires_in: int) -> str:
        """Time-limited PUT URL for one key; the content type is part of the signature."""

    @abstractmethod
    def check_connection(self) -> None:
        """
        Verify that the bucket is reachable.

        Raises:
            ConfigurationError: If the backend is not configured
            BackendTransportError: If the bucket cannot be reached
        """
