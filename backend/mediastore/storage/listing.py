"""
Object listing with folder emulation.

Shallow listings ask the backend for one page grouped by the ``/``
delimiter: common prefixes become folders, keys directly under the prefix
become files. Recursive listings drain pages up to a safety cap and return
a flat file list, used for month grouping and folder summaries.

Search, sort and month filters run over whatever was already fetched and
never re-query the backend.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterable, List, Optional

from mediastore.config import StorageConfig
from mediastore.storage.blob_store import BlobStore, StoredObject
from mediastore.storage.errors import InvalidInputError
from mediastore.storage.keys import validate_prefix
from mediastore.utils.metrics import listing_pages_fetched_total, listing_truncated_total

logger = logging.getLogger(__name__)

DELIMITER = "/"

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".avif", ".bmp", ".heic", ".heif")


class ListMode(str, Enum):
    SHALLOW = "shallow"
    RECURSIVE = "recursive"


class SortKey(str, Enum):
    NAME = "name"
    SIZE = "size"
    DATE = "date"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class FileKind(str, Enum):
    ALL = "all"
    IMAGES = "images"
    DOCUMENTS = "documents"


@dataclass
class Listing:
    """Result of one ``ObjectLister.list`` call."""
    prefix: str
    folders: List[str] = field(default_factory=list)
    files: List[StoredObject] = field(default_factory=list)
    next_token: Optional[str] = None
    truncated: bool = False


@dataclass(frozen=True)
class YearMonths:
    """Object counts for the twelve months of one year (index 0 = January)."""
    year: int
    counts: List[int]

    @property
    def total(self) -> int:
        return sum(self.counts)


@dataclass(frozen=True)
class FolderSummary:
    """Aggregate of everything stored below one folder."""
    prefix: str
    label: str
    object_count: int
    total_size: int
    latest_upload_at: Optional[datetime]


def is_directory_marker(obj: StoredObject, prefix: str = "") -> bool:
    return obj.key == prefix or obj.key.endswith(DELIMITER)


class ObjectLister:
    """Browses the key space of a BlobStore."""

    def __init__(self, store: BlobStore, config: StorageConfig):
        self._store = store
        self._config = config

    def list(
        self,
        prefix: str,
        mode: ListMode = ListMode.SHALLOW,
        continuation_token: Optional[str] = None,
    ) -> Listing:
        """
        List objects below a prefix.

        Args:
            prefix: Folder prefix; normalised to end with ``/``
            mode: SHALLOW for one delimiter-grouped page, RECURSIVE for a flat drain
            continuation_token: Opaque token from a previous listing, passed back unmodified

        Returns:
            Listing with folders (shallow only), files and the next token

        Raises:
            InvalidInputError: Malformed prefix
            BackendTransportError: Backend failure on any page
        """
        normalized = validate_prefix(prefix)
        if mode == ListMode.RECURSIVE:
            return self._list_recursive(normalized, continuation_token)
        return self._list_shallow(normalized, continuation_token)

    def _list_shallow(self, prefix: str, continuation_token: Optional[str]) -> Listing:
        page = self._store.list_page(
            prefix,
            delimiter=DELIMITER,
            continuation_token=continuation_token,
            max_keys=self._config.list_page_size,
        )
        listing_pages_fetched_total.labels(mode=ListMode.SHALLOW.value).inc()

        files = [obj for obj in page.objects if not is_directory_marker(obj, prefix)]
        return Listing(
            prefix=prefix,
            folders=list(page.common_prefixes),
            files=files,
            next_token=page.next_token,
        )

    def _list_recursive(self, prefix: str, continuation_token: Optional[str]) -> Listing:
        files: List[StoredObject] = []
        token = continuation_token
        pages = 0

        while True:
            page = self._store.list_page(
                prefix,
                continuation_token=token,
                max_keys=self._config.list_page_size,
            )
            pages += 1
            listing_pages_fetched_total.labels(mode=ListMode.RECURSIVE.value).inc()
            files.extend(obj for obj in page.objects if not is_directory_marker(obj, prefix))
            token = page.next_token

            if not token:
                break
            if pages >= self._config.list_max_pages:
                listing_truncated_total.inc()
                logger.warning(
                    f"Recursive listing of '{prefix}' stopped after {pages} pages "
                    f"({len(files)} objects); narrow the prefix or resume with the token",
                    extra={"event": "listing_truncated", "prefix": prefix, "pages": pages},
                )
                return Listing(prefix=prefix, files=files, next_token=token, truncated=True)

        logger.debug(f"Recursive listing of '{prefix}': {len(files)} objects in {pages} pages")
        return Listing(prefix=prefix, files=files)


def _as_utc(value: Optional[datetime], now: datetime) -> datetime:
    value = value or now
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def month_bucket(obj: StoredObject, now: Optional[datetime] = None) -> str:
    """``YYYY-MM`` (UTC) of the object's last modification, current month when unknown."""
    moment = _as_utc(obj.last_modified, now or datetime.now(timezone.utc))
    return f"{moment.year:04d}-{moment.month:02d}"


def is_image(obj: StoredObject) -> bool:
    return obj.key.lower().endswith(IMAGE_EXTENSIONS)


def refine(
    objects: Iterable[StoredObject],
    query: Optional[str] = None,
    sort: SortKey = SortKey.DATE,
    direction: SortDirection = SortDirection.DESC,
    month: Optional[str] = None,
    kind: FileKind = FileKind.ALL,
    now: Optional[datetime] = None,
) -> List[StoredObject]:
    """
    Search, filter and sort an already fetched object set.

    Args:
        objects: Objects from one or more listings
        query: Case-insensitive substring matched against the key
        sort: Sort field
        direction: Sort direction
        month: ``YYYY-MM`` bucket to keep
        kind: Keep only images or only non-images
        now: Clock used for objects without a timestamp

    Returns:
        New list; the input is left untouched
    """
    now = now or datetime.now(timezone.utc)
    result = list(objects)

    needle = (query or "").strip().lower()
    if needle:
        result = [obj for obj in result if needle in obj.key.lower()]

    if month:
        try:
            parsed = datetime.strptime(month, "%Y-%m")
        except ValueError:
            raise InvalidInputError(f"Month filter must be YYYY-MM, got '{month}'")
        bucket = f"{parsed.year:04d}-{parsed.month:02d}"
        result = [obj for obj in result if month_bucket(obj, now) == bucket]

    if kind == FileKind.IMAGES:
        result = [obj for obj in result if is_image(obj)]
    elif kind == FileKind.DOCUMENTS:
        result = [obj for obj in result if not is_image(obj)]

    reverse = direction == SortDirection.DESC
    if sort == SortKey.NAME:
        result.sort(key=lambda obj: obj.key.lower(), reverse=reverse)
    elif sort == SortKey.SIZE:
        result.sort(key=lambda obj: obj.size, reverse=reverse)
    else:
        # Undated objects sort as the oldest
        epoch = datetime.min.replace(tzinfo=timezone.utc)
        result.sort(
            key=lambda obj: _as_utc(obj.last_modified, epoch),
            reverse=reverse,
        )
    return result


def month_counts(objects: Iterable[StoredObject], now: Optional[datetime] = None) -> Dict[str, int]:
    """Count objects per ``YYYY-MM`` bucket, newest month first."""
    now = now or datetime.now(timezone.utc)
    counts: Dict[str, int] = {}
    for obj in objects:
        bucket = month_bucket(obj, now)
        counts[bucket] = counts.get(bucket, 0) + 1
    return dict(sorted(counts.items(), reverse=True))


def months_by_year(objects: Iterable[StoredObject], now: Optional[datetime] = None) -> List[YearMonths]:
    """
    Year to twelve-month count table for the month picker.

    The counts of all years sum to the number of objects.
    """
    table: Dict[int, List[int]] = {}
    for bucket, count in month_counts(objects, now).items():
        year, month = int(bucket[:4]), int(bucket[5:7])
        table.setdefault(year, [0] * 12)[month - 1] += count
    return [YearMonths(year=year, counts=table[year]) for year in sorted(table, reverse=True)]


def summarize_folders(objects: Iterable[StoredObject], prefix: str) -> List[FolderSummary]:
    """
    Group a recursive listing by the first key segment below ``prefix``.

    Objects sitting directly in ``prefix`` are left out. Folders are ordered
    by most recent upload.
    """
    prefix = validate_prefix(prefix)
    groups: Dict[str, List[StoredObject]] = {}
    for obj in objects:
        if not obj.key.startswith(prefix):
            continue
        head, sep, _ = obj.key[len(prefix):].partition(DELIMITER)
        if not sep or not head:
            continue
        groups.setdefault(head, []).append(obj)

    epoch = datetime.min.replace(tzinfo=timezone.utc)
    summaries = []
    for label, members in groups.items():
        dates = [_as_utc(obj.last_modified, epoch) for obj in members if obj.last_modified]
        summaries.append(FolderSummary(
            prefix=f"{prefix}{label}{DELIMITER}",
            label=label,
            object_count=len(members),
            total_size=sum(obj.size for obj in members),
            latest_upload_at=max(dates) if dates else None,
        ))

    summaries.sort(key=lambda summary: (summary.latest_upload_at or epoch, summary.label), reverse=True)
    return summaries
