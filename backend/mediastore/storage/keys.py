"""
Object key construction.

Two layouts coexist in the bucket and both stay supported:

- nested, when an entity id is known:
  ``clients/{clientId}/montages/{jobId}/{category}/{subCategory}/{uuid}-{file}``
- legacy, derived from a display name:
  ``clients/{slug-of-name}/dokumenty/{timestamp}-{token}-{file}``

Uniqueness comes from the token embedded in the last segment. Keys are never
checked against the bucket before use.
"""
import re
import unicodedata
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Optional, Sequence, Union
from urllib.parse import quote, unquote, urlparse

from mediastore.storage.errors import InvalidInputError


class CategoryRoot(str, Enum):
    """First key segment. Every stored key belongs to exactly one root."""
    CLIENTS = "clients"
    MONTAGES = "montages"
    ORDERS = "orders"
    TASKS = "tasks"
    PARTNERS = "partners"


LEGACY_DOCUMENTS_FOLDER = "dokumenty"

# Letters NFKD leaves intact
_TRANSLITERATIONS = {
    "ł": "l", "Ł": "L",
    "ß": "ss",
    "æ": "ae", "Æ": "AE",
    "ø": "o", "Ø": "O",
    "đ": "d", "Đ": "D",
    "œ": "oe", "Œ": "OE",
}

_DISALLOWED_FILENAME_CHARS = re.compile(r"[^a-z0-9._-]+")
_REPEATED_SEPARATORS = re.compile(r"([-_.])[-_.]+")
_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]+")

SubPath = Union[str, Sequence[str], None]


def strip_diacritics(value: str) -> str:
    """Transliterate to plain ASCII where possible."""
    value = "".join(_TRANSLITERATIONS.get(ch, ch) for ch in value)
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def slugify(value: str) -> str:
    """
    Turn a display name into a URL-safe slug.

    ``"Józef Łęcki Sp. z o.o."`` becomes ``"jozef-lecki-sp-z-o-o"``.
    """
    ascii_value = strip_diacritics(value or "").lower()
    return _NON_SLUG_CHARS.sub("-", ascii_value).strip("-")


def _clean_part(value: str) -> str:
    value = _DISALLOWED_FILENAME_CHARS.sub("-", value)
    value = _REPEATED_SEPARATORS.sub(r"\1", value)
    return value.strip("-_.")


def sanitize_filename(raw: str) -> str:
    """
    Sanitize a user supplied filename for use as the last key segment.

    Diacritics are transliterated, the name is lower-cased, disallowed
    characters become ``-``, repeated separators collapse and separators are
    trimmed from both ends of the stem and the extension. Any directory part
    of the raw name is discarded.

    Args:
        raw: Filename as sent by the client (may contain a path)

    Returns:
        Safe filename, ``"file"`` when nothing usable remains
    """
    name = re.split(r"[\\/]", raw or "")[-1]
    name = strip_diacritics(name).lower().strip()

    stem, dot, extension = name.rpartition(".")
    if not dot or not stem.strip("-_. "):
        stem, extension = name, ""

    stem = _clean_part(stem)
    extension = _clean_part(extension).replace(".", "")

    if not stem:
        stem = "file"
    return f"{stem}.{extension}" if extension else stem


def sanitize_segment(value: str) -> str:
    """Sanitize one intermediate path segment (entity id, category)."""
    segment = _clean_part(strip_diacritics(str(value)).lower().strip())
    if not segment:
        raise InvalidInputError(f"Invalid key segment: {value!r}")
    return segment


def unique_token() -> str:
    """High-entropy uniqueness token (uuid4, 32 hex chars)."""
    return uuid.uuid4().hex


def timestamp_token(now: Optional[datetime] = None) -> str:
    """
    Millisecond ISO-8601 UTC timestamp safe for keys.

    ``2024-05-01T10:20:30.123Z`` becomes ``2024-05-01T10-20-30-123Z``.
    """
    now = now or datetime.now(timezone.utc)
    iso = now.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return iso.replace("+00:00", "Z").replace(":", "-").replace(".", "-")


def _split_sub_path(sub_path: SubPath) -> list:
    if sub_path is None:
        return []
    parts: Iterable[str]
    if isinstance(sub_path, str):
        parts = sub_path.split("/")
    else:
        parts = [piece for part in sub_path for piece in str(part).split("/")]
    return [sanitize_segment(part) for part in parts if part and part.strip()]


def _as_root(root: Union[CategoryRoot, str]) -> CategoryRoot:
    try:
        return CategoryRoot(root)
    except ValueError:
        raise InvalidInputError(f"Unknown category root: {root!r}")


def build_key(
    root: Union[CategoryRoot, str],
    filename: str,
    entity_id: Optional[Union[str, int]] = None,
    entity_name: Optional[str] = None,
    sub_path: SubPath = None,
    now: Optional[datetime] = None,
) -> str:
    """
    Build a storage key for a new upload.

    Args:
        root: Category root (first key segment)
        filename: Raw filename, sanitized here
        entity_id: Hierarchical entity id; selects the nested layout
        entity_name: Display name; used for the legacy layout when no id is known
        sub_path: Extra segments below the entity ("montages/7/photos" or a list)
        now: Clock override for the legacy timestamp token

    Returns:
        Key string, e.g. ``clients/42/gallery/3f2a...-photo.jpg``

    Raises:
        InvalidInputError: Unknown root, or neither entity id nor name supplied
    """
    category = _as_root(root)
    safe_name = sanitize_filename(filename)
    segments = _split_sub_path(sub_path)

    if entity_id is not None and str(entity_id).strip():
        folder = [category.value, sanitize_segment(entity_id), *segments]
        return "/".join([*folder, f"{unique_token()}-{safe_name}"])

    slug = slugify(entity_name or "")
    if not slug:
        raise InvalidInputError("Either an entity id or an entity name is required to build a key")

    folder = [category.value, slug, *(segments or [LEGACY_DOCUMENTS_FOLDER])]
    token = f"{timestamp_token(now)}-{unique_token()[:8]}"
    return "/".join([*folder, f"{token}-{safe_name}"])


def build_object_key(folder: str, filename: str) -> str:
    """
    Build a key for a file placed into an existing folder (browser uploads).

    Args:
        folder: Target prefix, with or without trailing slash
        filename: Raw filename

    Returns:
        ``{folder}/{uuid}-{sanitized filename}``
    """
    prefix = validate_prefix(folder)
    if not prefix:
        raise InvalidInputError("Uploads into the bucket root are not allowed")
    return f"{prefix}{unique_token()}-{sanitize_filename(filename)}"


def validate_key(key: str) -> str:
    """
    Check that a string is a well-formed object key.

    Raises:
        InvalidInputError: Empty key, leading or trailing slash, or an empty segment
    """
    if not key or not key.strip():
        raise InvalidInputError("Object key is required")
    if key.startswith("/") or key.endswith("/"):
        raise InvalidInputError(f"Invalid object key: {key!r}", key=key)
    if any(not segment for segment in key.split("/")):
        raise InvalidInputError(f"Invalid object key: {key!r}", key=key)
    return key


def validate_prefix(prefix: Optional[str]) -> str:
    """Normalise a listing prefix: no leading slash, trailing slash when non-empty."""
    prefix = (prefix or "").strip().lstrip("/")
    if not prefix:
        return ""
    if not prefix.endswith("/"):
        prefix += "/"
    if any(not segment for segment in prefix[:-1].split("/")):
        raise InvalidInputError(f"Invalid prefix: {prefix!r}")
    return prefix


def category_of(key: str) -> CategoryRoot:
    """Return the category root a key belongs to."""
    head = key.lstrip("/").split("/", 1)[0]
    return _as_root(head)


def has_allowed_root(key: str, roots: Iterable[str]) -> bool:
    """Check whether a key or prefix starts with one of the allow-listed roots."""
    return any(key.startswith(root) for root in roots)


def encode_key(key: str) -> str:
    """Percent-encode each segment independently so '/' stays a separator."""
    return "/".join(quote(segment, safe="") for segment in key.split("/"))


def public_url(base_url: str, key: str) -> str:
    """Canonical public URL of an object."""
    return f"{base_url.rstrip('/')}/{encode_key(key)}"


def key_from_public_url(base_url: Optional[str], url: Optional[str]) -> Optional[str]:
    """
    Derive the object key from a public URL.

    Args:
        base_url: Configured public base URL
        url: URL previously returned by ``public_url``

    Returns:
        The key, or None when the URL does not point into the bucket
    """
    if not url or not base_url:
        return None

    base = urlparse(base_url.rstrip("/"))
    target = urlparse(url.strip())
    if (target.scheme, target.netloc) != (base.scheme, base.netloc):
        return None

    base_path = base.path.rstrip("/") + "/"
    if not target.path.startswith(base_path):
        return None

    encoded = target.path[len(base_path):]
    if not encoded:
        return None
    key = "/".join(unquote(segment) for segment in encoded.split("/"))
    try:
        return validate_key(key)
    except InvalidInputError:
        return None
