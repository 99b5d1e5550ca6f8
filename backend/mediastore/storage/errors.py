"""
Error taxonomy for the storage layer.

Every failure the storage services raise derives from StorageError so the
HTTP layer can map the whole family in a single exception handler.
"""
from typing import Optional


class StorageError(Exception):
    """Base class for storage layer failures."""

    status_code = 500

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.key = key


class ConfigurationError(StorageError):
    """A required backend setting (endpoint, bucket, credentials, public URL) is missing or invalid."""

    status_code = 503

    def __init__(self, message: str, setting: Optional[str] = None):
        super().__init__(message)
        self.setting = setting


class InvalidInputError(StorageError):
    """Caller supplied unusable input: non-image bytes, malformed key, disallowed root."""

    status_code = 400


class AuthorizationError(StorageError):
    """Principal lacks the role required for the operation."""

    status_code = 403


class NotFoundError(StorageError):
    """The referenced object does not exist."""

    status_code = 404


class BackendTransportError(StorageError):
    """Network, timeout or 5xx failure talking to the blob backend. Never retried here."""

    status_code = 502


class MoveIncompleteError(StorageError):
    """
    A move copied the object but failed to delete the source.

    Both keys exist afterwards. The duplicate is recoverable by deleting
    ``from_key`` once the backend is reachable again.
    """

    status_code = 409

    def __init__(self, message: str, from_key: str, to_key: str):
        super().__init__(message, key=from_key)
        self.from_key = from_key
        self.to_key = to_key


class BestEffortCleanupFailure(StorageError):
    """
    Removing a superseded asset failed.

    Only ever logged by the image pipeline, never propagated to callers.
    """
