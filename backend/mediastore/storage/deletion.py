"""
Role-gated destructive operations: delete, move/rename, bulk delete.

A move is a copy followed by a delete and is not atomic:

- copy fails      -> only the source exists (nothing changed)
- delete fails    -> both keys exist; MoveIncompleteError names both so the
                     caller can remove the source later

Concurrent delete/move of the same key is not coordinated.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from mediastore.config import StorageConfig
from mediastore.storage.blob_store import BlobStore
from mediastore.storage.errors import (
    AuthorizationError,
    InvalidInputError,
    MoveIncompleteError,
    StorageError,
)
from mediastore.storage.keys import has_allowed_root, validate_key
from mediastore.utils.logging import log_object_deleted, log_object_moved

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """Authenticated caller as supplied by the upstream auth layer."""
    user_id: str
    role: str

    def has_role(self, roles: Iterable[str]) -> bool:
        return self.role.lower() in {role.lower() for role in roles}


@dataclass(frozen=True)
class MoveResult:
    from_key: str
    to_key: str


@dataclass
class BulkDeleteResult:
    """Per-key outcome of a bulk delete. ``failed`` maps key to error message."""
    deleted: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


class DeletionAuthority:
    """Enforces the admin gate in front of delete and move."""

    def __init__(self, store: BlobStore, config: StorageConfig):
        self._store = store
        self._config = config

    def authorize(self, principal: Optional[Principal], action: str) -> None:
        """
        Raises:
            AuthorizationError: If the principal lacks an elevated role
        """
        if principal is None or not principal.has_role(self._config.admin_roles):
            role = principal.role if principal else "anonymous"
            logger.warning(
                f"Denied {action} for role '{role}'",
                extra={"event": "authorization_denied", "action": action, "role": role},
            )
            raise AuthorizationError(f"Cannot {action}: admin only")

    def delete(self, key: str, principal: Principal) -> None:
        """
        Delete exactly one object.

        Raises:
            AuthorizationError: Principal is not an admin
            NotFoundError: Key does not exist
        """
        self.authorize(principal, "delete")
        validate_key(key)
        self._store.delete(key)
        log_object_deleted(logger, key=key, user_id=principal.user_id)

    def move(self, from_key: str, to_key: str, principal: Principal) -> MoveResult:
        """
        Rename an object by copying it to ``to_key`` and deleting ``from_key``.

        Args:
            from_key: Existing key
            to_key: New key; must start with an allow-listed root and be unused
            principal: Caller

        Returns:
            MoveResult

        Raises:
            AuthorizationError: Principal is not an admin
            InvalidInputError: Bad destination, same key, or destination in use
            NotFoundError: Source does not exist
            MoveIncompleteError: Copy succeeded but the source could not be deleted
        """
        self.authorize(principal, "move")
        validate_key(from_key)
        validate_key(to_key)

        if not has_allowed_root(to_key, self._config.allowed_move_roots):
            allowed = ", ".join(self._config.allowed_move_roots)
            raise InvalidInputError(f"Destination must start with one of: {allowed}", key=to_key)
        if from_key == to_key:
            raise InvalidInputError("Source and destination are the same key", key=to_key)
        if self._store.exists(to_key):
            raise InvalidInputError(f"Destination already exists: {to_key}", key=to_key)

        # Step 1: copy. A failure here leaves only the source.
        self._store.copy(from_key, to_key)

        # Step 2: delete the source. A failure here leaves both keys.
        try:
            self._store.delete(from_key)
        except StorageError as e:
            log_object_moved(
                logger,
                from_key=from_key,
                to_key=to_key,
                user_id=principal.user_id,
                source_deleted=False,
                error=e.message,
            )
            raise MoveIncompleteError(
                f"Copied to {to_key} but could not delete {from_key}: {e.message}",
                from_key=from_key,
                to_key=to_key,
            ) from e

        log_object_moved(logger, from_key=from_key, to_key=to_key, user_id=principal.user_id)
        return MoveResult(from_key=from_key, to_key=to_key)

    def bulk_delete(self, keys: Iterable[str], principal: Principal) -> BulkDeleteResult:
        """
        Delete keys one by one, collecting per-key outcomes.

        The authorization check covers the whole batch; after that no single
        failure stops the loop.

        Raises:
            AuthorizationError: Principal is not an admin (nothing is deleted)
        """
        self.authorize(principal, "delete")

        result = BulkDeleteResult()
        seen = set()
        for key in keys:
            if key in seen:
                continue
            seen.add(key)
            try:
                validate_key(key)
                self._store.delete(key)
            except StorageError as e:
                result.failed[key] = e.message
                continue
            result.deleted.append(key)
            log_object_deleted(logger, key=key, user_id=principal.user_id, bulk=True)

        logger.info(
            f"Bulk delete complete: {len(result.deleted)} deleted, {len(result.failed)} failed",
            extra={
                "event": "bulk_delete",
                "user_id": principal.user_id,
                "deleted": len(result.deleted),
                "failed": len(result.failed),
            },
        )
        return result
