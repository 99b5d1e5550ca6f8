#!/usr/bin/env python3
"""
Script to delete every object below a folder prefix.

Folders are only emulated by key prefixes, so deleting a folder means
enumerating every key below it and deleting each one explicitly. The
storage API never does this on its own.

Usage:
    # From inside the Docker container:
    docker exec -it mediastore-api python purge_prefix.py clients/42/

    # Only print what would be deleted:
    docker exec mediastore-api python purge_prefix.py clients/42/ --dry-run

    # Non-interactive mode (skip confirmations):
    docker exec mediastore-api python purge_prefix.py clients/42/ --yes

    # Or locally with environment variables:
    STORAGE_ENDPOINT=xxx STORAGE_ACCESS_KEY=xxx STORAGE_SECRET_KEY=xxx STORAGE_BUCKET=xxx \
        python purge_prefix.py clients/42/
"""
import argparse
import sys
from typing import Callable, List, Optional

from mediastore.config import StorageConfig, settings
from mediastore.storage.blob_store import BlobStore, StoredObject
from mediastore.storage.deletion import DeletionAuthority, Principal
from mediastore.storage.errors import StorageError
from mediastore.storage.keys import validate_prefix
from mediastore.storage.listing import ListMode, ObjectLister
from mediastore.storage.s3_store import S3BlobStore
from mediastore.utils.logging import configure_logging

# Recorded as user_id in delete logs
MAINTENANCE_USER = "purge-prefix"


def list_all_objects(lister: ObjectLister, prefix: str) -> List[StoredObject]:
    """List every object below a prefix, resuming past the recursive page cap."""
    all_objects: List[StoredObject] = []
    token = None

    print(f"Listing all objects below '{prefix}'...")

    while True:
        listing = lister.list(prefix, mode=ListMode.RECURSIVE, continuation_token=token)
        all_objects.extend(listing.files)
        print(f"  Found {len(listing.files)} objects (total: {len(all_objects)})")

        if not listing.truncated:
            break
        token = listing.next_token

    return all_objects


def delete_all_objects(authority: DeletionAuthority, principal: Principal, objects: List[StoredObject]) -> int:
    """Delete the given objects and print a summary. Returns the failure count."""
    if not objects:
        print("No objects to delete.")
        return 0

    total = len(objects)
    print(f"\nDeleting {total} objects...")

    result = authority.bulk_delete([obj.key for obj in objects], principal)

    failures = list(result.failed.items())
    for key, message in failures[:3]:
        print(f"  ERROR: {key}: {message}")
    if len(failures) > 3:
        print(f"  ... and {len(failures) - 3} more errors")

    print(f"\n{'=' * 50}")
    print("SUMMARY:")
    print(f"  Total objects: {total}")
    print(f"  Deleted: {len(result.deleted)}")
    print(f"  Failed: {len(result.failed)}")
    print(f"{'=' * 50}")
    return len(result.failed)


def main(
    argv: Optional[List[str]] = None,
    store: Optional[BlobStore] = None,
    config: Optional[StorageConfig] = None,
    prompt: Callable[[str], str] = input,
) -> int:
    parser = argparse.ArgumentParser(description='Delete every object below a folder prefix')
    parser.add_argument('prefix', help="Folder prefix, e.g. 'clients/42/'")
    parser.add_argument('--yes', '-y', action='store_true',
                        help='Skip confirmation prompts (non-interactive mode)')
    parser.add_argument('--dry-run', action='store_true',
                        help='Only list the objects that would be deleted')
    args = parser.parse_args(argv)

    configure_logging('mediastore-cli', settings.log_level)

    config = config or StorageConfig.from_settings(settings)
    try:
        prefix = validate_prefix(args.prefix)
    except StorageError as e:
        print(f"ERROR: {e.message}")
        return 2
    if not prefix:
        print("ERROR: Refusing to purge the whole bucket; pass a folder prefix.")
        return 2

    store = store or S3BlobStore(config)
    lister = ObjectLister(store, config)
    authority = DeletionAuthority(store, config)
    principal = Principal(user_id=MAINTENANCE_USER, role=config.admin_roles[0])

    print("=" * 50)
    print("PURGE PREFIX")
    print("=" * 50)
    print(f"Prefix: {prefix}")
    print()

    try:
        objects = list_all_objects(lister, prefix)
    except StorageError as e:
        print(f"ERROR listing objects: {e.message}")
        return 1

    if not objects:
        print("\nNothing stored below this prefix.")
        return 0

    # Show some sample keys
    print("\nSample files to delete:")
    for obj in objects[:5]:
        size_kb = obj.size / 1024
        print(f"  - {obj.key} ({size_kb:.1f} KB)")
    if len(objects) > 5:
        print(f"  ... and {len(objects) - 5} more files")

    if args.dry_run:
        print(f"\nDry run: {len(objects)} objects would be deleted.")
        return 0

    if not args.yes:
        print()
        confirm = prompt(f"Confirm deletion of {len(objects)} files below {prefix}? (yes/no): ")
        if confirm.strip().lower() != 'yes':
            print("Aborted.")
            return 0

    failed = delete_all_objects(authority, principal, objects)
    print("\nDone." if not failed else "\nDone with errors.")
    return 1 if failed else 0


if __name__ == '__main__':
    sys.exit(main())
