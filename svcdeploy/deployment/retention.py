#!/usr/bin/env python3
"""
Retention: count-based pruning of old version directories and backup archives.
"""

import shutil

from .archive import list_backups, storage_key_for
from .errors import RetentionError


def select_for_removal(entries, keep_count, sort_key, protected=None):
    """
    Entries to delete so that min(keep_count, len(entries)) remain.

    The newest entries by sort_key are kept, oldest removed first. A
    protected entry is always kept; it takes the place of the oldest entry
    that would otherwise have been kept.
    """
    if keep_count < 0:
        raise ValueError(f"keep_count must be >= 0, got {keep_count}")
    ordered = sorted(entries, key=sort_key)
    if len(ordered) <= keep_count:
        return []

    keep = ordered[len(ordered) - keep_count:] if keep_count else []
    if protected is not None and protected in ordered and protected not in keep:
        keep = ([protected] + keep[1:]) if keep else [protected]
    return [entry for entry in ordered if entry not in keep]


def prune_versions(store, keep_count):
    """Remove version directories beyond keep_count; the live version is never removed."""
    versions = store.list_versions()
    live = store.current_version()
    protected = next((ref for ref in versions if ref.version == live), None)
    doomed = select_for_removal(
        versions, keep_count, sort_key=lambda ref: (ref.created_at, ref.version), protected=protected
    )

    removed = []
    for ref in doomed:
        try:
            shutil.rmtree(ref.path)
        except OSError as e:
            raise RetentionError(f"Failed to remove old version {ref.version}: {e}") from e
        print(f"Removed old version: {ref.version}")
        removed.append(ref.version)
    return removed


def prune_backups(backup_dir, service, keep_count, storage=None):
    """Remove backup archives (and their mirrored copies) beyond keep_count."""
    backups = list_backups(backup_dir, service)
    # list_backups is already oldest first; index keeps that order stable
    indexed = list(enumerate(backups))
    doomed = select_for_removal(indexed, keep_count, sort_key=lambda item: item[0])

    removed = []
    for _, (_, path) in doomed:
        try:
            path.unlink()
            if storage is not None:
                storage.delete_file(storage_key_for(path))
        except Exception as e:
            raise RetentionError(f"Failed to remove old backup {path.name}: {e}") from e
        print(f"Removed old backup: {path.name}")
        removed.append(path.name)
    return removed


def prune(kind, keep_count, store=None, backup_dir=None, storage=None):
    """prune('versions', n, store=...) or prune('backups', n, store=..., backup_dir=...)."""
    if kind == 'versions':
        return prune_versions(store, keep_count)
    elif kind == 'backups':
        return prune_backups(backup_dir, store.service, keep_count, storage)
    else:
        raise ValueError(f"Unknown retention kind: {kind}")
