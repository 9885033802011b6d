#!/usr/bin/env python3
"""
Base storage backend interface for mirrored backup archives.
"""


class StorageBackend:
    """Base interface for storage backends."""

    def upload_file(self, local_path, storage_key):
        """Mirror a local archive to storage."""
        raise NotImplementedError

    def download_file(self, storage_key, local_path):
        """Fetch a mirrored archive back to a local path (for rollback)."""
        raise NotImplementedError

    def delete_file(self, storage_key):
        """Remove a mirrored archive (for retention)."""
        raise NotImplementedError
