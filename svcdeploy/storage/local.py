#!/usr/bin/env python3
"""
Local storage backend: archives stay in backup_dir, optionally copied to a
second directory (e.g. a mounted volume).
"""

import shutil
from pathlib import Path

from .base import StorageBackend


class LocalStorage(StorageBackend):
    """Local storage backend."""

    def __init__(self, config):
        mirror_dir = config.get('mirror_dir')
        self.mirror_dir = Path(mirror_dir) if mirror_dir else None

    def upload_file(self, local_path, storage_key):
        """No-op without a mirror directory - file already exists locally."""
        if self.mirror_dir is None:
            return str(local_path)
        destination = self.mirror_dir / storage_key
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(local_path, destination)
        print(f"[OK] Mirrored to {destination}")
        return str(destination)

    def download_file(self, storage_key, local_path):
        if self.mirror_dir is None:
            raise FileNotFoundError(f"No mirror directory configured for {storage_key}")
        source = self.mirror_dir / storage_key
        if not source.exists():
            raise FileNotFoundError(f"Mirrored archive not found: {source}")
        Path(local_path).parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, local_path)
        return str(local_path)

    def delete_file(self, storage_key):
        if self.mirror_dir is None:
            return
        (self.mirror_dir / storage_key).unlink(missing_ok=True)
