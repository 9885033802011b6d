#!/usr/bin/env python3
"""
On-disk version store for a single service.

Layout under the deployment directory:

    <deployment_dir>/<service>/<version>/     one immutable directory per version
    <deployment_dir>/<service>/current        symlink to exactly one version
    <deployment_dir>/<service>/.deploy.lock   per-service deployment lock
"""

import os
import fcntl
import shutil
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import yaml


CURRENT_LINK = 'current'
LEGACY_CURRENT = 'current.old'
VERSION_MANIFEST = '.svcdeploy-version.yaml'
LOCK_FILE = '.deploy.lock'

_RESERVED_NAMES = {CURRENT_LINK, LEGACY_CURRENT}

_locks = {}
_locks_guard = threading.Lock()


@dataclass(frozen=True)
class VersionRef:
    """A staged version directory."""
    service: str
    version: str
    path: Path
    created_at: datetime
    config_file: str = None


def validate_name(kind, name):
    """Service and version names become path components."""
    if not name or name in ('.', '..') or name.startswith('.'):
        raise ValueError(f"Invalid {kind} name: {name!r}")
    if '/' in name or os.sep in name or '\0' in name:
        raise ValueError(f"Invalid {kind} name (path separator): {name!r}")
    if kind == 'version' and name in _RESERVED_NAMES:
        raise ValueError(f"Version name is reserved: {name!r}")


class VersionStore:
    """Version directories and the current pointer for one service."""

    def __init__(self, deployment_dir, service):
        validate_name('service', service)
        self.service = service
        self.service_dir = Path(deployment_dir) / service
        self.current_path = self.service_dir / CURRENT_LINK

    def ensure(self):
        self.service_dir.mkdir(parents=True, exist_ok=True)

    def version_dir(self, version):
        return self.service_dir / version

    def current_version(self):
        """Version name the current pointer references, or None."""
        if self.current_path.is_symlink():
            return Path(os.readlink(self.current_path)).name
        if self.current_path.is_dir():
            # Pre-symlink layouts kept a plain directory here
            manifest = self.current_path / VERSION_MANIFEST
            if manifest.exists():
                with open(manifest, 'r') as f:
                    return (yaml.safe_load(f) or {}).get('version')
        return None

    def current_dir(self):
        """Resolved directory behind the current pointer, or None."""
        if self.current_path.is_symlink():
            target = self.current_path.resolve()
            return target if target.is_dir() else None
        if self.current_path.is_dir():
            return self.current_path
        return None

    def load_version(self, version):
        path = self.version_dir(version)
        manifest = {}
        manifest_path = path / VERSION_MANIFEST
        if manifest_path.exists():
            with open(manifest_path, 'r') as f:
                manifest = yaml.safe_load(f) or {}

        created_at = manifest.get('created_at')
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        elif not isinstance(created_at, datetime):
            created_at = datetime.fromtimestamp(path.stat().st_mtime)

        return VersionRef(
            service=self.service,
            version=version,
            path=path,
            created_at=created_at,
            config_file=manifest.get('config_file'),
        )

    def list_versions(self):
        """Staged versions, oldest first (creation time, then name)."""
        if not self.service_dir.is_dir():
            return []
        versions = []
        for entry in self.service_dir.iterdir():
            if entry.name.startswith('.') or entry.name in _RESERVED_NAMES:
                continue
            if entry.is_symlink() or not entry.is_dir():
                continue
            versions.append(self.load_version(entry.name))
        return sorted(versions, key=lambda ref: (ref.created_at, ref.version))

    def swap_current(self, version):
        """
        Repoint current at a version directory.

        A temporary symlink is renamed over the old one, so readers always
        see either the old or the new target.
        """
        target = self.version_dir(version)
        if not target.is_dir():
            raise FileNotFoundError(f"Version directory not found: {target}")

        if self.current_path.is_dir() and not self.current_path.is_symlink():
            legacy = self.service_dir / LEGACY_CURRENT
            if legacy.exists():
                shutil.rmtree(legacy)
            self.current_path.rename(legacy)
            print(f"Moved legacy current directory to {legacy}")

        tmp_link = self.service_dir / f".{CURRENT_LINK}.{os.getpid()}.tmp"
        if tmp_link.is_symlink() or tmp_link.exists():
            tmp_link.unlink()
        os.symlink(version, tmp_link)
        os.replace(tmp_link, self.current_path)


@contextmanager
def service_lock(service_dir):
    """Serialize deployment attempts for one service (threads and processes)."""
    service_dir = Path(service_dir)
    service_dir.mkdir(parents=True, exist_ok=True)
    key = str(service_dir.resolve())
    with _locks_guard:
        lock = _locks.setdefault(key, threading.Lock())

    with lock:
        with open(service_dir / LOCK_FILE, 'w') as handle:
            fcntl.flock(handle, fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(handle, fcntl.LOCK_UN)
