#!/usr/bin/env python3
"""
Backup archives for service deployments.
Handles snapshotting the live version before a deployment and restoring it
during rollback.
"""

import io
import os
import re
import shutil
import tarfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import yaml

from .errors import BackupError, RollbackFailed
from .utils import timestamp


ARCHIVE_SUFFIX = '.tar.gz'
SNAPSHOT_MANIFEST = 'snapshot-manifest.yaml'
STAMP_FORMAT = '%Y%m%d_%H%M%S'


@dataclass(frozen=True)
class BackupSnapshot:
    """Compressed copy of the version that was live before an attempt."""
    service: str
    version: str
    archive_path: Path
    created_at: datetime
    storage_key: str = None


def _archive_pattern(service):
    return re.compile(rf"^{re.escape(service)}_(\d{{8}}_\d{{6}})(?:-(\d+))?{re.escape(ARCHIVE_SUFFIX)}$")


def _unique_archive_path(backup_dir, service):
    """<service>_<YYYYmmdd_HHMMSS>.tar.gz, with -N appended on collision."""
    stamp = timestamp()
    archive_path = backup_dir / f"{service}_{stamp}{ARCHIVE_SUFFIX}"
    seq = 2
    while archive_path.exists():
        archive_path = backup_dir / f"{service}_{stamp}-{seq}{ARCHIVE_SUFFIX}"
        seq += 1
    return archive_path


def storage_key_for(archive_path):
    return f"backups/{Path(archive_path).name}"


def snapshot(store, backup_dir, storage=None):
    """
    Archive the live version before anything is changed.

    Returns None when the service has no live version (first deployment).
    The archive is written under a temporary name and renamed into place,
    and is removed again if mirroring fails, so a failed snapshot never
    leaves a half-made backup behind.
    """
    version = store.current_version()
    live_dir = store.current_dir()
    if version is None or live_dir is None:
        print("No current version found, skipping backup")
        return None

    backup_dir = Path(backup_dir)
    created_at = datetime.now()
    partial_path = None
    try:
        backup_dir.mkdir(parents=True, exist_ok=True)
        archive_path = _unique_archive_path(backup_dir, store.service)
        partial_path = backup_dir / f".{archive_path.name}.partial"

        manifest = yaml.dump({
            'service': store.service,
            'version': version,
            'source_dir': str(live_dir),
            'created_at': created_at.isoformat(),
        }, default_flow_style=False, sort_keys=False).encode('utf-8')

        print(f"Creating backup of {store.service} {version}: {archive_path.name}")
        with tarfile.open(partial_path, 'w:gz') as tar:
            tar.add(str(live_dir), arcname=version)
            info = tarfile.TarInfo(SNAPSHOT_MANIFEST)
            info.size = len(manifest)
            info.mtime = int(created_at.timestamp())
            tar.addfile(info, io.BytesIO(manifest))
        os.replace(partial_path, archive_path)
    except (OSError, tarfile.TarError) as e:
        if partial_path is not None and partial_path.exists():
            partial_path.unlink()
        raise BackupError(f"Failed to create backup of {store.service} {version}: {e}") from e

    storage_key = None
    if storage is not None:
        storage_key = storage_key_for(archive_path)
        try:
            storage.upload_file(archive_path, storage_key)
        except Exception as e:
            archive_path.unlink()
            raise BackupError(f"Failed to mirror backup {archive_path.name}: {e}") from e

    print(f"✓ Backup created: {archive_path}")
    return BackupSnapshot(
        service=store.service,
        version=version,
        archive_path=archive_path,
        created_at=created_at,
        storage_key=storage_key,
    )


def read_snapshot(archive_path):
    """Load a BackupSnapshot from an existing archive's manifest."""
    archive_path = Path(archive_path)
    try:
        with tarfile.open(archive_path, 'r:gz') as tar:
            member = tar.extractfile(SNAPSHOT_MANIFEST)
            manifest = yaml.safe_load(member.read()) if member else None
    except (OSError, KeyError, tarfile.TarError) as e:
        raise RollbackFailed(f"Unreadable backup archive {archive_path}: {e}") from e

    if not manifest or not manifest.get('version'):
        raise RollbackFailed(f"Backup archive has no snapshot manifest: {archive_path}")

    created_at = manifest.get('created_at')
    if isinstance(created_at, str):
        created_at = datetime.fromisoformat(created_at)
    return BackupSnapshot(
        service=manifest.get('service'),
        version=manifest['version'],
        archive_path=archive_path,
        created_at=created_at,
        storage_key=storage_key_for(archive_path),
    )


def list_backups(backup_dir, service):
    """
    Backup archives for a service, oldest first.

    Ordered by the timestamp in the file name, then the collision counter.
    Returns (created_at, path) pairs.
    """
    backup_dir = Path(backup_dir)
    if not backup_dir.is_dir():
        return []

    pattern = _archive_pattern(service)
    backups = []
    for entry in backup_dir.iterdir():
        match = pattern.match(entry.name)
        if not match or not entry.is_file():
            continue
        created_at = datetime.strptime(match.group(1), STAMP_FORMAT)
        seq = int(match.group(2) or 1)
        backups.append((created_at, seq, entry))

    backups.sort(key=lambda item: (item[0], item[1], item[2].name))
    return [(created_at, path) for created_at, _, path in backups]


def _safe_members(tar, version):
    for member in tar.getmembers():
        if member.name != version and not member.name.startswith(f"{version}/"):
            continue
        if member.name.startswith('/') or '..' in Path(member.name).parts:
            raise RollbackFailed(f"Unsafe path in backup archive: {member.name}")
        yield member


def _replace_live(store, version, restored, target):
    """
    Replace the directory current points at.

    current is moved to the extracted copy first and back afterwards, each
    move a single symlink swap, so it never dangles.
    """
    replaced = store.service_dir / f".replaced-{version}-{os.getpid()}"
    store.swap_current(f"{restored.parent.name}/{version}")
    try:
        target.rename(replaced)
        shutil.copytree(restored, target, symlinks=True)
    except OSError:
        if replaced.exists():
            if target.exists():
                shutil.rmtree(target)
            replaced.rename(target)
        store.swap_current(version)
        raise
    store.swap_current(version)
    shutil.rmtree(replaced)


def restore(snapshot, store, storage=None):
    """
    Replace the snapshot's version directory with the archived copy.

    The directory is replaced, not merged. The current pointer is left
    alone; the caller repoints it.
    """
    archive_path = Path(snapshot.archive_path)
    if not archive_path.exists():
        if storage is None or not snapshot.storage_key:
            raise RollbackFailed(f"Backup archive not found: {archive_path}")
        print(f"Local backup missing, fetching mirrored copy: {snapshot.storage_key}")
        try:
            storage.download_file(snapshot.storage_key, archive_path)
        except Exception as e:
            raise RollbackFailed(f"Failed to fetch mirrored backup {snapshot.storage_key}: {e}") from e

    version = snapshot.version
    staging = store.service_dir / f".restore-{version}-{os.getpid()}"
    target = store.version_dir(version)
    try:
        if staging.exists():
            shutil.rmtree(staging)
        staging.mkdir(parents=True)

        with tarfile.open(archive_path, 'r:gz') as tar:
            tar.extractall(staging, members=list(_safe_members(tar, version)), filter='data')

        restored = staging / version
        if not restored.is_dir():
            raise RollbackFailed(f"Backup archive {archive_path.name} does not contain version {version}")

        if not target.exists():
            restored.rename(target)
        elif store.current_path.is_symlink() and store.current_version() == version:
            _replace_live(store, version, restored, target)
        else:
            replaced = store.service_dir / f".replaced-{version}-{os.getpid()}"
            target.rename(replaced)
            restored.rename(target)
            shutil.rmtree(replaced)
    except (OSError, tarfile.TarError) as e:
        raise RollbackFailed(f"Failed to restore {version} from {archive_path.name}: {e}") from e
    finally:
        if staging.exists():
            shutil.rmtree(staging, ignore_errors=True)

    print(f"✓ Restored {version} from {archive_path.name}")
    return store.load_version(version)
