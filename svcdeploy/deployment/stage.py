#!/usr/bin/env python3
"""
Stager: materializes a new version directory from an artifact source.
"""

import os
import shutil
import stat
import tarfile
import zipfile
from datetime import datetime
from pathlib import Path

import yaml

from .errors import StageError, ConfigError
from .layout import VERSION_MANIFEST


PLACEHOLDER_SCRIPT = """#!/bin/bash
echo "Application {service} version {version} is running"
sleep infinity
"""


class ArtifactSource:
    """Supplies the files for a (service, version)."""

    def describe(self, service, version):
        raise NotImplementedError

    def fetch(self, service, version, dest_dir):
        """Write the artifact contents into dest_dir (which already exists)."""
        raise NotImplementedError("Subclasses must implement fetch()")


class PlaceholderArtifactSource(ArtifactSource):
    """Writes a stand-in app.sh for hosts without an artifact repository."""

    def __init__(self, entrypoint='app.sh'):
        self.entrypoint = entrypoint

    def describe(self, service, version):
        return f"placeholder:{self.entrypoint}"

    def fetch(self, service, version, dest_dir):
        print(f"Writing placeholder artifact for {service} {version}...")
        script = Path(dest_dir) / self.entrypoint
        script.write_text(PLACEHOLDER_SCRIPT.format(service=service, version=version))
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


class DirectoryArtifactSource(ArtifactSource):
    """
    Artifacts laid out on disk as:

        <root>/<service>/<version>/                      unpacked tree, or
        <root>/<service>/<service>-<version>.tar.gz      (.tgz, .zip)
    """

    ARCHIVE_SUFFIXES = ('.tar.gz', '.tgz', '.zip')

    def __init__(self, root):
        self.root = Path(root)

    def locate(self, service, version):
        service_root = self.root / service
        tree = service_root / version
        if tree.is_dir():
            return tree
        for suffix in self.ARCHIVE_SUFFIXES:
            candidate = service_root / f"{service}-{version}{suffix}"
            if candidate.is_file():
                return candidate
        return None

    def describe(self, service, version):
        location = self.locate(service, version)
        return str(location) if location else f"{self.root}/{service}/{version} (missing)"

    def fetch(self, service, version, dest_dir):
        location = self.locate(service, version)
        if location is None:
            raise StageError(f"Artifact not found for {service} {version} under {self.root}")

        print(f"Copying artifact from {location}")
        try:
            if location.is_dir():
                shutil.copytree(location, dest_dir, symlinks=True, dirs_exist_ok=True)
            elif location.name.endswith('.zip'):
                with zipfile.ZipFile(location, 'r') as zipf:
                    zipf.extractall(dest_dir)
            else:
                with tarfile.open(location, 'r:gz') as tar:
                    tar.extractall(dest_dir, filter='data')
        except (OSError, zipfile.BadZipFile, tarfile.TarError) as e:
            raise StageError(f"Failed to unpack artifact {location}: {e}") from e


def get_artifact_source(config):
    """Factory function to get the configured artifact source."""
    artifacts = config.get('artifacts', {})
    source = artifacts.get('source', 'placeholder')
    entrypoint = config.get('activation', {}).get('entrypoint', 'app.sh')

    if source == 'placeholder':
        return PlaceholderArtifactSource(entrypoint)
    elif source == 'directory':
        if not artifacts.get('path'):
            raise ConfigError("artifacts.path is required for the directory artifact source")
        return DirectoryArtifactSource(artifacts['path'])
    else:
        raise ConfigError(f"Unknown artifact source: {source}")


def stage(store, version, artifact_source, config_file=None):
    """
    Build <service>/<version> without touching the current pointer.

    Files are assembled in a hidden directory and renamed into place, so a
    version directory is either complete or absent. A leftover directory
    for the same version (an earlier failed attempt) is replaced; the live
    version is never restaged.
    """
    service = store.service
    target = store.version_dir(version)
    if store.current_version() == version:
        raise StageError(f"{service} {version} is already live")

    print(f"Preparing new version: {service} {version}")
    created_at = datetime.now()
    staging = store.service_dir / f".staging-{version}-{os.getpid()}"
    try:
        store.ensure()
        if staging.exists():
            shutil.rmtree(staging)
        staging.mkdir()

        artifact_source.fetch(service, version, staging)

        config_name = None
        if config_file:
            config_path = Path(config_file)
            if not config_path.is_file():
                raise StageError(f"Configuration file not found: {config_file}")
            config_name = 'config.conf'
            shutil.copy2(config_path, staging / config_name)
            print("Configuration file copied")

        manifest = {
            'service': service,
            'version': version,
            'created_at': created_at.isoformat(),
            'artifact': artifact_source.describe(service, version),
            'config_file': config_name,
        }
        with open(staging / VERSION_MANIFEST, 'w') as f:
            yaml.dump(manifest, f, default_flow_style=False, sort_keys=False)

        if target.exists():
            print(f"Replacing leftover directory for {version}")
            shutil.rmtree(target)
        staging.rename(target)
    except OSError as e:
        raise StageError(f"Failed to stage {service} {version}: {e}") from e
    finally:
        if staging.exists():
            shutil.rmtree(staging, ignore_errors=True)

    print(f"✓ New version prepared in {target}")
    return store.load_version(version)
