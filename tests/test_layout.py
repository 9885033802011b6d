"""Tests for the version store and current pointer."""

import os
import threading
import time

import pytest

from svcdeploy.deployment.layout import (
    VersionStore, service_lock, validate_name, CURRENT_LINK, LEGACY_CURRENT, VERSION_MANIFEST
)


def _version(store, version):
    path = store.version_dir(version)
    path.mkdir(parents=True)
    (path / 'app.sh').write_text(version)
    return path


class TestVersionStore:

    def test_no_current_version_initially(self, store):
        assert store.current_version() is None
        assert store.current_dir() is None
        assert store.list_versions() == []

    def test_swap_current_points_at_version(self, store):
        _version(store, '1.0.0')
        store.swap_current('1.0.0')

        assert store.current_path.is_symlink()
        assert os.readlink(store.current_path) == '1.0.0'
        assert store.current_version() == '1.0.0'
        assert store.current_dir() == store.version_dir('1.0.0').resolve()

    def test_swap_replaces_previous_pointer(self, store):
        _version(store, '1.0.0')
        _version(store, '1.1.0')
        store.swap_current('1.0.0')
        store.swap_current('1.1.0')

        assert store.current_version() == '1.1.0'
        leftovers = [p.name for p in store.service_dir.iterdir() if p.name.startswith(f".{CURRENT_LINK}")]
        assert leftovers == []

    def test_swap_to_missing_version_leaves_pointer(self, store):
        _version(store, '1.0.0')
        store.swap_current('1.0.0')

        with pytest.raises(FileNotFoundError):
            store.swap_current('9.9.9')
        assert store.current_version() == '1.0.0'

    def test_legacy_current_directory_is_moved_aside(self, store):
        store.current_path.mkdir()
        (store.current_path / 'app.sh').write_text('old')
        _version(store, '2.0.0')

        store.swap_current('2.0.0')

        assert store.current_version() == '2.0.0'
        assert (store.service_dir / LEGACY_CURRENT / 'app.sh').read_text() == 'old'

    def test_list_versions_skips_pointer_and_hidden_entries(self, store):
        _version(store, '1.0.0')
        _version(store, '1.1.0')
        (store.service_dir / '.staging-2.0.0-1').mkdir()
        store.swap_current('1.1.0')

        assert [ref.version for ref in store.list_versions()] == ['1.0.0', '1.1.0']

    def test_list_versions_orders_by_manifest_timestamp(self, store):
        for version, created in [('1.10.0', '2026-01-03T00:00:00'), ('1.9.0', '2026-01-02T00:00:00')]:
            path = _version(store, version)
            (path / VERSION_MANIFEST).write_text(f"version: {version}\ncreated_at: '{created}'\n")

        assert [ref.version for ref in store.list_versions()] == ['1.9.0', '1.10.0']


class TestValidateName:

    @pytest.mark.parametrize("name", ['', '.', '..', '.hidden', 'a/b'])
    def test_rejects_unsafe_names(self, name):
        with pytest.raises(ValueError):
            validate_name('version', name)

    def test_rejects_reserved_version_names(self):
        with pytest.raises(ValueError):
            validate_name('version', CURRENT_LINK)

    def test_accepts_semver(self):
        validate_name('version', '1.2.3-rc.1')


def test_service_lock_serializes_attempts(tmp_path):
    service_dir = tmp_path / 'api'
    order = []
    held = threading.Event()

    def first():
        with service_lock(service_dir):
            held.set()
            time.sleep(0.2)
            order.append('first-released')

    def second():
        held.wait()
        with service_lock(service_dir):
            order.append('second-acquired')

    threads = [threading.Thread(target=first), threading.Thread(target=second)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5)

    assert order == ['first-released', 'second-acquired']
