"""Tests for staging new versions."""

import os
import tarfile
import zipfile

import pytest

from conftest import make_artifact
from svcdeploy.deployment.errors import StageError, ConfigError
from svcdeploy.deployment.layout import VERSION_MANIFEST
from svcdeploy.deployment.stage import (
    stage, get_artifact_source, DirectoryArtifactSource, PlaceholderArtifactSource
)


class TestStage:

    def test_stages_directory_artifact(self, store, artifact_root, artifact_source):
        make_artifact(artifact_root, 'api', '1.0.0', {'lib.txt': 'library'})

        ref = stage(store, '1.0.0', artifact_source)

        assert ref.version == '1.0.0'
        assert ref.path == store.version_dir('1.0.0')
        assert (ref.path / 'lib.txt').read_text() == 'library'
        assert (ref.path / VERSION_MANIFEST).exists()
        assert os.access(ref.path / 'app.sh', os.X_OK)

    def test_does_not_touch_current_pointer(self, store, artifact_root, artifact_source):
        make_artifact(artifact_root, 'api', '1.0.0')

        stage(store, '1.0.0', artifact_source)

        assert store.current_version() is None

    def test_copies_config_file(self, store, artifact_root, artifact_source, tmp_path):
        make_artifact(artifact_root, 'api', '1.0.0')
        app_config = tmp_path / 'api.conf'
        app_config.write_text('port=8080\n')

        ref = stage(store, '1.0.0', artifact_source, config_file=app_config)

        assert ref.config_file == 'config.conf'
        assert (ref.path / 'config.conf').read_text() == 'port=8080\n'

    def test_missing_config_file_is_stage_error(self, store, artifact_root, artifact_source, tmp_path):
        make_artifact(artifact_root, 'api', '1.0.0')

        with pytest.raises(StageError):
            stage(store, '1.0.0', artifact_source, config_file=tmp_path / 'nope.conf')
        assert not store.version_dir('1.0.0').exists()

    def test_missing_artifact_leaves_no_version_dir(self, store, artifact_source):
        with pytest.raises(StageError):
            stage(store, '2.0.0', artifact_source)

        assert not store.version_dir('2.0.0').exists()
        assert not [p for p in store.service_dir.iterdir() if p.name.startswith('.staging-')]

    def test_refuses_to_restage_live_version(self, store, artifact_root, artifact_source):
        make_artifact(artifact_root, 'api', '1.0.0')
        stage(store, '1.0.0', artifact_source)
        store.swap_current('1.0.0')

        with pytest.raises(StageError):
            stage(store, '1.0.0', artifact_source)

    def test_leftover_version_dir_is_replaced(self, store, artifact_root, artifact_source):
        make_artifact(artifact_root, 'api', '1.0.0')
        leftover = store.version_dir('1.0.0')
        leftover.mkdir()
        (leftover / 'partial.bin').write_text('junk')

        ref = stage(store, '1.0.0', artifact_source)

        assert not (ref.path / 'partial.bin').exists()
        assert (ref.path / 'app.sh').exists()


class TestArtifactSources:

    def test_tarball_artifact(self, store, artifact_root, tmp_path):
        tree = make_artifact(tmp_path / 'build', 'api', '1.1.0')
        (artifact_root / 'api').mkdir()
        with tarfile.open(artifact_root / 'api' / 'api-1.1.0.tar.gz', 'w:gz') as tar:
            tar.add(str(tree / 'app.sh'), arcname='app.sh')

        ref = stage(store, '1.1.0', DirectoryArtifactSource(artifact_root))

        assert (ref.path / 'app.sh').read_text().strip().endswith('api 1.1.0')

    def test_zip_artifact(self, store, artifact_root):
        (artifact_root / 'api').mkdir()
        with zipfile.ZipFile(artifact_root / 'api' / 'api-1.2.0.zip', 'w') as zipf:
            zipf.writestr('app.sh', '#!/bin/sh\n')

        ref = stage(store, '1.2.0', DirectoryArtifactSource(artifact_root))

        assert (ref.path / 'app.sh').exists()

    def test_placeholder_writes_executable_entrypoint(self, store):
        ref = stage(store, '3.0.0', PlaceholderArtifactSource('app.sh'))

        script = ref.path / 'app.sh'
        assert 'api version 3.0.0' in script.read_text()
        assert os.access(script, os.X_OK)

    def test_factory(self, config):
        assert isinstance(get_artifact_source(config), DirectoryArtifactSource)
        config['artifacts'] = {'source': 'placeholder'}
        assert isinstance(get_artifact_source(config), PlaceholderArtifactSource)
        config['artifacts'] = {'source': 'nexus'}
        with pytest.raises(ConfigError):
            get_artifact_source(config)
