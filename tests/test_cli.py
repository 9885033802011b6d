"""Tests for the svcdeploy command line."""

import pytest
import yaml

from conftest import FakeController, make_artifact
from svcdeploy.deployment import orchestrator as orchestrator_module
from svcdeploy.deployment.orchestrator import main


@pytest.fixture
def settings_file(tmp_path, artifact_root):
    path = tmp_path / 'deploy-config.yaml'
    path.write_text(yaml.dump({
        'deployment': {
            'deployment_dir': str(tmp_path / 'deployments'),
            'backup_dir': str(tmp_path / 'backups'),
            'report_dir': str(tmp_path / 'reports'),
        },
        'activation': {'settle_seconds': 0},
        'artifacts': {'source': 'directory', 'path': str(artifact_root)},
    }))
    return path


@pytest.fixture
def fake_controller(monkeypatch):
    controller = FakeController()
    monkeypatch.setattr(orchestrator_module, 'get_service_controller', lambda config: controller)
    return controller


def _run(settings_file, *args):
    return main([*args, '--deploy-config', str(settings_file)])


def test_deploy_success_exits_zero(settings_file, artifact_root, fake_controller, tmp_path):
    make_artifact(artifact_root, 'web', '1.0.0')

    assert _run(settings_file, 'deploy', '--service', 'web', '--version', '1.0.0') == 0
    assert (tmp_path / 'deployments' / 'web' / 'current').is_symlink()


def test_stage_failure_exits_one(settings_file, fake_controller):
    assert _run(settings_file, 'deploy', '--service', 'web', '--version', '9.9.9') == 1


def test_rolled_back_exits_three(settings_file, artifact_root, fake_controller):
    make_artifact(artifact_root, 'web', '1.0.0')
    make_artifact(artifact_root, 'web', '1.1.0')
    _run(settings_file, 'deploy', '--service', 'web', '--version', '1.0.0')
    fake_controller.dead_starts = {2}

    assert _run(settings_file, 'deploy', '--service', 'web', '--version', '1.1.0') == 3


def test_rollback_failed_exits_four(settings_file, artifact_root, fake_controller):
    make_artifact(artifact_root, 'web', '1.0.0')
    make_artifact(artifact_root, 'web', '1.1.0')
    _run(settings_file, 'deploy', '--service', 'web', '--version', '1.0.0')
    fake_controller.dead_starts = {2}
    fake_controller.fail_starts = {3}

    assert _run(settings_file, 'deploy', '--service', 'web', '--version', '1.1.0') == 4


def test_no_rollback_flag_exits_one(settings_file, artifact_root, fake_controller):
    make_artifact(artifact_root, 'web', '1.0.0')
    make_artifact(artifact_root, 'web', '1.1.0')
    _run(settings_file, 'deploy', '--service', 'web', '--version', '1.0.0')
    fake_controller.dead_starts = {2}

    assert _run(settings_file, 'deploy', '--service', 'web', '--version', '1.1.0', '--no-rollback') == 1


def test_dry_run_exits_zero_without_changes(settings_file, artifact_root, fake_controller, tmp_path, capsys):
    make_artifact(artifact_root, 'web', '1.0.0')

    assert _run(settings_file, 'deploy', '--service', 'web', '--version', '1.0.0', '--dry-run') == 0
    assert not (tmp_path / 'deployments').exists()
    assert '[DRY RUN]' in capsys.readouterr().out


def test_missing_version_is_usage_error(settings_file):
    with pytest.raises(SystemExit) as excinfo:
        _run(settings_file, 'deploy', '--service', 'web')
    assert excinfo.value.code == 2


def test_invalid_settings_exit_one(settings_file, fake_controller, capsys):
    data = yaml.safe_load(settings_file.read_text())
    data['retention'] = {'versions': 0}
    settings_file.write_text(yaml.dump(data))

    assert _run(settings_file, 'deploy', '--service', 'web', '--version', '1.0.0') == 1
    assert 'retention' in capsys.readouterr().out


def test_validate_command(settings_file):
    assert _run(settings_file, 'validate') == 0


def test_status_and_manual_rollback(settings_file, artifact_root, fake_controller, capsys):
    make_artifact(artifact_root, 'web', '1.0.0')
    make_artifact(artifact_root, 'web', '1.1.0')
    _run(settings_file, 'deploy', '--service', 'web', '--version', '1.0.0')
    _run(settings_file, 'deploy', '--service', 'web', '--version', '1.1.0')

    assert _run(settings_file, 'rollback', '--service', 'web') == 0
    capsys.readouterr()
    assert _run(settings_file, 'status', '--service', 'web') == 0
    out = capsys.readouterr().out
    assert 'Live version: 1.0.0' in out
    assert 'web_' in out


def test_manual_rollback_without_backups_exits_four(settings_file, fake_controller):
    assert _run(settings_file, 'rollback', '--service', 'web') == 4


@pytest.mark.parametrize('flag,value', [
    ('--timeout', '0'),
    ('--timeout', '-1'),
    ('--deploy-timeout', '0'),
    ('--interval', '-5'),
])
def test_out_of_range_timing_flags_are_usage_errors(settings_file, fake_controller, flag, value):
    with pytest.raises(SystemExit) as excinfo:
        _run(settings_file, 'deploy', '--service', 'web', '--version', '1.0.0', flag, value)
    assert excinfo.value.code == 2
    assert fake_controller.calls == []
