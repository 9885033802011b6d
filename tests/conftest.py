"""Shared fixtures: temporary layouts, a fake service controller and a fake HTTP session."""

import copy

import pytest
import requests

from svcdeploy.deployment.errors import ServiceControlError
from svcdeploy.deployment.layout import VersionStore
from svcdeploy.deployment.orchestrator import DeploymentOrchestrator
from svcdeploy.deployment.stage import DirectoryArtifactSource
from svcdeploy.deployment.utils import DEFAULT_CONFIG, deep_merge
from svcdeploy.executors.base import BaseController
from svcdeploy.storage.local import LocalStorage


class FakeController(BaseController):
    """Records calls; start calls listed in fail_starts raise, those in dead_starts never come up."""

    def __init__(self):
        self.calls = []
        self.registered = {}
        self.running = set()
        self.start_count = 0
        self.fail_starts = set()
        self.dead_starts = set()
        self.fail_register = False

    def register(self, service, working_dir, command, environment=None):
        self.calls.append(('register', service))
        if self.fail_register:
            raise ServiceControlError("unit directory not writable")
        self.registered.setdefault(service, (str(working_dir), str(command), environment))

    def start(self, service):
        self.start_count += 1
        self.calls.append(('start', service))
        if self.start_count in self.fail_starts:
            raise ServiceControlError(f"systemctl start {service} failed")
        if self.start_count not in self.dead_starts:
            self.running.add(service)

    def stop(self, service):
        self.calls.append(('stop', service))
        self.running.discard(service)

    def is_running(self, service):
        return service in self.running

    def status(self, service):
        return 'active (running)' if service in self.running else 'inactive (dead)'


class FakeResponse:

    def __init__(self, status_code):
        self.status_code = status_code


class FakeSession:
    """Returns the queued outcomes in order, repeating the last one."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        index = min(len(self.calls), len(self.outcomes)) - 1
        outcome = self.outcomes[index]
        if isinstance(outcome, Exception):
            raise outcome
        return FakeResponse(outcome)


class FakeClock:
    """Monotonic clock advanced only by sleep()."""

    def __init__(self, now=1000.0):
        self.now = now
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def make_artifact(root, service, version, files=None):
    """Create <root>/<service>/<version>/ with an app.sh and extra files."""
    tree = root / service / version
    tree.mkdir(parents=True, exist_ok=True)
    app = tree / 'app.sh'
    app.write_text(f"#!/bin/sh\necho {service} {version}\n")
    app.chmod(0o755)
    for name, content in (files or {}).items():
        (tree / name).write_text(content)
    return tree


@pytest.fixture
def config(tmp_path):
    return deep_merge(copy.deepcopy(DEFAULT_CONFIG), {
        'deployment': {
            'deployment_dir': str(tmp_path / 'deployments'),
            'backup_dir': str(tmp_path / 'backups'),
            'report_dir': str(tmp_path / 'reports'),
            'environment': 'testing',
        },
        'health_check': {'interval_seconds': 0},
        'activation': {'settle_seconds': 0},
        'artifacts': {'source': 'directory', 'path': str(tmp_path / 'artifacts')},
    })


@pytest.fixture
def artifact_root(tmp_path):
    root = tmp_path / 'artifacts'
    root.mkdir()
    return root


@pytest.fixture
def artifact_source(artifact_root):
    return DirectoryArtifactSource(artifact_root)


@pytest.fixture
def controller():
    return FakeController()


@pytest.fixture
def session():
    return FakeSession([200])


@pytest.fixture
def store(config):
    store = VersionStore(config['deployment']['deployment_dir'], 'api')
    store.ensure()
    return store


@pytest.fixture
def make_orchestrator(config, controller, artifact_source):
    def _make(session=None, storage=None):
        return DeploymentOrchestrator(
            config,
            controller=controller,
            artifact_source=artifact_source,
            storage=storage or LocalStorage({}),
            session=session or FakeSession([200]),
            sleep=lambda seconds: None,
        )
    return _make


@pytest.fixture
def connection_error():
    return requests.ConnectionError("connection refused")
