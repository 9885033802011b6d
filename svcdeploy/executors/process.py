#!/usr/bin/env python3
"""
Plain-process service control for hosts without systemd (development mode).
"""

import os
import signal
import subprocess
import time
from pathlib import Path

import yaml

from .base import BaseController
from ..deployment.errors import ServiceControlError


class ProcessController(BaseController):
    """
    Runs the service as a detached subprocess.

    Registration and pid are kept per service under state_dir:
        <state_dir>/<service>.yaml
        <state_dir>/<service>.pid
    """

    def __init__(self, state_dir, stop_grace_seconds=10):
        self.state_dir = Path(state_dir)
        self.stop_grace_seconds = stop_grace_seconds

    def _registration_path(self, service):
        return self.state_dir / f"{service}.yaml"

    def _pid_path(self, service):
        return self.state_dir / f"{service}.pid"

    def _load_registration(self, service):
        path = self._registration_path(service)
        if not path.exists():
            raise ServiceControlError(f"Service not registered: {service}")
        with open(path, 'r') as f:
            return yaml.safe_load(f)

    def _read_pid(self, service):
        pid_path = self._pid_path(service)
        if not pid_path.exists():
            return None
        try:
            return int(pid_path.read_text().strip())
        except ValueError:
            return None

    def _alive(self, pid):
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            return False
        except PermissionError:
            return True
        # Reap our own exited children so they stop counting as alive
        try:
            waited, _ = os.waitpid(pid, os.WNOHANG)
        except ChildProcessError:
            return True
        return waited == 0

    def register(self, service, working_dir, command, environment=None):
        path = self._registration_path(service)
        if path.exists():
            return
        self.state_dir.mkdir(parents=True, exist_ok=True)
        registration = {
            'service': service,
            'working_dir': str(working_dir),
            'command': str(command),
            'environment': environment or 'production',
        }
        with open(path, 'w') as f:
            yaml.dump(registration, f, default_flow_style=False, sort_keys=False)
        print(f"Registered {service} (process mode): {command}")

    def start(self, service):
        if self.is_running(service):
            return
        registration = self._load_registration(service)
        env = os.environ.copy()
        env['ENV'] = registration.get('environment', 'production')
        log_path = self.state_dir / f"{service}.log"

        try:
            with open(log_path, 'a') as log:
                process = subprocess.Popen(
                    [registration['command']],
                    cwd=registration['working_dir'],
                    env=env,
                    stdout=log,
                    stderr=subprocess.STDOUT,
                    start_new_session=True,
                )
        except OSError as e:
            raise ServiceControlError(f"Failed to start {service}: {e}") from e

        self._pid_path(service).write_text(str(process.pid))
        print(f"Started {service} (pid {process.pid})")

    def stop(self, service):
        pid = self._read_pid(service)
        if pid is None or not self._alive(pid):
            self._pid_path(service).unlink(missing_ok=True)
            return

        try:
            os.killpg(pid, signal.SIGTERM)
        except ProcessLookupError:
            self._pid_path(service).unlink(missing_ok=True)
            return
        deadline = time.monotonic() + self.stop_grace_seconds
        while time.monotonic() < deadline:
            if not self._alive(pid):
                break
            time.sleep(0.1)
        else:
            print(f"WARNING: {service} ignored SIGTERM, sending SIGKILL")
            os.killpg(pid, signal.SIGKILL)

        self._pid_path(service).unlink(missing_ok=True)
        print(f"Stopped {service} (pid {pid})")

    def is_running(self, service):
        pid = self._read_pid(service)
        return pid is not None and self._alive(pid)

    def status(self, service):
        pid = self._read_pid(service)
        if pid is not None and self._alive(pid):
            return f"running (pid {pid})"
        return 'stopped'
