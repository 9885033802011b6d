#!/usr/bin/env python3
"""
systemd service control via systemctl.
"""

import subprocess
from pathlib import Path

from .base import BaseController
from ..deployment.errors import ServiceControlError


UNIT_TEMPLATE = """[Unit]
Description={service} Service
After=network.target

[Service]
Type=simple
User={user}
Group={group}
WorkingDirectory={working_dir}
ExecStart={command}
Restart=always
RestartSec=3
Environment=ENV={environment}

[Install]
WantedBy=multi-user.target
"""


class SystemdController(BaseController):
    """Manages the service as a systemd unit."""

    def __init__(self, unit_dir='/etc/systemd/system', user='nobody', group='nobody'):
        self.unit_dir = Path(unit_dir)
        self.user = user
        self.group = group

    def unit_path(self, service):
        return self.unit_dir / f"{service}.service"

    def _systemctl(self, *args, check=True):
        cmd = ['systemctl', *args]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except OSError as e:
            raise ServiceControlError(f"{' '.join(cmd)} could not be run: {e}") from e
        if check and result.returncode != 0:
            raise ServiceControlError(
                f"{' '.join(cmd)} failed (exit {result.returncode}): {result.stderr.strip()}"
            )
        return result

    def register(self, service, working_dir, command, environment=None):
        unit_path = self.unit_path(service)
        if unit_path.exists():
            return

        print(f"Creating systemd service file: {unit_path}")
        unit = UNIT_TEMPLATE.format(
            service=service, user=self.user, group=self.group,
            working_dir=working_dir, command=command,
            environment=environment or 'production'
        )
        try:
            unit_path.parent.mkdir(parents=True, exist_ok=True)
            unit_path.write_text(unit)
        except OSError as e:
            raise ServiceControlError(f"Failed to write unit file {unit_path}: {e}") from e

        self._systemctl('daemon-reload')
        self._systemctl('enable', service)
        print("Systemd service created and enabled")

    def start(self, service):
        self._systemctl('start', service)

    def stop(self, service):
        self._systemctl('stop', service)

    def is_running(self, service):
        result = self._systemctl('is-active', '--quiet', service, check=False)
        return result.returncode == 0

    def status(self, service):
        status = self._systemctl('status', service, '--no-pager', check=False).stdout
        try:
            logs = subprocess.run(
                ['journalctl', '-u', service, '--since', '10 minutes ago', '--no-pager'],
                capture_output=True, text=True
            ).stdout
        except OSError:
            logs = ''
        return f"{status.strip()}\n\nRecent Logs:\n{logs.strip()}" if logs else status.strip()
