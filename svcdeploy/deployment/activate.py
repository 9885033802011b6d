#!/usr/bin/env python3
"""
Activator: points current at a staged version and restarts the service.
"""

import time
from dataclasses import dataclass

from .errors import ActivationError, ServiceControlError


@dataclass
class ActivationResult:
    version: str
    previous_version: str
    running: bool


class Activator:
    """
    Steps, each of which can fail with ActivationError(step):

        register  make the service known to service control
        swap      repoint current at the new version
        restart   stop then start through service control
        settle    wait settle_seconds, then check the process is running
    """

    def __init__(self, controller, entrypoint='app.sh', settle_seconds=5,
                 environment='production', sleep=time.sleep):
        self.controller = controller
        self.entrypoint = entrypoint
        self.settle_seconds = settle_seconds
        self.environment = environment
        self.sleep = sleep

    def activate(self, store, version_ref):
        service = store.service
        print(f"Starting {service} {version_ref.version}...")

        try:
            self.controller.register(
                service, store.current_path, store.current_path / self.entrypoint, self.environment
            )
        except (ServiceControlError, OSError) as e:
            raise ActivationError('register', str(e)) from e

        previous_version = store.current_version()
        try:
            store.swap_current(version_ref.version)
        except OSError as e:
            raise ActivationError('swap', f"failed to repoint current to {version_ref.version}: {e}") from e
        print(f"✓ current -> {version_ref.version} (was {previous_version or 'none'})")

        try:
            self.controller.stop(service)
            self.controller.start(service)
        except (ServiceControlError, OSError) as e:
            raise ActivationError('restart', f"failed to restart {service}: {e}") from e
        print("Service started, waiting for it to settle...")

        self.sleep(self.settle_seconds)
        try:
            running = self.controller.is_running(service)
        except (ServiceControlError, OSError) as e:
            raise ActivationError('settle', f"could not query {service} status: {e}") from e
        if not running:
            raise ActivationError('settle', f"{service} is not running {self.settle_seconds}s after restart")

        print(f"✓ {service} is running")
        return ActivationResult(version=version_ref.version, previous_version=previous_version, running=True)
