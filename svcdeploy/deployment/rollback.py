#!/usr/bin/env python3
"""
Rollback Controller: restores the pre-deployment snapshot and restarts the
service. Runs at most once per deployment attempt.
"""

import time
from dataclasses import dataclass

from .archive import restore
from .errors import RollbackFailed, ServiceControlError


@dataclass
class RollbackResult:
    performed: bool
    version: str = None
    reason: str = None


class RollbackController:

    def __init__(self, controller, storage=None, settle_seconds=5, sleep=time.sleep):
        self.controller = controller
        self.storage = storage
        self.settle_seconds = settle_seconds
        self.sleep = sleep

    def rollback(self, attempt, store):
        """
        Revert to attempt.backup.

        The attempt's rollback flag is checked and set before any action, so
        a second call for the same attempt returns without touching anything.
        Raises RollbackFailed if restore or restart fails.
        """
        if attempt.rollback_performed:
            print("Rollback already performed for this attempt, skipping")
            return RollbackResult(performed=False, reason='already performed')
        attempt.rollback_performed = True

        snapshot = attempt.backup
        if snapshot is None:
            raise RollbackFailed("No backup snapshot available - cannot rollback automatically")
        return self.restore_snapshot(snapshot, store)

    def restore_snapshot(self, snapshot, store):
        service = store.service
        print(f"Performing rollback of {service} to {snapshot.version}...")

        try:
            if self.controller.is_running(service):
                self.controller.stop(service)
        except (ServiceControlError, OSError) as e:
            raise RollbackFailed(f"Failed to stop {service}: {e}") from e

        restore(snapshot, store, self.storage)
        try:
            store.swap_current(snapshot.version)
        except OSError as e:
            raise RollbackFailed(f"Failed to repoint current to {snapshot.version}: {e}") from e

        try:
            self.controller.start(service)
            self.sleep(self.settle_seconds)
            running = self.controller.is_running(service)
        except (ServiceControlError, OSError) as e:
            raise RollbackFailed(f"Failed to start {service} after restore: {e}") from e
        if not running:
            raise RollbackFailed(f"{service} is not running after restoring {snapshot.version}")

        print(f"✓ Rollback completed successfully ({service} {snapshot.version})")
        return RollbackResult(performed=True, version=snapshot.version)
