#!/usr/bin/env python3
"""
Base interface for service-control backends.
"""


class BaseController:
    """Interface for starting and stopping the managed service (systemd or plain process)."""

    def register(self, service, working_dir, command, environment=None):
        """
        Make the service known to the backend. No-op if already registered.

        Args:
            service: Service name
            working_dir: Directory the process runs in (the service's current pointer)
            command: Executable to run, normally under working_dir
            environment: Value exported as ENV to the process
        """
        raise NotImplementedError("Subclasses must implement register()")

    def start(self, service):
        """Start the service. Starting a running service is a no-op."""
        raise NotImplementedError("Subclasses must implement start()")

    def stop(self, service):
        """Stop the service. Stopping a stopped service is a no-op."""
        raise NotImplementedError("Subclasses must implement stop()")

    def is_running(self, service):
        raise NotImplementedError("Subclasses must implement is_running()")

    def status(self, service):
        """Human-readable status text for deployment reports."""
        return 'running' if self.is_running(service) else 'stopped'
