#!/usr/bin/env python3
"""
Exception types raised by the deployment core.
"""


class DeploymentError(Exception):
    """Base class for deployment failures."""


class ConfigError(DeploymentError):
    """Deployer settings are missing or invalid."""


class BackupError(DeploymentError):
    """Snapshot of the live version could not be created or mirrored."""


class StageError(DeploymentError):
    """New version could not be materialized."""


class ActivationError(DeploymentError):
    """
    Activation failed at one of its steps.

    step is one of 'register', 'swap', 'restart', 'settle'.
    """

    def __init__(self, step, message):
        super().__init__(f"{step}: {message}")
        self.step = step
        self.message = message


class HealthCheckExhausted(DeploymentError):
    """Readiness probe never passed within the allowed attempts."""

    def __init__(self, attempts, reason):
        super().__init__(f"health check failed after {attempts} attempt(s): {reason}")
        self.attempts = attempts
        self.reason = reason


class RollbackError(DeploymentError):
    """Rollback could not be performed."""


class RollbackFailed(RollbackError):
    """Restore or restart failed; operator intervention required."""


class RetentionError(DeploymentError):
    """Pruning old versions or backups failed (non-fatal)."""


class ReportError(DeploymentError):
    """Deployment report could not be written (non-fatal)."""


class ServiceControlError(DeploymentError):
    """Service-control backend command failed."""


class InvalidTransition(DeploymentError):
    """Deployment state machine was asked for an illegal move."""
