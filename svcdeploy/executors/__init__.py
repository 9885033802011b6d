#!/usr/bin/env python3
"""
Service-control factory and package exports.
"""

from .base import BaseController
from .process import ProcessController
from .systemd import SystemdController
from ..deployment.errors import ConfigError


def get_service_controller(config):
    """
    Factory function to create the configured service-control backend.

    Args:
        config: Deployment configuration dict

    Returns:
        SystemdController or ProcessController instance
    """
    settings = config.get('service_control', {})
    backend = settings.get('backend', 'systemd')

    if backend == 'systemd':
        return SystemdController(
            unit_dir=settings.get('unit_dir', '/etc/systemd/system'),
            user=settings.get('user', 'nobody'),
            group=settings.get('group', 'nobody'),
        )
    elif backend == 'process':
        return ProcessController(settings.get('state_dir', '/var/run/svcdeploy'))
    else:
        raise ConfigError(f"Unknown service-control backend: {backend}")


# Package exports
__all__ = ['BaseController', 'SystemdController', 'ProcessController', 'get_service_controller']
