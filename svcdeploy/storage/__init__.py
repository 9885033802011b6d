"""
Storage backend abstraction package.

This package provides abstraction for where backup archives are mirrored
(local filesystem, S3).
"""

from .local import LocalStorage
from .s3 import S3Storage
from ..deployment.errors import ConfigError


def get_storage_backend(config):
    """Factory function to get appropriate storage backend."""
    settings = config.get('storage', {})
    storage_mode = settings.get('backend', 'local')

    if storage_mode == 'local':
        return LocalStorage(settings.get('local', {}))
    elif storage_mode == 's3':
        return S3Storage(settings.get('s3', {}))
    else:
        raise ConfigError(f"Unknown storage backend: {storage_mode}")


__all__ = ['LocalStorage', 'S3Storage', 'get_storage_backend']
