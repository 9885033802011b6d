"""
Deployment and orchestration package.

This package contains modules for staging, activating, verifying, rolling
back and pruning versions of a managed service.
"""

__all__ = [
    'orchestrator', 'layout', 'archive', 'stage', 'activate',
    'health', 'rollback', 'retention', 'report', 'state', 'errors', 'utils'
]
