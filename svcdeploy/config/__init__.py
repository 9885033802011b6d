"""
Deployer settings validation package.

This package validates deployer settings against a JSON schema plus
cross-field rules.
"""

__all__ = ['validation']
