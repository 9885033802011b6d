"""
svcdeploy - single-host service deployment with backup and automatic rollback.
"""

__version__ = '1.0.0'
