#!/usr/bin/env python3
"""
Deployment report: YAML record of every finished attempt.
"""

from pathlib import Path

import yaml

from .errors import ReportError
from .utils import timestamp


def build_report(attempt, store, environment, service_status=None):
    backup = attempt.backup
    version_ref = attempt.version_ref
    return {
        'service': attempt.service,
        'version': attempt.version,
        'environment': environment,
        'started_at': attempt.started_at.isoformat(),
        'finished_at': attempt.finished_at.isoformat() if attempt.finished_at else None,
        'final_state': attempt.state.value,
        'failure_reason': attempt.failure_reason,
        'failed_step': attempt.failed_step,
        'history': [
            {'state': state.value, 'at': at.isoformat()} for state, at in attempt.history
        ],
        'version_dir': str(version_ref.path) if version_ref else None,
        'backup_archive': str(backup.archive_path) if backup else None,
        'previous_version': attempt.previous_version,
        'current_version': store.current_version(),
        'rollback_performed': attempt.rollback_performed,
        'rollback_error': attempt.rollback_error,
        'service_status': service_status,
        'report_version': '1.0.0',
    }


def write_report(report, report_dir):
    """Write <report_dir>/<service>_deployment_<timestamp>.yaml; raises ReportError."""
    report_dir = Path(report_dir)
    report_path = report_dir / f"{report['service']}_deployment_{timestamp()}.yaml"
    try:
        report_dir.mkdir(parents=True, exist_ok=True)
        with open(report_path, 'w') as f:
            yaml.dump(report, f, default_flow_style=False, sort_keys=False)
    except (OSError, yaml.YAMLError) as e:
        raise ReportError(f"Failed to write deployment report {report_path}: {e}") from e
    print(f"Deployment report saved to: {report_path}")
    return report_path


def print_report_summary(report):
    print("=" * 60)
    print("DEPLOYMENT REPORT")
    print("=" * 60)
    print(f"Service: {report['service']}")
    print(f"Version: {report['version']}")
    print(f"Environment: {report['environment']}")
    print(f"Started: {report['started_at']}")
    print(f"Finished: {report['finished_at']}")
    print(f"Final state: {report['final_state'].upper()}")
    if report['failure_reason']:
        print(f"Failure ({report['failed_step']}): {report['failure_reason']}")
    if report['rollback_error']:
        print(f"Rollback error: {report['rollback_error']}")
        print("MANUAL INTERVENTION REQUIRED")
    print(f"Live version: {report['current_version'] or 'none'}")
    if report['backup_archive']:
        print(f"Backup: {report['backup_archive']}")
    print("=" * 60)
