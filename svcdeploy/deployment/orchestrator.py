#!/usr/bin/env python3
"""
Service Deployment Orchestrator
Backs up, stages, activates and verifies a new service version, rolling
back to the previous version on failure.
"""

import sys
import time
import argparse
import threading
from dataclasses import dataclass

from .activate import Activator
from .archive import snapshot, list_backups, read_snapshot
from .errors import (
    BackupError, StageError, ActivationError, HealthCheckExhausted,
    RollbackError, RetentionError, ReportError, ServiceControlError, ConfigError
)
from .health import HealthVerifier
from .layout import VersionStore, service_lock, validate_name
from .report import build_report, write_report, print_report_summary
from .retention import prune_versions, prune_backups
from .rollback import RollbackController
from .stage import stage, get_artifact_source
from .state import DeploymentAttempt, DeploymentState
from .utils import load_config, print_phase, print_warning, print_error
from ..config.validation import validate_config
from ..executors import get_service_controller
from ..storage import get_storage_backend


EXIT_SUCCEEDED = 0
EXIT_FAILED = 1
EXIT_ROLLED_BACK = 3
EXIT_ROLLBACK_FAILED = 4

EXIT_CODES = {
    DeploymentState.SUCCEEDED: EXIT_SUCCEEDED,
    DeploymentState.FAILED: EXIT_FAILED,
    DeploymentState.ROLLED_BACK: EXIT_ROLLED_BACK,
    DeploymentState.ROLLBACK_FAILED: EXIT_ROLLBACK_FAILED,
}


@dataclass
class DeploymentRequest:
    """Per-attempt options; None falls back to the configured value."""
    service: str
    version: str
    health_check_url: str = None
    health_timeout: float = None
    retries: int = None
    interval: float = None
    rollback: bool = None
    deploy_timeout: float = None
    config_file: str = None
    dry_run: bool = False


class DeploymentOrchestrator:
    """Runs deployment attempts; attempts for the same service are serialized."""

    def __init__(self, config, controller, artifact_source, storage=None,
                 session=None, sleep=time.sleep, clock=time.monotonic):
        deployment = config['deployment']
        activation = config['activation']
        self.config = config
        self.deployment_dir = deployment['deployment_dir']
        self.backup_dir = deployment['backup_dir']
        self.report_dir = deployment['report_dir']
        self.environment = deployment['environment']
        self.controller = controller
        self.artifact_source = artifact_source
        self.storage = storage
        self.clock = clock
        self._cancel_events = {}
        self._cancel_guard = threading.Lock()

        self.activator = Activator(
            controller,
            entrypoint=activation['entrypoint'],
            settle_seconds=activation['settle_seconds'],
            environment=self.environment,
            sleep=sleep,
        )
        self.verifier = HealthVerifier(session=session, sleep=sleep, clock=clock)
        self.rollback_controller = RollbackController(
            controller, storage=storage, settle_seconds=activation['settle_seconds'], sleep=sleep
        )

    def store_for(self, service):
        return VersionStore(self.deployment_dir, service)

    def cancel(self, service):
        """Abort the remaining health probes of the service's running attempt; False if none is running."""
        with self._cancel_guard:
            event = self._cancel_events.get(service)
        if event is None:
            return False
        event.set()
        return True

    def _option(self, value, section, key):
        return self.config[section][key] if value is None else value

    def deploy(self, request):
        """Run one attempt; returns the finished DeploymentAttempt (None for dry runs)."""
        validate_name('service', request.service)
        validate_name('version', request.version)
        store = self.store_for(request.service)

        if request.dry_run:
            self.plan(request, store)
            return None

        with service_lock(store.service_dir):
            cancel_event = threading.Event()
            with self._cancel_guard:
                self._cancel_events[request.service] = cancel_event
            try:
                return self._run(request, store, cancel_event)
            finally:
                with self._cancel_guard:
                    self._cancel_events.pop(request.service, None)

    def _run(self, request, store, cancel_event):
        attempt = DeploymentAttempt(service=request.service, version=request.version)
        rollback_enabled = self._option(request.rollback, 'deployment', 'rollback_on_failure')
        deadline = self.clock() + self._option(request.deploy_timeout, 'deployment', 'timeout_seconds')

        print_phase(None, f"DEPLOYING {request.service} {request.version}")
        print(f"Environment: {self.environment}")
        print(f"Auto-rollback: {rollback_enabled}")
        attempt.previous_version = store.current_version()
        print(f"Current version: {attempt.previous_version or 'none'}")

        print_phase(1, "BACKUP", request.service)
        try:
            attempt.backup = snapshot(store, self.backup_dir, self.storage)
            attempt.transition(DeploymentState.BACKED_UP)
        except BackupError as e:
            print_error(str(e))
            attempt.fail(e, 'backup')
            return self._finish(attempt, store)

        print_phase(2, "STAGE", request.service)
        try:
            attempt.version_ref = stage(store, request.version, self.artifact_source, request.config_file)
            attempt.transition(DeploymentState.STAGED)
        except StageError as e:
            print_error(str(e))
            attempt.fail(e, 'stage')
            return self._finish(attempt, store)

        print_phase(3, "ACTIVATE", request.service)
        try:
            self.activator.activate(store, attempt.version_ref)
            attempt.transition(DeploymentState.ACTIVATED)
        except ActivationError as e:
            print_error(str(e))
            attempt.fail(e, f"activate:{e.step}")
            self._recover(attempt, store, rollback_enabled)
            return self._finish(attempt, store)

        if request.health_check_url:
            print_phase(4, "VERIFY", request.service)
            attempt.transition(DeploymentState.VERIFYING)
            try:
                result = self.verifier.verify(
                    request.health_check_url,
                    max_attempts=self._option(request.retries, 'health_check', 'retries'),
                    timeout=self._option(request.health_timeout, 'health_check', 'timeout_seconds'),
                    interval=self._option(request.interval, 'health_check', 'interval_seconds'),
                    deadline=deadline,
                    cancel_event=cancel_event,
                )
                error = None if result.healthy else HealthCheckExhausted(result.attempts, result.reason)
            except Exception as e:
                # The new version is live here, so any error must still reach recovery
                error = e
            if error is not None:
                print_error(str(error))
                attempt.fail(error, 'verify')
                self._recover(attempt, store, rollback_enabled)
                return self._finish(attempt, store)
        else:
            print("No health check URL configured, skipping verification")

        attempt.transition(DeploymentState.SUCCEEDED)
        print(f"✓ {request.service} {request.version} is now running")
        return self._finish(attempt, store)

    def _recover(self, attempt, store, rollback_enabled):
        if not attempt.live_touched:
            return
        if not rollback_enabled:
            print_warning("Automatic rollback disabled - leaving failed version in place")
            return
        if attempt.backup is None:
            print_warning("No backup found - cannot rollback automatically")
            return

        print_phase(None, "ROLLBACK")
        try:
            result = self.rollback_controller.rollback(attempt, store)
        except RollbackError as e:
            print_error(f"Rollback failed - manual intervention required: {e}")
            attempt.rollback_error = str(e)
            attempt.transition(DeploymentState.ROLLBACK_FAILED)
            return
        if result.performed:
            attempt.transition(DeploymentState.ROLLED_BACK)

    def _finish(self, attempt, store):
        """Retention and report; neither can change the outcome."""
        attempt.finish()

        print_phase(None, "CLEANUP")
        try:
            prune_versions(store, self.config['retention']['versions'])
            prune_backups(self.backup_dir, store.service, self.config['retention']['backups'], self.storage)
            print("✓ Cleanup completed")
        except RetentionError as e:
            print_warning(str(e))

        try:
            service_status = self.controller.status(store.service)
        except (ServiceControlError, OSError) as e:
            service_status = f"unavailable: {e}"

        report = build_report(attempt, store, self.environment, service_status)
        try:
            write_report(report, self.report_dir)
        except ReportError as e:
            print_warning(str(e))
        print_report_summary(report)
        return attempt

    def plan(self, request, store):
        """Print what a deployment would do without changing anything."""
        print_phase(None, f"DRY RUN: {request.service} {request.version}")
        current = store.current_version()
        retries = self._option(request.retries, 'health_check', 'retries')
        rollback_enabled = self._option(request.rollback, 'deployment', 'rollback_on_failure')
        print(f"[DRY RUN] Environment: {self.environment}")
        if current:
            print(f"[DRY RUN] Would back up {current} to {self.backup_dir}")
        else:
            print("[DRY RUN] No current version, backup would be skipped")
        print(f"[DRY RUN] Would stage {store.version_dir(request.version)} "
              f"from {self.artifact_source.describe(request.service, request.version)}")
        if request.config_file:
            print(f"[DRY RUN] Would copy configuration file {request.config_file}")
        print(f"[DRY RUN] Would repoint {store.current_path} -> {request.version} and restart {request.service}")
        if request.health_check_url:
            print(f"[DRY RUN] Would probe {request.health_check_url} up to {retries} times")
        print(f"[DRY RUN] Automatic rollback: {'enabled' if rollback_enabled else 'disabled'}")
        print(f"[DRY RUN] Would keep {self.config['retention']['versions']} versions "
              f"and {self.config['retention']['backups']} backups")

    def rollback_latest(self, service):
        """Operator rollback to the newest backup archive; raises RollbackError."""
        store = self.store_for(service)
        backups = list_backups(self.backup_dir, service)
        if not backups:
            raise RollbackError(f"No backups found for {service} in {self.backup_dir}")
        _, archive_path = backups[-1]
        backup = read_snapshot(archive_path)
        with service_lock(store.service_dir):
            return self.rollback_controller.restore_snapshot(backup, store)


def build_orchestrator(config):
    """Create an orchestrator wired to the configured backends."""
    return DeploymentOrchestrator(
        config,
        controller=get_service_controller(config),
        artifact_source=get_artifact_source(config),
        storage=get_storage_backend(config),
    )


def status_command(config, service):
    store = VersionStore(config['deployment']['deployment_dir'], service)
    print_phase(None, f"STATUS: {service}")
    print(f"Live version: {store.current_version() or 'none'}")
    print("Versions:")
    for ref in store.list_versions():
        print(f"  - {ref.version} (created {ref.created_at.isoformat()})")
    print("Backups:")
    for created_at, path in list_backups(config['deployment']['backup_dir'], service):
        print(f"  - {path.name} ({created_at.isoformat()})")


def validate_command(config):
    print_phase(None, "VALIDATING DEPLOYER SETTINGS")
    is_valid, errors = validate_config(config)
    if not is_valid:
        print("Settings validation failed:")
        for error in errors:
            print(f"  - {error}")
        return EXIT_FAILED
    print("[OK] Settings are valid")
    return EXIT_SUCCEEDED


def _apply_overrides(config, args):
    deployment = config['deployment']
    if args.deployment_dir:
        deployment['deployment_dir'] = args.deployment_dir
    if args.backup_dir:
        deployment['backup_dir'] = args.backup_dir
    if args.environment:
        deployment['environment'] = args.environment
    return config


def main(argv=None):
    """Main entry point - parse command line and run the command. Returns the exit code."""
    parser = argparse.ArgumentParser(
        prog='svcdeploy',
        description='Service deployment with health checks and automatic rollback',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  svcdeploy deploy --service myapp --version 1.2.3
  svcdeploy deploy --service api --version 2.0.0 --health-check http://localhost:8080/health
  svcdeploy deploy --service frontend --version 1.5.1 --environment staging --no-rollback
  svcdeploy rollback --service api
  svcdeploy status --service api

Exit codes:
  0 succeeded, 1 failed (nothing rolled back), 3 rolled back, 4 rollback failed
        """
    )
    parser.add_argument('command', choices=['deploy', 'rollback', 'status', 'validate'], help='Command')
    parser.add_argument('--service', help='Service name to deploy')
    parser.add_argument('--version', help='Version to deploy')
    parser.add_argument('--health-check', dest='health_check', help='Health check URL')
    parser.add_argument('--timeout', type=float, help='Health check timeout per attempt in seconds (default: 30)')
    parser.add_argument('--retries', type=int, help='Max health check attempts (default: 5)')
    parser.add_argument('--interval', type=float, help='Seconds between health check attempts (default: 5)')
    parser.add_argument('--deploy-timeout', dest='deploy_timeout', type=float,
                        help='Overall deployment budget in seconds (default: 600)')
    parser.add_argument('--no-rollback', dest='rollback', action='store_false', default=None,
                        help='Disable automatic rollback on failure')
    parser.add_argument('--dry-run', dest='dry_run', action='store_true', help='Show the plan without changing anything')
    parser.add_argument('--config', dest='config_file', help='Application configuration file copied into the version')
    parser.add_argument('--environment', help='Environment (default: production)')
    parser.add_argument('--deployment-dir', dest='deployment_dir', help='Deployment directory (default: /opt/deployments)')
    parser.add_argument('--backup-dir', dest='backup_dir', help='Backup directory (default: /opt/backups)')
    parser.add_argument('--deploy-config', dest='deploy_config', help='Deployer settings file (YAML)')
    args = parser.parse_args(argv)

    if args.command in ['deploy', 'rollback', 'status'] and not args.service:
        parser.error(f"{args.command} requires --service argument")
    if args.command == 'deploy' and not args.version:
        parser.error("deploy requires --version argument")
    if args.retries is not None and args.retries < 1:
        parser.error("--retries must be at least 1")
    if args.timeout is not None and args.timeout <= 0:
        parser.error("--timeout must be greater than 0")
    if args.deploy_timeout is not None and args.deploy_timeout <= 0:
        parser.error("--deploy-timeout must be greater than 0")
    if args.interval is not None and args.interval < 0:
        parser.error("--interval must not be negative")

    try:
        config = _apply_overrides(load_config(args.deploy_config), args)
        if args.command == 'validate':
            return validate_command(config)

        is_valid, errors = validate_config(config)
        if not is_valid:
            for error in errors:
                print_error(error)
            return EXIT_FAILED

        if args.command == 'status':
            status_command(config, args.service)
            return EXIT_SUCCEEDED

        orchestrator = build_orchestrator(config)
        if args.command == 'rollback':
            try:
                orchestrator.rollback_latest(args.service)
            except RollbackError as e:
                print_error(f"Rollback failed - manual intervention required: {e}")
                return EXIT_ROLLBACK_FAILED
            return EXIT_SUCCEEDED

        request = DeploymentRequest(
            service=args.service,
            version=args.version,
            health_check_url=args.health_check,
            health_timeout=args.timeout,
            retries=args.retries,
            interval=args.interval,
            rollback=args.rollback,
            deploy_timeout=args.deploy_timeout,
            config_file=args.config_file,
            dry_run=args.dry_run,
        )
        attempt = orchestrator.deploy(request)
    except (ConfigError, ValueError) as e:
        print_error(str(e))
        return EXIT_FAILED

    if attempt is None:
        return EXIT_SUCCEEDED
    return EXIT_CODES[attempt.state]


if __name__ == '__main__':
    sys.exit(main())
