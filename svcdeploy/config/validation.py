#!/usr/bin/env python3
"""
Settings Validation
Validates deployer settings for schema compliance and cross-field rules
"""

import sys
import json
import argparse
from pathlib import Path

import jsonschema

from ..deployment.errors import ConfigError


SCHEMA_FILE = Path(__file__).parent / 'deploy-config-schema.json'


def load_schema():
    try:
        with open(SCHEMA_FILE, 'r') as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f"Error loading schema file {SCHEMA_FILE}: {e}") from e


def validate_against_schema(config):
    """
    Validate settings against the JSON schema.
    Returns (is_valid, errors_list)
    """
    schema = load_schema()
    try:
        jsonschema.validate(instance=config, schema=schema)
        return True, []
    except jsonschema.ValidationError as e:
        # Parse validation error into readable message
        error_path = ' -> '.join(str(p) for p in e.path) if e.path else 'root'
        error_msg = f"Schema validation failed at '{error_path}': {e.message}"
        return False, [error_msg]
    except jsonschema.SchemaError as e:
        return False, [f"Schema file is invalid: {e.message}"]


def check_rules(config):
    """Cross-field rules the schema cannot express. Returns list of errors."""
    errors = []

    # RULE 1: directory artifact source needs a path
    artifacts = config.get('artifacts', {})
    if artifacts.get('source') == 'directory' and not artifacts.get('path'):
        errors.append("artifacts.path is required when artifacts.source is 'directory'")

    # RULE 2: s3 mirroring needs a bucket
    storage = config.get('storage', {})
    if storage.get('backend') == 's3' and not storage.get('s3', {}).get('bucket_name'):
        errors.append("storage.s3.bucket_name is required when storage.backend is 's3'")

    # RULE 3: backups must not live inside the version store
    deployment = config.get('deployment', {})
    deployment_dir = deployment.get('deployment_dir')
    backup_dir = deployment.get('backup_dir')
    if deployment_dir and backup_dir:
        deploy_path = Path(deployment_dir).resolve()
        backup_path = Path(backup_dir).resolve()
        if backup_path == deploy_path or deploy_path in backup_path.parents:
            errors.append("deployment.backup_dir must not be inside deployment.deployment_dir")

    # RULE 4: one probe must fit in the overall budget
    timeout = deployment.get('timeout_seconds')
    probe_timeout = config.get('health_check', {}).get('timeout_seconds')
    if timeout is not None and probe_timeout is not None and probe_timeout > timeout:
        errors.append("health_check.timeout_seconds must not exceed deployment.timeout_seconds")

    return errors


def validate_config(config):
    """
    Validate merged settings.
    Uses JSON schema validation + cross-field rules.
    """
    is_valid, errors = validate_against_schema(config)
    if not is_valid:
        return False, errors

    errors = check_rules(config)
    return len(errors) == 0, errors


def main():
    """Main validation entry point."""
    from ..deployment.utils import load_config

    parser = argparse.ArgumentParser(description='Validate deployer settings using JSON schema + rules')
    parser.add_argument('--file', help='Settings file (default: config/deploy-config.yaml)')
    args = parser.parse_args()

    print("\n=== SETTINGS VALIDATION (JSON Schema + Rules) ===")
    try:
        config = load_config(args.file)
    except ConfigError as e:
        print(f"[FAILED] {e}")
        sys.exit(1)

    is_valid, errors = validate_config(config)
    if is_valid:
        print("[OK] Settings are valid")
    else:
        print("[FAILED] Settings validation failed")
        for error in errors:
            print(f"  - {error}")

    print(f"\n=== RESULT: {'PASSED' if is_valid else f'FAILED ({len(errors)} errors)'} ===\n")
    sys.exit(0 if is_valid else 1)


if __name__ == '__main__':
    main()
