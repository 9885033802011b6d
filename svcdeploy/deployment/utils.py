#!/usr/bin/env python3
"""
Deployment utilities - shared helper functions.
"""

import os
import copy
from pathlib import Path
from datetime import datetime

import yaml

from .errors import ConfigError


DEFAULT_CONFIG_PATH = Path("config") / "deploy-config.yaml"

DEFAULT_CONFIG = {
    'deployment': {
        'deployment_dir': '/opt/deployments',
        'backup_dir': '/opt/backups',
        'report_dir': '/tmp',
        'environment': 'production',
        'timeout_seconds': 600,
        'rollback_on_failure': True,
    },
    'retention': {
        'versions': 5,
        'backups': 10,
    },
    'health_check': {
        'retries': 5,
        'timeout_seconds': 30,
        'interval_seconds': 5,
    },
    'activation': {
        'settle_seconds': 5,
        'entrypoint': 'app.sh',
    },
    'service_control': {
        'backend': 'systemd',
        'unit_dir': '/etc/systemd/system',
        'user': 'nobody',
        'group': 'nobody',
        'state_dir': '/var/run/svcdeploy',
    },
    'artifacts': {
        'source': 'placeholder',
    },
    'storage': {
        'backend': 'local',
    },
}


def load_yaml(file_path):
    with open(file_path, 'r') as f:
        return yaml.safe_load(f)


def deep_merge(base, override):
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def resolve_config_path(config_path=None):
    """Explicit path, then SVCDEPLOY_CONFIG, then config/deploy-config.yaml."""
    if config_path:
        return Path(config_path)
    env_path = os.environ.get('SVCDEPLOY_CONFIG', '').strip()
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def load_config(config_path=None):
    """
    Load settings on top of the built-in defaults.
    - Default: config/deploy-config.yaml (production mode)
    - DEPLOYMENT_ENV=local: merges deploy-config.local.yaml overrides
    """
    base_config = copy.deepcopy(DEFAULT_CONFIG)
    path = resolve_config_path(config_path)

    if not path.exists():
        if config_path:
            raise ConfigError(f"Configuration file not found: {path}")
        return base_config

    try:
        file_config = load_yaml(path) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"YAML syntax error in {path}: {e}") from e
    if not isinstance(file_config, dict):
        raise ConfigError(f"Configuration file must contain a mapping: {path}")
    config = deep_merge(base_config, file_config)

    env = os.environ.get('DEPLOYMENT_ENV', '').strip()
    if env == 'local':
        override_path = path.with_name(f"{path.stem}.local{path.suffix}")
        if override_path.exists():
            override_config = load_yaml(override_path) or {}
            return deep_merge(config, override_config)

    return config


def timestamp():
    """Timestamp used in backup and report file names."""
    return datetime.now().strftime('%Y%m%d_%H%M%S')


def print_phase(phase_num, phase_name, service=None):
    """Helper to print phase headers."""
    print(f"\n{'='*60}")
    if phase_num is None:
        print(phase_name)
    elif service:
        print(f"PHASE {phase_num}: {phase_name} ({service})")
    else:
        print(f"PHASE {phase_num}: {phase_name}")
    print(f"{'='*60}")


def print_warning(message):
    print(f"WARNING: {message}")


def print_error(message):
    print(f"ERROR: {message}")
