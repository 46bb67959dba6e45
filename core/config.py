"""
Configuration management utilities.

This module provides functions for loading YAML configuration
files, merging defaults with user overrides, and resolving the effective
session configuration (defaults file + overrides + environment variables).
"""
import copy
import os
from pathlib import Path
from typing import Dict, Any, Optional
import logging
import yaml

from core.constants import (
    DEFAULT_JOBS_ROOT,
    DEFAULT_SESSION_CONFIG,
    ENV_CONFIG_PATH,
    ENV_ID_TYPE,
    ENV_JOBS_ROOT,
    ENV_LOG_LEVEL,
    ENV_MAX_CONCURRENT,
    ENV_RESULT_NAMES,
    ID_TYPES,
    SENTINEL_FILES,
)

logger = logging.getLogger(__name__)


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Configuration dictionary (empty dict for an empty file)

    Example:
        >>> config = load_config('configs/defaults/session.yaml')
        >>> print(config['session']['root_directory'])
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        config = yaml.safe_load(f)

    logger.info("Loaded config from: %s", config_path)
    return config or {}


def merge_configs(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively merge override config into base config.

    Args:
        base: Base configuration dictionary
        override: Override configuration dictionary

    Returns:
        Merged configuration

    Example:
        >>> base = {'a': 1, 'b': {'c': 2, 'd': 3}}
        >>> override = {'b': {'d': 4}, 'e': 5}
        >>> merged = merge_configs(base, override)
        >>> # Result: {'a': 1, 'b': {'c': 2, 'd': 4}, 'e': 5}
    """
    result = copy.deepcopy(base)

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            # Recursively merge nested dictionaries
            result[key] = merge_configs(result[key], value)
        else:
            # Override value
            result[key] = value

    return result


def parse_cli_overrides(args_dict: Dict[str, Any]) -> Dict[str, Any]:
    """
    Parse CLI arguments into nested config dictionary.

    Converts dot-notation arguments like 'session.id_type=uuid' into nested dict.

    Args:
        args_dict: Dictionary of CLI arguments

    Returns:
        Nested configuration dictionary

    Example:
        >>> args = {'session.id_type': 'uuid', 'logging.level': 'DEBUG'}
        >>> config = parse_cli_overrides(args)
        >>> # Result: {'session': {'id_type': 'uuid'}, 'logging': {'level': 'DEBUG'}}
    """
    result = {}

    for key, value in args_dict.items():
        if '.' in key:
            # Nested key
            parts = key.split('.')
            current = result
            for part in parts[:-1]:
                if part not in current:
                    current[part] = {}
                current = current[part]
            current[parts[-1]] = value
        else:
            # Top-level key
            result[key] = value

    return result


def _env_overrides() -> Dict[str, Any]:
    """Collect session overrides from environment variables."""
    session: Dict[str, Any] = {}

    if os.environ.get(ENV_JOBS_ROOT):
        session['root_directory'] = os.environ[ENV_JOBS_ROOT]
    if os.environ.get(ENV_RESULT_NAMES):
        names = os.environ[ENV_RESULT_NAMES].split(',')
        session['result_names'] = [n.strip() for n in names if n.strip()]
    if os.environ.get(ENV_ID_TYPE):
        session['id_type'] = os.environ[ENV_ID_TYPE].strip().lower()
    if os.environ.get(ENV_MAX_CONCURRENT):
        session['max_concurrent_jobs'] = int(os.environ[ENV_MAX_CONCURRENT])

    overrides: Dict[str, Any] = {}
    if session:
        overrides['session'] = session
    if os.environ.get(ENV_LOG_LEVEL):
        overrides['logging'] = {'level': os.environ[ENV_LOG_LEVEL].upper()}
    return overrides


def validate_session_config(config: Dict[str, Any]) -> None:
    """
    Validate the 'session' section of a configuration.

    Raises:
        ValueError: If a value is missing or invalid
    """
    session = config.get('session')
    if not isinstance(session, dict):
        raise ValueError("Config must contain a 'session' mapping")

    if not session.get('root_directory'):
        raise ValueError("'session.root_directory' is required")

    id_type = session.get('id_type')
    if id_type not in ID_TYPES:
        raise ValueError(f"Invalid session.id_type: {id_type}. Must be one of: {list(ID_TYPES)}")

    result_names = session.get('result_names') or []
    if not isinstance(result_names, list):
        raise ValueError("'session.result_names' must be a list")
    reserved = sorted(set(result_names) & SENTINEL_FILES)
    if reserved:
        raise ValueError(f"Result names collide with reserved sentinel files: {reserved}")
    for name in result_names:
        if not isinstance(name, str) or not name or '\0' in name or Path(name).name != name:
            raise ValueError(f"Result name must be a plain file name: {name!r}")

    max_jobs = session.get('max_concurrent_jobs')
    if max_jobs is not None and (not isinstance(max_jobs, int) or max_jobs < 1):
        raise ValueError("'session.max_concurrent_jobs' must be a positive integer or null")


def load_session_config(
    config_path: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Resolve the effective session configuration.

    Precedence (lowest to highest): defaults file, explicit overrides,
    environment variables.

    Args:
        config_path: Optional YAML file; defaults to $JOBS_CONFIG or
            configs/defaults/session.yaml
        overrides: Optional nested overrides (e.g. from CLI)

    Returns:
        Validated configuration dictionary
    """
    path = config_path or os.environ.get(ENV_CONFIG_PATH) or str(DEFAULT_SESSION_CONFIG)
    config = load_config(path)

    if overrides:
        config = merge_configs(config, overrides)

    env = _env_overrides()
    if env:
        config = merge_configs(config, env)
        logger.info("Applied %d environment override section(s)", len(env))

    session = config.setdefault('session', {})
    if not session.get('root_directory'):
        session['root_directory'] = str(DEFAULT_JOBS_ROOT)
    session.setdefault('id_type', ID_TYPES[0])
    session.setdefault('result_names', [])
    session.setdefault('max_concurrent_jobs', None)

    validate_session_config(config)
    return config
