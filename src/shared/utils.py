"""Configuration loading for the locator tracker.

Settings are resolved in three layers, later layers winning:

1. Defaults from ``src.shared.constants``
2. The ``settings`` section of ``config/brands.yaml``
3. ``LOCATOR_*`` environment variables (``.env`` is loaded by run.py)
"""

import logging
import os
from typing import Any, Dict, List

import yaml

from src.shared.constants import HTTP, RUNS
from src.shared.logging_config import DEFAULT_LOG_FILE

__all__ = [
    'DEFAULT_CONFIG_PATH',
    'DEFAULT_SETTINGS',
    'ENV_OVERRIDES',
    'get_enabled_brands',
    'get_settings',
    'load_config',
]

DEFAULT_CONFIG_PATH = 'config/brands.yaml'

DEFAULT_SETTINGS: Dict[str, Any] = {
    'timeout': HTTP.TIMEOUT,
    'max_retries': HTTP.MAX_RETRIES,
    'concurrency': RUNS.CONCURRENCY,
    'data_dir': 'data',
    'log_file': DEFAULT_LOG_FILE,
    'user_agent': None,
}

# Environment variable -> (settings key, parser)
ENV_OVERRIDES: Dict[str, tuple] = {
    'LOCATOR_DATA_DIR': ('data_dir', str),
    'LOCATOR_CONCURRENCY': ('concurrency', int),
    'LOCATOR_TIMEOUT': ('timeout', float),
}


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """Load the brand registry YAML.

    Returns:
        Parsed config dict, or an empty dict when the file is missing or
        unparseable (the error is logged; run.py validates on startup)
    """
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f)
    except FileNotFoundError:
        logging.error(f"Config file {config_path} not found")
        return {}
    except yaml.YAMLError as e:
        logging.error(f"Error parsing {config_path}: {e}")
        return {}

    # safe_load returns None for an empty file
    return config if isinstance(config, dict) else {}


def _apply_env_overrides(settings: Dict[str, Any], environ: Dict[str, str]) -> None:
    for env_name, (key, parse) in ENV_OVERRIDES.items():
        raw = environ.get(env_name)
        if raw is None or not raw.strip():
            continue
        try:
            settings[key] = parse(raw.strip())
        except ValueError:
            logging.warning(f"Ignoring invalid {env_name}={raw!r}")


def get_settings(config: Dict[str, Any], environ: Dict[str, str] = None) -> Dict[str, Any]:
    """Resolve run settings from defaults, YAML and environment.

    Args:
        config: Loaded brand registry
        environ: Environment mapping (defaults to ``os.environ``)

    Returns:
        Settings dict with every key of ``DEFAULT_SETTINGS``
    """
    settings = dict(DEFAULT_SETTINGS)
    yaml_settings = config.get('settings') or {}
    if isinstance(yaml_settings, dict):
        # dict.get() returns None for keys present with a null value
        settings.update({k: v for k, v in yaml_settings.items() if v is not None})
    _apply_env_overrides(settings, dict(os.environ) if environ is None else environ)
    return settings


def get_enabled_brands(config: Dict[str, Any]) -> List[str]:
    """Brand slugs whose ``enabled`` flag is not false, in file order."""
    brands = config.get('brands') or {}
    return [
        slug for slug, brand in brands.items()
        if isinstance(brand, dict) and brand.get('enabled', True)
    ]
