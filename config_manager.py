"""
Configuration management module for the budget ledger.

This module handles loading and saving configuration values from
``config.yaml``: database location, logging and budgeting defaults.
"""

import copy
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from exceptions import ConfigError

logger = logging.getLogger(__name__)

# Default configuration values
DEFAULT_CONFIG: Dict[str, Any] = {
    'database': {
        'data_dir': 'data',
        'path': 'budget.db',
    },
    'logging': {
        'level': 'INFO',
        'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        'file': None,
    },
    'budgeting': {
        'warning_threshold': 75.0,
        'critical_threshold': 90.0,
        'default_strategy': 'ZERO_SUM',
        'default_period': 'MONTHLY',
    },
    'currency_symbol': '$',
}

CONFIG_FILE = 'config.yaml'


def merge_config(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge ``overrides`` over ``base``; nested sections are merged key by key.

    Args:
        base: Defaults
        overrides: Values read from file

    Returns:
        New merged dictionary (inputs are not modified)
    """
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


def _read_yaml(config_path: Path) -> Dict[str, Any]:
    with open(config_path, 'r') as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(
            "Configuration file must contain a mapping",
            details={"path": str(config_path)}
        )
    return data


def _validate(config: Dict[str, Any]) -> None:
    budgeting = config.get('budgeting') or {}
    try:
        warning = float(budgeting.get('warning_threshold'))
        critical = float(budgeting.get('critical_threshold'))
    except (TypeError, ValueError) as e:
        raise ConfigError("Budget thresholds must be numbers", original_error=e) from e
    if not 0 <= warning <= critical:
        raise ConfigError(
            "warning_threshold must be between 0 and critical_threshold",
            details={"warning_threshold": warning, "critical_threshold": critical}
        )


def load_config(path: Optional[Union[str, Path]] = None, strict: bool = False) -> Dict[str, Any]:
    """
    Load configuration from config.yaml file.

    Args:
        path: Config file path (defaults to ``config.yaml`` in the working directory)
        strict: Raise ConfigError on unreadable or invalid files instead of
            falling back to defaults

    Returns:
        Configuration dictionary with defaults for missing values

    Raises:
        ConfigError: In strict mode, if the file cannot be parsed or is invalid
    """
    config_path = Path(path or CONFIG_FILE)
    try:
        overrides = _read_yaml(config_path) if config_path.exists() else {}
        config = merge_config(DEFAULT_CONFIG, overrides)
        _validate(config)
        logger.info("Configuration loaded successfully")
        return config

    except (OSError, yaml.YAMLError, ConfigError) as e:
        if strict:
            if isinstance(e, ConfigError):
                raise
            raise ConfigError(
                "Failed to load configuration",
                details={"path": str(config_path)},
                original_error=e
            ) from e
        logger.error(f"Error loading configuration: {e}", exc_info=True)
        return copy.deepcopy(DEFAULT_CONFIG)


def save_config(config: Dict[str, Any], path: Optional[Union[str, Path]] = None) -> bool:
    """
    Save configuration to config.yaml file.

    Existing settings not present in ``config`` are preserved.

    Args:
        config: Configuration dictionary to save
        path: Config file path (defaults to ``config.yaml``)

    Returns:
        True if successful, False otherwise
    """
    config_path = Path(path or CONFIG_FILE)
    try:
        # Read existing config to preserve other settings
        existing_config: Dict[str, Any] = {}
        if config_path.exists():
            existing_config = _read_yaml(config_path)

        merged = merge_config(existing_config, config)

        with open(config_path, 'w') as f:
            yaml.safe_dump(merged, f, default_flow_style=False, sort_keys=False)

        logger.info("Configuration saved successfully")
        return True

    except (OSError, yaml.YAMLError, ConfigError) as e:
        logger.error(f"Error saving configuration: {e}", exc_info=True)
        return False


def get_budgeting_setting(config: Dict[str, Any], key: str, default: Any = None) -> Any:
    """
    Read one value from the ``budgeting`` section.

    Args:
        config: Loaded configuration
        key: Setting name
        default: Value when the setting is absent

    Returns:
        Setting value
    """
    return (config.get('budgeting') or {}).get(key, default)
