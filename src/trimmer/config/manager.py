"""
Configuration management and singleton pattern.

This module provides the main configuration loading and management interface,
implementing a singleton pattern to ensure configuration is loaded only once.
"""

import logging
from pathlib import Path
from typing import Optional

from ..models.config import AppConfig
from ..validation import ErrorSeverity, handle_config_error
from .loader import load_main_config
from .validators import validate_credentials_config, validate_distros_config, validate_runner_config

logger = logging.getLogger(__name__)

# Loaded configuration, cached until the path changes or the cache is cleared.
_CONFIG: Optional[AppConfig] = None

# Default configuration file, relative to the working directory.
# Overridden by the CLI's --config option and in tests.
_CONFIG_FILE_PATH = Path("trimmer.toml")


def set_config_path(config_path: Path) -> None:
    """
    Set a custom configuration file path.

    Args:
        config_path: Path to the trimmer.toml file

    Note:
        The cached configuration is cleared, the next call to get_config()
        loads the new file.
    """
    global _CONFIG_FILE_PATH, _CONFIG
    _CONFIG_FILE_PATH = Path(config_path)
    # Clear cached config to force reload with new path
    _CONFIG = None
    logger.info(f"Configuration path set to: {config_path}")


def get_config_path() -> Path:
    return _CONFIG_FILE_PATH


def clear_config_cache() -> None:
    """
    Clear the cached configuration, forcing a reload on next access.
    """
    global _CONFIG
    _CONFIG = None
    logger.debug("Configuration cache cleared")


def _load_config(config_path: Path) -> AppConfig:
    """
    Load and validate the complete application configuration.

    Relative paths in the file are resolved against the file's directory.

    Args:
        config_path: Path to the trimmer.toml file

    Returns:
        Fully validated AppConfig instance

    Raises:
        FileNotFoundError: If the configuration file is missing
        ValidationError: If configuration validation fails
        tomllib.TOMLDecodeError: If the file is malformed
    """
    context = "loading configuration file"
    try:
        config_data = load_main_config(config_path)
        base_dir = config_path.resolve().parent

        context = "processing configuration"
        runner_config = validate_runner_config(config_data.get("runner", {}), base_dir)
        credentials_config = validate_credentials_config(config_data.get("credentials", {}))
        distros_config = validate_distros_config(config_data.get("distros", {}), base_dir)
    except Exception as e:
        handle_config_error(
            error=e,
            context=context,
            severity=ErrorSeverity.CRITICAL,
            reraise=True,
            logger=logger
        )
        raise

    app_config = AppConfig(
        runner=runner_config,
        credentials=credentials_config,
        distros=distros_config,
    )
    logger.info(f"Successfully loaded configuration with {len(distros_config)} distros")
    return app_config


def get_config() -> AppConfig:
    """
    Get the global application configuration, loading it if necessary.

    Returns:
        The singleton AppConfig instance

    Raises:
        FileNotFoundError: If the configuration file is missing
        ValidationError: If configuration validation fails
        tomllib.TOMLDecodeError: If the file is malformed
    """
    global _CONFIG
    if _CONFIG is None:
        _CONFIG = _load_config(_CONFIG_FILE_PATH)
    return _CONFIG


def is_config_loaded() -> bool:
    """
    Check if configuration has been loaded and cached.
    """
    return _CONFIG is not None


def get_config_info() -> dict:
    """
    Get information about the current configuration state.

    Returns:
        Dictionary with configuration metadata
    """
    return {
        "config_loaded": is_config_loaded(),
        "config_path": str(_CONFIG_FILE_PATH),
        "distros_count": len(_CONFIG.distros) if _CONFIG else 0,
    }
