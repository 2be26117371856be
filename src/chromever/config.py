# src/chromever/config.py

import os
from pathlib import Path
from typing import Any, Dict, Optional

import platformdirs
import yaml

from chromever.constants import (
    APP_NAME,
    CFT_MILESTONES_URL,
    CONFIG_FILE_NAME,
    DEFAULT_REQUEST_TIMEOUT,
    INSTALL_ROOT_DIR_NAME,
    INSTALL_ROOT_ENV_VAR,
    LOG_LEVEL_ENV_VAR,
)
from chromever.exceptions import ConfigurationError

CONFIG_DIR = platformdirs.user_config_dir(APP_NAME)
CONFIG_FILE = os.path.join(CONFIG_DIR, CONFIG_FILE_NAME)
LOG_DIR = platformdirs.user_log_dir(APP_NAME)

DEFAULT_CONFIG: Dict[str, Any] = {
    "INSTALL_ROOT": None,
    "LOG_LEVEL": None,
    "LOG_TO_FILE": False,
    "REQUEST_TIMEOUT": DEFAULT_REQUEST_TIMEOUT,
    "CATALOG_URL": CFT_MILESTONES_URL,
}


def config_exists(path: Optional[str] = None) -> bool:
    return os.path.exists(path or CONFIG_FILE)


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load the chromever configuration YAML merged over the defaults.

    A missing file is not an error: the defaults are returned. Unknown keys are
    kept so newer config files do not break older installs.

    Parameters:
        path (str | None): Explicit config file to read; defaults to CONFIG_FILE
            in the platformdirs-managed config directory.

    Returns:
        dict: Configuration mapping with every DEFAULT_CONFIG key present.

    Raises:
        ConfigurationError: If the file cannot be read, is not valid YAML, or its
            top level is not a mapping.
    """
    config_path = path or CONFIG_FILE
    config = dict(DEFAULT_CONFIG)

    if not os.path.exists(config_path):
        return config

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Invalid configuration file {config_path}", details=str(e)
        ) from e
    except OSError as e:
        raise ConfigurationError(
            f"Could not read configuration file {config_path}", details=str(e)
        ) from e

    if loaded is None:
        return config
    if not isinstance(loaded, dict):
        raise ConfigurationError(
            f"Invalid configuration file {config_path}",
            details=f"expected a mapping, got {type(loaded).__name__}",
        )

    config.update(loaded)
    return config


def resolve_install_root(
    config: Optional[Dict[str, Any]] = None, override: Optional[str] = None
) -> Path:
    """
    Work out the installation root directory.

    Precedence: explicit override (the --root flag), the CHROMEVER_HOME
    environment variable, INSTALL_ROOT from the config file, then
    ~/.chromever.
    """
    candidate = override or os.environ.get(INSTALL_ROOT_ENV_VAR)
    if not candidate and config:
        candidate = config.get("INSTALL_ROOT")
    if candidate:
        return Path(os.path.expanduser(str(candidate))).resolve()
    return Path.home() / INSTALL_ROOT_DIR_NAME


def resolve_log_level(
    config: Optional[Dict[str, Any]] = None, override: Optional[str] = None
) -> Optional[str]:
    """Return the log level to apply, or None to keep the logger's current one."""
    if override:
        return override
    if os.environ.get(LOG_LEVEL_ENV_VAR):
        # Already applied by log_utils at import time
        return None
    if config and config.get("LOG_LEVEL"):
        return str(config["LOG_LEVEL"])
    return None


def get_request_timeout(config: Optional[Dict[str, Any]] = None) -> float:
    raw = (config or {}).get("REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT)
    try:
        timeout = float(raw)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            f"REQUEST_TIMEOUT must be a number, got {raw!r}"
        ) from e
    if timeout <= 0:
        raise ConfigurationError(f"REQUEST_TIMEOUT must be positive, got {raw!r}")
    return timeout
