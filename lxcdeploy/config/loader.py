"""YAML option file loader."""
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from lxcdeploy.config.options import normalize_layer
from lxcdeploy.errors import ConfigValidationError

# Search order when no --config is given (ordered by proximity to current run)
CONFIG_PATHS = [
    "./lxcdeploy.yml",
    str(Path.home() / ".config" / "lxcdeploy" / "lxcdeploy.yml"),
    "/etc/lxcdeploy/lxcdeploy.yml",
]


def find_config_file(config_path: Optional[str] = None) -> Optional[str]:
    """Locate the option file to use, or None when there is none.

    An explicit path (or LXCDEPLOY_CONFIG) is returned even if it does not
    exist, so the loader can report it.
    """
    if config_path:
        return config_path

    if env_config := os.environ.get("LXCDEPLOY_CONFIG"):
        return env_config

    for path in CONFIG_PATHS:
        if Path(path).exists():
            return path

    return None


def load_config_file(config_path: str) -> Dict[str, Any]:
    """Load a flat YAML mapping of option names to values.

    Example file:
        app: immich
        hostname: photos
        memory: 8192
        disk-size: 64G
        ip: 192.168.1.50/24
        gateway: 192.168.1.1

    Returns:
        Normalized option layer

    Raises:
        ConfigValidationError: Missing file, malformed YAML, unknown key or bad value
    """
    path = Path(config_path)
    if not path.exists():
        raise ConfigValidationError(f"Config file not found: {path}")

    try:
        with open(path) as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigValidationError(f"Config file {path} is not valid YAML: {e}") from e

    if raw is None:
        return {}

    if not isinstance(raw, dict):
        raise ConfigValidationError(f"Config file {path} must contain a mapping of options")

    return normalize_layer(raw, source=f"config file {path}")
