"""Configuration file loading for runtime tunables.

Values from the YAML file replace the defaults held on ``Constants``; CLI
arguments are applied afterwards and so take precedence.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

import yaml

from common.errors import ConfigError
from constants import Constants

logger = logging.getLogger(__name__)

# config key -> (Constants attribute, converter)
_TUNABLES = {
    "request_timeout": ("REQUEST_TIMEOUT", int),
    "subprocess_timeout": ("SUBPROCESS_TIMEOUT", int),
    "http_retry_max": ("HTTP_RETRY_MAX", int),
    "cache_dir": ("CACHE_DIR", str),
}


def load_config(config_path: Optional[str]) -> Dict[str, Any]:
    """Load the configuration mapping from a YAML file.

    Args:
        config_path: Path to the YAML file, or None for no file.

    Returns:
        dict: The parsed configuration (empty when no path is given).

    Raises:
        ConfigError: When the file is missing, unreadable or not a mapping.
    """
    if not config_path:
        return {}
    if not os.path.isfile(config_path):
        raise ConfigError("Config file not found.", context={"path": config_path})
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(
            "Config file could not be read.",
            context={"path": config_path, "error": str(e)},
        ) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("Config file must contain a mapping.", context={"path": config_path})
    return data


def apply_config_overrides(config: Dict[str, Any]) -> None:
    """Apply recognised configuration keys to ``Constants``.

    Raises:
        ConfigError: When a value has the wrong type.
    """
    for key, value in config.items():
        if key == "gem_caches":
            if not isinstance(value, list):
                raise ConfigError("gem_caches must be a list of directories.")
            Constants.GEM_CACHES = [os.path.expanduser(str(v)) for v in value]
            continue
        if key not in _TUNABLES:
            logger.warning("Ignoring unknown config key: %s", key)
            continue
        attr, convert = _TUNABLES[key]
        try:
            setattr(Constants, attr, convert(value))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid value for {key}: {value!r}") from e
        logger.debug("Config override %s=%s", attr, getattr(Constants, attr))
