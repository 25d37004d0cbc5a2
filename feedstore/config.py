"""YAML configuration for the feed store."""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Dict

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"

DEFAULTS: Dict[str, Any] = {
    "database": {
        "path": "data/feeds.db",
        "cache_size_mb": 16,
    },
    "logging": {
        "level": "INFO",
    },
}


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """Load the YAML config merged over DEFAULTS. A missing file yields the defaults."""
    config = copy.deepcopy(DEFAULTS)
    path = Path(config_path)
    if not path.exists():
        logger.debug("Config %s not found, using defaults", config_path)
        return config

    with open(path, "r", encoding="utf-8") as f:
        loaded = yaml.safe_load(f) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Config {config_path} must be a mapping, got {type(loaded).__name__}")

    for section, values in loaded.items():
        if isinstance(values, dict) and isinstance(config.get(section), dict):
            config[section].update(values)
        else:
            config[section] = values
    return config
