"""
Ledger Configuration

Reads ledger_config.yaml and merges it over a class's defaults.
"""

import copy
import logging
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "ledger_config.yaml"


def default_config_dir() -> Path:
    return Path(__file__).parent.parent.parent / "config"


def load_config(config_dir: Path | str | None, defaults: dict) -> dict:
    """Load ledger configuration merged over defaults.

    Sections present in the file update the matching default section; keys
    the file omits keep their default.

    Args:
        config_dir: Path to configuration directory
        defaults: Default configuration, left unmodified

    Returns:
        Configuration dictionary
    """
    config_dir = Path(config_dir) if config_dir else default_config_dir()
    config = copy.deepcopy(defaults)

    config_file = config_dir / CONFIG_FILENAME
    if not config_file.exists():
        logger.debug(f"Config file not found, using defaults: {config_file}")
        return config

    with open(config_file) as f:
        loaded = yaml.safe_load(f) or {}

    for section, values in loaded.items():
        if isinstance(values, dict) and isinstance(config.get(section), dict):
            config[section].update(values)
        else:
            config[section] = values

    return config
