"""
Configuration loading (YAML)
Priority:
1. Custom config_file parameter
2. XDG config: ~/.config/subnetplan/config.yaml (created if missing)
3. Legacy: ./config.yaml in current directory
"""

import copy
import logging
import os
from pathlib import Path

import yaml

from allocator import PLAN_STRATEGIES
from errors import ConfigError

logger = logging.getLogger(__name__)

LEGACY_CONFIG_FILE = Path("config.yaml")

OUTPUT_FORMATS = ("table", "json")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

DEFAULT_CONFIG = {
    "planner": {
        "strategy": "best-fit",
        "usable_hosts_only": True,
        "max_candidates": 10,
    },
    "output": {"format": "table"},
    "logging": {"level": "WARNING"},
}


def config_dir() -> Path:
    xdg_config_home = os.environ.get(
        "XDG_CONFIG_HOME", os.path.expanduser("~/.config")
    )
    return Path(xdg_config_home) / "subnetplan"


def default_config_file() -> Path:
    return config_dir() / "config.yaml"


def create_default_config(path: Path) -> None:
    """Write the built-in defaults as a starting config file"""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.dump(DEFAULT_CONFIG, f, default_flow_style=False)


def resolve_config_path(config_file=None) -> Path:
    if config_file:
        return Path(config_file)

    xdg_file = default_config_file()
    if xdg_file.exists():
        return xdg_file
    if LEGACY_CONFIG_FILE.exists():
        return LEGACY_CONFIG_FILE

    # Create XDG config directory and default config
    create_default_config(xdg_file)
    logger.info("Created default config at %s", xdg_file)
    return xdg_file


def _merge(defaults: dict, overrides: dict) -> dict:
    merged = copy.deepcopy(defaults)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def validate_config(config: dict) -> dict:
    planner = config["planner"]
    if planner["strategy"] not in PLAN_STRATEGIES:
        raise ConfigError(
            f"planner.strategy must be one of {', '.join(PLAN_STRATEGIES)}, "
            f"got '{planner['strategy']}'"
        )
    if not isinstance(planner["usable_hosts_only"], bool):
        raise ConfigError("planner.usable_hosts_only must be true or false")
    max_candidates = planner["max_candidates"]
    if isinstance(max_candidates, bool) or not isinstance(max_candidates, int):
        raise ConfigError("planner.max_candidates must be an integer")
    if max_candidates < 1:
        raise ConfigError("planner.max_candidates must be at least 1")

    if config["output"]["format"] not in OUTPUT_FORMATS:
        raise ConfigError(
            f"output.format must be one of {', '.join(OUTPUT_FORMATS)}, "
            f"got '{config['output']['format']}'"
        )

    level = str(config["logging"]["level"]).upper()
    if level not in LOG_LEVELS:
        raise ConfigError(f"logging.level must be one of {', '.join(LOG_LEVELS)}")
    config["logging"]["level"] = level
    return config


def load_config(config_file=None) -> dict:
    """Load, merge over defaults and validate the YAML config"""
    config_path = resolve_config_path(config_file)
    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read config {config_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config {config_path} must be a mapping")
    for section in DEFAULT_CONFIG:
        if section in data and not isinstance(data[section], dict):
            raise ConfigError(f"Config section '{section}' must be a mapping")

    config = validate_config(_merge(DEFAULT_CONFIG, data))
    config["path"] = str(config_path)
    return config
