# Copyright Dario Mylonopoulos
# SPDX-License-Identifier: MIT

import logging
import tomllib
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from platformdirs import user_config_path

from .errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_DIR = user_config_path("easl")
PROJECT_CONFIG_NAME = "easl.toml"
USER_CONFIG_NAME = "config.toml"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class WatchConfig:
    # Passed straight to watchfiles, both in milliseconds.
    debounce_ms: int = 200
    step_ms: int = 50


@dataclass
class RenderConfig:
    title: str = "easl"
    width: int = 800
    height: int = 600
    clear_color: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 1.0)
    vsync: bool = True
    max_fps: int = 60
    power_preference: str = "high-performance"


@dataclass
class Config:
    # Logging.
    #
    # If None the level is chosen by the command line flags, defaulting to WARNING.
    log_level: Optional[str] = None

    # Sources
    source_extension: str = "easl"
    target_extension: str = "wgsl"

    # "module:attribute" import string. If None the installed entry point is used.
    toolchain: Optional[str] = None

    # Sub-configs
    watch: WatchConfig = field(default_factory=WatchConfig)
    render: RenderConfig = field(default_factory=RenderConfig)


def _check_value(path: Path, key: str, default: Any, value: Any) -> Any:
    if isinstance(default, bool):
        ok = isinstance(value, bool)
    elif isinstance(default, int):
        ok = isinstance(value, int) and not isinstance(value, bool)
    elif isinstance(default, float):
        ok = isinstance(value, (int, float)) and not isinstance(value, bool)
    elif isinstance(default, str):
        ok = isinstance(value, str)
    elif isinstance(default, tuple):
        ok = isinstance(value, list) and len(value) == len(default)
        if ok:
            return tuple(_check_value(path, key, d, v) for d, v in zip(default, value))
    else:
        # Optional fields default to None
        ok = value is None or isinstance(value, str)
    if not ok:
        raise ConfigError(f"Invalid value for '{key}' in {path}: {value!r}")
    return value


def _apply(path: Path, obj: Any, values: Dict[str, Any], prefix: str = "") -> None:
    known = {f.name: f for f in fields(obj)}
    for key, value in values.items():
        name = f"{prefix}{key}"
        if key not in known:
            raise ConfigError(f"Unknown config key '{name}' in {path}")
        current = getattr(obj, key)
        if is_dataclass(current):
            if not isinstance(value, dict):
                raise ConfigError(f"Expected a table for '{name}' in {path}")
            _apply(path, current, value, prefix=f"{name}.")
        else:
            setattr(obj, key, _check_value(path, name, current, value))


def _normalize(config: Config, path: Path) -> Config:
    config.source_extension = config.source_extension.lstrip(".")
    config.target_extension = config.target_extension.lstrip(".")
    if not config.source_extension or not config.target_extension:
        raise ConfigError(f"Extensions must not be empty in {path}")
    if config.log_level is not None:
        config.log_level = config.log_level.upper()
        if config.log_level not in LOG_LEVELS:
            raise ConfigError(f"Invalid log_level '{config.log_level}' in {path}")
    return config


def find_config_file(cwd: Optional[Path] = None) -> Optional[Path]:
    project = Path(cwd if cwd is not None else Path.cwd(), PROJECT_CONFIG_NAME)
    if project.is_file():
        return project
    user = Path(CONFIG_DIR, USER_CONFIG_NAME)
    if user.is_file():
        return user
    return None


def load_config(path: Optional[Path] = None) -> Config:
    config = Config()
    if path is None:
        path = find_config_file()
        if path is None:
            logger.debug("No config file found, using defaults")
            return config

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        raise ConfigError(f"Error: Failed to read config file {path}\n{e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Error: Invalid config file {path}\n{e}") from e

    logger.info("Loading config: %s", path)
    _apply(path, config, data)
    return _normalize(config, path)
