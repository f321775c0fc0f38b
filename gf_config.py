#!/usr/bin/env python3
"""Shared configuration loader for giffer."""

from __future__ import annotations

from copy import deepcopy
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from gif_errors import ConfigError

DEFAULT_CONFIG_NAME = "giffer.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "output": "output.gif",
    "delay_ms": 100,
    "extensions": ["jpg", "jpeg"],
    "quantize": {
        "colors": 256,
    },
    "gif": {
        "loop": 0,
    },
    "pipeline": {
        "max_workers": None,
    },
    "progress": True,
}


def _deep_merge(base: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    merged = deepcopy(base)
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def resolve_path(path_value: Union[str, Path]) -> Path:
    """Resolve a config path relative to the current working directory."""
    path = Path(path_value).expanduser()
    if not path.is_absolute():
        path = Path.cwd() / path
    return path


def load_config(config_path: Optional[Union[str, Path]] = None) -> dict[str, Any]:
    """
    Return giffer's settings: defaults overlaid with a YAML file.

    Without ``config_path`` an optional ``giffer.yaml`` in the working
    directory is used. A path given explicitly must exist.

    Raises:
        ConfigError: the explicit file is missing, or a file does not parse
            to a mapping.
    """
    if config_path:
        cfg_path = resolve_path(config_path)
        if not cfg_path.is_file():
            raise ConfigError(f"Config file not found: {cfg_path}")
    else:
        cfg_path = resolve_path(DEFAULT_CONFIG_NAME)
        if not cfg_path.is_file():
            return deepcopy(DEFAULT_CONFIG)

    try:
        user_cfg = yaml.safe_load(cfg_path.read_text()) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {cfg_path}: {exc}") from exc
    if not isinstance(user_cfg, dict):
        raise ConfigError(f"{cfg_path} must hold a mapping, got {type(user_cfg).__name__}")

    return _deep_merge(DEFAULT_CONFIG, user_cfg)
