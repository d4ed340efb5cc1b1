"""YAML + environment variable configuration loading.

Config file: config/linklookup.yaml (or the path in LINKLOOKUP_CONFIG)
Env var override prefix: LINKLOOKUP_
Nesting convention: double underscore (e.g. LINKLOOKUP_SERVER__PORT)

The plain PORT, DEFAULT_CSV_PATH and API_ACCESS_KEY variables are also
honoured. They override the YAML file but lose to LINKLOOKUP_ variables.
"""

from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any

import yaml

_DEFAULT_CONFIG_PATH = Path("config/linklookup.yaml")

_DEFAULTS: dict[str, Any] = {
    "server": {
        "host": "0.0.0.0",
        "port": 3000,
    },
    "table": {
        "default_path": "/mnt/data/magic_login_list.csv",
        "root": ".",
        "key_column": "Email",
        "value_column": "Login Link",
        "duplicates": "first",
        "poll_interval_seconds": 0,
    },
    "auth": {
        "api_key": "",
    },
    "cors": {
        "allow_origins": ["*"],
    },
    "logging": {
        "level": "INFO",
    },
}

ENV_PREFIX = "LINKLOOKUP_"
CONFIG_PATH_ENV = "LINKLOOKUP_CONFIG"

# plain variable name -> (section, key)
_PLAIN_ENV_VARS = {
    "PORT": ("server", "port"),
    "DEFAULT_CSV_PATH": ("table", "default_path"),
    "API_ACCESS_KEY": ("auth", "api_key"),
}


class ConfigError(ValueError):
    """Raised when a configuration value cannot be used."""


def _deep_merge(base: dict, override: dict) -> dict:
    """Merge override into base, recursively for nested dicts."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _coerce_value(value: str) -> int | float | bool | str:
    """Attempt to coerce a string env var value to a typed value."""
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    return value


def _apply_plain_env(config: dict) -> dict:
    for name, (section, key) in _PLAIN_ENV_VARS.items():
        value = os.environ.get(name)
        if value is None:
            continue
        # the secret and the path stay strings even if they look numeric
        config[section][key] = int(value) if name == "PORT" else value
    return config


def _apply_env_overrides(config: dict) -> dict:
    """Apply LINKLOOKUP_ prefixed environment variables as overrides.

    Double underscore separates nesting levels:
        LINKLOOKUP_SERVER__PORT=9090 -> config["server"]["port"] = 9090
    """
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX) or key == CONFIG_PATH_ENV:
            continue
        parts = key[len(ENV_PREFIX) :].lower().split("__")
        target = config
        for part in parts[:-1]:
            if part not in target:
                target[part] = {}
            target = target[part]
        if parts[-1] == "api_key":
            target[parts[-1]] = value
        else:
            target[parts[-1]] = _coerce_value(value)
    return config


def resolve_path(config: dict[str, Any], path: str | None = None) -> Path:
    """Resolve a source path against the configured root.

    An empty or missing ``path`` falls back to ``table.default_path``. The
    root is made absolute so the result names the file actually read.
    """
    raw = path or config["table"]["default_path"]
    candidate = Path(str(raw))
    if candidate.is_absolute():
        return candidate
    return Path(config["table"]["root"]).absolute() / candidate


def load_config(config_path: Path | None = None) -> dict[str, Any]:
    """Load configuration from YAML file with env var overrides.

    Precedence (highest wins): LINKLOOKUP_ env vars > plain env vars >
    YAML file > defaults.
    """
    config = copy.deepcopy(_DEFAULTS)

    env_path = os.environ.get(CONFIG_PATH_ENV)
    path = config_path or (Path(env_path) if env_path else _DEFAULT_CONFIG_PATH)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        config = _deep_merge(config, file_config)

    config = _apply_plain_env(config)
    config = _apply_env_overrides(config)
    return config
