"""
Configuration — loads settings from .edit_session.yaml, environment
variables, and built-in defaults (in that priority order: CLI args > env >
YAML > defaults).
"""

from __future__ import annotations

import os

import yaml


_DEFAULTS = {
    "context_lines": 3,
    "max_history": 100,
    "max_edit_lines": 500,
    "chunk_size": 64,
    "log_dir": ".edit_session/logs",
    "metrics_dir": ".edit_session",
    "auto_approve": False,
}

# Config file search locations
_CONFIG_FILENAMES = [".edit_session.yaml", ".edit_session.yml"]


def _find_config_file(explicit_path: str | None = None) -> str | None:
    """Find the config file. Checks explicit path, CWD, then user home."""
    if explicit_path:
        if os.path.isfile(explicit_path):
            return explicit_path
        return None

    # Search CWD first, then home directory
    search_dirs = [os.getcwd(), os.path.expanduser("~")]
    for d in search_dirs:
        for name in _CONFIG_FILENAMES:
            path = os.path.join(d, name)
            if os.path.isfile(path):
                return path
    return None


def _load_yaml(path: str) -> dict:
    """Load YAML file, returns empty dict on failure."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return data if isinstance(data, dict) else {}
    except (OSError, yaml.YAMLError):
        return {}


class Config:
    """Edit session configuration.

    Settings are resolved in priority order:
    1. CLI arguments (handled by caller)
    2. Environment variables
    3. .edit_session.yaml config file
    4. Built-in defaults
    """

    def __init__(self, yaml_data: dict | None = None):
        yd = yaml_data or {}

        # Helper: env var > yaml > default
        def _get(env_key: str, yaml_key: str, default, cast=str):
            env_val = os.getenv(env_key)
            if env_val is not None:
                return cast(env_val)
            yaml_val = yd.get(yaml_key)
            if yaml_val is not None:
                return cast(yaml_val)
            return default

        def _get_bool(env_key: str, yaml_key: str, default: bool) -> bool:
            env_val = os.getenv(env_key)
            if env_val is not None:
                return env_val.lower() in ("1", "true", "yes")
            yaml_val = yd.get(yaml_key)
            if yaml_val is not None:
                return bool(yaml_val)
            return default

        self.CONTEXT_LINES = _get("EDIT_SESSION_CONTEXT_LINES", "context_lines",
                                  _DEFAULTS["context_lines"], cast=int)
        self.MAX_HISTORY = _get("EDIT_SESSION_MAX_HISTORY", "max_history",
                                _DEFAULTS["max_history"], cast=int)
        self.MAX_EDIT_LINES = _get("EDIT_SESSION_MAX_EDIT_LINES", "max_edit_lines",
                                   _DEFAULTS["max_edit_lines"], cast=int)
        self.CHUNK_SIZE = _get("EDIT_SESSION_CHUNK_SIZE", "chunk_size",
                               _DEFAULTS["chunk_size"], cast=int)

        self.LOG_DIR = _get("EDIT_SESSION_LOG_DIR", "log_dir", _DEFAULTS["log_dir"])
        self.METRICS_DIR = _get("EDIT_SESSION_METRICS_DIR", "metrics_dir",
                                _DEFAULTS["metrics_dir"])
        self.AUTO_APPROVE = _get_bool("EDIT_SESSION_AUTO_APPROVE", "auto_approve",
                                      _DEFAULTS["auto_approve"])

        if self.CONTEXT_LINES < 0:
            raise ValueError("context_lines must be >= 0")
        if self.MAX_HISTORY < 0:
            raise ValueError("max_history must be >= 0")
        if self.MAX_EDIT_LINES < 1:
            raise ValueError("max_edit_lines must be >= 1")
        if self.CHUNK_SIZE < 1:
            raise ValueError("chunk_size must be >= 1")

    @classmethod
    def load(cls, config_path: str | None = None) -> "Config":
        """Load config from YAML file + env vars + defaults."""
        path = _find_config_file(config_path)
        yaml_data = _load_yaml(path) if path else {}
        return cls(yaml_data)
