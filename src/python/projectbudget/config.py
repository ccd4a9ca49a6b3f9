"""Configuration file loading for ProjectBudget."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

CONFIG_ENV_VAR = "PROJECTBUDGET_CONFIG"
DEFAULT_CONFIG_PATH = Path.home() / ".projectbudget" / "config.json"
DEFAULT_MAX_RESOLVE_ATTEMPTS = 3


def resolve_config_path(config_path: str | Path | None = None) -> Path:
    """Explicit path, else the environment variable, else the home default."""
    if config_path is not None:
        return Path(config_path)
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def load_config(config_path: str | Path | None = None) -> dict[str, Any]:
    """Load config file if present, else return empty config."""
    path = resolve_config_path(config_path)
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if not isinstance(payload, dict):
        return {}
    return payload
