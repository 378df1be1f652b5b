"""Settings resolution: environment variables first, then ~/.x402/config.json."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

CONFIG_PATH = Path.home() / ".x402" / "config.json"


def is_real_value(val: str | None) -> bool:
    """Check if an env var value is a real setting (not a placeholder)."""
    if not val:
        return False
    return not val.startswith("${")


def load_config(path: Path | None = None) -> dict:
    """Load the JSON config file if it exists. Unreadable files count as empty."""
    path = path or CONFIG_PATH
    try:
        if path.exists():
            data = json.loads(path.read_text())
            if isinstance(data, dict):
                return data
            logger.warning(f"Ignoring {path}: top level is not an object")
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(f"Ignoring unreadable config {path}: {e}")
    return {}


def resolve_setting(env_var: str, config_key: str, section: dict) -> str:
    """Resolve a setting: env var first (skip placeholders), then config section."""
    val = os.environ.get(env_var, "")
    if is_real_value(val):
        return val
    configured = section.get(config_key, "")
    return configured if isinstance(configured, str) and is_real_value(configured) else ""
