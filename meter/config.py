"""
User configuration file support.

Reads/writes ``~/.netspeed/config.json``.

Supported keys::

    base_url = "http://127.0.0.1:8080"   # server hosting the endpoints
    timeout = 30.0                       # per-transfer timeout in seconds
    log_level = "WARNING"
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

from .constants import DEFAULT_BASE_URL, DEFAULT_TIMEOUT

LOGGER = logging.getLogger(__name__)

_CONFIG_DIR = os.path.join(Path.home(), ".netspeed")
_CONFIG_FILE = "config.json"


def _config_path() -> str:
    return os.path.join(_CONFIG_DIR, _CONFIG_FILE)


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULTS: Dict[str, Any] = {
    "base_url": DEFAULT_BASE_URL,
    "timeout": DEFAULT_TIMEOUT,
    "log_level": "WARNING",
}


# ---------------------------------------------------------------------------
# Read / Write
# ---------------------------------------------------------------------------

def load_config() -> Dict[str, Any]:
    """Load config from disk, returning defaults for missing keys."""
    path = _config_path()
    config = dict(DEFAULTS)

    if not os.path.isfile(path):
        return config

    try:
        with open(path, encoding="utf-8") as fh:
            user = json.load(fh)
    except (json.JSONDecodeError, OSError) as exc:
        LOGGER.warning("ignoring unreadable config %s: %s", path, exc)
        return config

    if isinstance(user, dict):
        config.update(user)
    return _normalise(config)


def _normalise(config: Dict[str, Any]) -> Dict[str, Any]:
    """Coerce hand-edited values; fall back to the default for anything unusable."""
    url = config.get("base_url")
    config["base_url"] = url.rstrip("/") if isinstance(url, str) and url else DEFAULTS["base_url"]

    try:
        config["timeout"] = float(config.get("timeout"))
    except (TypeError, ValueError):
        LOGGER.warning("invalid timeout %r in config, using %s", config.get("timeout"), DEFAULTS["timeout"])
        config["timeout"] = DEFAULTS["timeout"]

    if not isinstance(config.get("log_level"), str):
        config["log_level"] = DEFAULTS["log_level"]
    return config


def save_config(config: Dict[str, Any]) -> str:
    """Write *config* to disk.  Returns the file path."""
    path = _config_path()
    os.makedirs(os.path.dirname(path), exist_ok=True)

    with open(path, "w", encoding="utf-8") as fh:
        json.dump(config, fh, indent=2, ensure_ascii=False)

    return path


def get_config_value(key: str) -> Any:
    """Get a single config value."""
    return load_config().get(key, DEFAULTS.get(key))


def set_config_value(key: str, value: Any) -> str:
    """Set a single config value and persist.  Returns file path."""
    config = load_config()
    config[key] = value
    return save_config(config)


def config_path() -> str:
    """Return the config file path (for display purposes)."""
    return _config_path()
