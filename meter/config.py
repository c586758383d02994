"""
User configuration file support.

Reads/writes ``~/.netbar/config.json``.  Missing keys fall back to
``DEFAULTS``; a missing or corrupt file yields the defaults unchanged.

Supported keys::

    probe_host = "1.1.1.1"     # latency probe target
    probe_port = 443
    probe_timeout = 2.0
    sample_interval = 1.0      # seconds between throughput readings
    probe_interval = 2.0       # seconds between latency probes
    download_urls = [...]      # speed-test candidates, tried in order
    upload_url = "..."
    request_timeout = 15.0
    log_level = "WARNING"
    log_file = ""              # empty: console only
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

from .constants import (
    DOWNLOAD_URLS,
    PROBE_HOST,
    PROBE_INTERVAL,
    PROBE_PORT,
    PROBE_TIMEOUT,
    REQUEST_TIMEOUT,
    SAMPLE_INTERVAL,
    UPLOAD_URL,
)

LOGGER = logging.getLogger(__name__)

_CONFIG_DIR = os.path.join(Path.home(), ".netbar")
_CONFIG_FILE = "config.json"


def _config_path() -> str:
    return os.path.join(_CONFIG_DIR, _CONFIG_FILE)


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULTS: Dict[str, Any] = {
    "probe_host": PROBE_HOST,
    "probe_port": PROBE_PORT,
    "probe_timeout": PROBE_TIMEOUT,
    "sample_interval": SAMPLE_INTERVAL,
    "probe_interval": PROBE_INTERVAL,
    "download_urls": list(DOWNLOAD_URLS),
    "upload_url": UPLOAD_URL,
    "request_timeout": REQUEST_TIMEOUT,
    "log_level": "WARNING",
    "log_file": "",
}


# ---------------------------------------------------------------------------
# Read / Write
# ---------------------------------------------------------------------------

def load_config() -> Dict[str, Any]:
    """Load config from disk, returning defaults for missing keys."""
    path = _config_path()
    config = dict(DEFAULTS)
    config["download_urls"] = list(DEFAULTS["download_urls"])

    if not os.path.isfile(path):
        return config

    try:
        with open(path, encoding="utf-8") as fh:
            user = json.load(fh)
    except (json.JSONDecodeError, OSError) as exc:
        LOGGER.warning("Ignoring unreadable config %s: %s", path, exc)
        return config

    if isinstance(user, dict):
        config.update({k: v for k, v in user.items() if k in DEFAULTS})
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
