"""
Shared configuration loader for mpris-controller.

Loads a single JSON config file.  Search order:
  1. /etc/mpris-controller/config.json   (system install)
  2. config.json                         (CWD — handy for local dev)
  3. ../../config/default.json           (repo fallback)

The MPRIS_CONTROLLER_CONFIG environment variable, when set, is tried first.

Usage:
    from mpris_controller.lib.config import cfg

    bus_type     = cfg("bus", "type", default="session")
    call_timeout = cfg("bus", "call_timeout", default=5.0)
    port         = cfg("monitor", "port", default=8780)
    monitor      = cfg("monitor")  # returns the whole dict
"""

import json
import logging
import os

logger = logging.getLogger(__name__)

_config: dict | None = None

_SEARCH_PATHS = [
    "/etc/mpris-controller/config.json",
    "config.json",
    os.path.join(os.path.dirname(__file__), "..", "..", "config", "default.json"),
]


def _search_paths() -> list:
    env_path = os.environ.get("MPRIS_CONTROLLER_CONFIG")
    return ([env_path] if env_path else []) + _SEARCH_PATHS


def _positive(section: dict, key: str) -> bool:
    value = section.get(key)
    if value is None:
        return True
    try:
        return float(value) > 0
    except (TypeError, ValueError):
        return False


def _validate(config: dict, path: str) -> None:
    """Warn about missing or suspicious config values."""
    bus = config.get("bus") or {}
    bus_type = str(bus.get("type", "session")).lower()
    if bus_type not in ("session", "system"):
        logger.warning("Config %s: unknown bus.type '%s'", path, bus_type)
    if not _positive(bus, "call_timeout"):
        logger.warning("Config %s: bus.call_timeout must be a positive number of seconds", path)
    monitor = config.get("monitor") or {}
    for key in ("poll_interval", "watchdog_interval"):
        if not _positive(monitor, key):
            logger.warning("Config %s: monitor.%s must be a positive number of seconds", path, key)
    port = monitor.get("port")
    if port is not None and not (isinstance(port, int) and 0 < port < 65536):
        logger.warning("Config %s: monitor.port '%s' is not a valid TCP port", path, port)


def load_config() -> dict:
    """Load config from the first JSON file found. Cached after first call."""
    global _config
    if _config is not None:
        return _config

    for path in _search_paths():
        try:
            with open(path) as f:
                _config = json.load(f)
                logger.info("Config loaded from %s", path)
                _validate(_config, path)
                return _config
        except FileNotFoundError:
            continue
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in %s: %s", path, e)
            continue

    logger.warning("No config.json found — using empty config")
    _config = {}
    return _config


def cfg(section: str, key: str | None = None, *, default=None):
    """Read a config value.

    cfg("monitor")                    → config["monitor"]
    cfg("bus", "type")                → config["bus"]["type"]
    cfg("monitor", "port", default=8780) → config["monitor"]["port"] or 8780
    """
    config = load_config()
    val = config.get(section)
    if key is None:
        return val if val is not None else default
    if isinstance(val, dict):
        return val.get(key, default)
    return default


def reload_config():
    """Force re-read from disk (for testing or hot-reload)."""
    global _config
    _config = None
    return load_config()
