# Area: Shared
"""
duet_room.config — Client configuration
=======================================

Configuration is a plain dict. Sources, lowest precedence first:

1. DEFAULTS below
2. An optional JSON config file
3. Environment variables (a ``.env`` file in the working directory is
   loaded first and never overrides variables already set)
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import find_dotenv, load_dotenv

logger = logging.getLogger("duet_room.config")

DEFAULTS: Dict[str, Any] = {
    "reconnect_delay_seconds": 3.0,
    "presence_settle_seconds": 0.1,
    "send_retry_seconds": 0.5,
    "open_timeout_seconds": 10.0,
    "storage_refresh_seconds": 1.0,
    "storage_path": ".duet_room_storage.json",
    "snapshot_dir": "rooms",
    "log_file": "duet_room.log",
    "log_level": "INFO",
}

ENV_MAPPINGS = {
    "ROOM_WS_GATEWAY_URL": "ws_gateway_url",
    "ROOM_RECONNECT_DELAY_SECONDS": "reconnect_delay_seconds",
    "ROOM_PRESENCE_SETTLE_SECONDS": "presence_settle_seconds",
    "ROOM_SEND_RETRY_SECONDS": "send_retry_seconds",
    "ROOM_OPEN_TIMEOUT_SECONDS": "open_timeout_seconds",
    "ROOM_STORAGE_REFRESH_SECONDS": "storage_refresh_seconds",
    "ROOM_STORAGE_PATH": "storage_path",
    "ROOM_SNAPSHOT_DIR": "snapshot_dir",
    "ROOM_LOG_FILE": "log_file",
    "ROOM_LOG_LEVEL": "log_level",
}

# Keys parsed as float seconds
TIMING_KEYS = (
    "reconnect_delay_seconds",
    "presence_settle_seconds",
    "send_retry_seconds",
    "open_timeout_seconds",
    "storage_refresh_seconds",
)

REQUIRED_CONFIG_KEYS = [
    "ws_gateway_url",
]


def load_config(config_path: Optional[str] = None, use_dotenv: bool = True) -> Dict[str, Any]:
    """
    Load config from defaults, an optional JSON file and the environment.

    Raises:
        ValueError: If a timing variable is not a number
    """
    if use_dotenv:
        load_dotenv(find_dotenv(usecwd=True))

    config: Dict[str, Any] = dict(DEFAULTS)

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path, encoding="utf-8") as f:
                config.update(json.load(f))
        else:
            logger.warning(f"Config file not found: {config_path}")

    # Override with environment variables
    for env_key, config_key in ENV_MAPPINGS.items():
        if env_key in os.environ:
            value: Any = os.environ[env_key]
            if config_key in TIMING_KEYS:
                try:
                    value = float(value)
                except ValueError:
                    raise ValueError(f"{env_key} must be a number, got {value!r}") from None
            config[config_key] = value

    return config


def validate_config(config: Dict[str, Any]) -> None:
    """
    Validate required keys and timings.

    Args:
        config: Configuration dict

    Raises:
        ValueError: If required keys are missing or a timing is not positive
    """
    missing = [k for k in REQUIRED_CONFIG_KEYS if not config.get(k)]
    if missing:
        raise ValueError(f"Missing required config keys: {missing}")

    bad = []
    for key in TIMING_KEYS:
        value = config.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            bad.append(key)
    if bad:
        raise ValueError(f"Timings must be positive numbers: {bad}")
