from __future__ import annotations

import os
from typing import Any, Dict

from dotenv import load_dotenv

from conduit.protocol.errors import ConfigError

DEFAULT_SERVER_CONFIG: Dict[str, Any] = {
    "host": "127.0.0.1",
    "port": 8080,
    "key": "hello world",
    "log_level": "INFO",
}

SERVER_CONFIG = DEFAULT_SERVER_CONFIG.copy()


def load_server_config(env_path: str = ".env") -> Dict[str, Any]:
    if os.path.exists(env_path):
        load_dotenv(env_path)
    SERVER_CONFIG["host"] = os.getenv("CONDUIT_SERVER_HOST", SERVER_CONFIG["host"])
    try:
        SERVER_CONFIG["port"] = int(os.getenv("CONDUIT_SERVER_PORT", SERVER_CONFIG["port"]))
    except ValueError as exc:
        raise ConfigError(f"CONDUIT_SERVER_PORT must be an integer: {exc}") from exc
    SERVER_CONFIG["key"] = os.getenv("CONDUIT_SERVER_KEY", SERVER_CONFIG["key"])
    SERVER_CONFIG["log_level"] = os.getenv("CONDUIT_SERVER_LOG_LEVEL", SERVER_CONFIG["log_level"]).upper()
    if not (0 <= SERVER_CONFIG["port"] <= 65535):
        raise ConfigError("port must be between 0 and 65535")
    if not SERVER_CONFIG["key"]:
        raise ConfigError("key must not be empty")
    return SERVER_CONFIG


__all__ = ["SERVER_CONFIG", "load_server_config"]
