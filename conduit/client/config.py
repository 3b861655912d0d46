from __future__ import annotations

import logging
import os
from typing import Any, Dict

from dotenv import load_dotenv

from conduit.protocol.errors import ConfigError

DEFAULT_CONFIG: Dict[str, Any] = {
    "origin": "ws://localhost:8080",
    "key": "hello world",
    "request_timeout": 30.0,
    "connect_timeout": 10.0,
    "log_level": "INFO",
}

CLIENT_CONFIG: Dict[str, Any] = DEFAULT_CONFIG.copy()


def load_config(env_path: str = ".env") -> Dict[str, Any]:
    """Load client configuration from env file/environment variables."""
    if os.path.exists(env_path):
        load_dotenv(env_path)

    for key, default_value in DEFAULT_CONFIG.items():
        env_key = f"CONDUIT_{key.upper()}"
        value = os.getenv(env_key, default_value)
        CLIENT_CONFIG[key] = _coerce_type(env_key, value, type(default_value))

    _validate_config()
    logging.getLogger().setLevel(CLIENT_CONFIG["log_level"])
    return CLIENT_CONFIG


def _coerce_type(env_key: str, value: Any, target_type: type) -> Any:
    if isinstance(value, target_type):
        return value
    try:
        return target_type(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{env_key} must be a {target_type.__name__}, got {value!r}") from exc


def _validate_config() -> None:
    if not str(CLIENT_CONFIG["origin"]).startswith(("ws://", "wss://")):
        raise ConfigError("origin must be a ws:// or wss:// URL")
    if CLIENT_CONFIG["request_timeout"] < 0:
        raise ConfigError("request_timeout must not be negative")
    if CLIENT_CONFIG["connect_timeout"] <= 0:
        raise ConfigError("connect_timeout must be positive")
    if str(CLIENT_CONFIG["log_level"]).upper() not in logging.getLevelNamesMapping():
        raise ConfigError(f"Unknown log_level {CLIENT_CONFIG['log_level']}")
    CLIENT_CONFIG["log_level"] = str(CLIENT_CONFIG["log_level"]).upper()


def get(key: str, default: Any = None) -> Any:
    return CLIENT_CONFIG.get(key, default)


__all__ = ["CLIENT_CONFIG", "DEFAULT_CONFIG", "ConfigError", "get", "load_config"]
