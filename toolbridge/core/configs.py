"""Configuration management for toolbridge.

Loads user settings from ~/.config/toolbridge/config.cfg, falling back to a
.env file in the working directory. Provides ClientConfig (worker command,
timeouts, cache settings).
"""

import configparser
import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import dotenv_values

from toolbridge import __version__
from toolbridge.core.result_cache import DEFAULT_TTL

CONFIG_PATH = Path.home() / ".config" / "toolbridge" / "config.cfg"
ENV_PATH = Path(".env")

DEFAULT_SESSION_TIMEOUT = 30.0


@dataclass
class ClientConfig:
    server_command: List[str] = field(default_factory=list)
    session_timeout: float = DEFAULT_SESSION_TIMEOUT
    call_timeout: Optional[float] = None
    client_name: str = "toolbridge"
    client_version: str = __version__
    cache_enabled: bool = False
    cache_ttl: float = DEFAULT_TTL
    env: Dict[str, str] = field(default_factory=dict)


def load_raw_config(path: Path = CONFIG_PATH, env_path: Path = ENV_PATH) -> Dict[str, str]:
    """
    Load configuration values from the standard config path.

    If the config file does not exist, values are read from ``env_path``
    instead. Keys are returned lowercase.
    """
    data: Dict[str, str] = {}

    if path.exists():
        cfg = configparser.ConfigParser()
        cfg.read(path)
        if "DEFAULT" in cfg:
            data.update({k.lower(): v for k, v in cfg["DEFAULT"].items()})
    elif env_path.exists():
        values = dotenv_values(env_path)
        data.update({k.lower(): v for k, v in values.items() if v is not None})

    return data


def _get_bool(raw: Dict[str, str], key: str, default: bool = False) -> bool:
    value = raw.get(key)
    if isinstance(value, bool):
        return value
    if value is None or str(value).strip() == "":
        return default
    return str(value).strip().lower() in {"1", "true", "yes", "y", "on"}


def _get_seconds(raw: Dict[str, str], key: str, env_name: str, default: Optional[float]) -> Optional[float]:
    value = os.environ.get(env_name)
    if value is None or str(value).strip() == "":
        value = raw.get(key)
    if value is None or str(value).strip() == "":
        return default
    try:
        seconds = float(value)
    except ValueError:
        raise ValueError(f"Invalid value for '{key}': {value!r} is not a number")
    if seconds <= 0:
        raise ValueError(f"Invalid value for '{key}': must be positive, got {seconds}")
    return seconds


def get_client_config(raw: Optional[Dict[str, str]] = None) -> ClientConfig:
    """
    Build a ClientConfig from raw configuration values.

    Environment overrides:
        TOOLBRIDGE_SERVER: worker command line
        TOOLBRIDGE_SESSION_TIMEOUT_S: whole-session lifetime in seconds
        TOOLBRIDGE_CALL_TIMEOUT_S: per-call timeout in seconds

    Raises ValueError on malformed values.
    """
    raw = raw if raw is not None else load_raw_config()

    server = os.environ.get("TOOLBRIDGE_SERVER") or raw.get("server_command", "")

    return ClientConfig(
        server_command=shlex.split(server) if server else [],
        session_timeout=_get_seconds(
            raw, "session_timeout", "TOOLBRIDGE_SESSION_TIMEOUT_S", DEFAULT_SESSION_TIMEOUT
        ),
        call_timeout=_get_seconds(raw, "call_timeout", "TOOLBRIDGE_CALL_TIMEOUT_S", None),
        client_name=raw.get("client_name", "").strip() or "toolbridge",
        client_version=raw.get("client_version", "").strip() or __version__,
        cache_enabled=_get_bool(raw, "cache_enabled", False),
        cache_ttl=_get_seconds(raw, "cache_ttl", "TOOLBRIDGE_CACHE_TTL_S", DEFAULT_TTL),
    )
