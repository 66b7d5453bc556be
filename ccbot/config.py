"""Runtime settings from the environment and an optional YAML file."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .engine import DEFAULT_MAX_STEPS
from .utils import bool_from_env, float_from_env, int_from_env, path_from_env

logger = logging.getLogger("ccbot.config")

DEFAULT_PREFIX = "!"
DEFAULT_STORE_FILE = "custom_commands.json"
DEFAULT_WEBREQUEST_TIMEOUT = 10.0


@dataclass
class Settings:
    token: Optional[str]
    prefix: str = DEFAULT_PREFIX
    store_file: Path = Path(DEFAULT_STORE_FILE)
    max_steps: int = DEFAULT_MAX_STEPS
    webrequest_timeout: float = DEFAULT_WEBREQUEST_TIMEOUT
    webrequests_enabled: bool = True
    log_level: str = "INFO"


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file %s does not exist; using environment only.", path)
        return {}
    try:
        payload = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        logger.warning("Failed to parse config file %s: %s", path, exc)
        return {}
    if not isinstance(payload, dict):
        logger.warning("Config file %s must contain a mapping; ignoring it.", path)
        return {}
    return payload


def _file_value(payload: Dict[str, Any], key: str, cast, default):
    if key not in payload or payload[key] is None:
        return default
    try:
        return cast(payload[key])
    except (TypeError, ValueError):
        logger.warning("Invalid value for %s=%r in config file. Falling back to %s.", key, payload[key], default)
        return default


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ValueError(value)


def load_settings(*, require_token: bool = True) -> Settings:
    """Build :class:`Settings`; environment variables win over the YAML file."""
    token = os.getenv("DISCORD_TOKEN")
    if require_token and not token:
        raise RuntimeError("Missing DISCORD_TOKEN. Set it in your environment or .env file.")

    config_path = path_from_env("CCBOT_CONFIG_FILE")
    payload = _load_yaml(config_path) if config_path else {}

    prefix = _file_value(payload, "prefix", str, DEFAULT_PREFIX)
    store_file = _file_value(payload, "store_file", lambda raw: Path(str(raw)).expanduser(), Path(DEFAULT_STORE_FILE))
    max_steps = _file_value(payload, "max_steps", int, DEFAULT_MAX_STEPS)
    timeout = _file_value(payload, "webrequest_timeout", float, DEFAULT_WEBREQUEST_TIMEOUT)
    webrequests_enabled = _file_value(payload, "webrequests_enabled", _as_bool, True)

    settings = Settings(
        token=token,
        prefix=os.getenv("CCBOT_PREFIX", "").strip() or prefix,
        store_file=path_from_env("CCBOT_STORE_FILE") or store_file,
        max_steps=max(1, int_from_env("CCBOT_MAX_STEPS", max_steps)),
        webrequest_timeout=max(0.1, float_from_env("CCBOT_WEBREQUEST_TIMEOUT", timeout)),
        webrequests_enabled=bool_from_env("CCBOT_WEBREQUESTS_ENABLED", webrequests_enabled),
        log_level=os.getenv("CCBOT_LOG_LEVEL", "INFO"),
    )
    logger.debug(
        "Settings loaded: prefix=%s store=%s max_steps=%s timeout=%s webrequests=%s",
        settings.prefix,
        settings.store_file,
        settings.max_steps,
        settings.webrequest_timeout,
        settings.webrequests_enabled,
    )
    return settings


__all__ = ["DEFAULT_PREFIX", "Settings", "load_settings"]
