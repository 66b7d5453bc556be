"""Utility helpers for ccbot."""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

logger = logging.getLogger("ccbot.utils")

_truthy = {"1", "true", "yes", "on"}
_falsy = {"0", "false", "no", "off"}


def int_from_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid integer for %s=%s. Falling back to %s.", name, raw, default)
        return default


def float_from_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid float for %s=%s. Falling back to %s.", name, raw, default)
        return default


def bool_from_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    if lowered in _truthy:
        return True
    if lowered in _falsy:
        return False
    logger.warning("Invalid boolean for %s=%s. Falling back to %s.", name, raw, default)
    return default


def path_from_env(name: str) -> Optional[Path]:
    value = os.getenv(name, "").strip()
    if not value:
        return None
    return Path(value).expanduser()


def can_manage(member: object) -> bool:
    """Whether ``member`` may manage this guild's custom commands."""
    permissions = getattr(member, "guild_permissions", None)
    if permissions is None:
        return False
    return bool(getattr(permissions, "manage_guild", False) or getattr(permissions, "administrator", False))


def format_uptime(seconds: float) -> str:
    """Render a duration as ``Xd Yh Zm Ws``."""
    total = max(0, int(seconds))
    days, remainder = divmod(total, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{days}d {hours}h {minutes}m {secs}s"


def truncate(value: str, limit: int) -> str:
    if len(value) <= limit:
        return value
    return value[: limit - 3] + "..."


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


__all__ = [
    "bool_from_env",
    "can_manage",
    "float_from_env",
    "format_uptime",
    "int_from_env",
    "path_from_env",
    "truncate",
    "utc_now",
]
