from __future__ import annotations

import os
from dataclasses import dataclass

from .constants import DEFAULT_API_BASE


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "y", "on"}


def _get_str(name: str, default: str) -> str:
    return os.getenv(name, default).strip() or default


@dataclass(frozen=True)
class Settings:
    token: str
    owner_id: int
    sqlite_path: str
    config_dir: str
    log_level: str
    api_base: str
    # The houserole prefix command needs the message content intent enabled
    # in the Discord Developer Portal.
    message_content_intent: bool = True

    # Feature toggles
    stars_control_enabled: bool = True
    stats_channels_enabled: bool = True
    house_roles_enabled: bool = True

    command_prefix: str = "!"


def load_settings() -> Settings:
    token = os.getenv("DISCORD_TOKEN", "").strip()
    if not token:
        raise RuntimeError("DISCORD_TOKEN is required")
    return Settings(
        token=token,
        # Default to 0 to avoid accidentally granting owner powers to a random ID
        owner_id=_get_int("OWNER_ID", 0),
        sqlite_path=_get_str("SQLITE_PATH", "guildkit.sqlite3"),
        config_dir=_get_str("CONFIG_DIR", "config"),
        log_level=_get_str("LOG_LEVEL", "INFO"),
        api_base=_get_str("DISCORD_API_BASE", DEFAULT_API_BASE).rstrip("/"),
        message_content_intent=_get_bool("MESSAGE_CONTENT_INTENT", True),
        stars_control_enabled=_get_bool("STARS_CONTROL_ENABLED", True),
        stats_channels_enabled=_get_bool("STATS_CHANNELS_ENABLED", True),
        house_roles_enabled=_get_bool("HOUSE_ROLES_ENABLED", True),
        command_prefix=_get_str("COMMAND_PREFIX", "!"),
    )
