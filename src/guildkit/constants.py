from __future__ import annotations

from typing import Final

# Discord limits
MAX_MESSAGE_LENGTH: Final[int] = 4000
MAX_EMBED_DESCRIPTION: Final[int] = 4096
MAX_EMBED_TITLE: Final[int] = 256
MAX_CHANNEL_NAME: Final[int] = 100

# Colors (hex values)
COLORS = {
    "default": 0x5865F2,
    "success": 0x57F287,
    "warning": 0xF1C40F,
    "error": 0xED4245,
    "info": 0x3498DB,
}

DEFAULT_LOCALE: Final[str] = "en-US"
DEFAULT_API_BASE: Final[str] = "https://discord.com/api/v10"

# Star gating
STAR_REACTION: Final[str] = "⭐"
DAY_IN_MINUTES: Final[int] = 1440

# Stats channels
ONE_MINUTE_SECONDS: Final[int] = 60

# Error messages
ERROR_MESSAGES = {
    "missing_permissions": "You don't have permission to use this command.",
    "invalid_user": "User not found.",
    "unexpected": "Something went wrong running that command.",
}
