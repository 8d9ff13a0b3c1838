from __future__ import annotations

import logging
from typing import Any

import discord
from discord.ext import commands

from .constants import COLORS, MAX_EMBED_DESCRIPTION, MAX_EMBED_TITLE, MAX_MESSAGE_LENGTH

log = logging.getLogger("guildkit.utils")


def safe_embed(title: str, description: str, color: int = COLORS["default"]) -> discord.Embed:
    """Create an embed with safe length limits."""
    if len(title) > MAX_EMBED_TITLE:
        title = title[:MAX_EMBED_TITLE - 3] + "…"
    if len(description) > MAX_EMBED_DESCRIPTION:
        description = description[:MAX_EMBED_DESCRIPTION - 3] + "…"

    return discord.Embed(title=title, description=description, color=color)


def error_embed(message: str, title: str = "Error") -> discord.Embed:
    return safe_embed(title, message, COLORS["error"])


def success_embed(message: str, title: str = "Success") -> discord.Embed:
    return safe_embed(title, message, COLORS["success"])


def info_embed(message: str, title: str = "Information") -> discord.Embed:
    return safe_embed(title, message, COLORS["info"])


def warning_embed(message: str, title: str = "Warning") -> discord.Embed:
    return safe_embed(title, message, COLORS["warning"])


async def safe_response(
    target: commands.Context | discord.abc.Messageable,
    content: str | None = None,
    embed: discord.Embed | None = None,
    **kwargs: Any,
) -> bool:
    """Reply to a command context (or send to a channel) without raising."""
    try:
        if isinstance(target, commands.Context):
            await target.reply(content=content, embed=embed, **kwargs)
        else:
            await target.send(content=content, embed=embed, **kwargs)
        return True
    except discord.HTTPException as e:
        log.error("Failed to send response: %s", e)
        return False


def truncate_text(text: str, max_length: int = MAX_MESSAGE_LENGTH) -> str:
    """Truncate text to maximum length with ellipsis."""
    if len(text) <= max_length:
        return text
    return text[:max_length - 1] + "…"


def format_user(user: Any) -> str:
    """Name and id for log lines."""
    return f"{getattr(user, 'name', '?')} ({getattr(user, 'id', '?')})"
