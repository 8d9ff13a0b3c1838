from __future__ import annotations

import logging
from typing import Any, Callable, ClassVar, Optional

import discord
from discord.ext import commands

from .i18n import Catalog
from .utils import error_embed, info_embed, success_embed, warning_embed


class BaseCog(commands.Cog):
    """Base class for feature cogs.

    Registers the cog's string catalog with the bot's localizer on load and
    removes it again on unload.
    """

    strings: ClassVar[Optional[Catalog]] = None

    def __init__(self, bot: Any) -> None:
        self.bot = bot
        self.log = logging.getLogger(f"guildkit.cog.{self.qualified_snake_name()}")
        self._i18n_unhandle: Optional[Callable[[], None]] = None

    @classmethod
    def qualified_snake_name(cls) -> str:
        name = cls.__name__
        if name.endswith("Cog"):
            name = name[:-3]
        return "".join(f"_{c.lower()}" if c.isupper() else c for c in name).lstrip("_")

    async def cog_load(self) -> None:
        if self.strings is not None and self._i18n_unhandle is None:
            self._i18n_unhandle = self.bot.i18n.extend(self.strings)
        self.log.info("Loaded %s", self.__class__.__name__)

    async def cog_unload(self) -> None:
        if self._i18n_unhandle is not None:
            self._i18n_unhandle()
            self._i18n_unhandle = None
        self.log.info("Unloaded %s", self.__class__.__name__)

    def localize(self, key: str, guild: Any = None, **params: Any) -> str:
        i18n = self.bot.i18n
        return i18n.localize(key, i18n.for_guild(guild), **params)

    def error_embed(self, message: str) -> discord.Embed:
        return error_embed(message)

    def success_embed(self, message: str) -> discord.Embed:
        return success_embed(message)

    def info_embed(self, message: str) -> discord.Embed:
        return info_embed(message)

    def warning_embed(self, message: str) -> discord.Embed:
        return warning_embed(message)
