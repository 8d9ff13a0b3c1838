from __future__ import annotations

import logging

import discord
from discord.ext import commands

from .config import Settings
from .database import initialize_database
from .error_handlers import setup_error_handlers
from .i18n import Localizer
from .services.house_roles_store import HouseRolesStore

log = logging.getLogger("guildkit.bot")


class GuildKitBot(commands.Bot):
    def __init__(self, settings: Settings) -> None:
        intents = discord.Intents.default()
        intents.members = True
        # houserole is a prefix command, so it needs message content
        intents.message_content = bool(settings.message_content_intent)
        intents.reactions = True

        log.info("INTENTS: guilds=%s members=%s message_content=%s", intents.guilds, intents.members, intents.message_content)

        super().__init__(
            command_prefix=commands.when_mentioned_or(settings.command_prefix),
            intents=intents,
            allowed_mentions=discord.AllowedMentions(everyone=False, roles=False, users=True),
        )

        self.log = log
        self.settings = settings
        if settings.owner_id:
            self.owner_id = settings.owner_id
        self.i18n = Localizer()
        self.house_roles_store = HouseRolesStore(settings.sqlite_path)

    async def setup_hook(self) -> None:
        stores = []
        if self.settings.house_roles_enabled:
            stores.append(self.house_roles_store)
        await initialize_database(self.settings.sqlite_path, stores)

        await setup_error_handlers(self)

        loaded: list[str] = []
        failed: list[str] = []

        # Cogs are loaded defensively so one misconfigured module cannot keep the others down.
        async def _load_cog(import_path: str, class_name: str) -> None:
            try:
                log.info("Loading cog: %s.%s", import_path, class_name)
                mod = __import__(import_path, fromlist=[class_name])
                cls = getattr(mod, class_name)
                await self.add_cog(cls(self))
                log.info("Loaded cog: %s.%s", import_path, class_name)
                loaded.append(f"{import_path}.{class_name}")
            except ModuleNotFoundError as e:
                log.error("Module not found for cog %s.%s: %s", import_path, class_name, e)
                failed.append(f"{import_path}.{class_name} (ModuleNotFoundError)")
            except AttributeError as e:
                log.error("Class %s not found in module %s: %s", class_name, import_path, e)
                failed.append(f"{import_path}.{class_name} (AttributeError)")
            except Exception as e:
                log.exception("Failed to load cog: %s.%s", import_path, class_name)
                failed.append(f"{import_path}.{class_name} ({type(e).__name__})")

        if self.settings.stars_control_enabled:
            await _load_cog("guildkit.cogs.stars_control", "StarsControlCog")
        if self.settings.stats_channels_enabled:
            await _load_cog("guildkit.cogs.stats_channels", "StatsChannelsCog")
        if self.settings.house_roles_enabled:
            if not self.intents.message_content:
                log.warning("HOUSE_ROLES_ENABLED but message_content intent is disabled; houserole will not see its command")
            await _load_cog("guildkit.cogs.house_roles", "HouseRolesCog")

        log.info("Startup cog load summary: loaded=%d failed=%d", len(loaded), len(failed))
        if loaded:
            log.info("Successfully loaded cogs: %s", ", ".join(loaded))
        for name in failed:
            log.warning("Startup cog failed: %s", name)

    async def on_ready(self) -> None:
        log.info("Logged in as %s (%s), %d guild(s)", self.user, getattr(self.user, "id", "?"), len(self.guilds))
