from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import discord
from discord.ext import commands

from ..base_cog import BaseCog
from ..constants import MAX_CHANNEL_NAME, ONE_MINUTE_SECONDS
from ..errors import ConfigurationError
from ..module_config import ValidationIssue, parse_snowflake, raise_for_issues, require_module_config
from ..services.api_wrapper import safe_rename_channel
from ..utils import truncate_text

CONFIG_NAME = "stats_channels"
CHANNEL_TYPES = ("members", "time")
DEFAULT_TIME_FORMAT = "%d.%m.%Y %H:%M"

STRINGS = {
    "en-US": {
        "STATCHANNEL_FORMAT_MEMBERS": "Members: {members}",
        "STATCHANNEL_AUDITLOG": "Statistics channel update",
    },
}


@dataclass
class StatsChannelsSettings:
    guild_id: int
    channels: dict[str, int] = field(default_factory=dict)
    timezone: str = "UTC"
    time_format: str = DEFAULT_TIME_FORMAT


def example_config() -> dict[str, Any]:
    return {
        "guildId": "SERVER ID",
        "channels": {"members": "LOCKED VOICE CHAT ID"},
    }


def parse_settings(doc: dict[str, Any]) -> StatsChannelsSettings:
    issues: list[ValidationIssue] = []

    guild_id = parse_snowflake(doc.get("guildId"))
    if guild_id is None:
        issues.append(ValidationIssue(path="$.guildId", message="Guild ID must be provided in the config"))

    raw_channels = doc.get("channels")
    channels: dict[str, int] = {}
    if not isinstance(raw_channels, dict):
        issues.append(ValidationIssue(path="$.channels", message="Channel configuration must be provided in the config"))
    else:
        for key in sorted(set(raw_channels) - set(CHANNEL_TYPES)):
            issues.append(ValidationIssue(path=f"$.channels.{key}", message="unknown channel type"))
        for kind in CHANNEL_TYPES:
            if raw_channels.get(kind) is None:
                continue
            channel_id = parse_snowflake(raw_channels[kind])
            if channel_id is None:
                issues.append(ValidationIssue(path=f"$.channels.{kind}", message="must be a channel id"))
            else:
                channels[kind] = channel_id
        if not channels:
            issues.append(ValidationIssue(path="$.channels", message="Channel configuration must not be empty"))

    tz = doc.get("timezone", "UTC")
    try:
        ZoneInfo(str(tz))
    except (ZoneInfoNotFoundError, ValueError):
        issues.append(ValidationIssue(path="$.timezone", message=f"unknown time zone {tz!r}"))

    time_format = doc.get("timeFormat", DEFAULT_TIME_FORMAT)
    if not isinstance(time_format, str) or not time_format:
        issues.append(ValidationIssue(path="$.timeFormat", message="timeFormat must be a non-empty string"))

    raise_for_issues(CONFIG_NAME, issues)
    return StatsChannelsSettings(
        guild_id=guild_id or 0,
        channels=channels,
        timezone=str(tz),
        time_format=time_format,
    )


def seconds_until_next_minute(now: Optional[datetime] = None) -> float:
    now = now or datetime.now(timezone.utc)
    return ONE_MINUTE_SECONDS - (now.second + now.microsecond / 1_000_000)


class StatsChannelsCog(BaseCog):
    """Keeps locked voice channel names showing server statistics."""

    strings = STRINGS

    def __init__(self, bot: Any, settings: Optional[StatsChannelsSettings] = None) -> None:
        super().__init__(bot)
        self.settings = settings
        self.guild: Optional[Any] = None
        self.resolved: dict[str, Any] = {}
        self._task: Optional[asyncio.Task] = None

    async def cog_load(self) -> None:
        if self.settings is None:
            doc = require_module_config(self.bot.settings.config_dir, CONFIG_NAME, example_config())
            self.settings = parse_settings(doc)
        await super().cog_load()

    async def cog_unload(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        await super().cog_unload()

    @commands.Cog.listener()
    async def on_ready(self) -> None:
        if self._task is not None or self.settings is None:
            return

        guild = self.bot.get_guild(self.settings.guild_id)
        if guild is None:
            self.log.error("Cannot find guild %s, statistics channels disabled", self.settings.guild_id)
            return

        try:
            self.resolved = self.resolve_channels(guild)
        except ConfigurationError as e:
            self.log.error("Statistics channels disabled: %s", e)
            return

        self.guild = guild
        self._task = asyncio.create_task(self._runner(), name="guildkit-stats-channels")
        self.log.info("Statistics channels runner started")

    def resolve_channels(self, guild: Any) -> dict[str, Any]:
        assert self.settings is not None
        resolved: dict[str, Any] = {}
        taken: dict[int, str] = {}

        for kind in CHANNEL_TYPES:
            channel_id = self.settings.channels.get(kind)
            if channel_id is None:
                continue

            if channel_id in taken:
                raise ConfigurationError(f'Channel "{channel_id}" has already taken the {taken[channel_id]} role')

            channel = guild.get_channel(channel_id)
            if channel is None:
                raise ConfigurationError(f'Channel "{channel_id}" doesn\'t exist')
            if getattr(channel, "type", None) != discord.ChannelType.voice:
                raise ConfigurationError(f'Channel "{channel_id}" ({kind}) must be voice channel')

            permissions = channel.permissions_for(guild.me)
            if not permissions.manage_channels:
                self.log.warning(
                    'Bot will not be able to manage channel "%s". Please check permissions!', channel_id
                )

            resolved[kind] = channel
            taken[channel_id] = kind

        return resolved

    async def _runner(self) -> None:
        # Sleeping to the next boundary every time keeps updates on the minute
        while not self.bot.is_closed():
            await asyncio.sleep(seconds_until_next_minute())
            try:
                await self.update_channels()
            except asyncio.CancelledError:
                raise
            except Exception:
                self.log.exception("Statistics channels update failed")

    async def update_channels(self, now: Optional[datetime] = None) -> None:
        guild = self.guild
        if guild is None:
            return

        if getattr(guild, "unavailable", False):
            self.log.warning('Guild "%s" is unavailable', guild.id)
            return

        for kind, channel in list(self.resolved.items()):
            if guild.get_channel(channel.id) is None:
                del self.resolved[kind]
                self.log.warning('Resolved channel with ID "%s" for "%s" is deleted.', channel.id, kind)
                continue

            await self._update_channel_name(channel, self.render_name(kind, guild, now))

    def render_name(self, kind: str, guild: Any, now: Optional[datetime] = None) -> str:
        assert self.settings is not None
        if kind == "members":
            return self.localize("STATCHANNEL_FORMAT_MEMBERS", guild, members=guild.member_count)

        now = now or datetime.now(timezone.utc)
        return now.astimezone(ZoneInfo(self.settings.timezone)).strftime(self.settings.time_format)

    async def _update_channel_name(self, channel: Any, name: str) -> None:
        name = truncate_text(name, MAX_CHANNEL_NAME)
        if channel.name == name:
            return

        res = await safe_rename_channel(channel, name, reason=self.localize("STATCHANNEL_AUDITLOG", channel.guild))
        if not res.success:
            self.log.warning("Failed to rename channel %s: %s", channel.id, res.error)

