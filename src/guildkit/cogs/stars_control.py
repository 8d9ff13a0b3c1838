from __future__ import annotations

from typing import Any, Optional

import discord
from discord.ext import commands

from ..base_cog import BaseCog
from ..errors import NotificationDeliveryError, PatternCompileError
from ..module_config import require_module_config
from ..services.api_wrapper import safe_remove_reaction
from ..starring.config_schema import CONFIG_NAME, example_config, parse_settings
from ..starring.models import AddedReaction, GateDetail, StarsControlSettings
from ..starring.rule_engine import STEP_FILTER, STEP_SELF_STAR, STEP_USER_BLOCK, ReactionGate
from ..utils import format_user, warning_embed

STRINGS = {
    "en-US": {
        "STAR_BLOCKED_TITLE": "Star removed",
        f"STAR_BLOCKED@{STEP_USER_BLOCK}": "You are not allowed to star messages on this server.",
        f"STAR_BLOCKED@{STEP_FILTER}": "This message cannot be starred.",
        f"STAR_BLOCKED@{STEP_SELF_STAR}": "You cannot star your own messages.",
        "STAR_BLOCKED_REASON": "Reason: {reason}",
    },
}


class StarsControlCog(BaseCog):
    """Retracts star reactions that the configured rules disqualify."""

    strings = STRINGS

    def __init__(self, bot: Any, settings: Optional[StarsControlSettings] = None) -> None:
        super().__init__(bot)
        self.settings = settings
        self.gate: Optional[ReactionGate] = None

    async def cog_load(self) -> None:
        if self.settings is None:
            doc = require_module_config(self.bot.settings.config_dir, CONFIG_NAME, example_config())
            self.settings = parse_settings(doc)

        self.gate = ReactionGate(self.settings)
        self.log.info(
            "Star gating for guild %s with steps: %s",
            self.settings.guild_id,
            ", ".join(self.gate.step_names) or "(none)",
        )
        await super().cog_load()

    @commands.Cog.listener()
    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent) -> None:
        settings = self.settings
        if settings is None or payload.guild_id != settings.guild_id:
            return
        if payload.emoji.name != settings.star_emoji:
            return

        try:
            to_check = await self._resolve_reaction(payload)
        except discord.HTTPException as e:
            self.log.warning("Cannot resolve star on message %s: %s", payload.message_id, e)
            return

        if to_check is None:
            return

        await self.handle_reaction(to_check)

    async def _resolve_reaction(self, payload: discord.RawReactionActionEvent) -> Optional[AddedReaction]:
        guild = self.bot.get_guild(payload.guild_id)
        if guild is None:
            return None

        channel = guild.get_channel_or_thread(payload.channel_id)
        if channel is None:
            channel = await self.bot.fetch_channel(payload.channel_id)
        message = await channel.fetch_message(payload.message_id)

        user = payload.member or guild.get_member(payload.user_id)
        if user is None:
            user = await self.bot.fetch_user(payload.user_id)

        return AddedReaction(message=message, emoji=payload.emoji, user=user)

    async def handle_reaction(self, to_check: AddedReaction) -> bool:
        """Run the gate on one reaction; True when it got retracted."""
        gate = self.gate
        if gate is None:
            self.log.warning("Star disqualification process is not compiled!")
            return False

        message, user = to_check.message, to_check.user

        try:
            result = await gate.evaluate(to_check)
        except PatternCompileError as e:
            self.log.error(
                "Star gating of message %s by %s failed, accepting the star: %s",
                message.id, format_user(user), e, exc_info=e,
            )
            return False
        except Exception:
            self.log.exception(
                "Star gating of message %s by %s failed, accepting the star",
                message.id, format_user(user),
            )
            return False

        if result is None:
            self.log.debug("Star by %s on message %s accepted", format_user(user), message.id)
            return False

        step, detail = result
        self.log.info(
            "Disallow reaction by %s on message %s because: %s (%s)",
            format_user(user), message.id, step, detail,
        )

        await self._remove_reaction(to_check)

        try:
            await self._send_warning(to_check, step, detail)
        except NotificationDeliveryError as e:
            self.log.warning("Cannot send warning (%s) to %s: %s", step, format_user(user), e)

        return True

    # ---- censure -------------------------------------------------------

    async def _remove_reaction(self, to_check: AddedReaction) -> None:
        self.log.info(
            "Remove reaction of %s by %s on message %s",
            to_check.emoji, format_user(to_check.user), to_check.message.id,
        )
        res = await safe_remove_reaction(to_check.message, to_check.emoji, to_check.user)
        if not res.success:
            self.log.warning(
                "Failed to remove reaction by %s on message %s: %s",
                format_user(to_check.user), to_check.message.id, res.error,
            )

    def build_warning(self, step: str, detail: GateDetail, guild: Any = None) -> discord.Embed:
        text = self.localize(f"STAR_BLOCKED@{step}", guild)
        if isinstance(detail, str):
            text += "\n\n" + self.localize("STAR_BLOCKED_REASON", guild, reason=detail)

        embed = warning_embed(text, title=self.localize("STAR_BLOCKED_TITLE", guild))
        embed.set_footer(text=step)
        return embed

    async def _send_warning(self, to_check: AddedReaction, step: str, detail: GateDetail) -> None:
        embed = self.build_warning(step, detail, getattr(to_check.message, "guild", None))
        try:
            await to_check.user.send(embed=embed)
        except discord.HTTPException as e:
            raise NotificationDeliveryError(str(e)) from e
