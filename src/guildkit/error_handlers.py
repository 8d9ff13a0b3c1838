from __future__ import annotations

import logging

from discord.ext import commands

from .constants import ERROR_MESSAGES
from .utils import error_embed, safe_response

log = logging.getLogger("guildkit.error_handlers")


class ErrorHandler(commands.Cog):
    """Centralized prefix command error handling."""

    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot

    @commands.Cog.listener()
    async def on_command_error(self, ctx: commands.Context, error: commands.CommandError) -> None:
        if isinstance(error, commands.CommandNotFound):
            return

        # cog_check rejections (wrong guild) are silent
        if isinstance(error, commands.CheckFailure) and not isinstance(
            error, (commands.MissingPermissions, commands.BotMissingPermissions)
        ):
            return

        if isinstance(error, commands.MissingPermissions):
            await safe_response(ctx, embed=error_embed(ERROR_MESSAGES["missing_permissions"]))
            return

        if isinstance(error, commands.BotMissingPermissions):
            await safe_response(ctx, embed=error_embed("The bot lacks required permissions to run this command."))
            return

        if isinstance(error, commands.UserInputError):
            await safe_response(ctx, embed=error_embed(ERROR_MESSAGES["invalid_user"]))
            return

        log.error("Unexpected error in command %s", ctx.command, exc_info=error)
        await safe_response(ctx, embed=error_embed(ERROR_MESSAGES["unexpected"]))


async def setup_error_handlers(bot: commands.Bot) -> None:
    await bot.add_cog(ErrorHandler(bot))
