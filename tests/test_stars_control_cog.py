from __future__ import annotations

import unittest
from types import SimpleNamespace
from unittest import mock

from guildkit.cogs.stars_control import StarsControlCog
from guildkit.i18n import Localizer
from guildkit.starring.models import AddedReaction, AuthorRule, Disqualification, StarrerRule, StarsControlSettings
from guildkit.testing.fakes import (
    FakeEmoji,
    FakeGuild,
    FakeMember,
    FakeMessage,
    FakeReactionPayload,
    FakeTextChannel,
    FakeUser,
    forbidden,
)


class StarsControlCogTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.guild = FakeGuild(id=1)
        self.channel = self.guild.add_channel(FakeTextChannel(id=500))
        self.author = self.guild.add_member(FakeMember(id=10, name="author"))
        self.starrer = self.guild.add_member(FakeMember(id=20, name="starrer"))
        self.bot = SimpleNamespace(
            i18n=Localizer(),
            get_guild=lambda guild_id: self.guild if guild_id == self.guild.id else None,
        )

    async def _cog(self, **settings_kwargs):
        cog = StarsControlCog(self.bot, StarsControlSettings(guild_id=1, **settings_kwargs))
        await cog.cog_load()
        return cog

    def _reaction(self, user, **message_kwargs):
        message_kwargs.setdefault("author", self.author)
        message = FakeMessage(guild=self.guild, channel=self.channel, **message_kwargs)
        return AddedReaction(message=message, emoji=FakeEmoji(), user=user)

    async def test_bot_starrer_is_retracted(self):
        cog = await self._cog(blocked_starrers=[StarrerRule("bots")])
        bot_user = FakeMember(id=30, name="helper", bot=True)
        to_check = self._reaction(bot_user)

        self.assertTrue(await cog.handle_reaction(to_check))

        self.assertEqual(to_check.message.removed_reactions, [(to_check.emoji, bot_user)])
        self.assertEqual(len(bot_user.sent), 1)
        embed = bot_user.sent[0]["embed"]
        self.assertEqual(embed.footer.text, "USER-BLOCK")
        self.assertIn("not allowed to star", embed.description)

    async def test_webhook_post_reason_is_shown(self):
        cog = await self._cog(bad_stars=[
            Disqualification(authors=(AuthorRule("hooks"),), reason="no starring webhook posts"),
        ])
        to_check = self._reaction(self.starrer, author=FakeUser(id=99, bot=True), webhook_id=99)

        self.assertTrue(await cog.handle_reaction(to_check))

        embed = self.starrer.sent[0]["embed"]
        self.assertEqual(embed.footer.text, "FILTER")
        self.assertIn("no starring webhook posts", embed.description)

    async def test_self_star_has_no_reason_line(self):
        cog = await self._cog(self_starring=True)
        to_check = self._reaction(self.author)

        self.assertTrue(await cog.handle_reaction(to_check))

        embed = self.author.sent[0]["embed"]
        self.assertEqual(embed.footer.text, "SELF-STAR")
        self.assertNotIn("Reason:", embed.description)

    async def test_accepted_star_is_left_alone(self):
        cog = await self._cog()
        to_check = self._reaction(self.starrer)

        with self.assertNoLogs("guildkit", level="INFO"):
            self.assertFalse(await cog.handle_reaction(to_check))

        self.assertEqual(to_check.message.removed_reactions, [])
        self.assertEqual(self.starrer.sent, [])

    async def test_closed_dms_keep_the_retraction(self):
        cog = await self._cog()
        self.author.send_error = forbidden()
        to_check = self._reaction(self.author)

        with self.assertLogs("guildkit.cog.stars_control", level="WARNING") as logs:
            self.assertTrue(await cog.handle_reaction(to_check))

        self.assertEqual(len(to_check.message.removed_reactions), 1)
        self.assertTrue(any("Cannot send warning" in line for line in logs.output))

    async def test_failed_retraction_still_warns(self):
        cog = await self._cog()
        to_check = self._reaction(self.author)
        to_check.message.remove_error = forbidden("Missing Permissions")

        self.assertTrue(await cog.handle_reaction(to_check))
        self.assertEqual(len(self.author.sent), 1)

    async def test_check_error_accepts_the_star(self):
        cog = await self._cog(blocked_starrers=[StarrerRule.parse("$username_reg:(")])
        to_check = self._reaction(self.starrer)

        with self.assertLogs("guildkit.cog.stars_control", level="ERROR") as logs:
            self.assertFalse(await cog.handle_reaction(to_check))
        self.assertEqual(to_check.message.removed_reactions, [])
        self.assertIsNotNone(logs.records[0].exc_info)

    async def test_gate_keeps_working_after_a_check_error(self):
        cog = await self._cog()
        gate = cog.gate
        failing = self._reaction(self.starrer)

        with mock.patch("guildkit.starring.rule_engine.is_blocked_starrer", side_effect=RuntimeError("boom")):
            with self.assertLogs("guildkit.cog.stars_control", level="ERROR"):
                self.assertFalse(await cog.handle_reaction(failing))

        to_check = self._reaction(self.author)
        self.assertIs(cog.gate, gate)
        self.assertTrue(await cog.handle_reaction(to_check))
        self.assertEqual(self.author.sent[0]["embed"].footer.text, "SELF-STAR")

    async def test_unexpected_check_error_accepts_the_star(self):
        cog = await self._cog()
        to_check = self._reaction(self.starrer)

        with mock.patch.object(cog.gate, "evaluate", side_effect=RuntimeError("boom")):
            with self.assertLogs("guildkit.cog.stars_control", level="ERROR"):
                self.assertFalse(await cog.handle_reaction(to_check))

    async def test_raw_event_is_resolved_and_gated(self):
        cog = await self._cog()
        message = FakeMessage(id=777, author=self.author, guild=self.guild, channel=self.channel)

        await cog.on_raw_reaction_add(FakeReactionPayload(message, self.author))

        self.assertEqual(len(message.removed_reactions), 1)

    async def test_other_emoji_and_guilds_are_ignored(self):
        cog = await self._cog()
        message = FakeMessage(id=778, author=self.author, guild=self.guild, channel=self.channel)

        await cog.on_raw_reaction_add(FakeReactionPayload(message, self.author, emoji=FakeEmoji("👍")))
        await cog.on_raw_reaction_add(FakeReactionPayload(message, self.author, guild_id=2))

        self.assertEqual(message.removed_reactions, [])

    async def test_warning_uses_guild_locale(self):
        self.bot.i18n.extend({"de": {"STAR_BLOCKED@SELF-STAR": "Eigene Nachrichten zählen nicht."}})
        self.guild.preferred_locale = "de"
        cog = await self._cog()

        embed = cog.build_warning("SELF-STAR", True, self.guild)

        self.assertEqual(embed.description, "Eigene Nachrichten zählen nicht.")
        # Missing keys fall back to the default locale
        self.assertEqual(embed.title, "Star removed")

    async def test_unload_removes_strings(self):
        cog = await self._cog()
        await cog.cog_unload()
        self.assertEqual(self.bot.i18n.localize("STAR_BLOCKED_TITLE"), "STAR_BLOCKED_TITLE")


if __name__ == "__main__":
    unittest.main()
