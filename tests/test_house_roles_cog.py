from __future__ import annotations

import unittest
from types import SimpleNamespace
from unittest import mock

import discord

from guildkit.cogs.house_roles import HouseRolesCog, HouseRolesSettings, parse_settings
from guildkit.errors import ConfigurationError, HousesFetchError
from guildkit.i18n import Localizer
from guildkit.services.profile_client import houses_from_flags
from guildkit.testing.fakes import FakeGuild, FakeMember, FakeRole, forbidden


class _FakeProfiles:
    def __init__(self, flags=None, error=None):
        self.flags = flags or {}
        self.error = error

    async def fetch_user_flags(self, user_id):
        if self.error is not None:
            raise self.error
        return self.flags.get(user_id, 0)

    async def fetch_houses(self, user_id):
        return houses_from_flags(await self.fetch_user_flags(user_id))


class _FakeContext:
    def __init__(self, guild, author):
        self.guild = guild
        self.author = author
        self.sent = []

    async def send(self, content=None, **kwargs):
        self.sent.append({"content": content, **kwargs})


class HouseRolesConfigTests(unittest.TestCase):
    def test_parse(self):
        settings = parse_settings({
            "guildId": "1",
            "roles": {"balance": "301", "bravery": "302", "brilliance": "303"},
        })
        self.assertEqual(settings.roles, {"balance": 301, "bravery": 302, "brilliance": 303})

    def test_every_house_needs_a_role(self):
        with self.assertRaises(ConfigurationError) as caught:
            parse_settings({"guildId": "1", "roles": {"balance": "301"}})
        self.assertIn("$.roles.bravery", str(caught.exception))
        self.assertIn("$.roles.brilliance", str(caught.exception))


class HouseRolesCogTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.guild = FakeGuild(id=1)
        self.roles = {
            "balance": self.guild.add_role(FakeRole(id=301, name="Balance")),
            "bravery": self.guild.add_role(FakeRole(id=302, name="Bravery")),
            "brilliance": self.guild.add_role(FakeRole(id=303, name="Brilliance")),
        }
        self.member = self.guild.add_member(FakeMember(id=10, name="member"))
        self.moderator = self.guild.add_member(FakeMember(id=11, name="mod", manage_roles=True))
        self.profiles = _FakeProfiles()
        self.store = SimpleNamespace(record_change=mock.AsyncMock())
        self.bot = SimpleNamespace(i18n=Localizer())

        settings = HouseRolesSettings(guild_id=1, roles={house: role.id for house, role in self.roles.items()})
        self.cog = HouseRolesCog(self.bot, settings, profiles=self.profiles, store=self.store)
        # cog_load would start the profile client; only the strings are needed here
        self.cog._i18n_unhandle = self.bot.i18n.extend(self.cog.strings)
        self.cog.bind_guild(self.guild)

    async def test_assign_adds_house_role(self):
        self.profiles.flags[10] = 64
        ctx = _FakeContext(self.guild, self.member)

        await self.cog.self_assign(ctx)

        self.assertEqual(self.member.roles, [self.roles["bravery"]])
        self.store.record_change.assert_awaited_once_with(1, 10, 64)
        self.assertIn("Bravery", ctx.sent[0]["embed"].description)

    async def test_assign_switches_house(self):
        self.member.roles.append(self.roles["balance"])
        self.profiles.flags[10] = 128

        changed, houses = await self.cog.assign(self.member)

        self.assertTrue(changed)
        self.assertEqual(houses, ["brilliance"])
        self.assertEqual(self.member.roles, [self.roles["brilliance"]])
        self.assertEqual([call[0] for call in self.member.role_calls], ["remove", "add"])

    async def test_assign_when_already_in_sync(self):
        self.member.roles.append(self.roles["bravery"])
        self.profiles.flags[10] = 64

        changed, houses = await self.cog.assign(self.member)

        self.assertFalse(changed)
        self.assertEqual(houses, ["bravery"])
        self.store.record_change.assert_not_awaited()

    async def test_partial_sync_records_applied_changes(self):
        self.member.roles.append(self.roles["brilliance"])
        self.profiles.flags[10] = 256
        self.member.remove_roles = mock.AsyncMock(side_effect=forbidden("Missing Permissions"))

        with self.assertLogs("guildkit.cog.house_roles", level="WARNING") as logs:
            with self.assertRaises(discord.Forbidden):
                await self.cog.assign(self.member)

        # balance got added, brilliance could not be removed
        self.store.record_change.assert_awaited_once_with(1, 10, 256 | 128)
        self.assertTrue(any("partially synced" in line for line in logs.output))

    async def test_failed_first_change_records_nothing(self):
        self.profiles.flags[10] = 64
        self.member.add_roles = mock.AsyncMock(side_effect=forbidden("Missing Permissions"))

        with self.assertRaises(discord.Forbidden):
            await self.cog.assign(self.member)

        self.store.record_change.assert_not_awaited()

    async def test_no_house(self):
        ctx = _FakeContext(self.guild, self.member)
        await self.cog.self_assign(ctx)
        self.assertIn("not in any HypeSquad house", ctx.sent[0]["embed"].description)

    async def test_left_house_loses_role(self):
        self.member.roles.append(self.roles["bravery"])

        changed, houses = await self.cog.assign(self.member)

        self.assertTrue(changed)
        self.assertIsNone(houses)
        self.assertEqual(self.member.roles, [])
        self.store.record_change.assert_awaited_once_with(1, 10, 0)

    async def test_api_error_reply(self):
        self.profiles.error = HousesFetchError("GET /users/10 returned 500", status=500)
        ctx = _FakeContext(self.guild, self.member)

        await self.cog.self_assign(ctx)

        self.assertIn("Cannot check your profile", ctx.sent[0]["embed"].description)

    async def test_unexpected_error_is_logged(self):
        self.profiles.error = RuntimeError("boom")
        ctx = _FakeContext(self.guild, self.member)

        with self.assertLogs("guildkit.cog.house_roles", level="ERROR"):
            await self.cog.self_assign(ctx)

        self.assertIn("Something went wrong", ctx.sent[0]["embed"].description)

    async def test_remove_roles(self):
        self.member.roles.extend([self.roles["bravery"], self.roles["balance"]])
        ctx = _FakeContext(self.guild, self.member)

        await self.cog.self_deassign(ctx)

        self.assertEqual(self.member.roles, [])
        self.assertIn("Removed 2 house role(s)", ctx.sent[0]["embed"].description)

    async def test_remove_without_roles(self):
        ctx = _FakeContext(self.guild, self.member)
        await self.cog.self_deassign(ctx)
        self.assertIn("don't have any house roles", ctx.sent[0]["embed"].description)

    async def test_member_cannot_assign_others(self):
        ctx = _FakeContext(self.guild, self.member)
        self.profiles.flags[11] = 64

        with mock.patch.object(self.cog, "_resolve_member", mock.AsyncMock(return_value=self.moderator)):
            await self.cog.assign_to(ctx, "mod")

        self.assertEqual(ctx.sent, [])
        self.assertEqual(self.moderator.roles, [])

    async def test_moderator_assigns_others(self):
        ctx = _FakeContext(self.guild, self.moderator)
        self.profiles.flags[10] = 256

        with mock.patch.object(self.cog, "_resolve_member", mock.AsyncMock(return_value=self.member)):
            await self.cog.assign_to(ctx, "member")

        self.assertEqual(self.member.roles, [self.roles["balance"]])
        self.assertIn(self.member.mention, ctx.sent[0]["embed"].description)

    async def test_moderator_removes_from_others(self):
        self.member.roles.append(self.roles["brilliance"])
        ctx = _FakeContext(self.guild, self.moderator)

        with mock.patch.object(self.cog, "_resolve_member", mock.AsyncMock(return_value=self.member)):
            await self.cog.deassign_from(ctx, "member")

        self.assertEqual(self.member.roles, [])

    async def test_unknown_member(self):
        ctx = _FakeContext(self.guild, self.moderator)

        with mock.patch.object(self.cog, "_resolve_member", mock.AsyncMock(return_value=None)):
            await self.cog.assign_to(ctx, "nobody")

        self.assertIn("Cannot find that member", ctx.sent[0]["embed"].description)

    async def test_unbound_guild_fails(self):
        self.cog.house_roles = {}
        ctx = _FakeContext(self.guild, self.member)

        with self.assertLogs("guildkit.cog.house_roles", level="ERROR"):
            await self.cog.self_assign(ctx)

    async def test_invalid_subcommand(self):
        ctx = _FakeContext(self.guild, self.member)
        await self.cog.invalid_subcommand(ctx)
        self.assertIn("Unknown subcommand", ctx.sent[0]["embed"].description)

    async def test_commands_only_work_in_configured_guild(self):
        self.assertTrue(await self.cog.cog_check(_FakeContext(self.guild, self.member)))
        self.assertFalse(await self.cog.cog_check(_FakeContext(FakeGuild(id=2), self.member)))

    def test_missing_role_fails_binding(self):
        self.guild.roles.remove(self.roles["bravery"])
        with self.assertRaises(ConfigurationError):
            self.cog.bind_guild(self.guild)


if __name__ == "__main__":
    unittest.main()
