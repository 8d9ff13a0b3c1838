from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from discord.ext import commands

from ..base_cog import BaseCog
from ..errors import ConfigurationError, HousesFetchError, ProfileFetchError
from ..module_config import ValidationIssue, parse_snowflake, raise_for_issues, require_module_config
from ..services.api_wrapper import safe_add_role, safe_remove_role
from ..services.house_roles_store import HouseRolesStore
from ..services.profile_client import HOUSE_FLAGS, HOUSES, ProfileClient
from ..utils import safe_response

CONFIG_NAME = "house_roles"

STRINGS = {
    "en-US": {
        "HOUSEROLE_UNKNOWN_SUBCMD": "Unknown subcommand. Use `houserole`, `houserole assign [member]` or `houserole remove [member]`.",
        "HOUSEROLE_UNKNOWN_PROPOSE": "Cannot find that member.",
        "HOUSEROLE_ASSIGNED@SELF": "Your house roles are up to date: {houses}.",
        "HOUSEROLE_ASSIGNED@OTHER": "House roles of {username} are up to date: {houses}.",
        "HOUSEROLE_ERR_NOHOUSE@SELF": "You are not in any HypeSquad house.",
        "HOUSEROLE_ERR_NOHOUSE@OTHER": "{username} is not in any HypeSquad house.",
        "HOUSEROLE_DEASSIGN@SELF": "Removed {roles_count} house role(s): {houses}.",
        "HOUSEROLE_DEASSIGN@OTHER": "Removed {roles_count} house role(s) from {username}: {houses}.",
        "HOUSEROLE_ERR_NOROLES@SELF": "You don't have any house roles.",
        "HOUSEROLE_ERR_NOROLES@OTHER": "{username} doesn't have any house roles.",
        "HOUSEROLE_ERR_APIERR@SELF": "Cannot check your profile right now, try again later.",
        "HOUSEROLE_ERR_APIERR@OTHER": "Cannot check the profile of {username} right now, try again later.",
        "HOUSEROLE_ERR_UNKNOWN": "Something went wrong while updating house roles.",
        "HOUSEROLE_HOUSE_BALANCE": "Balance",
        "HOUSEROLE_HOUSE_BRAVERY": "Bravery",
        "HOUSEROLE_HOUSE_BRILLIANCE": "Brilliance",
        "HOUSEROLE_HOUSE+JOINER": ", ",
        "HOUSEROLE_AUDITLOG@ASSIGN": "Member joined the HypeSquad house",
        "HOUSEROLE_AUDITLOG@DEASSIGN": "Member is no longer in the HypeSquad house",
    },
}


@dataclass
class HouseRolesSettings:
    guild_id: int
    roles: dict[str, int] = field(default_factory=dict)


def example_config() -> dict[str, Any]:
    return {
        "guildId": "SERVER ID",
        "roles": {
            "balance": "ID FOR BALANCE ROLE",
            "bravery": "ID FOR BRAVERY ROLE",
            "brilliance": "ID FOR BRILLIANCE ROLE",
        },
    }


def parse_settings(doc: dict[str, Any]) -> HouseRolesSettings:
    issues: list[ValidationIssue] = []

    guild_id = parse_snowflake(doc.get("guildId"))
    if guild_id is None:
        issues.append(ValidationIssue(path="$.guildId", message="No guild ID provided"))

    raw_roles = doc.get("roles")
    roles: dict[str, int] = {}
    if not isinstance(raw_roles, dict):
        issues.append(ValidationIssue(path="$.roles", message="No roles provided in config"))
    else:
        for house in HOUSES:
            role_id = parse_snowflake(raw_roles.get(house))
            if role_id is None:
                issues.append(ValidationIssue(path=f"$.roles.{house}", message=f'No role set for "{house}"'))
            else:
                roles[house] = role_id

    raise_for_issues(CONFIG_NAME, issues)
    return HouseRolesSettings(guild_id=guild_id or 0, roles=roles)


class HouseRolesCog(BaseCog):
    """Syncs house roles with members' HypeSquad profile flags."""

    strings = STRINGS

    def __init__(
        self,
        bot: Any,
        settings: Optional[HouseRolesSettings] = None,
        profiles: Optional[ProfileClient] = None,
        store: Optional[HouseRolesStore] = None,
    ) -> None:
        super().__init__(bot)
        self.settings = settings
        self.profiles = profiles
        self.store = store
        self.house_roles: dict[str, Any] = {}

    async def cog_load(self) -> None:
        if self.settings is None:
            doc = require_module_config(self.bot.settings.config_dir, CONFIG_NAME, example_config())
            self.settings = parse_settings(doc)
        if self.profiles is None:
            self.profiles = ProfileClient(self.bot.settings.token, self.bot.settings.api_base)
        await self.profiles.start()
        if self.store is None:
            self.store = getattr(self.bot, "house_roles_store", None)
        await super().cog_load()

    async def cog_unload(self) -> None:
        if self.profiles is not None:
            await self.profiles.close()
        await super().cog_unload()

    @property
    def ready(self) -> bool:
        return len(self.house_roles) == len(HOUSES)

    @commands.Cog.listener()
    async def on_ready(self) -> None:
        if self.ready or self.settings is None or self.profiles is None:
            return

        guild = self.bot.get_guild(self.settings.guild_id)
        if guild is None:
            self.log.error('Guild "%s" not found, house roles disabled', self.settings.guild_id)
            return

        try:
            await self.profiles.check_guild_access(guild.id)
            self.bind_guild(guild)
        except (ConfigurationError, ProfileFetchError) as e:
            self.log.error("House roles disabled: %s", e)

    def bind_guild(self, guild: Any) -> None:
        """Resolve configured role ids against ``guild``."""
        assert self.settings is not None
        resolved: dict[str, Any] = {}
        for house in HOUSES:
            role_id = self.settings.roles[house]
            role = guild.get_role(role_id)
            if role is None:
                raise ConfigurationError(f'Role "{role_id}" cannot be found on "{guild.id}"')
            resolved[house] = role
        self.house_roles = resolved

    async def cog_check(self, ctx: commands.Context) -> bool:
        return (
            self.settings is not None
            and ctx.guild is not None
            and ctx.guild.id == self.settings.guild_id
        )

    # ---- commands ------------------------------------------------------

    @commands.group(name="houserole", invoke_without_command=True)
    async def houserole(self, ctx: commands.Context) -> None:
        """Sync your house role with your HypeSquad house."""
        if ctx.subcommand_passed is not None:
            await self.invalid_subcommand(ctx)
            return
        await self.self_assign(ctx)

    @houserole.command(name="assign")
    async def houserole_assign(self, ctx: commands.Context, *, target: Optional[str] = None) -> None:
        """Sync house roles for yourself or, with Manage Roles, another member."""
        if target is None:
            await self.self_assign(ctx)
        else:
            await self.assign_to(ctx, target)

    @houserole.command(name="remove")
    async def houserole_remove(self, ctx: commands.Context, *, target: Optional[str] = None) -> None:
        """Remove house roles from yourself or, with Manage Roles, another member."""
        if target is None:
            await self.self_deassign(ctx)
        else:
            await self.deassign_from(ctx, target)

    # ---- UX handling ---------------------------------------------------

    async def invalid_subcommand(self, ctx: commands.Context) -> None:
        await safe_response(ctx, embed=self.info_embed(self.localize("HOUSEROLE_UNKNOWN_SUBCMD", ctx.guild)))

    async def self_assign(self, ctx: commands.Context) -> None:
        sender = ctx.author
        try:
            _changed, houses = await self.assign(sender)
        except Exception as e:
            await self._on_error(ctx, e, "SELF")
            return

        if houses is None:
            embed = self.error_embed(self.localize("HOUSEROLE_ERR_NOHOUSE@SELF", ctx.guild))
        else:
            embed = self.success_embed(
                self.localize("HOUSEROLE_ASSIGNED@SELF", ctx.guild, **self._houses_args(houses, ctx.guild))
            )
        await safe_response(ctx, embed=embed)

    async def self_deassign(self, ctx: commands.Context) -> None:
        sender = ctx.author
        try:
            removed = await self.deassign(sender)
        except Exception as e:
            await self._on_error(ctx, e, "SELF")
            return

        if removed is None:
            embed = self.error_embed(self.localize("HOUSEROLE_ERR_NOROLES@SELF", ctx.guild))
        else:
            embed = self.success_embed(
                self.localize("HOUSEROLE_DEASSIGN@SELF", ctx.guild, **self._houses_args(removed, ctx.guild))
            )
        await safe_response(ctx, embed=embed)

    async def assign_to(self, ctx: commands.Context, target: str) -> None:
        proposal = await self._resolve_member(ctx, target)
        if proposal is None:
            await safe_response(ctx, embed=self.error_embed(self.localize("HOUSEROLE_UNKNOWN_PROPOSE", ctx.guild)))
            return

        if not can_manage_house_roles(ctx.author):
            if proposal.id != ctx.author.id:
                # silently ignore
                return
            await self.self_assign(ctx)
            return

        try:
            _changed, houses = await self.assign(proposal)
        except Exception as e:
            await self._on_error(ctx, e, "OTHER", proposal)
            return

        username = proposal.mention
        if houses is None:
            embed = self.error_embed(self.localize("HOUSEROLE_ERR_NOHOUSE@OTHER", ctx.guild, username=username))
        else:
            embed = self.success_embed(self.localize(
                "HOUSEROLE_ASSIGNED@OTHER", ctx.guild, username=username, **self._houses_args(houses, ctx.guild)
            ))
        await safe_response(ctx, embed=embed)

    async def deassign_from(self, ctx: commands.Context, target: str) -> None:
        proposal = await self._resolve_member(ctx, target)
        if proposal is None:
            await safe_response(ctx, embed=self.error_embed(self.localize("HOUSEROLE_UNKNOWN_PROPOSE", ctx.guild)))
            return

        if not can_manage_house_roles(ctx.author):
            if proposal.id != ctx.author.id:
                return
            await self.self_deassign(ctx)
            return

        try:
            removed = await self.deassign(proposal)
        except Exception as e:
            await self._on_error(ctx, e, "OTHER", proposal)
            return

        username = proposal.mention
        if removed is None:
            embed = self.error_embed(self.localize("HOUSEROLE_ERR_NOROLES@OTHER", ctx.guild, username=username))
        else:
            embed = self.success_embed(self.localize(
                "HOUSEROLE_DEASSIGN@OTHER", ctx.guild, username=username, **self._houses_args(removed, ctx.guild)
            ))
        await safe_response(ctx, embed=embed)

    async def _resolve_member(self, ctx: commands.Context, target: str) -> Optional[Any]:
        try:
            return await commands.MemberConverter().convert(ctx, target)
        except commands.BadArgument:
            return None

    async def _on_error(self, ctx: commands.Context, err: Exception, caller: str, target: Any = None) -> None:
        if isinstance(err, HousesFetchError):
            username = getattr(target or ctx.author, "mention", "")
            text = self.localize(f"HOUSEROLE_ERR_APIERR@{caller}", ctx.guild, username=username)
        else:
            self.log.error("Failed to execute houserole command", exc_info=err)
            text = self.localize("HOUSEROLE_ERR_UNKNOWN", ctx.guild)
        await safe_response(ctx, embed=self.error_embed(text))

    def _houses_args(self, houses: list[str], guild: Any) -> dict[str, Any]:
        names = [self.localize(f"HOUSEROLE_HOUSE_{house.upper()}", guild) for house in houses]
        return {
            "houses": self.localize("HOUSEROLE_HOUSE+JOINER", guild).join(names),
            "roles_count": len(houses),
        }

    # ---- role management -----------------------------------------------

    def member_houses(self, member: Any) -> list[str]:
        """Houses whose role ``member`` currently has."""
        return [house for house, role in self.house_roles.items() if member.get_role(role.id) is not None]

    def _require_ready(self) -> None:
        if not self.ready:
            raise ConfigurationError("House roles are not resolved yet")

    async def assign(self, member: Any) -> tuple[bool, Optional[list[str]]]:
        """Reconcile ``member``'s house roles with their profile.

        Returns whether anything changed and the member's houses (None if
        they are in none). If a role update fails, the changes applied so
        far are still recorded before the error is raised.
        """
        self._require_ready()
        assert self.profiles is not None

        member_roles = self.member_houses(member)
        houses = await self.profiles.fetch_houses(member.id)

        if not member_roles and not houses:
            return False, None

        held = set(member_roles)
        failure: Optional[Exception] = None
        for house in HOUSES:
            has_role = house in held
            in_house = house in houses
            if has_role == in_house:
                continue

            role = self.house_roles[house]
            if in_house:
                res = await safe_add_role(member, role, reason=self.localize("HOUSEROLE_AUDITLOG@ASSIGN", member.guild))
            else:
                res = await safe_remove_role(member, role, reason=self.localize("HOUSEROLE_AUDITLOG@DEASSIGN", member.guild))
            if not res.success:
                failure = res.error or RuntimeError(f"Failed to update {house} role")
                break

            if in_house:
                held.add(house)
            else:
                held.discard(house)

        changed = held != set(member_roles)
        if changed and self.store is not None:
            house_flags = sum(HOUSE_FLAGS[house] for house in held)
            await self.store.record_change(member.guild.id, member.id, house_flags)

        if failure is not None:
            if changed:
                self.log.warning(
                    "House roles of %s only partially synced, now holding: %s",
                    member.id, ", ".join(sorted(held)) or "(none)",
                )
            raise failure

        return changed, houses or None

    async def deassign(self, member: Any) -> Optional[list[str]]:
        """Remove every house role ``member`` has; None if there were none."""
        self._require_ready()

        removed: list[str] = []
        for house in HOUSES:
            role = self.house_roles[house]
            if member.get_role(role.id) is None:
                continue

            res = await safe_remove_role(member, role, reason=self.localize("HOUSEROLE_AUDITLOG@DEASSIGN", member.guild))
            if not res.success:
                raise res.error or RuntimeError(f"Failed to remove {house} role")
            removed.append(house)

        return removed or None


def can_manage_house_roles(member: Any) -> bool:
    permissions = getattr(member, "guild_permissions", None)
    return bool(permissions and permissions.manage_roles)
