from __future__ import annotations

import logging
from typing import Any, Optional

import aiohttp

from ..constants import DEFAULT_API_BASE
from ..errors import ConfigurationError, GuildsFetchError, HousesFetchError, ProfileFetchError

log = logging.getLogger("guildkit.profile_client")

# Public user flag bits for HypeSquad houses.
HOUSE_FLAGS = {
    "bravery": 1 << 6,
    "brilliance": 1 << 7,
    "balance": 1 << 8,
}
HOUSES = ("balance", "bravery", "brilliance")


def has_flag(flags: int, flag: int) -> bool:
    return (flags & flag) == flag


def houses_from_flags(flags: int) -> list[str]:
    return [house for house in HOUSES if has_flag(flags, HOUSE_FLAGS[house])]


class ProfileClient:
    """Reads user profiles from the platform REST API with the bot token."""

    def __init__(
        self,
        token: str,
        api_base: str = DEFAULT_API_BASE,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        self._token = token
        self._api_base = api_base.rstrip("/")
        self._session = session
        self._owns_session = session is None
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    async def start(self) -> None:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bot {self._token}"}

    async def _get_json(self, path: str, error_cls: type[ProfileFetchError]) -> Any:
        if self._session is None:
            await self.start()
        assert self._session is not None

        url = f"{self._api_base}{path}"
        try:
            async with self._session.get(url, headers=self._headers()) as resp:
                if resp.status != 200:
                    log.warning("GET %s returned %s", path, resp.status)
                    raise error_cls(f"GET {path} returned {resp.status}", status=resp.status)
                return await resp.json()
        except aiohttp.ClientError as e:
            raise error_cls(f"GET {path} failed: {e}") from e

    async def fetch_user_flags(self, user_id: int) -> int:
        profile = await self._get_json(f"/users/{int(user_id)}", HousesFetchError)
        flags = profile.get("public_flags")
        if flags is None:
            flags = profile.get("flags", 0)
        return int(flags or 0)

    async def fetch_houses(self, user_id: int) -> list[str]:
        return houses_from_flags(await self.fetch_user_flags(user_id))

    async def check_guild_access(self, guild_id: int) -> bool:
        guilds = await self._get_json("/users/@me/guilds", GuildsFetchError)
        for guild in guilds:
            if str(guild.get("id")) == str(guild_id):
                return True
        raise ConfigurationError(f'Cannot find guild "{guild_id}" using the bot account')
