from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional

import aiosqlite

from ..errors import OperationOnUninitialized

DEFAULT_TABLE_NAME = "house_roles"


@dataclass(frozen=True)
class HouseRecord:
    guild_id: int
    member_id: int
    flags: int
    changed_at: int


class HouseRolesStore:
    """Keeps the most recent house change per member.

    Records are cached locally for the process lifetime; the cache is
    refreshed on every write.
    """

    def __init__(self, sqlite_path: str, table_name: str = DEFAULT_TABLE_NAME) -> None:
        if not table_name.isidentifier():
            raise ValueError(f"Invalid table name {table_name!r}")
        self._path = sqlite_path
        self._table = table_name
        self._cache: dict[str, HouseRecord] = {}
        self._initialized = False
        self._log = logging.getLogger(f"guildkit.house_roles_store.{table_name}")

    @property
    def initialized(self) -> bool:
        return self._initialized

    def _must_be_initialized(self) -> None:
        if not self._initialized:
            raise OperationOnUninitialized("Store must be initialized first")

    @staticmethod
    def _local_key(guild_id: int, member_id: int) -> str:
        return f"{int(guild_id)}:{int(member_id)}"

    async def init(self) -> None:
        if self._initialized:
            raise OperationOnUninitialized("Store is already initialized")

        async with aiosqlite.connect(self._path) as db:
            await db.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self._table} (
                    guild_id INTEGER NOT NULL,
                    member_id INTEGER NOT NULL,
                    flags INTEGER NOT NULL,
                    changed_at INTEGER NOT NULL,
                    PRIMARY KEY (guild_id, member_id)
                )
                """
            )
            await db.commit()

        self._log.info("Ready to work")
        self._initialized = True

    async def record_change(self, guild_id: int, member_id: int, flags: int) -> HouseRecord:
        """Record the house flags a member was synced to."""
        self._must_be_initialized()

        record = HouseRecord(
            guild_id=int(guild_id),
            member_id=int(member_id),
            flags=int(flags),
            changed_at=int(time.time() * 1000),
        )
        async with aiosqlite.connect(self._path) as db:
            await db.execute(
                f"INSERT INTO {self._table} (guild_id, member_id, flags, changed_at) VALUES (?, ?, ?, ?) "
                "ON CONFLICT(guild_id, member_id) DO UPDATE SET flags=excluded.flags, changed_at=excluded.changed_at",
                (record.guild_id, record.member_id, record.flags, record.changed_at),
            )
            await db.commit()

        self._cache[self._local_key(guild_id, member_id)] = record
        return record

    async def get_record(self, guild_id: int, member_id: int, use_cache: bool = True) -> Optional[HouseRecord]:
        self._must_be_initialized()

        key = self._local_key(guild_id, member_id)
        if use_cache:
            cached = self._cache.get(key)
            if cached is not None:
                return cached

        async with aiosqlite.connect(self._path) as db:
            async with db.execute(
                f"SELECT guild_id, member_id, flags, changed_at FROM {self._table} WHERE guild_id=? AND member_id=?",
                (int(guild_id), int(member_id)),
            ) as cur:
                row = await cur.fetchone()

        if row is None:
            return None

        record = HouseRecord(guild_id=int(row[0]), member_id=int(row[1]), flags=int(row[2]), changed_at=int(row[3]))
        self._cache[key] = record
        return record
