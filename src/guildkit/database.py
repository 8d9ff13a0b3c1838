from __future__ import annotations

import logging
from typing import Awaitable, Iterable, Protocol

import aiosqlite

log = logging.getLogger("guildkit.database")


class Store(Protocol):
    def init(self) -> Awaitable[None]: ...


async def initialize_database(sqlite_path: str, stores: Iterable[Store]) -> None:
    """Apply connection pragmas and initialize every store."""
    try:
        async with aiosqlite.connect(sqlite_path) as db:
            await db.execute("PRAGMA journal_mode=WAL")
            await db.execute("PRAGMA synchronous=NORMAL")
            await db.commit()

        log.info("Applied SQLite settings to %s", sqlite_path)

        for store in stores:
            await store.init()
            log.info("Initialized %s", store.__class__.__name__)

        log.info("Database initialization completed")

    except Exception as e:
        log.error("Failed to initialize database: %s", e)
        raise
