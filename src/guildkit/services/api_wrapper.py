"""Retrying wrapper for the few mutating platform calls the cogs make.

Every call returns an ``APIResult`` instead of raising, so event handlers
can log a failed retraction or rename and carry on.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import discord

log = logging.getLogger("guildkit.api_wrapper")

RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})


@dataclass
class APIResult:
    success: bool
    data: Optional[Any] = None
    error: Optional[Exception] = None
    attempts: int = 0


class APIWrapper:
    def __init__(self, max_retries: int = 3, base_delay: float = 1.0, max_delay: float = 60.0):
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.failures: Counter[str] = Counter()

    def backoff(self, attempt: int, error: Exception) -> float:
        retry_after = getattr(error, "retry_after", None)
        if retry_after is not None:
            return min(retry_after + 0.1, self.max_delay)
        return min(self.base_delay * (2 ** attempt), self.max_delay)

    @staticmethod
    def is_retryable(error: Exception) -> bool:
        if isinstance(error, (discord.Forbidden, discord.NotFound)):
            return False
        if isinstance(error, discord.HTTPException):
            return error.status in RETRYABLE_STATUSES
        return isinstance(error, asyncio.TimeoutError)

    def _report(self, operation: str, error: Exception, attempt: int, target: Any) -> None:
        self.failures[f"{operation}:{type(error).__name__}"] += 1

        if isinstance(error, (discord.Forbidden, discord.NotFound)):
            log.warning("%s on %s failed: %s", operation, target, error)
        elif isinstance(error, discord.HTTPException) and error.status == 429:
            log.info("%s on %s rate limited (attempt %d)", operation, target, attempt + 1)
        else:
            log.error("%s on %s failed (attempt %d)", operation, target, attempt + 1, exc_info=error)

    async def call(
        self,
        operation: str,
        func: Callable[..., Awaitable[Any]],
        *args: Any,
        target: Any = None,
        **kwargs: Any,
    ) -> APIResult:
        """Await ``func(*args, **kwargs)``, retrying rate limits and 5xx responses."""
        last_error: Optional[Exception] = None
        attempt = 0

        for attempt in range(self.max_retries + 1):
            try:
                data = await func(*args, **kwargs)
            except (discord.HTTPException, asyncio.TimeoutError) as error:
                last_error = error
                self._report(operation, error, attempt, target)
                if attempt >= self.max_retries or not self.is_retryable(error):
                    break
                await asyncio.sleep(self.backoff(attempt, error))
            else:
                log.debug("%s on %s succeeded (attempt %d)", operation, target, attempt + 1)
                return APIResult(success=True, data=data, attempts=attempt + 1)

        return APIResult(success=False, error=last_error, attempts=attempt + 1)


api_wrapper = APIWrapper()


async def safe_remove_reaction(message: Any, emoji: Any, member: Any) -> APIResult:
    """Remove ``member``'s ``emoji`` reaction from ``message``."""
    return await api_wrapper.call(
        "remove_reaction", message.remove_reaction, emoji, member, target=f"message {message.id}"
    )


async def safe_add_role(member: Any, role: Any, reason: Optional[str] = None) -> APIResult:
    return await api_wrapper.call("add_role", member.add_roles, role, reason=reason, target=f"member {member.id}")


async def safe_remove_role(member: Any, role: Any, reason: Optional[str] = None) -> APIResult:
    return await api_wrapper.call("remove_role", member.remove_roles, role, reason=reason, target=f"member {member.id}")


async def safe_rename_channel(channel: Any, name: str, reason: Optional[str] = None) -> APIResult:
    return await api_wrapper.call("rename_channel", channel.edit, name=name, reason=reason, target=f"channel {channel.id}")
