"""Yes/no questions asked about an incoming star reaction."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, Optional, Sequence

import discord

from .models import AddedReaction, AuthorRule, ContentCondition, Disqualification, GateDetail, StarrerRule
from .regex_cache import compile_pattern

log = logging.getLogger("guildkit.starring.matchers")


def _utcnow() -> datetime:
    return discord.utils.utcnow()


# ---- senders -------------------------------------------------------------

def resolve_message_sender(message: Any) -> Optional[Any]:
    """Account a message can be attributed to.

    Webhook posts have no real account behind them, so they resolve to None
    and can only be matched by webhook rules.
    """
    if getattr(message, "webhook_id", None) is not None:
        return None
    return getattr(message, "author", None)


async def resolve_message_member(message: Any) -> Optional[Any]:
    """Guild member who sent ``message``, or None when that can't be determined."""
    author = resolve_message_sender(message)
    guild = getattr(message, "guild", None)
    if author is None or guild is None:
        return None

    member = guild.get_member(author.id)
    if member is not None:
        return member
    if isinstance(author, discord.Member):
        return author

    try:
        return await guild.fetch_member(author.id)
    except discord.NotFound:
        return None
    except discord.HTTPException as e:
        log.debug("Cannot fetch member %s of guild %s: %s", author.id, guild.id, e)
        return None


# ---- blocked starrers ----------------------------------------------------

def is_blocked_starrer(user: Any, starrers: Iterable[StarrerRule]) -> bool:
    for starrer in starrers:
        if starrer.kind == "bots":
            if getattr(user, "bot", False):
                return True
        elif starrer.kind == "username":
            if user.name == starrer.value:
                return True
        elif starrer.kind == "username_regex":
            if compile_pattern(starrer.value).search(user.name):
                return True
        elif str(user.id) == starrer.value:
            return True
    return False


# ---- bad stars -----------------------------------------------------------

def minutes_since_sent(message: Any, now: Optional[datetime] = None) -> float:
    now = now or _utcnow()
    return (now - message.created_at).total_seconds() / 60


def authored_by(message: Any, authors: Iterable[AuthorRule]) -> bool:
    sender = resolve_message_sender(message)
    webhook_id = getattr(message, "webhook_id", None)

    for author in authors:
        if author.kind == "bots":
            if sender is not None and getattr(sender, "bot", False):
                return True
        elif author.kind == "hooks":
            if webhook_id is not None:
                return True
        elif author.kind == "hook":
            if webhook_id is not None and str(webhook_id) == author.value:
                return True
        elif sender is not None and str(sender.id) == author.value:
            return True
    return False


def content_matches(content: str, cond: ContentCondition) -> bool:
    if cond.kind == "equal":
        return content == cond.text
    if cond.kind == "starts":
        return content.startswith(cond.text)
    if cond.kind == "ends":
        return content.endswith(cond.text)
    if cond.kind == "includes":
        return cond.text in content
    return False


def is_disqualified(message: Any, disqual: Disqualification, now: Optional[datetime] = None) -> bool:
    """All set fields of ``disqual`` must hold; cheapest checks go first."""
    if disqual.aged is not None:
        if minutes_since_sent(message, now) < disqual.aged:
            return False

    if disqual.channels is not None:
        if str(message.channel.id) not in disqual.channels:
            return False

    if disqual.authors is not None:
        if not authored_by(message, disqual.authors):
            return False

    if disqual.content is not None:
        if not content_matches(message.content or "", disqual.content):
            return False

    return True


def find_disqualification(
    message: Any,
    disquals: Sequence[Disqualification],
    now: Optional[datetime] = None,
) -> GateDetail:
    """Reason (or True) of the first rule ``message`` falls under, else False."""
    now = now or _utcnow()
    for disqual in disquals:
        if is_disqualified(message, disqual, now):
            return disqual.reason or True
    return False


# ---- self stars ----------------------------------------------------------

async def is_self_star(to_check: AddedReaction, enabled: bool) -> bool:
    if not enabled:
        return False

    poster = await resolve_message_member(to_check.message)
    if poster is None:
        return False

    return poster.id == to_check.user.id
