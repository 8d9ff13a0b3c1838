from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Optional, Union

from ..constants import DAY_IN_MINUTES, STAR_REACTION

StarrerKind = Literal["bots", "username", "username_regex", "id"]
AuthorKind = Literal["bots", "hooks", "hook", "id"]
ContentKind = Literal["equal", "starts", "ends", "includes"]

CONTENT_KINDS: frozenset[str] = frozenset({"equal", "starts", "ends", "includes"})

# A positive gating result: a human readable reason or a bare ``True``.
GateDetail = Union[str, bool]


@dataclass(frozen=True)
class AddedReaction:
    """One incoming reaction: the host message, the emoji and who added it."""

    message: Any
    emoji: Any
    user: Any


@dataclass(frozen=True)
class StarrerRule:
    kind: StarrerKind
    value: str = ""

    @classmethod
    def parse(cls, raw: str) -> "StarrerRule":
        if raw == "$bots":
            return cls("bots")
        if raw.startswith("$username_reg:"):
            return cls("username_regex", raw[len("$username_reg:"):])
        if raw.startswith("$username:"):
            return cls("username", raw[len("$username:"):])
        return cls("id", raw)


@dataclass(frozen=True)
class AuthorRule:
    kind: AuthorKind
    value: str = ""

    @classmethod
    def parse(cls, raw: str) -> "AuthorRule":
        if raw == "$bots":
            return cls("bots")
        if raw == "$hooks":
            return cls("hooks")
        if raw.startswith("$hook:"):
            return cls("hook", raw[len("$hook:"):])
        return cls("id", raw)


@dataclass(frozen=True)
class ContentCondition:
    kind: ContentKind
    text: str


@dataclass(frozen=True)
class Disqualification:
    """Messages that may never be starred.

    Every field that is set must hold for the rule to fire; a rule with no
    fields matches everything.
    """

    aged: Optional[float] = None
    channels: Optional[frozenset[str]] = None
    authors: Optional[tuple[AuthorRule, ...]] = None
    content: Optional[ContentCondition] = None
    reason: Optional[str] = None


@dataclass
class StarsControlSettings:
    guild_id: int
    star_emoji: str = STAR_REACTION
    # When enabled, members starring their own messages get disqualified.
    self_starring: bool = True
    # None disables the step entirely; an empty list keeps it with no rules.
    blocked_starrers: Optional[list[StarrerRule]] = field(
        default_factory=lambda: [StarrerRule("bots")]
    )
    bad_stars: Optional[list[Disqualification]] = field(default_factory=lambda: default_bad_stars())


def default_bad_stars() -> list[Disqualification]:
    return [
        # Messages sent by bots or webhooks
        Disqualification(authors=(AuthorRule("bots"), AuthorRule("hooks"))),
        # Messages that are older than one day
        Disqualification(aged=float(DAY_IN_MINUTES)),
    ]
