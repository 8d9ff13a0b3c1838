from __future__ import annotations

from typing import Any

from ..constants import DAY_IN_MINUTES, STAR_REACTION
from ..module_config import ValidationIssue, parse_snowflake, raise_for_issues
from .models import (
    CONTENT_KINDS,
    AuthorRule,
    ContentCondition,
    Disqualification,
    StarrerRule,
    StarsControlSettings,
)

CONFIG_NAME = "stars_control"

DISQUALIFICATION_FIELDS = frozenset({"aged", "channels", "authors", "content", "reason"})


def default_config() -> dict[str, Any]:
    """Defaults merged under the operator's file, key by key."""
    return {
        "starEmoji": STAR_REACTION,
        "selfStarring": True,
        # Bots should not star messages
        "blockedStarrers": ["$bots"],
        "badStars": [
            # Messages that sent by bots
            {"authors": ["$bots", "$hooks"]},
            # Messages that are older than one day
            {"aged": DAY_IN_MINUTES},
        ],
    }


def example_config() -> dict[str, Any]:
    return {"guildId": "SERVER ID"}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_str_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(x, str) for x in value)


def _validate_disqualification(pfx: str, d: Any) -> list[ValidationIssue]:
    if not isinstance(d, dict):
        return [ValidationIssue(path=pfx, message="rule must be an object")]

    issues: list[ValidationIssue] = []
    for key in sorted(set(d) - DISQUALIFICATION_FIELDS):
        issues.append(ValidationIssue(path=f"{pfx}.{key}", message="unknown field"))

    aged = d.get("aged")
    if aged is not None and (not _is_number(aged) or aged < 0):
        issues.append(ValidationIssue(path=pfx + ".aged", message="aged must be a non-negative number of minutes"))

    channels = d.get("channels")
    if channels is not None:
        if not isinstance(channels, list) or any(parse_snowflake(c) is None for c in channels):
            issues.append(ValidationIssue(path=pfx + ".channels", message="channels must be a list of channel ids"))

    authors = d.get("authors")
    if authors is not None and not _is_str_list(authors):
        issues.append(ValidationIssue(path=pfx + ".authors", message="authors must be list[str]"))

    content = d.get("content")
    if content is not None:
        if (
            not isinstance(content, list)
            or len(content) != 2
            or content[0] not in CONTENT_KINDS
            or not isinstance(content[1], str)
        ):
            issues.append(ValidationIssue(
                path=pfx + ".content",
                message=f"content must be [kind, text] with kind one of {sorted(CONTENT_KINDS)}",
            ))

    reason = d.get("reason")
    if reason is not None and not isinstance(reason, str):
        issues.append(ValidationIssue(path=pfx + ".reason", message="reason must be a string"))

    return issues


def validate_config(doc: dict[str, Any]) -> list[ValidationIssue]:
    """Validate a merged config. Returns list of issues; empty means valid.

    Patterns in ``$username_reg:`` rules are compiled on first use, not here.
    """
    issues: list[ValidationIssue] = []

    if parse_snowflake(doc.get("guildId")) is None:
        issues.append(ValidationIssue(path="$.guildId", message="Guild ID must be provided in config"))

    emoji = doc.get("starEmoji")
    if not isinstance(emoji, str) or not emoji:
        issues.append(ValidationIssue(path="$.starEmoji", message="starEmoji must be a non-empty string"))

    self_starring = doc.get("selfStarring")
    if self_starring is not None and not isinstance(self_starring, bool):
        issues.append(ValidationIssue(path="$.selfStarring", message="selfStarring must be boolean or null"))

    starrers = doc.get("blockedStarrers")
    if starrers is not None and not _is_str_list(starrers):
        issues.append(ValidationIssue(path="$.blockedStarrers", message="blockedStarrers must be list[str] or null"))

    bad_stars = doc.get("badStars")
    if bad_stars is not None:
        if not isinstance(bad_stars, list):
            issues.append(ValidationIssue(path="$.badStars", message="badStars must be a list or null"))
        else:
            for i, d in enumerate(bad_stars):
                issues.extend(_validate_disqualification(f"$.badStars[{i}]", d))

    return issues


def _build_disqualification(d: dict[str, Any]) -> Disqualification:
    channels = d.get("channels")
    authors = d.get("authors")
    content = d.get("content")
    aged = d.get("aged")
    return Disqualification(
        aged=float(aged) if aged is not None else None,
        channels=frozenset(str(parse_snowflake(c)) for c in channels) if channels is not None else None,
        authors=tuple(AuthorRule.parse(a) for a in authors) if authors is not None else None,
        content=ContentCondition(kind=content[0], text=content[1]) if content is not None else None,
        reason=d.get("reason") or None,
    )


def parse_settings(doc: dict[str, Any]) -> StarsControlSettings:
    """Merge ``doc`` over the defaults, validate and build the settings object."""
    merged = {**default_config(), **doc}
    raise_for_issues(CONFIG_NAME, validate_config(merged))

    starrers = merged["blockedStarrers"]
    bad_stars = merged["badStars"]
    return StarsControlSettings(
        guild_id=parse_snowflake(merged["guildId"]) or 0,
        star_emoji=merged["starEmoji"],
        self_starring=bool(merged["selfStarring"]),
        blocked_starrers=[StarrerRule.parse(s) for s in starrers] if starrers is not None else None,
        bad_stars=[_build_disqualification(d) for d in bad_stars] if bad_stars is not None else None,
    )
