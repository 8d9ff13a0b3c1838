from __future__ import annotations

import logging
from typing import Optional

from .any_of import AnyOfResult, StepList, called_any_of
from .matchers import find_disqualification, is_blocked_starrer, is_self_star
from .models import AddedReaction, GateDetail, StarsControlSettings

log = logging.getLogger("guildkit.starring.rule_engine")

STEP_USER_BLOCK = "USER-BLOCK"
STEP_FILTER = "FILTER"
STEP_SELF_STAR = "SELF-STAR"

ReactionChecks = StepList[AddedReaction, GateDetail]


def compile_disqualification_steps(settings: StarsControlSettings) -> ReactionChecks:
    """Steps for every configured section, in their fixed order.

    Each step closes over the settings section it needs; sections that are
    not configured get no step at all.
    """
    steps: ReactionChecks = StepList()

    blocked_starrers = settings.blocked_starrers
    if blocked_starrers is not None:
        async def check_blocked_starrers(to_check: AddedReaction) -> GateDetail:
            return is_blocked_starrer(to_check.user, blocked_starrers)

        steps.add(STEP_USER_BLOCK, check_blocked_starrers)

    bad_stars = settings.bad_stars
    if bad_stars is not None:
        async def check_bad_stars(to_check: AddedReaction) -> GateDetail:
            return find_disqualification(to_check.message, bad_stars)

        steps.add(STEP_FILTER, check_bad_stars)

    if settings.self_starring:
        async def check_self_star(to_check: AddedReaction) -> GateDetail:
            return await is_self_star(to_check, settings.self_starring)

        steps.add(STEP_SELF_STAR, check_self_star)

    return steps


class ReactionGate:
    """Compiled once per settings object and reused for every reaction."""

    def __init__(self, settings: StarsControlSettings) -> None:
        self.settings = settings
        self.steps = compile_disqualification_steps(settings)
        self._process: AnyOfResult[AddedReaction, GateDetail] = called_any_of(self.steps)
        log.debug("Compiled star gate with steps: %s", ", ".join(self.steps.names()) or "(none)")

    @property
    def step_names(self) -> list[str]:
        return self.steps.names()

    async def evaluate(self, to_check: AddedReaction) -> Optional[tuple[str, GateDetail]]:
        """``(step, reason or True)`` for a rejected reaction, None when accepted."""
        return await self._process(to_check)
