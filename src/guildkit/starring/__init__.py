"""Star reaction gating.

- models (settings, rules, the reaction under test)
- config schema (defaults + validation of the JSON file)
- regex cache
- any-of combinator (ordered, short-circuiting async checks)
- matchers + rule engine (compiled disqualification steps)

The cog in ``guildkit.cogs.stars_control`` feeds platform events through it.
"""

from .models import AddedReaction, StarsControlSettings
from .rule_engine import ReactionGate, STEP_FILTER, STEP_SELF_STAR, STEP_USER_BLOCK

__all__ = [
    "AddedReaction",
    "ReactionGate",
    "STEP_FILTER",
    "STEP_SELF_STAR",
    "STEP_USER_BLOCK",
    "StarsControlSettings",
]
