"""
Lead qualification - Weighted BANT score and next best action.

Both functions are pure and are recomputed from BANTInfo every turn; the
score stored in EnhancedState is a cache of this value, not ground truth.
"""

from __future__ import annotations

import re

from bant_sdr.orchestration.state import ActionTag, BANTInfo, Stage


# Base weights (sum to 100)
BUDGET_WEIGHT = 30
AUTHORITY_WEIGHT = 25
NEED_WEIGHT = 30
TIMING_WEIGHT = 15

# Bonus for high-confidence sub-patterns
BONUS = 5

MAX_SCORE = 100

# Budget holds an actual value, not just "sim" or "tenho"
BUDGET_VALUE_PATTERN = re.compile(r"r?\$?\s*\d+", re.IGNORECASE)

DECISION_MAKER_KEYWORDS = ("decisor", "dono", "diretor")

URGENCY_KEYWORDS = ("urgente", "agora", "logo")

# A need described in more characters than this counts as specific
SPECIFIC_NEED_LENGTH = 50


def score_qualification(bant_info: BANTInfo) -> int:
    """
    Convert the four BANT signals into a 0-100 qualification score.

    Args:
        bant_info: Signals extracted for this turn.

    Returns:
        Weighted sum plus bonuses, clamped to [0, 100].
    """
    score = 0

    if bant_info.budget:
        score += BUDGET_WEIGHT
        if BUDGET_VALUE_PATTERN.search(bant_info.budget):
            score += BONUS

    if bant_info.authority:
        score += AUTHORITY_WEIGHT
        authority = bant_info.authority.lower()
        if any(keyword in authority for keyword in DECISION_MAKER_KEYWORDS):
            score += BONUS

    if bant_info.need:
        score += NEED_WEIGHT
        if len(bant_info.need) > SPECIFIC_NEED_LENGTH:
            score += BONUS

    if bant_info.timing:
        score += TIMING_WEIGHT
        timing = bant_info.timing.lower()
        if any(keyword in timing for keyword in URGENCY_KEYWORDS):
            score += BONUS

    return max(0, min(MAX_SCORE, score))


def next_best_action(bant_info: BANTInfo, stage: Stage | None = None) -> ActionTag:
    """
    Pick the single next conversational move.

    With three signals known, ask for the missing one in Budget -> Authority
    -> Need -> Timing order. With fewer, lead with pain discovery: Need ->
    Timing -> Authority -> Budget.

    ``stage`` is accepted for callers that track it; the decision depends on
    signal completeness only.
    """
    complete = bant_info.completeness()
    count = sum(complete.values())

    if count == 4:
        return ActionTag.SCHEDULE_MEETING

    if count == 3:
        if not complete["budget"]:
            return ActionTag.ASK_BUDGET
        if not complete["authority"]:
            return ActionTag.ASK_AUTHORITY
        if not complete["need"]:
            return ActionTag.ASK_NEED
        if not complete["timing"]:
            return ActionTag.ASK_TIMING

    if count < 3:
        if not complete["need"]:
            return ActionTag.DISCOVER_PAIN
        if not complete["timing"]:
            return ActionTag.ASK_TIMING
        if not complete["authority"]:
            return ActionTag.ASK_AUTHORITY
        if not complete["budget"]:
            return ActionTag.ASK_BUDGET

    return ActionTag.CONTINUE_DISCOVERY


def engagement_level(prior_turns: int) -> str:
    """Bucket engagement by how many turns preceded this one."""
    if prior_turns > 10:
        return "high"
    if prior_turns > 5:
        return "medium"
    return "low"


def momentum(prior_turns: int) -> str:
    return "building" if prior_turns > 0 else "initial"
