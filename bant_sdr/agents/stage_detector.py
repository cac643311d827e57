"""
Stage Detector - Deterministic BANT stage from conversation facts.

The stage is never stored as ground truth. It is recomputed every turn from
the history and the extracted signals, so it cannot drift from them.

Known limitation: since extraction is first-match-wins, a signal contradicted
later in the conversation stays detected and the stage never moves back.
"""

from __future__ import annotations

from typing import Sequence

from bant_sdr.core.logger import logger
from bant_sdr.agents.bant_extractor import history_text
from bant_sdr.orchestration.state import STAGE_ORDER, BANTInfo, ConversationTurn, Stage


# Phrases that confirm the lead accepted the opening hook
INTEREST_PHRASES = ("sim", "faz sentido", "interessante", "me interessa", "quero")

# Minimum turns before the opening can be considered complete
MIN_TURNS_FOR_INTEREST = 2


def is_opening_completed(history: Sequence[ConversationTurn]) -> bool:
    """Check whether the lead has confirmed interest."""
    if len(history) < MIN_TURNS_FOR_INTEREST:
        return False
    text = history_text(history).lower()
    return any(phrase in text for phrase in INTEREST_PHRASES)


def detect_stage(history: Sequence[ConversationTurn], bant_info: BANTInfo) -> Stage:
    """
    Compute the current stage of the conversation.

    Args:
        history: Full conversation history.
        bant_info: Signals extracted from that same history.

    Returns:
        OPENING until interest is confirmed, then the first missing signal in
        Budget -> Authority -> Need -> Timing order, CLOSING once all four
        are known.
    """
    if not history:
        return Stage.OPENING

    if not is_opening_completed(history):
        return Stage.OPENING

    completeness = bant_info.completeness()
    for stage in (Stage.BUDGET, Stage.AUTHORITY, Stage.NEED, Stage.TIMING):
        if not completeness[stage.value]:
            logger.debug(f"[BANT] Stage {stage.value} ({bant_info.collected_count()}/4 collected)")
            return stage

    return Stage.CLOSING


def next_stage(stage: Stage) -> Stage:
    """Return the stage after ``stage``; CLOSING maps to itself."""
    index = STAGE_ORDER.index(stage)
    if index < len(STAGE_ORDER) - 1:
        return STAGE_ORDER[index + 1]
    return stage


def progress_percentage(stage: Stage) -> int:
    """Percentage of the pipeline reached at ``stage``."""
    index = STAGE_ORDER.index(stage)
    return round((index + 1) / len(STAGE_ORDER) * 100)
