"""
BANT Analyzer - One deterministic pass over a conversation.

Runs extraction, stage detection, prompt selection and scoring together so
the orchestrator and the /analyze endpoint see exactly the same result.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from bant_sdr.agents.bant_extractor import extract_from_history
from bant_sdr.agents.qualification import next_best_action, score_qualification
from bant_sdr.agents.stage_detector import detect_stage, next_stage, progress_percentage
from bant_sdr.agents.stage_prompts import build_stage_prompt
from bant_sdr.core.logger import logger
from bant_sdr.orchestration.state import ActionTag, BANTInfo, ConversationTurn, Stage


@dataclass(frozen=True)
class BANTAnalysis:
    """Signals, stage and recommendation for the current turn."""
    stage: Stage
    bant_info: BANTInfo
    qualification_score: int
    next_action: ActionTag | None
    next_stage: Stage
    progress_percentage: int
    stage_prompt: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage.value,
            "bantInfo": self.bant_info.to_dict(),
            "qualificationScore": self.qualification_score,
            "nextAction": self.next_action.value if self.next_action else None,
            "nextStage": self.next_stage.value,
            "progressPercentage": self.progress_percentage,
        }


def analyze_conversation(history: Sequence[ConversationTurn]) -> BANTAnalysis:
    """
    Analyze a conversation.

    Args:
        history: Every turn so far, including the incoming user message.

    Returns:
        BANTAnalysis. While the conversation is still in OPENING no action
        is recommended (``next_action`` is None).
    """
    bant_info = extract_from_history(history)
    stage = detect_stage(history, bant_info)
    score = score_qualification(bant_info)
    action = None if stage is Stage.OPENING else next_best_action(bant_info, stage)

    logger.info(
        f"[BANT] Stage={stage.value} collected={bant_info.collected_count()}/4 "
        f"score={score} action={action.value if action else None}"
    )

    return BANTAnalysis(
        stage=stage,
        bant_info=bant_info,
        qualification_score=score,
        next_action=action,
        next_stage=next_stage(stage),
        progress_percentage=progress_percentage(stage),
        stage_prompt=build_stage_prompt(stage, bant_info),
    )
