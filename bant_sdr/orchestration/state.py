"""
Conversation State - Typed state objects for the BANT sales conversation.

This module defines the values that flow through the sales graph and the
per-contact record persisted between turns.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal


class Stage(str, Enum):
    """BANT pipeline stage, in progression order."""
    OPENING = "opening"
    BUDGET = "budget"
    AUTHORITY = "authority"
    NEED = "need"
    TIMING = "timing"
    CLOSING = "closing"


STAGE_ORDER: tuple[Stage, ...] = tuple(Stage)


class ActionTag(str, Enum):
    """Single recommended conversational move for the next turn."""
    SCHEDULE_MEETING = "SCHEDULE_MEETING"
    ASK_BUDGET = "ASK_BUDGET"
    ASK_AUTHORITY = "ASK_AUTHORITY"
    ASK_NEED = "ASK_NEED"
    ASK_TIMING = "ASK_TIMING"
    DISCOVER_PAIN = "DISCOVER_PAIN"
    CONTINUE_DISCOVERY = "CONTINUE_DISCOVERY"


class ChannelKind(str, Enum):
    """Where a message came from. Only WHATSAPP runs the sales flow."""
    WHATSAPP = "whatsapp"
    DASHBOARD_VOICE = "dashboard_voice"
    API = "api"


DEFAULT_RESPONSE_MODE = "CONSULTIVO"


@dataclass(frozen=True)
class ConversationTurn:
    """A single message in the conversation."""
    role: Literal["user", "assistant", "system"]
    content: str

    def to_message(self) -> dict[str, str]:
        """Convert to an LLM chat message."""
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class BANTInfo:
    """
    Extracted BANT signals.

    Each field holds the literal text span that was matched, or None when the
    signal was never confidently detected.
    """
    budget: str | None = None
    authority: str | None = None
    need: str | None = None
    timing: str | None = None

    def completeness(self) -> dict[str, bool]:
        return {
            "budget": bool(self.budget),
            "authority": bool(self.authority),
            "need": bool(self.need),
            "timing": bool(self.timing),
        }

    def collected_count(self) -> int:
        return sum(self.completeness().values())

    def is_empty(self) -> bool:
        return self.collected_count() == 0

    def to_dict(self) -> dict[str, str | None]:
        return {
            "budget": self.budget,
            "authority": self.authority,
            "need": self.need,
            "timing": self.timing,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "BANTInfo":
        data = data or {}
        return cls(
            budget=data.get("budget"),
            authority=data.get("authority"),
            need=data.get("need"),
            timing=data.get("timing"),
        )


@dataclass
class StateMetadata:
    """Cross-turn bookkeeping stored alongside the enhanced state."""
    last_interaction_at: str | None = None
    message_count: int = 0
    bant_info: BANTInfo = field(default_factory=BANTInfo)
    last_response_mode: str = DEFAULT_RESPONSE_MODE


@dataclass
class EnhancedState:
    """
    Per-contact record persisted between turns.

    Serialized with camelCase keys so records written by earlier versions of
    the platform load unchanged.

    Attributes:
        stage: Stage detected on the last turn.
        sub_state: Conversation topic, "initial" when unknown.
        qualification_score: Score computed from the BANT signals (0-100).
        completeness: Which of the four signals are known.
        sentiment: Last known lead sentiment.
        engagement_level: "low", "medium" or "high".
        momentum: "initial" on first contact, "building" afterwards.
        next_best_action: ActionTag value, or None during opening.
        metadata: Interaction bookkeeping, including the raw BANT spans.
    """
    stage: Stage = Stage.OPENING
    sub_state: str = "initial"
    qualification_score: int = 0
    completeness: dict[str, bool] = field(default_factory=lambda: BANTInfo().completeness())
    sentiment: str = "neutral"
    engagement_level: str = "low"
    momentum: str = "initial"
    next_best_action: ActionTag | None = None
    metadata: StateMetadata = field(default_factory=StateMetadata)

    def to_dict(self) -> dict[str, Any]:
        """Convert state to dictionary for serialization."""
        return {
            "stage": self.stage.value,
            "subState": self.sub_state,
            "qualificationScore": self.qualification_score,
            "completeness": dict(self.completeness),
            "sentiment": self.sentiment,
            "engagementLevel": self.engagement_level,
            "momentum": self.momentum,
            "nextBestAction": self.next_best_action.value if self.next_best_action else None,
            "metadata": {
                "lastInteractionAt": self.metadata.last_interaction_at,
                "messageCount": self.metadata.message_count,
                "bantInfo": self.metadata.bant_info.to_dict(),
                "lastResponseMode": self.metadata.last_response_mode,
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EnhancedState":
        """
        Build a state from a stored record.

        Missing keys fall back to defaults and unknown keys are ignored.
        Raises ValueError if an enum field holds an unknown value.
        """
        metadata = data.get("metadata") or {}
        next_action = data.get("nextBestAction")
        return cls(
            stage=Stage(data.get("stage") or Stage.OPENING.value),
            sub_state=data.get("subState") or "initial",
            qualification_score=int(data.get("qualificationScore") or 0),
            completeness={
                **BANTInfo().completeness(),
                **(data.get("completeness") or {}),
            },
            sentiment=data.get("sentiment") or "neutral",
            engagement_level=data.get("engagementLevel") or "low",
            momentum=data.get("momentum") or "initial",
            next_best_action=ActionTag(next_action) if next_action else None,
            metadata=StateMetadata(
                last_interaction_at=metadata.get("lastInteractionAt"),
                message_count=int(metadata.get("messageCount") or 0),
                bant_info=BANTInfo.from_dict(metadata.get("bantInfo")),
                last_response_mode=metadata.get("lastResponseMode") or DEFAULT_RESPONSE_MODE,
            ),
        )


@dataclass
class TurnResult:
    """Outcome of processing one inbound message."""
    answer: str
    stage: Stage | None = None
    qualification_score: int | None = None
    next_action: ActionTag | None = None
    tools_used: list[str] = field(default_factory=list)
    stopped: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "answer": self.answer,
            "stage": self.stage.value if self.stage else None,
            "qualificationScore": self.qualification_score,
            "nextAction": self.next_action.value if self.next_action else None,
            "toolsUsed": list(self.tools_used),
            "stopped": self.stopped,
        }
