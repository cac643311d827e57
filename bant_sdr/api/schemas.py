"""
API Schemas - Request/response contracts for the sales agent API.

Response field names are camelCase to match records already stored and
consumed by the dashboard.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bant_sdr.orchestration.state import ConversationTurn


# ============================================================================
# Request Schemas
# ============================================================================

class HistoryTurn(BaseModel):
    """One prior message of the conversation."""
    role: Literal["user", "assistant", "system"]
    content: str = Field(..., max_length=8000)

    def to_turn(self) -> ConversationTurn:
        return ConversationTurn(role=self.role, content=self.content)


class ChatContext(BaseModel):
    """
    Caller metadata.

    ``channel`` is one of ``whatsapp``, ``dashboard_voice`` or ``api``. The
    legacy flags (``platform``, ``fromWhatsApp``, ``inputMethod``, ...) are
    accepted as extra fields and used when ``channel`` is absent.
    """
    model_config = ConfigDict(extra="allow")

    channel: str | None = Field(default=None, description="whatsapp, dashboard_voice or api")
    contactId: str | None = Field(default=None, max_length=128, description="Lead identifier")


class ChatRequest(BaseModel):
    """
    Incoming message.

    Attributes:
        message: The text just received (required, max 4000 chars).
        history: Prior turns, oldest first.
        context: Channel and contact metadata.
    """
    message: str = Field(..., max_length=4000, description="Message just received")
    history: list[HistoryTurn] = Field(default_factory=list)
    context: ChatContext = Field(default_factory=ChatContext)

    @field_validator("message")
    @classmethod
    def validate_message(cls, v: str) -> str:
        """Ensure message is not empty."""
        if not v.strip():
            raise ValueError("message cannot be empty or whitespace")
        return v


class AnalyzeRequest(BaseModel):
    """Conversation to analyze; ``message`` is appended as the last user turn."""
    history: list[HistoryTurn] = Field(default_factory=list)
    message: str | None = Field(default=None, max_length=4000)

    def to_turns(self) -> list[ConversationTurn]:
        turns = [turn.to_turn() for turn in self.history]
        if self.message:
            turns.append(ConversationTurn(role="user", content=self.message))
        return turns


# ============================================================================
# Response Schemas
# ============================================================================

class ChatResponse(BaseModel):
    """
    Result of one turn.

    ``stage``, ``qualificationScore`` and ``nextAction`` are null outside
    the WhatsApp sales flow.
    """
    answer: str
    stage: str | None = None
    qualificationScore: int | None = Field(default=None, ge=0, le=100)
    nextAction: str | None = None
    toolsUsed: list[str] = Field(default_factory=list)
    stopped: bool = False


class BANTInfoSchema(BaseModel):
    budget: str | None = None
    authority: str | None = None
    need: str | None = None
    timing: str | None = None


class AnalyzeResponse(BaseModel):
    """Deterministic BANT analysis, no LLM involved."""
    stage: str
    bantInfo: BANTInfoSchema
    qualificationScore: int = Field(..., ge=0, le=100)
    nextAction: str | None = None
    nextStage: str
    progressPercentage: int = Field(..., ge=0, le=100)


class StateMetadataSchema(BaseModel):
    lastInteractionAt: str | None = None
    messageCount: int = 0
    bantInfo: BANTInfoSchema = Field(default_factory=BANTInfoSchema)
    lastResponseMode: str


class EnhancedStateResponse(BaseModel):
    """Persisted per-contact state."""
    stage: str
    subState: str
    qualificationScore: int
    completeness: dict[str, bool]
    sentiment: str
    engagementLevel: str
    momentum: str
    nextBestAction: str | None = None
    metadata: StateMetadataSchema

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "EnhancedStateResponse":
        return cls.model_validate(record)


# ============================================================================
# Error Schemas
# ============================================================================

class ErrorResponse(BaseModel):
    """
    Standard error response.

    Attributes:
        detail: Human-readable error message.
    """
    detail: str = Field(..., description="Human-readable error message")
