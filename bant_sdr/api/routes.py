"""
API Routes - HTTP endpoints for the sales conversation engine.

Current endpoints:
- POST /chat - Process a message through the sales agent
- POST /analyze - Deterministic BANT analysis of a conversation (no LLM)
- GET /state/{contact_id} - Stored EnhancedState for a contact
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header, HTTPException

from bant_sdr.agents.bant_analyzer import analyze_conversation
from bant_sdr.agents.llm_client import GroqLLMClient
from bant_sdr.agents.tools import build_webhook_registry
from bant_sdr.api.schemas import (
    AnalyzeRequest,
    AnalyzeResponse,
    ChatRequest,
    ChatResponse,
    EnhancedStateResponse,
    ErrorResponse,
)
from bant_sdr.core.config import settings
from bant_sdr.core.logger import logger
from bant_sdr.orchestration.graph import ConversationOrchestrator
from bant_sdr.orchestration.store import build_state_store


router = APIRouter()

# Shared orchestrator instance
_orchestrator: ConversationOrchestrator | None = None


def get_orchestrator() -> ConversationOrchestrator:
    """Get or create the shared orchestrator instance."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = ConversationOrchestrator(
            llm=GroqLLMClient(api_key=settings.groq_api_key),
            store=build_state_store(settings.redis_url),
            tools=build_webhook_registry(settings.tools_webhook_url),
        )
    return _orchestrator


async def close_orchestrator() -> None:
    """Release the shared orchestrator's store connections, if any were opened."""
    global _orchestrator
    if _orchestrator is None:
        return
    close = getattr(_orchestrator.store, "close", None)
    if close is not None:
        try:
            await close()
            logger.info("[STATE] State store closed")
        except Exception as exc:
            logger.error(f"[STATE] Error closing state store: {exc}")
    _orchestrator = None


def verify_api_key(x_api_key: str | None = Header(None, alias="x-api-key")) -> None:
    """Verify the x-api-key header when API_KEY is configured."""
    if not settings.api_key:
        return
    if not x_api_key:
        raise HTTPException(status_code=401, detail="Missing x-api-key header")
    if x_api_key != settings.api_key:
        raise HTTPException(status_code=401, detail="Invalid API key")


@router.post(
    "/chat",
    response_model=ChatResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Unauthorized"},
    },
    summary="Process a message",
    description="Run one conversation turn. WhatsApp messages go through the BANT sales flow.",
    dependencies=[Depends(verify_api_key)],
)
async def chat(
    request: ChatRequest,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> ChatResponse:
    """Process a message and return the agent's answer with BANT metadata."""
    result = await orchestrator.process_message(
        user_text=request.message,
        history=[turn.to_turn() for turn in request.history],
        context=request.context.model_dump(exclude_none=True),
    )
    return ChatResponse(**result.to_dict())


@router.post(
    "/analyze",
    response_model=AnalyzeResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Unauthorized"},
    },
    summary="Analyze a conversation",
    description="Extract BANT signals, stage, score and next action without calling the LLM.",
    dependencies=[Depends(verify_api_key)],
)
async def analyze(request: AnalyzeRequest) -> AnalyzeResponse:
    """Deterministic BANT analysis."""
    analysis = analyze_conversation(request.to_turns())
    return AnalyzeResponse(**analysis.to_dict())


@router.get(
    "/state/{contact_id}",
    response_model=EnhancedStateResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Unauthorized"},
        404: {"model": ErrorResponse, "description": "No state for contact"},
        503: {"model": ErrorResponse, "description": "State store unavailable"},
    },
    summary="Get contact state",
    dependencies=[Depends(verify_api_key)],
)
async def get_state(
    contact_id: str,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> EnhancedStateResponse:
    """Return the EnhancedState persisted for a contact."""
    try:
        record = await orchestrator.get_state(contact_id)
    except Exception as exc:
        logger.error(f"[STATE] [{contact_id}] Could not load state: {exc}")
        raise HTTPException(status_code=503, detail="State store unavailable")

    if record is None:
        raise HTTPException(status_code=404, detail="No state for contact")
    return EnhancedStateResponse.from_record(record.to_dict())
