"""
LangGraph Orchestration - Per-message sales conversation flow.

WhatsApp messages run the BANT sales graph (load_state -> analyze ->
generate -> persist). Voice and API messages bypass it and get a single
minimal-prompt completion with no BANT logic and no persistence.
"""

from __future__ import annotations

import asyncio
import re
import weakref
from datetime import datetime, timezone
from typing import Any, Literal, Sequence, TypedDict

from langgraph.graph import END, StateGraph

from bant_sdr.agents.bant_analyzer import BANTAnalysis, analyze_conversation
from bant_sdr.agents.llm_client import LLMClient
from bant_sdr.agents.qualification import engagement_level, momentum
from bant_sdr.agents.sales_agent import SalesAgent
from bant_sdr.agents.tools import ToolRegistry
from bant_sdr.core.config import settings
from bant_sdr.core.logger import logger
from bant_sdr.orchestration.state import (
    DEFAULT_RESPONSE_MODE,
    ChannelKind,
    ConversationTurn,
    EnhancedState,
    StateMetadata,
    TurnResult,
)
from bant_sdr.orchestration.store import InMemoryStateStore, StateStore


LLM_NOT_CONFIGURED_MESSAGE = (
    "A chave GROQ_API_KEY não está configurada. Abra seu .env e defina "
    "GROQ_API_KEY=SEU_TOKEN. Depois reinicie o servidor."
)

TECHNICAL_ERROR_MESSAGE = "Desculpe, tive um problema técnico. Pode repetir a mensagem?"

STOP_RESPONSE = "Entendido! Vou parar por aqui. Obrigado pela conversa! 👋"

STOP_WORDS = ("parar", "pare", "stop", "sair", "remover", "cancelar", "bloquear")

# Whole words only: "pare" must not match "parece"
STOP_PATTERN = re.compile(r"\b(?:" + "|".join(STOP_WORDS) + r")\b", re.IGNORECASE)


# ============================================================================
# Context resolution
# ============================================================================

def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


def resolve_channel(context: dict[str, Any]) -> ChannelKind:
    """
    Decide once where a message came from.

    An explicit ``channel`` wins. Otherwise WhatsApp flags win over voice
    flags, and anything else is a plain API message.
    """
    channel = str(context.get("channel") or "").strip().lower()
    if channel:
        try:
            return ChannelKind(channel)
        except ValueError:
            logger.warning(f"[CHANNEL] Unknown channel '{channel}', inferring from flags")

    if (
        _flag(context.get("whatsapp"))
        or _flag(context.get("fromWhatsApp"))
        or context.get("platform") == "whatsapp"
    ):
        return ChannelKind.WHATSAPP

    voice_input = _flag(context.get("fromVoiceInput")) or context.get("inputMethod") == "voice"
    if voice_input or _flag(context.get("directVoiceCall")):
        return ChannelKind.DASHBOARD_VOICE

    return ChannelKind.API


def resolve_contact_id(context: dict[str, Any]) -> str | None:
    """Contact identifier used as the state key, if any."""
    for key in ("contactId", "fromContact", "from"):
        value = context.get(key)
        if value:
            return str(value)
    return None


def is_stop_command(text: str) -> bool:
    """Check whether the lead asked to stop the conversation."""
    return bool(STOP_PATTERN.search(text or ""))


# ============================================================================
# TypedDict State for LangGraph
# ============================================================================

class SalesGraphState(TypedDict, total=False):
    """State dict for the sales graph nodes."""
    contact_id: str | None
    context: dict[str, Any]
    user_message: str
    history: list[ConversationTurn]
    prior_state: EnhancedState | None
    analysis: BANTAnalysis | None
    answer: str | None
    tools_used: list[str]
    generation_failed: bool


def build_enhanced_state(
    analysis: BANTAnalysis,
    prior_turns: int,
    context: dict[str, Any] | None = None,
) -> EnhancedState:
    """
    Build the record persisted at the end of a sales turn.

    Args:
        analysis: Analysis computed for this turn.
        prior_turns: Number of history turns before the current message.
        context: Caller metadata; ``topic`` and ``sentiment`` are copied
            into the record when present.
    """
    context = context or {}
    return EnhancedState(
        stage=analysis.stage,
        sub_state=context.get("topic") or "initial",
        qualification_score=analysis.qualification_score,
        completeness=analysis.bant_info.completeness(),
        sentiment=context.get("sentiment") or "neutral",
        engagement_level=engagement_level(prior_turns),
        momentum=momentum(prior_turns),
        next_best_action=analysis.next_action,
        metadata=StateMetadata(
            last_interaction_at=datetime.now(timezone.utc).isoformat(),
            message_count=prior_turns + 1,
            bant_info=analysis.bant_info,
            last_response_mode=DEFAULT_RESPONSE_MODE,
        ),
    )


# ============================================================================
# Public Interface
# ============================================================================

class ConversationOrchestrator:
    """
    High-level interface for one inbound message at a time.

    Collaborators are injected: the LLM client, the state store and the tool
    registry. Turns for the same contact are serialized with a per-contact
    lock so the read-compute-write on EnhancedState never interleaves.
    """

    def __init__(
        self,
        llm: LLMClient,
        store: StateStore | None = None,
        tools: ToolRegistry | None = None,
    ) -> None:
        self._agent = SalesAgent(llm, tools or ToolRegistry())
        self._store = store or InMemoryStateStore()
        self._graph = self._build_sales_graph()
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    @property
    def store(self) -> StateStore:
        return self._store

    # ------------------------------------------------------------------
    # Graph nodes
    # ------------------------------------------------------------------

    async def _load_state_node(self, state: SalesGraphState) -> SalesGraphState:
        """Read the prior EnhancedState. Read failures count as absent."""
        contact_id = state.get("contact_id")
        state["prior_state"] = None
        if not contact_id:
            return state

        try:
            state["prior_state"] = await self._store.get(contact_id)
        except Exception as exc:
            logger.warning(f"[STATE] [{contact_id}] Could not load state, starting fresh: {exc}")
        return state

    async def _analyze_node(self, state: SalesGraphState) -> SalesGraphState:
        """Run the deterministic BANT pass over history plus the new message."""
        turns = [*state["history"], ConversationTurn(role="user", content=state["user_message"])]
        state["analysis"] = analyze_conversation(turns)
        return state

    async def _generate_node(self, state: SalesGraphState) -> SalesGraphState:
        """Call the LLM with the sales prompt. Failures become a fixed apology."""
        analysis = state["analysis"]
        system_prompt = self._agent.build_sales_prompt(analysis, state.get("prior_state"))
        messages = self._build_messages(system_prompt, state["history"], state["user_message"])

        try:
            reply = await self._agent.respond(
                messages,
                channel=ChannelKind.WHATSAPP,
                contact_id=state.get("contact_id"),
                max_tokens=settings.sales.whatsapp_max_tokens,
            )
            state["answer"] = reply.answer
            state["tools_used"] = reply.tools_used
            state["generation_failed"] = False
        except Exception as exc:
            logger.error(f"[LLM] Generation failed: {exc}")
            state["answer"] = TECHNICAL_ERROR_MESSAGE
            state["tools_used"] = []
            state["generation_failed"] = True
        return state

    async def _persist_node(self, state: SalesGraphState) -> SalesGraphState:
        """Save the new EnhancedState. Write failures are logged and ignored."""
        contact_id = state.get("contact_id")
        if not contact_id:
            logger.debug("[STATE] No contact id, skipping persistence")
            return state

        record = build_enhanced_state(
            state["analysis"],
            prior_turns=len(state["history"]),
            context=state.get("context"),
        )
        try:
            await self._store.set(contact_id, record)
            logger.info(f"[STATE] [{contact_id}] Saved stage={record.stage.value} score={record.qualification_score}")
        except Exception as exc:
            logger.error(f"[STATE] [{contact_id}] Could not save state: {exc}")
        return state

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    @staticmethod
    def _route_after_generate(state: SalesGraphState) -> Literal["persist", "end"]:
        """Skip persistence when generation failed."""
        if state.get("generation_failed", False):
            return "end"
        return "persist"

    def _build_sales_graph(self):
        """
        Build the LangGraph for a sales turn.

        Flow:
        1. load_state -> analyze -> generate
        2. generate -> (ok? -> persist, failed? -> end)
        3. persist -> end

        Returns:
            Compiled StateGraph ready for execution.
        """
        workflow = StateGraph(SalesGraphState)

        workflow.add_node("load_state", self._load_state_node)
        workflow.add_node("analyze", self._analyze_node)
        workflow.add_node("generate", self._generate_node)
        workflow.add_node("persist", self._persist_node)

        workflow.set_entry_point("load_state")
        workflow.add_edge("load_state", "analyze")
        workflow.add_edge("analyze", "generate")
        workflow.add_conditional_edges(
            "generate",
            self._route_after_generate,
            {
                "persist": "persist",
                "end": END,
            },
        )
        workflow.add_edge("persist", END)

        return workflow.compile()

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def _build_messages(
        self,
        system_prompt: str,
        history: Sequence[ConversationTurn],
        user_text: str,
    ) -> list[dict[str, Any]]:
        window = list(history)[-settings.sales.history_window:] if settings.sales.history_window else []
        return [
            {"role": "system", "content": system_prompt},
            *(turn.to_message() for turn in window),
            {"role": "user", "content": user_text},
        ]

    def _lock_for(self, contact_id: str) -> asyncio.Lock:
        lock = self._locks.get(contact_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[contact_id] = lock
        return lock

    async def process_message(
        self,
        user_text: str,
        history: Sequence[ConversationTurn] | None = None,
        context: dict[str, Any] | None = None,
    ) -> TurnResult:
        """
        Process a single inbound message.

        Args:
            user_text: The message just received.
            history: Prior turns, oldest first, excluding ``user_text``.
            context: Caller metadata (channel flags, contact id, ...).

        Returns:
            TurnResult with the answer. Stage, score and next action are set
            only for WhatsApp turns.
        """
        context = context or {}
        history = list(history or [])
        channel = resolve_channel(context)
        contact_id = resolve_contact_id(context)

        if not self._agent.is_ready:
            logger.warning("[LLM] GROQ_API_KEY not configured")
            return TurnResult(answer=LLM_NOT_CONFIGURED_MESSAGE)

        if is_stop_command(user_text):
            logger.info(f"[STOP] [{contact_id}] Stop command received")
            return TurnResult(answer=STOP_RESPONSE, stopped=True)

        if channel is ChannelKind.WHATSAPP:
            if not contact_id:
                return await self._run_sales_turn(None, user_text, history, context)
            async with self._lock_for(contact_id):
                return await self._run_sales_turn(contact_id, user_text, history, context)
        if channel is ChannelKind.DASHBOARD_VOICE or channel is ChannelKind.API:
            return await self._run_assistant_turn(channel, contact_id, user_text, history)

        raise ValueError(f"Unhandled channel: {channel}")

    async def _run_sales_turn(
        self,
        contact_id: str | None,
        user_text: str,
        history: list[ConversationTurn],
        context: dict[str, Any],
    ) -> TurnResult:
        result = await self._graph.ainvoke({
            "contact_id": contact_id,
            "context": context,
            "user_message": user_text,
            "history": history,
            "tools_used": [],
            "generation_failed": False,
        })
        analysis: BANTAnalysis = result["analysis"]
        return TurnResult(
            answer=result["answer"],
            stage=analysis.stage,
            qualification_score=analysis.qualification_score,
            next_action=analysis.next_action,
            tools_used=result.get("tools_used", []),
        )

    async def _run_assistant_turn(
        self,
        channel: ChannelKind,
        contact_id: str | None,
        user_text: str,
        history: list[ConversationTurn],
    ) -> TurnResult:
        """Minimal prompt, channel tools only, nothing persisted."""
        messages = self._build_messages(self._agent.build_voice_prompt(), history, user_text)
        try:
            reply = await self._agent.respond(
                messages,
                channel=channel,
                contact_id=contact_id,
                max_tokens=settings.sales.voice_max_tokens,
            )
        except Exception as exc:
            logger.error(f"[LLM] {channel.value} generation failed: {exc}")
            return TurnResult(answer=TECHNICAL_ERROR_MESSAGE)
        return TurnResult(answer=reply.answer, tools_used=reply.tools_used)

    async def get_state(self, contact_id: str) -> EnhancedState | None:
        """Stored state for a contact, if any."""
        return await self._store.get(contact_id)
