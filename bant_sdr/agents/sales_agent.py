"""
SalesAgent - Prompt assembly and LLM turn with tool calling.

The agent builds the system prompt for either the BANT sales flow or the
minimal voice assistant, runs the completion, executes any tools the model
asks for and returns the final text.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from bant_sdr.agents.bant_analyzer import BANTAnalysis
from bant_sdr.agents.llm_client import LLMClient
from bant_sdr.agents.tools import ToolContext, ToolRegistry
from bant_sdr.core.config import settings
from bant_sdr.core.logger import logger
from bant_sdr.orchestration.state import ChannelKind, EnhancedState, Stage


# Answer when the model produced no text after running tools
TOOLS_EMPTY_ANSWER = "Executei as ações solicitadas, mas não consegui gerar uma resposta."

# Answer when the model produced no text at all
EMPTY_ANSWER = "Não consegui gerar uma resposta agora."

SENTIMENT_GUIDANCE = {
    "excited": "Cliente animado - aproveite para acelerar",
    "interested": "Cliente interessado - aprofunde as dores",
    "curious": "Cliente curioso - forneça mais informações",
    "skeptical": "Cliente cético - use social proof e cases",
    "anxious": "Cliente ansioso - tranquilize com garantias",
    "frustrated": "Cliente frustrado - seja empático e solutivo",
    "neutral": "Cliente neutro - desperte interesse",
}


@dataclass
class AgentReply:
    """Final text of a turn and the tools that ran to produce it."""
    answer: str
    tools_used: list[str] = field(default_factory=list)


def _priority_label(score: int) -> str:
    if score > 70:
        return "(ALTA PRIORIDADE)"
    if score > 40:
        return "(MÉDIA PRIORIDADE)"
    return "(PRECISA NURTURING)"


def build_collected_info_block(analysis: BANTAnalysis) -> str:
    """
    List what the lead already told us, with a directive not to re-ask.

    Returns an empty string when nothing has been collected.
    """
    info = analysis.bant_info
    if info.is_empty():
        return ""

    lines = ["💎 INFORMAÇÕES JÁ COLETADAS SOBRE O LEAD:"]
    if info.budget:
        lines.append(f'  💰 ORÇAMENTO: "{info.budget}"')
        lines.append("     → Use isso para contextualizar preços e ROI")
    if info.authority:
        lines.append(f'  👤 DECISOR: "{info.authority}"')
        lines.append("     → Ajuste linguagem baseado no cargo/função")
    if info.need:
        lines.append(f'  🔥 DOR PRINCIPAL: "{info.need}"')
        lines.append("     → SEMPRE referencie isso nas respostas")
    if info.timing:
        lines.append(f'  ⏰ URGÊNCIA: "{info.timing}"')
        lines.append("     → Use para criar senso de oportunidade")

    lines.append("")
    lines.append("⚠️ CRÍTICO: Você JÁ SABE essas informações. NÃO pergunte novamente!")
    lines.append("Use-as naturalmente na conversa para mostrar que está ouvindo.")
    return "\n".join(lines)


def build_prior_state_block(prior: EnhancedState | None) -> str:
    """Summarize the state persisted on the previous turn."""
    if prior is None:
        return "🧠 CONTEXTO: 1ª interação"

    action = prior.next_best_action.value if prior.next_best_action else "Continuar qualificação"
    sentiment = SENTIMENT_GUIDANCE.get(prior.sentiment, "Neutro")
    return (
        f"🧠 CONTEXTO: Retorno ({prior.metadata.message_count} mensagens anteriores)\n"
        f"📊 ESTÁGIO ANTERIOR: {prior.stage.value}\n"
        f"🎯 SCORE DE QUALIFICAÇÃO: {prior.qualification_score}/100 {_priority_label(prior.qualification_score)}\n"
        f"💭 SENTIMENTO: {prior.sentiment} - {sentiment}\n"
        f"⚡ ENGAJAMENTO: {prior.engagement_level} | MOMENTUM: {prior.momentum}\n"
        f"🎬 PRÓXIMA AÇÃO SUGERIDA: {action}"
    )


def build_reminder(analysis: BANTAnalysis) -> str:
    stage_name = analysis.stage.value.upper()
    lines = [
        "🚨 LEMBRETE CRÍTICO:",
        f"VOCÊ ESTÁ NO ESTÁGIO: {stage_name}",
        f"PROGRESSO BANT: {analysis.progress_percentage}% completo",
    ]
    if analysis.stage is Stage.CLOSING:
        lines.append("AGORA: Faça resumo dos 4 pontos BANT e proponha reunião.")
    else:
        lines.append("NÃO pule para o próximo estágio. NÃO proponha reunião ainda.")
        lines.append(f"FOCO: Faça a pergunta específica do estágio {stage_name}.")
    return "\n".join(lines)


class SalesAgent:
    """
    Runs one LLM turn for a resolved channel.

    WhatsApp turns get the full BANT sales prompt and every sales tool;
    voice and API turns get the minimal assistant prompt and only the tools
    registered for their channel. The two prompts are never mixed.
    """

    def __init__(self, llm: LLMClient, tools: ToolRegistry) -> None:
        self._llm = llm
        self._tools = tools
        self._persona_prompt = self._load_prompt("sales_persona.md")
        self._voice_prompt = self._load_prompt("voice_assistant.md")

    @property
    def is_ready(self) -> bool:
        return self._llm.is_ready

    def _load_prompt(self, name: str) -> str:
        """Load a prompt from the prompts directory."""
        prompt_path = Path(__file__).parent.parent / "prompts" / name
        if not prompt_path.exists():
            raise FileNotFoundError(f"Prompt file not found: {prompt_path}")
        return prompt_path.read_text(encoding="utf-8")

    def build_sales_prompt(self, analysis: BANTAnalysis, prior: EnhancedState | None = None) -> str:
        """
        Assemble the WhatsApp system prompt.

        Order: persona, stage instructions, BANT progress, collected-info
        block, previous state summary, stage reminder.
        """
        sections = [
            self._persona_prompt.strip(),
            analysis.stage_prompt.strip(),
            (
                f"🎯 PROGRESSO BANT: {analysis.progress_percentage}% completo\n"
                f"📍 ESTÁGIO ATUAL: {analysis.stage.value}\n"
                f"➡️ PRÓXIMO ESTÁGIO: {analysis.next_stage.value}"
            ),
            build_collected_info_block(analysis),
            build_prior_state_block(prior),
            build_reminder(analysis),
        ]
        return "\n\n".join(section for section in sections if section)

    def build_voice_prompt(self) -> str:
        return self._voice_prompt.strip()

    async def respond(
        self,
        messages: list[dict[str, Any]],
        *,
        channel: ChannelKind,
        contact_id: str | None,
        max_tokens: int,
    ) -> AgentReply:
        """
        Run the completion, executing requested tools once.

        Tool failures are fed back to the model as failure payloads. LLM
        errors propagate to the caller.

        Args:
            messages: System prompt, history window and user message.
            channel: Resolved channel; decides which tools are offered.
            contact_id: Passed to tool handlers.
            max_tokens: Completion budget for this channel.
        """
        temperature = settings.model.temperature
        tool_specs = self._tools.specs_for(channel)

        completion = await self._llm.complete(
            messages,
            max_tokens=max_tokens,
            temperature=temperature,
            tools=tool_specs or None,
        )

        if not completion.wants_tools:
            answer = (completion.content or "").strip() or EMPTY_ANSWER
            return AgentReply(answer=answer)

        ctx = ToolContext(contact_id=contact_id, channel=channel)
        follow_up = [*messages, completion.assistant_message()]
        for call in completion.tool_calls:
            result = await self._tools.execute(call.name, call.arguments, ctx)
            follow_up.append({
                "role": "tool",
                "tool_call_id": call.id,
                "content": result.to_content(),
            })

        final = await self._llm.complete(follow_up, max_tokens=max_tokens, temperature=temperature)
        answer = (final.content or "").strip() or TOOLS_EMPTY_ANSWER
        tools_used = [call.name for call in completion.tool_calls]
        logger.info(f"[TOOLS] Turn used tools: {tools_used}")
        return AgentReply(answer=answer, tools_used=tools_used)
