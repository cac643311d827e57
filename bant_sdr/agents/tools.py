"""
Tool Registry - Name -> handler dispatch for LLM function calls.

Tools are opaque side effects (calendar scheduling, theme changes, lead
spreadsheet operations). The registry owns the JSON schemas advertised to
the LLM, decides which tools each channel may see and turns every failure
into a structured payload the LLM can read.
"""

from __future__ import annotations

import inspect
import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Union

import httpx

from bant_sdr.core.logger import logger
from bant_sdr.orchestration.state import ChannelKind


# ============================================================================
# Types
# ============================================================================

@dataclass(frozen=True)
class ToolContext:
    """Who triggered the tool call."""
    contact_id: str | None
    channel: ChannelKind


@dataclass(frozen=True)
class ToolSpec:
    """
    A tool advertised to the LLM.

    Attributes:
        name: Function name the LLM calls.
        description: What the tool does, in the agent's language.
        parameters: JSON schema for the arguments.
        channels: Channels on which the tool is offered.
    """
    name: str
    description: str
    parameters: dict[str, Any]
    channels: frozenset[ChannelKind]

    def to_openai(self) -> dict[str, Any]:
        """Function-calling schema for chat completions."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass
class ToolResult:
    """Outcome of one tool execution."""
    name: str
    success: bool
    payload: dict[str, Any] = field(default_factory=dict)

    def to_content(self) -> str:
        """JSON body of the ``role: tool`` message."""
        return json.dumps(self.payload, ensure_ascii=False, default=str)


ToolHandler = Callable[
    [dict[str, Any], ToolContext],
    Union[dict[str, Any], Awaitable[dict[str, Any]]],
]


# ============================================================================
# Default tool schemas
# ============================================================================

SALES_ONLY = frozenset({ChannelKind.WHATSAPP})
ALL_CHANNELS = frozenset(ChannelKind)

LEAD_STATUSES = ["NOVO", "CONTACTADO", "QUALIFICADO", "PROPOSTA", "FECHADO", "PERDIDO"]

DEFAULT_TOOL_SPECS: tuple[ToolSpec, ...] = (
    ToolSpec(
        name="schedule_whatsapp_meeting",
        description=(
            "Agenda reunião no Google Calendar com Google Meet e notifica o cliente "
            "via WhatsApp automaticamente. Quando usado em conversa do WhatsApp, "
            "o número é detectado automaticamente."
        ),
        parameters={
            "type": "object",
            "properties": {
                "email": {"type": "string", "description": "Email do cliente para convite do Google Calendar (OBRIGATÓRIO)"},
                "title": {"type": "string", "description": "Título/assunto da reunião"},
                "datetime": {"type": "string", "description": "Data e hora em formato ISO 8601"},
                "notes": {"type": "string", "description": "Observações sobre a reunião"},
            },
            "required": ["email", "title", "datetime"],
        },
        channels=SALES_ONLY,
    ),
    ToolSpec(
        name="change_theme",
        description="Altera o tema visual do dashboard (claro ou escuro)",
        parameters={
            "type": "object",
            "properties": {
                "theme": {"type": "string", "enum": ["light", "dark"], "description": "Tema desejado"},
            },
            "required": ["theme"],
        },
        channels=ALL_CHANNELS,
    ),
    ToolSpec(
        name="search_leads",
        description="Busca leads na planilha Google Sheets usando filtros específicos",
        parameters={
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Termo de busca para filtrar leads (nome, empresa, telefone, etc.)"},
                "limit": {"type": "number", "description": "Limite de resultados (padrão: 10)"},
            },
        },
        channels=SALES_ONLY,
    ),
    ToolSpec(
        name="update_lead_status",
        description="Atualiza o status ou informações de um lead específico na planilha",
        parameters={
            "type": "object",
            "properties": {
                "leadIdentifier": {"type": "string", "description": "Identificador do lead (nome, email ou telefone)"},
                "status": {"type": "string", "enum": LEAD_STATUSES, "description": "Novo status do lead"},
                "notes": {"type": "string", "description": "Notas ou observações sobre a interação"},
                "nextAction": {"type": "string", "description": "Próxima ação a ser tomada com o lead"},
            },
            "required": ["leadIdentifier"],
        },
        channels=SALES_ONLY,
    ),
    ToolSpec(
        name="create_new_lead",
        description="Cria um novo lead na planilha Google Sheets",
        parameters={
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Nome completo do lead"},
                "email": {"type": "string", "description": "Email do lead"},
                "phone": {"type": "string", "description": "Telefone do lead"},
                "company": {"type": "string", "description": "Empresa do lead"},
                "source": {"type": "string", "description": "Origem do lead (WhatsApp, site, indicação, etc.)"},
                "interest": {"type": "string", "description": "Interesse ou necessidade identificada"},
                "status": {"type": "string", "enum": LEAD_STATUSES[:3], "description": "Status inicial do lead"},
            },
            "required": ["name", "phone"],
        },
        channels=SALES_ONLY,
    ),
)


# ============================================================================
# Registry
# ============================================================================

class ToolRegistry:
    """
    Maps tool names to their schema and handler.

    Every registered tool must have a handler; the registry is validated
    when built, so a schema without an executor fails at startup rather than
    mid-conversation.
    """

    def __init__(self) -> None:
        self._specs: dict[str, ToolSpec] = {}
        self._handlers: dict[str, ToolHandler] = {}

    def register(self, spec: ToolSpec, handler: ToolHandler) -> None:
        """
        Register a tool.

        Raises:
            ValueError: If the name is taken, the schema is not an object
                schema or the handler is not callable.
        """
        if not spec.name:
            raise ValueError("Tool name cannot be empty")
        if spec.name in self._specs:
            raise ValueError(f"Tool already registered: {spec.name}")
        if spec.parameters.get("type") != "object":
            raise ValueError(f"Tool {spec.name} parameters must be an object schema")
        if not spec.channels:
            raise ValueError(f"Tool {spec.name} must be offered on at least one channel")
        if not callable(handler):
            raise ValueError(f"Handler for {spec.name} is not callable")

        self._specs[spec.name] = spec
        self._handlers[spec.name] = handler

    def __contains__(self, name: str) -> bool:
        return name in self._specs

    def __len__(self) -> int:
        return len(self._specs)

    @property
    def names(self) -> list[str]:
        return list(self._specs)

    def specs_for(self, channel: ChannelKind) -> list[dict[str, Any]]:
        """Function schemas offered on ``channel``."""
        return [spec.to_openai() for spec in self._specs.values() if channel in spec.channels]

    async def execute(self, name: str, raw_args: str | None, ctx: ToolContext) -> ToolResult:
        """
        Run a tool requested by the LLM.

        Never raises: unknown tools, tools not offered on the caller's
        channel, malformed JSON arguments and handler exceptions all come
        back as ``{"success": false, "error": ...}``.
        """
        handler = self._handlers.get(name)
        if handler is None:
            logger.warning(f"[TOOLS] Unknown tool requested: {name}")
            return _failure(name, f"Unknown tool: {name}")

        if ctx.channel not in self._specs[name].channels:
            logger.warning(f"[TOOLS] {name} is not available on {ctx.channel.value}")
            return _failure(name, f"Tool {name} is not available on this channel")

        try:
            args = json.loads(raw_args or "{}")
        except json.JSONDecodeError as exc:
            logger.warning(f"[TOOLS] Malformed arguments for {name}: {exc}")
            return _failure(name, f"Invalid JSON arguments: {exc}")

        if not isinstance(args, dict):
            logger.warning(f"[TOOLS] Arguments for {name} are not an object")
            return _failure(name, "Arguments must be a JSON object")

        logger.info(f"[TOOLS] Executing {name} with {args}")
        try:
            result = handler(args, ctx)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            logger.error(f"[TOOLS] {name} failed: {exc}")
            return _failure(name, str(exc))

        payload = {**result} if isinstance(result, dict) else {"result": result}
        payload.setdefault("success", True)
        logger.info(f"[TOOLS] {name} completed (success={payload['success']})")
        return ToolResult(name=name, success=bool(payload["success"]), payload=payload)


def _failure(name: str, error: str) -> ToolResult:
    return ToolResult(name=name, success=False, payload={"success": False, "error": error})


# ============================================================================
# Handlers
# ============================================================================

def make_webhook_handler(
    url: str,
    tool_name: str,
    timeout: float = 10.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ToolHandler:
    """
    Build a handler that forwards the call to an HTTP endpoint.

    The endpoint receives ``{"tool", "arguments", "contactId", "channel"}``
    and must answer with a JSON object. Meetings default the WhatsApp number
    to the contact id when the LLM did not supply one.
    """

    async def handler(args: dict[str, Any], ctx: ToolContext) -> dict[str, Any]:
        if tool_name == "schedule_whatsapp_meeting":
            args = {**args, "number": args.get("number") or ctx.contact_id}

        payload = {
            "tool": tool_name,
            "arguments": args,
            "contactId": ctx.contact_id,
            "channel": ctx.channel.value,
        }
        async with httpx.AsyncClient(transport=transport) as client:
            response = await client.post(url, json=payload, timeout=timeout)
            response.raise_for_status()
            return response.json()

    return handler


def build_tool_registry(
    handlers: dict[str, ToolHandler],
    specs: tuple[ToolSpec, ...] = DEFAULT_TOOL_SPECS,
) -> ToolRegistry:
    """
    Build a registry from schemas and a name -> handler mapping.

    Raises:
        ValueError: If a handler has no schema or a schema has no handler.
    """
    known = {spec.name for spec in specs}
    unknown = set(handlers) - known
    if unknown:
        raise ValueError(f"Handlers without a tool schema: {sorted(unknown)}")

    missing = known - set(handlers)
    if missing:
        raise ValueError(f"Tools without a handler: {sorted(missing)}")

    registry = ToolRegistry()
    for spec in specs:
        registry.register(spec, handlers[spec.name])
    return registry


def build_webhook_registry(url: str | None) -> ToolRegistry:
    """
    Registry whose tools all forward to ``url``.

    Without a URL no tools are offered and the agent answers in text only.
    """
    if not url:
        return ToolRegistry()
    return build_tool_registry({spec.name: make_webhook_handler(url, spec.name) for spec in DEFAULT_TOOL_SPECS})
