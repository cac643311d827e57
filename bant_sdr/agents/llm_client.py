"""
LLM Client - Chat completion with tool calling.

The orchestrator only depends on the small LLMClient protocol below; the
Groq implementation is the production backend. Tests inject fakes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

import groq
from groq import AsyncGroq

from bant_sdr.core.config import settings
from bant_sdr.core.logger import logger
from bant_sdr.core.retry import retry_async


# Errors worth a second attempt; everything else propagates immediately
TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    groq.APIConnectionError,
    groq.APITimeoutError,
    groq.RateLimitError,
    groq.InternalServerError,
)


class LLMNotConfiguredError(RuntimeError):
    """Raised when a completion is requested without an API key."""


@dataclass(frozen=True)
class ToolCall:
    """A function call requested by the model."""
    id: str
    name: str
    arguments: str


@dataclass
class Completion:
    """
    Result of one chat completion.

    Attributes:
        content: Assistant text (may be None when only tools are requested).
        tool_calls: Function calls requested by the model, in order.
    """
    content: str | None
    tool_calls: list[ToolCall] = field(default_factory=list)

    @property
    def wants_tools(self) -> bool:
        return bool(self.tool_calls)

    def assistant_message(self) -> dict[str, Any]:
        """Assistant message to append before the tool results."""
        message: dict[str, Any] = {"role": "assistant", "content": self.content or ""}
        if self.tool_calls:
            message["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": call.arguments},
                }
                for call in self.tool_calls
            ]
        return message


class LLMClient(Protocol):
    """Minimal completion capability used by the orchestrator."""

    @property
    def is_ready(self) -> bool:
        ...

    async def complete(
        self,
        messages: list[dict[str, Any]],
        *,
        max_tokens: int,
        temperature: float,
        tools: list[dict[str, Any]] | None = None,
    ) -> Completion:
        ...


class GroqLLMClient:
    """
    LLMClient backed by the Groq chat completions API.

    Transient failures are retried with exponential backoff according to
    ``settings.retry``. The SDK's own retries are disabled so the policy
    lives in one place.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            api_key: Groq API key. Defaults to ``settings.groq_api_key``.
            model: Model name. Defaults to ``settings.model.name``.
            timeout: Request timeout in seconds.
        """
        self._api_key = api_key or settings.groq_api_key
        self._model = model or settings.model.name
        self._client: AsyncGroq | None = None
        if self._api_key:
            self._client = AsyncGroq(
                api_key=self._api_key,
                timeout=timeout or settings.model.timeout_seconds,
                max_retries=0,
            )

        self._create_with_retry = retry_async(
            max_retries=settings.retry.max_retries,
            base_delay=settings.retry.base_delay,
            max_delay=settings.retry.max_delay,
            exceptions=TRANSIENT_ERRORS,
        )(self._create)

    @property
    def is_ready(self) -> bool:
        return self._client is not None

    async def _create(self, **kwargs: Any) -> Any:
        if self._client is None:
            raise LLMNotConfiguredError("GROQ_API_KEY environment variable is required")
        return await self._client.chat.completions.create(**kwargs)

    async def complete(
        self,
        messages: list[dict[str, Any]],
        *,
        max_tokens: int,
        temperature: float,
        tools: list[dict[str, Any]] | None = None,
    ) -> Completion:
        """
        Run one chat completion.

        Raises:
            LLMNotConfiguredError: If no API key was configured.
            groq.APIError: If the request fails after retries.
        """
        if not self._client:
            raise LLMNotConfiguredError("GROQ_API_KEY environment variable is required")

        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"

        response = await self._create_with_retry(**kwargs)
        message = response.choices[0].message

        tool_calls = [
            ToolCall(id=call.id, name=call.function.name, arguments=call.function.arguments or "{}")
            for call in (message.tool_calls or [])
        ]
        if tool_calls:
            logger.info(f"[LLM] Model requested tools: {[call.name for call in tool_calls]}")

        return Completion(content=message.content, tool_calls=tool_calls)
