"""Model client abstraction with a streaming Anthropic API backend."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Union

from eduassist.config import AnthropicConfig
from eduassist.errors import StreamTransportError
from eduassist.log import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class TextDelta:
    """A piece of generated text, in arrival order."""

    text: str


@dataclass(frozen=True)
class ToolCallRequest:
    """The model asked for a named tool to be run with these arguments."""

    id: str
    name: str
    args: dict[str, Any] = field(default_factory=dict)


ModelEvent = Union[TextDelta, ToolCallRequest]


class AIClient(ABC):
    """Abstract base class for turn-based model backends."""

    @abstractmethod
    def stream(
        self,
        system: str,
        messages: list[dict[str, Any]],
        model: str,
        max_tokens: int = 1000,
        temperature: float = 0.7,
        tools: list[dict[str, Any]] | None = None,
        allow_tool_use: bool = True,
    ) -> AsyncIterator[ModelEvent]:
        """Send a conversation and yield text deltas followed by any requested tool calls.

        ``tools`` are provider-neutral declarations (name, description,
        parameters). With ``allow_tool_use`` false the model must answer in
        text even though tool history is present in ``messages``.
        """
        ...


def to_anthropic_tools(declarations: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Serialize declarations to the Anthropic API tool definition format."""
    return [
        {
            "name": d["name"],
            "description": d["description"],
            "input_schema": d["parameters"],
        }
        for d in declarations
    ]


class AnthropicClient(AIClient):
    """Anthropic API backend using the official async SDK."""

    def __init__(self, config: AnthropicConfig):
        import anthropic

        self._anthropic = anthropic
        self._client = anthropic.AsyncAnthropic(
            api_key=config.api_key,
            base_url=config.base_url,
            max_retries=config.max_retries,
            timeout=config.timeout,
        )

    async def stream(
        self,
        system: str,
        messages: list[dict[str, Any]],
        model: str,
        max_tokens: int = 1000,
        temperature: float = 0.7,
        tools: list[dict[str, Any]] | None = None,
        allow_tool_use: bool = True,
    ) -> AsyncIterator[ModelEvent]:
        kwargs: dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "system": system,
            "messages": messages,
            "temperature": temperature,
        }
        if tools:
            kwargs["tools"] = to_anthropic_tools(tools)
            kwargs["tool_choice"] = {"type": "auto"} if allow_tool_use else {"type": "none"}

        logger.debug("api_request", model=model, message_count=len(messages))
        try:
            async with self._client.messages.stream(**kwargs) as stream:
                async for event in stream:
                    if event.type == "text" and event.text:
                        yield TextDelta(event.text)
                response = await stream.get_final_message()
        except self._anthropic.APIError as e:
            logger.error("api_error", model=model, error=str(e))
            raise StreamTransportError(f"Model request failed: {e}") from e

        logger.debug(
            "api_response",
            model=model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            stop_reason=response.stop_reason,
        )
        for block in response.content:
            if block.type == "tool_use":
                yield ToolCallRequest(id=block.id, name=block.name, args=dict(block.input or {}))
