"""Provider backends that return JSON payloads shaped by a pydantic schema.

Each backend handles provider-specific concerns (client creation, how the
schema is communicated, token counting). Validation and failover live in
``llm.client``.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Type, runtime_checkable

from anthropic import AsyncAnthropic
from openai import AsyncOpenAI
from pydantic import BaseModel

from config import settings
from exceptions import ConfigError

logger = logging.getLogger(__name__)

STRUCTURED_TOOL_NAME = "structured_output"


@dataclass
class ProviderResponse:
    """Raw structured payload (dict or JSON text) plus token usage."""

    payload: Any
    input_tokens: int = 0
    output_tokens: int = 0


@runtime_checkable
class StructuredProvider(Protocol):
    name: str

    async def generate(
        self,
        prompt: str,
        schema: Type[BaseModel],
        *,
        model: str,
        temperature: float,
    ) -> ProviderResponse: ...


def _is_placeholder(api_key: Optional[str]) -> bool:
    return not api_key or "your_" in api_key or api_key == "test-key"


def _schema_instructions(schema: Type[BaseModel]) -> str:
    return (
        "Respond with a single JSON object and nothing else. "
        f"It must validate against this JSON Schema:\n{json.dumps(schema.model_json_schema())}"
    )


class OpenAIProvider:
    """OpenAI chat completions in JSON mode."""

    name = "openai"

    def __init__(self, api_key: Optional[str] = None, timeout: Optional[float] = None):
        self._api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self._timeout = timeout or settings.LLM_REQUEST_TIMEOUT_SECONDS

    async def generate(
        self,
        prompt: str,
        schema: Type[BaseModel],
        *,
        model: str,
        temperature: float,
    ) -> ProviderResponse:
        if _is_placeholder(self._api_key):
            raise ConfigError("OPENAI_API_KEY", "not configured")

        client = AsyncOpenAI(api_key=self._api_key, timeout=self._timeout)
        response = await client.chat.completions.create(
            model=model,
            temperature=temperature,
            messages=[
                {"role": "system", "content": _schema_instructions(schema)},
                {"role": "user", "content": prompt},
            ],
            response_format={"type": "json_object"},
            max_tokens=settings.LLM_MAX_OUTPUT_TOKENS,
        )

        content = response.choices[0].message.content
        usage = response.usage
        return ProviderResponse(
            payload=content,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        )


class AnthropicProvider:
    """Anthropic messages with one forced tool whose input schema is the output schema."""

    name = "anthropic"

    def __init__(self, api_key: Optional[str] = None, timeout: Optional[float] = None):
        self._api_key = api_key if api_key is not None else settings.ANTHROPIC_API_KEY
        self._timeout = timeout or settings.LLM_REQUEST_TIMEOUT_SECONDS

    async def generate(
        self,
        prompt: str,
        schema: Type[BaseModel],
        *,
        model: str,
        temperature: float,
    ) -> ProviderResponse:
        if _is_placeholder(self._api_key):
            raise ConfigError("ANTHROPIC_API_KEY", "not configured")

        client = AsyncAnthropic(api_key=self._api_key, timeout=self._timeout)
        response = await client.messages.create(
            model=model,
            max_tokens=settings.LLM_MAX_OUTPUT_TOKENS,
            temperature=temperature,
            tools=[
                {
                    "name": STRUCTURED_TOOL_NAME,
                    "description": f"Return the {schema.__name__} result.",
                    "input_schema": schema.model_json_schema(),
                }
            ],
            tool_choice={"type": "tool", "name": STRUCTURED_TOOL_NAME},
            messages=[{"role": "user", "content": prompt}],
        )

        payload = None
        for block in response.content:
            if getattr(block, "type", None) == "tool_use" and block.name == STRUCTURED_TOOL_NAME:
                payload = block.input
                break
        if payload is None:
            raise ValueError(f"Anthropic response for {model} contained no {STRUCTURED_TOOL_NAME} tool call")

        return ProviderResponse(
            payload=payload,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )


def get_provider(name: str) -> StructuredProvider:
    """Resolve a provider name to its backend."""
    if name == "openai":
        return OpenAIProvider()
    if name == "anthropic":
        return AnthropicProvider()
    raise ConfigError("llm_provider", f"Unknown provider '{name}'. Expected 'openai' or 'anthropic'.")
