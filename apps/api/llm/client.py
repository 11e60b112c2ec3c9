"""Structured LLM calls with one layer of provider failover."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Mapping, Optional, Type, TypeVar

from pydantic import BaseModel

from config import settings
from exceptions import ProviderError, ValidationError
from llm.providers import ProviderResponse, StructuredProvider, get_provider

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


@dataclass(frozen=True)
class ModelTarget:
    provider: str
    model: str
    temperature: Optional[float] = None

    @classmethod
    def parse(cls, value: str, temperature: Optional[float] = None) -> "ModelTarget":
        """Parse ``"provider:model"`` strings used in settings."""
        provider, sep, model = (value or "").partition(":")
        if not sep or not provider.strip() or not model.strip():
            raise ValidationError(f"Model target must look like 'provider:model', got '{value}'")
        return cls(provider=provider.strip(), model=model.strip(), temperature=temperature)


@dataclass(frozen=True)
class FallbackConfig:
    primary: ModelTarget
    fallback: ModelTarget


@dataclass
class TokenCounter:
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total(self) -> int:
        return self.input_tokens + self.output_tokens

    def add(self, response: ProviderResponse) -> None:
        self.input_tokens += int(response.input_tokens or 0)
        self.output_tokens += int(response.output_tokens or 0)


async def _call_target(
    prompt: str,
    schema: Type[T],
    target: ModelTarget,
    providers: Optional[Mapping[str, StructuredProvider]],
    usage: Optional[TokenCounter],
) -> T:
    if providers and target.provider in providers:
        provider = providers[target.provider]
    else:
        provider = get_provider(target.provider)

    temperature = target.temperature if target.temperature is not None else settings.LLM_DEFAULT_TEMPERATURE
    response = await provider.generate(prompt, schema, model=target.model, temperature=temperature)
    if usage is not None:
        usage.add(response)

    if isinstance(response.payload, (str, bytes)):
        return schema.model_validate_json(response.payload)
    return schema.model_validate(response.payload)


async def invoke_structured(
    prompt: str,
    schema: Type[T],
    config: FallbackConfig,
    *,
    usage: Optional[TokenCounter] = None,
    providers: Optional[Mapping[str, StructuredProvider]] = None,
) -> T:
    """
    Call the primary model for a schema-conformant result, falling back once.

    Any failure of the primary (network, provider error, missing credentials,
    schema validation) triggers the fallback with the same prompt and schema.

    Args:
        prompt: Prompt text
        schema: Pydantic model the result must validate against
        config: Primary and fallback targets
        usage: Optional accumulator for token usage across both attempts
        providers: Optional provider overrides keyed by provider name

    Raises:
        ProviderError: Both attempts failed; carries both underlying errors
    """
    try:
        logger.debug("Calling LLM (primary) %s/%s", config.primary.provider, config.primary.model)
        result = await _call_target(prompt, schema, config.primary, providers, usage)
        logger.debug("LLM call successful (primary)")
        return result
    except Exception as primary_error:
        logger.warning(
            "Primary LLM %s/%s failed, trying fallback %s/%s: %s",
            config.primary.provider,
            config.primary.model,
            config.fallback.provider,
            config.fallback.model,
            primary_error,
        )
        try:
            result = await _call_target(prompt, schema, config.fallback, providers, usage)
        except Exception as fallback_error:
            raise ProviderError(
                config.primary.provider,
                primary_error,
                config.fallback.provider,
                fallback_error,
            ) from fallback_error
        logger.info("LLM call successful (fallback %s)", config.fallback.provider)
        return result
