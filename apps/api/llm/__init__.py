"""Structured LLM invocation with provider failover."""

from llm.client import FallbackConfig, ModelTarget, TokenCounter, invoke_structured
from llm.providers import ProviderResponse, get_provider
from llm.registry import config_for_use_case

__all__ = [
    "FallbackConfig",
    "ModelTarget",
    "ProviderResponse",
    "TokenCounter",
    "config_for_use_case",
    "get_provider",
    "invoke_structured",
]
