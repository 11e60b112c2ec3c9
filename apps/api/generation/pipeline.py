"""Expansion generation: route an idea to a format, then run that format's creator."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from generation import prompts
from generation.content import (
    BlogDraft,
    BlogPost,
    CodeRepo,
    ExpansionContent,
    FormatDecision,
    Thread,
    ThreadDraft,
    blog_from_draft,
    thread_from_draft,
)
from llm.client import FallbackConfig, TokenCounter, invoke_structured
from llm.providers import StructuredProvider
from llm.registry import config_for_use_case

logger = logging.getLogger(__name__)

DEFAULT_FORMAT = "blog_post"
ROUTING_TEMPERATURE = 0.5


@dataclass
class GenerationResult:
    chosen_format: str
    format_reasoning: Optional[str] = None
    content: Optional[ExpansionContent] = None
    errors: List[str] = field(default_factory=list)
    tokens_used: int = 0

    @property
    def has_content(self) -> bool:
        return self.content is not None


Creator = Callable[..., Awaitable[ExpansionContent]]


async def _create_blog_post(idea, config, usage, providers) -> BlogPost:
    draft = await invoke_structured(
        prompts.blog_prompt(idea), BlogDraft, config, usage=usage, providers=providers
    )
    return blog_from_draft(draft)


async def _create_thread(idea, config, usage, providers) -> Thread:
    draft = await invoke_structured(
        prompts.thread_prompt(idea), ThreadDraft, config, usage=usage, providers=providers
    )
    return thread_from_draft(draft)


async def _create_code_repo(idea, config, usage, providers) -> CodeRepo:
    repo = await invoke_structured(
        prompts.code_prompt(idea), CodeRepo, config, usage=usage, providers=providers
    )
    return repo


CREATORS: Dict[str, Creator] = {
    "blog_post": _create_blog_post,
    "thread": _create_thread,
    "code_repo": _create_code_repo,
}


async def generate_content(
    idea: Dict[str, Any],
    *,
    configs: Optional[Mapping[str, FallbackConfig]] = None,
    providers: Optional[Mapping[str, StructuredProvider]] = None,
) -> GenerationResult:
    """
    Expand an idea into one content format.

    Failures never raise: a routing failure falls back to ``blog_post`` and a
    creator failure leaves ``content`` empty. Both are recorded in ``errors``.

    Args:
        idea: Dict with ``title``, ``description`` and ``bullets``
        configs: Optional per-use-case overrides (routing, blog_post, thread, code_repo)
        providers: Optional provider overrides passed to the LLM layer
    """
    configs = configs or {}
    usage = TokenCounter()
    result = GenerationResult(chosen_format=DEFAULT_FORMAT)

    routing_config = configs.get("routing") or config_for_use_case("routing", ROUTING_TEMPERATURE)
    try:
        decision = await invoke_structured(
            prompts.routing_prompt(idea), FormatDecision, routing_config, usage=usage, providers=providers
        )
        result.chosen_format = decision.format
        result.format_reasoning = decision.reasoning
    except Exception as exc:
        logger.warning("Format routing failed, defaulting to %s: %s", DEFAULT_FORMAT, exc)
        result.errors.append(f"Router failed: {exc}")
        result.format_reasoning = f"Defaulted to {DEFAULT_FORMAT} after routing failure"

    creator = CREATORS[result.chosen_format]
    creator_config = configs.get(result.chosen_format) or config_for_use_case(result.chosen_format)
    try:
        result.content = await creator(idea, creator_config, usage, providers)
    except Exception as exc:
        logger.error("Creator for %s failed: %s", result.chosen_format, exc)
        result.errors.append(f"Creator failed ({result.chosen_format}): {exc}")

    result.tokens_used = usage.total
    return result
