"""Purpose-based model selection.

Each use case maps to a primary and a fallback ``provider:model`` pair taken
from settings, so model versions can be changed without touching callers.
"""

from typing import Dict, Optional, Tuple

from config import settings
from exceptions import ConfigError
from llm.client import FallbackConfig, ModelTarget


def _use_case_settings() -> Dict[str, Tuple[str, str]]:
    return {
        "routing": (settings.MODEL_ROUTING_PRIMARY, settings.MODEL_ROUTING_FALLBACK),
        "blog_post": (settings.MODEL_BLOG_PRIMARY, settings.MODEL_BLOG_FALLBACK),
        "thread": (settings.MODEL_THREAD_PRIMARY, settings.MODEL_THREAD_FALLBACK),
        "code_repo": (settings.MODEL_CODE_PRIMARY, settings.MODEL_CODE_FALLBACK),
    }


def config_for_use_case(use_case: str, temperature: Optional[float] = None) -> FallbackConfig:
    """Build the fallback config for a use case (routing, blog_post, thread, code_repo)."""
    pairs = _use_case_settings()
    if use_case not in pairs:
        raise ConfigError("llm_use_case", f"Unknown use case '{use_case}'")
    primary, fallback = pairs[use_case]
    return FallbackConfig(
        primary=ModelTarget.parse(primary, temperature),
        fallback=ModelTarget.parse(fallback, temperature),
    )
