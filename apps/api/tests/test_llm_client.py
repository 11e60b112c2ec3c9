import logging
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pydantic import BaseModel

from exceptions import ConfigError, ProviderError, ValidationError
from llm.client import FallbackConfig, ModelTarget, TokenCounter, invoke_structured
from llm.providers import AnthropicProvider, OpenAIProvider, ProviderResponse, get_provider
from llm.registry import config_for_use_case


class Verdict(BaseModel):
    label: str
    score: int


class ScriptedProvider:
    def __init__(self, name, *responses):
        self.name = name
        self.calls = []
        self._responses = list(responses)

    async def generate(self, prompt, schema, *, model, temperature):
        self.calls.append({"prompt": prompt, "schema": schema, "model": model, "temperature": temperature})
        item = self._responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


CONFIG = FallbackConfig(
    primary=ModelTarget("alpha", "alpha-large"),
    fallback=ModelTarget("beta", "beta-small", temperature=0.2),
)


@pytest.mark.asyncio
async def test_primary_success_skips_fallback():
    alpha = ScriptedProvider("alpha", ProviderResponse({"label": "good", "score": 9}, 10, 5))
    beta = ScriptedProvider("beta")

    result = await invoke_structured("rate it", Verdict, CONFIG, providers={"alpha": alpha, "beta": beta})

    assert result == Verdict(label="good", score=9)
    assert alpha.calls[0]["temperature"] == 0.7
    assert alpha.calls[0]["model"] == "alpha-large"
    assert beta.calls == []


@pytest.mark.asyncio
async def test_primary_failure_uses_fallback_with_same_prompt(caplog):
    alpha = ScriptedProvider("alpha", RuntimeError("rate limited"))
    beta = ScriptedProvider("beta", ProviderResponse('{"label": "ok", "score": 6}'))

    with caplog.at_level(logging.WARNING, logger="llm.client"):
        result = await invoke_structured("rate it", Verdict, CONFIG, providers={"alpha": alpha, "beta": beta})

    assert result.label == "ok"
    assert beta.calls[0]["prompt"] == "rate it"
    assert beta.calls[0]["schema"] is Verdict
    assert beta.calls[0]["temperature"] == 0.2
    assert "rate limited" in caplog.text


@pytest.mark.asyncio
async def test_schema_violation_counts_as_failure():
    alpha = ScriptedProvider("alpha", ProviderResponse({"label": "missing score"}))
    beta = ScriptedProvider("beta", ProviderResponse({"label": "fine", "score": 3}))

    result = await invoke_structured("rate it", Verdict, CONFIG, providers={"alpha": alpha, "beta": beta})

    assert result.score == 3
    assert len(beta.calls) == 1


@pytest.mark.asyncio
async def test_both_failures_are_aggregated():
    primary_error = RuntimeError("primary down")
    fallback_error = TimeoutError("fallback timed out")
    alpha = ScriptedProvider("alpha", primary_error)
    beta = ScriptedProvider("beta", fallback_error)

    with pytest.raises(ProviderError) as exc_info:
        await invoke_structured("rate it", Verdict, CONFIG, providers={"alpha": alpha, "beta": beta})

    error = exc_info.value
    assert error.primary_error is primary_error
    assert error.fallback_error is fallback_error
    assert "Both LLMs failed" in error.message
    assert "primary down" in error.message and "fallback timed out" in error.message
    assert error.details["primary_provider"] == "alpha"
    assert error.details["fallback_provider"] == "beta"


@pytest.mark.asyncio
async def test_unknown_provider_falls_back():
    beta = ScriptedProvider("beta", ProviderResponse({"label": "ok", "score": 1}))

    result = await invoke_structured("rate it", Verdict, CONFIG, providers={"beta": beta})

    assert result.label == "ok"


@pytest.mark.asyncio
async def test_token_usage_accumulates_across_attempts():
    alpha = ScriptedProvider("alpha", ProviderResponse({"label": "bad"}, 100, 20))
    beta = ScriptedProvider("beta", ProviderResponse({"label": "ok", "score": 2}, 50, 10))
    usage = TokenCounter()

    await invoke_structured("rate it", Verdict, CONFIG, usage=usage, providers={"alpha": alpha, "beta": beta})

    assert usage.input_tokens == 150
    assert usage.output_tokens == 30
    assert usage.total == 180


def test_model_target_parsing():
    target = ModelTarget.parse("anthropic:claude-haiku-4-5-20251001", temperature=0.5)
    assert target == ModelTarget("anthropic", "claude-haiku-4-5-20251001", 0.5)

    with pytest.raises(ValidationError):
        ModelTarget.parse("gpt-4o-mini")


def test_use_case_configs_come_from_settings():
    config = config_for_use_case("routing", temperature=0.5)

    assert config.primary.provider == "openai"
    assert config.fallback.provider == "anthropic"
    assert config.primary.temperature == 0.5

    with pytest.raises(ConfigError):
        config_for_use_case("podcast")


def test_provider_factory():
    assert isinstance(get_provider("openai"), OpenAIProvider)
    assert isinstance(get_provider("anthropic"), AnthropicProvider)
    with pytest.raises(ConfigError):
        get_provider("replicate")


@pytest.mark.asyncio
async def test_missing_api_key_is_a_config_error():
    with pytest.raises(ConfigError):
        await OpenAIProvider(api_key="").generate("p", Verdict, model="gpt-4o-mini", temperature=0.7)
    with pytest.raises(ConfigError):
        await AnthropicProvider(api_key="").generate("p", Verdict, model="claude", temperature=0.7)


@pytest.mark.asyncio
async def test_openai_provider_requests_json_mode():
    completion = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content='{"label": "x", "score": 1}'))],
        usage=SimpleNamespace(prompt_tokens=12, completion_tokens=4),
    )
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=completion)

    with patch("llm.providers.AsyncOpenAI", return_value=client):
        response = await OpenAIProvider(api_key="sk-live").generate(
            "rate it", Verdict, model="gpt-4o-mini", temperature=0.7
        )

    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["response_format"] == {"type": "json_object"}
    assert "JSON Schema" in kwargs["messages"][0]["content"]
    assert response.payload == '{"label": "x", "score": 1}'
    assert (response.input_tokens, response.output_tokens) == (12, 4)


@pytest.mark.asyncio
async def test_anthropic_provider_forces_schema_tool():
    message = SimpleNamespace(
        content=[
            SimpleNamespace(type="text", text="thinking"),
            SimpleNamespace(type="tool_use", name="structured_output", input={"label": "y", "score": 2}),
        ],
        usage=SimpleNamespace(input_tokens=30, output_tokens=8),
    )
    client = MagicMock()
    client.messages.create = AsyncMock(return_value=message)

    with patch("llm.providers.AsyncAnthropic", return_value=client):
        response = await AnthropicProvider(api_key="sk-ant-live").generate(
            "rate it", Verdict, model="claude-haiku-4-5-20251001", temperature=0.7
        )

    kwargs = client.messages.create.call_args.kwargs
    assert kwargs["tool_choice"] == {"type": "tool", "name": "structured_output"}
    assert kwargs["tools"][0]["input_schema"] == Verdict.model_json_schema()
    assert response.payload == {"label": "y", "score": 2}
    assert response.input_tokens == 30
