# tests/test_llm_client.py

from __future__ import annotations

from dataclasses import replace
from types import SimpleNamespace

import pytest

from taskmatrix.cli.bootstrap import create_llm_bridge
from taskmatrix.core.ports import LLMRequest
from taskmatrix.llm.client import OpenAILLMBridge, build_messages
from taskmatrix.llm.offline import OfflineLLMBridge

from .fakes import FakeClock


class NotFoundError(Exception):
    pass


class AuthenticationError(Exception):
    pass


def _completion(text: str, model: str) -> SimpleNamespace:
    return SimpleNamespace(
        model=model,
        choices=[SimpleNamespace(message=SimpleNamespace(content=text))],
        usage=SimpleNamespace(prompt_tokens=3, completion_tokens=2),
    )


class FakeCompletions:
    """Scripted chat.completions: model name -> exception or text."""

    def __init__(self, script: dict[str, object]) -> None:
        self.script = script
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self.script[kwargs["model"]]
        if isinstance(outcome, Exception):
            raise outcome
        return _completion(str(outcome), kwargs["model"])


def _client(script: dict[str, object]) -> SimpleNamespace:
    return SimpleNamespace(chat=SimpleNamespace(completions=FakeCompletions(script)))


def test_build_messages_orders_system_history_prompt() -> None:
    request = LLMRequest(
        prompt="now",
        system="be brief",
        conversation=[{"role": "user", "content": "before"}],
    )
    assert build_messages(request) == [
        {"role": "system", "content": "be brief"},
        {"role": "user", "content": "before"},
        {"role": "user", "content": "now"},
    ]


@pytest.mark.asyncio
async def test_falls_back_to_next_model_and_remembers_missing_one(settings) -> None:
    client = _client({"model-a": NotFoundError("no such model"), "model-b": "hello"})
    bridge = OpenAILLMBridge(settings, client=client)

    response = await bridge.generate(LLMRequest(prompt="hi", max_tokens=10, temperature=0.2))

    assert response.content == "hello"
    assert response.model == "model-b"
    assert response.total_tokens == 5
    calls = client.chat.completions.calls
    assert [c["model"] for c in calls] == ["model-a", "model-b"]
    assert calls[1]["max_tokens"] == 10
    assert calls[1]["temperature"] == 0.2

    await bridge.generate(LLMRequest(prompt="again"))
    assert [c["model"] for c in calls][2:] == ["model-b"]


@pytest.mark.asyncio
async def test_auth_error_fails_fast(settings) -> None:
    client = _client({"model-a": AuthenticationError("bad key"), "model-b": "never"})
    bridge = OpenAILLMBridge(settings, client=client)

    with pytest.raises(RuntimeError, match="authentication"):
        await bridge.generate(LLMRequest(prompt="hi"))
    assert [c["model"] for c in client.chat.completions.calls] == ["model-a"]


@pytest.mark.asyncio
async def test_all_models_failing_raises(settings) -> None:
    client = _client({"model-a": ValueError("x"), "model-b": ""})
    bridge = OpenAILLMBridge(settings, client=client)

    with pytest.raises(RuntimeError, match="All LLM models failed"):
        await bridge.generate(LLMRequest(prompt="hi"))


def test_missing_configuration_is_reported(settings) -> None:
    with pytest.raises(RuntimeError, match="API key"):
        OpenAILLMBridge(settings)
    with pytest.raises(RuntimeError, match="model list"):
        OpenAILLMBridge(replace(settings, llm_models=[]), client=_client({}))


def test_create_llm_bridge_falls_back_to_offline(settings) -> None:
    assert isinstance(create_llm_bridge(settings), OfflineLLMBridge)
    configured = create_llm_bridge(replace(settings, llm_api_key="sk-test"))
    assert isinstance(configured, OpenAILLMBridge)


@pytest.mark.asyncio
async def test_offline_bridge_echoes_prompt() -> None:
    bridge = OfflineLLMBridge()
    response = await bridge.generate(LLMRequest(prompt="status?"))
    assert "status?" in response.content
    assert response.model == "offline"
    assert list(bridge.requests)[0].prompt == "status?"


@pytest.mark.asyncio
async def test_identical_requests_are_served_from_cache_until_ttl(settings) -> None:
    clock = FakeClock()
    client = _client({"model-a": "hello", "model-b": "unused"})
    bridge = OpenAILLMBridge(replace(settings, llm_cache_ttl_seconds=60.0), client=client, clock=clock)

    first = await bridge.generate(LLMRequest(prompt="hi", system="be brief"))
    second = await bridge.generate(LLMRequest(prompt="hi", system="be brief"))
    assert first.content == second.content == "hello"
    assert len(client.chat.completions.calls) == 1

    await bridge.generate(LLMRequest(prompt="hi", system="be verbose"))
    assert len(client.chat.completions.calls) == 2

    clock.advance(61)
    await bridge.generate(LLMRequest(prompt="hi", system="be brief"))
    assert len(client.chat.completions.calls) == 3

    stats = bridge.stats
    assert stats.total_requests == 4
    assert stats.cache_hits == 1
    assert stats.cache_hit_rate == 0.25
    assert stats.total_tokens == 15
    assert stats.errors == 0

    bridge.clear_cache()
    assert bridge.cache_size == 0


@pytest.mark.asyncio
async def test_zero_ttl_disables_cache_and_errors_are_counted(settings) -> None:
    client = _client({"model-a": "hello", "model-b": "unused"})
    bridge = OpenAILLMBridge(replace(settings, llm_cache_ttl_seconds=0.0), client=client)

    await bridge.generate(LLMRequest(prompt="hi"))
    await bridge.generate(LLMRequest(prompt="hi"))
    assert len(client.chat.completions.calls) == 2
    assert bridge.cache_size == 0

    client.chat.completions.script["model-a"] = ValueError("boom")
    client.chat.completions.script["model-b"] = ValueError("boom")
    with pytest.raises(RuntimeError):
        await bridge.generate(LLMRequest(prompt="other"))
    assert bridge.stats.errors == 1


@pytest.mark.asyncio
async def test_health_check_reports_status(settings) -> None:
    healthy = OpenAILLMBridge(settings, client=_client({"model-a": "hi", "model-b": "hi"}))
    report = await healthy.health_check()
    assert report["status"] == "healthy"
    assert report["model"] == "model-a"
    assert healthy.stats.total_requests == 0

    broken = OpenAILLMBridge(
        settings,
        client=_client({"model-a": AuthenticationError("bad key"), "model-b": "never"}),
    )
    report = await broken.health_check()
    assert report["status"] == "unhealthy"
    assert "authentication" in report["reason"]
