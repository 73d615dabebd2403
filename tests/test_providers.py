"""Tests for the OpenRouter chat provider."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest
from httpx import Request, Response
from openai import APIConnectionError, RateLimitError

from config.settings import OpenRouterConfig, SystemConfig
from models.json_response import parse_json_object
from models.providers import OpenRouterProvider, ProviderRateLimitError, ProviderRequestError


class FakeCompletions:
    """Simplified chat.completions client for testing."""

    def __init__(self, *responses, delay: float = 0.0):
        self._responses = list(responses)
        self.requests: list[dict] = []
        self.delay = delay

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        await asyncio.sleep(self.delay)
        item = self._responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=item))]
        )


@pytest.fixture
def provider(monkeypatch: pytest.MonkeyPatch) -> OpenRouterProvider:
    monkeypatch.setattr(OpenRouterProvider, "_min_request_interval", 0.0)
    monkeypatch.setattr(OpenRouterProvider, "_last_request_time", None)
    return OpenRouterProvider(SystemConfig(openrouter=OpenRouterConfig(api_key="test-key")))


def attach(provider: OpenRouterProvider, completions: FakeCompletions) -> None:
    provider._client = SimpleNamespace(chat=SimpleNamespace(completions=completions))


def test_generate_response_returns_stripped_content(provider) -> None:
    completions = FakeCompletions("  {\"ok\": true}  \n")
    attach(provider, completions)

    result = asyncio.run(
        provider.generate_response("test/model", [{"role": "user", "content": "hi"}], max_tokens=50)
    )

    assert result == '{"ok": true}'
    assert completions.requests[0]["model"] == "test/model"
    assert completions.requests[0]["max_tokens"] == 50


def test_generation_does_not_block_the_event_loop(provider) -> None:
    attach(provider, FakeCompletions("slow answer", delay=0.5))

    async def scenario():
        gaps = []
        done = asyncio.Event()

        async def tick():
            loop = asyncio.get_running_loop()
            last = loop.time()
            while not done.is_set():
                await asyncio.sleep(0.02)
                now = loop.time()
                gaps.append(now - last)
                last = now

        ticker = asyncio.create_task(tick())
        result = await provider.generate_response("test/model", [])
        done.set()
        await ticker
        return result, gaps

    result, gaps = asyncio.run(scenario())

    assert result == "slow answer"
    assert len(gaps) >= 5
    assert max(gaps) < 0.25


def test_rate_limit_is_translated(provider) -> None:
    request = Request("POST", "https://openrouter.ai/api/v1/chat/completions")
    error = RateLimitError(
        "Too many requests", response=Response(429, request=request), body=None
    )
    attach(provider, FakeCompletions(error))

    with pytest.raises(ProviderRateLimitError, match="429 openrouter rate limit") as excinfo:
        asyncio.run(provider.generate_response("test/model", []))

    assert excinfo.value.status_code == 429
    assert excinfo.value.model == "test/model"


def test_connection_failure_is_wrapped(provider) -> None:
    request = Request("POST", "https://openrouter.ai/api/v1/chat/completions")
    attach(provider, FakeCompletions(APIConnectionError(request=request)))

    with pytest.raises(ProviderRequestError, match="openrouter request failed for test/model") as excinfo:
        asyncio.run(provider.generate_response("test/model", []))

    assert isinstance(excinfo.value, RuntimeError)
    assert isinstance(excinfo.value.__cause__, APIConnectionError)


def test_unconfigured_provider_refuses(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
    provider = OpenRouterProvider(SystemConfig())

    assert provider.is_configured is False
    with pytest.raises(RuntimeError, match="not initialized"):
        asyncio.run(provider.generate_response("test/model", []))


def test_parse_json_object_repairs_model_output() -> None:
    assert parse_json_object('Sure! {"winner": {"cast_id": "abc",}}') == {
        "winner": {"cast_id": "abc"}
    }
    assert parse_json_object('{"reasoning": "clear, concise: strong"}') == {
        "reasoning": "clear, concise: strong"
    }
    assert parse_json_object('{"winner": {"cast_id": "abc"') == {"winner": {"cast_id": "abc"}}

    with pytest.raises(ValueError):
        parse_json_object("[1, 2, 3]")
