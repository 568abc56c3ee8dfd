#!/usr/bin/env python3
"""
Unit tests for the LLM enrichment client and its call budget.
The OpenAI client is replaced by a fake; no network calls are made.
"""

import sys
import pytest
from pathlib import Path
from types import SimpleNamespace

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from autofill.llm_client import LlmPropertyExtractClient, SYSTEM_PROMPT, parse_llm_reply
from autofill.llm_rate_limiter import LlmRateLimiter

FEATURES = "80 m² construidos 3 habitaciones 2 baños Terraza"
FULL_REPLY = '{"sqm": 80, "rooms": 3, "bathrooms": 2, "maxRent": 900}'


class FakeCompletions:
    def __init__(self, content=None, error=None, refusal=None):
        self.content = content
        self.error = error
        self.refusal = refusal
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.content, refusal=self.refusal)
        return SimpleNamespace(
            choices=[SimpleNamespace(message=message)],
            usage=SimpleNamespace(total_tokens=123),
        )


def _client(completions, rate_limiter=None, api_key="sk-test"):
    fake = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return LlmPropertyExtractClient(
        api_key=api_key,
        client=fake,
        rate_limiter=rate_limiter or LlmRateLimiter(max_per_minute=60, max_per_hour=500),
    )


class TestParseReply:
    def test_plain_json(self):
        result = parse_llm_reply('{"sqm": 80, "rooms": null, "bathrooms": 2, "maxRent": 900}')
        assert result.sqm == 80
        assert result.rooms is None
        assert result.max_rent == 900

    def test_fenced_json(self):
        result = parse_llm_reply('```json\n{"sqm": null, "rooms": 3, "bathrooms": null, "maxRent": 750}\n```')
        assert result.rooms == 3
        assert result.max_rent == 750

    @pytest.mark.parametrize("raw", [
        "",
        "not json",
        "[1, 2]",
        '{"sqm": 80}',
        '{"maxRent": -5}',
        '{"maxRent": "mucho"}',
        '{"maxRent": 900}',
        '{"sqm": 80, "rooms": 3, "maxRent": 900}',
        '{"sqm": "80", "rooms": 3, "bathrooms": 2, "maxRent": 900}',
        '{"sqm": 80, "rooms": 3, "bathrooms": 2, "maxRent": "900"}',
        '{"sqm": null, "rooms": null, "bathrooms": null, "maxRent": true}',
        '{"sqm": 80, "rooms": false, "bathrooms": 2, "maxRent": 900}',
        '{"sqm": null, "rooms": null, "bathrooms": null, "maxRent": null}',
    ])
    def test_invalid_replies(self, raw):
        assert parse_llm_reply(raw) is None


class TestLlmClient:
    @pytest.mark.asyncio
    async def test_successful_extraction(self):
        completions = FakeCompletions(content='{"sqm": 80, "rooms": 3, "bathrooms": 1, "maxRent": 900}')
        client = _client(completions)

        result = await client.extract("Dénia", 200000, FEATURES)

        assert result.max_rent == 900
        call = completions.calls[0]
        assert call["response_format"] == {"type": "json_object"}
        assert call["messages"][0] == {"role": "system", "content": SYSTEM_PROMPT}
        user_prompt = call["messages"][1]["content"]
        assert "City: Dénia" in user_prompt
        assert "200000" in user_prompt
        assert FEATURES in user_prompt

    @pytest.mark.asyncio
    async def test_content_parts_are_joined(self):
        parts = [{"type": "text", "text": '{"sqm": 80, "rooms": 3, '}, SimpleNamespace(text='"bathrooms": null, "maxRent": 700}')]
        client = _client(FakeCompletions(content=parts))
        result = await client.extract("Madrid", 300000, FEATURES)
        assert result.max_rent == 700

    @pytest.mark.asyncio
    async def test_non_numeric_rent_is_rejected(self):
        content = '{"sqm": 80, "rooms": 3, "bathrooms": 2, "maxRent": true}'
        client = _client(FakeCompletions(content=content))
        assert await client.extract("Madrid", 300000, FEATURES) is None

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        completions = FakeCompletions(content='{"maxRent": 900}')
        client = _client(completions, api_key="")
        assert await client.extract("Madrid", 300000, FEATURES) is None
        assert completions.calls == []

    @pytest.mark.asyncio
    async def test_empty_features(self):
        completions = FakeCompletions(content='{"maxRent": 900}')
        assert await _client(completions).extract("Madrid", 300000, "  ") is None
        assert completions.calls == []

    @pytest.mark.asyncio
    async def test_sdk_error_returns_none(self):
        client = _client(FakeCompletions(error=RuntimeError("boom")))
        assert await client.extract("Madrid", 300000, FEATURES) is None

    @pytest.mark.asyncio
    async def test_refusal_returns_none(self):
        client = _client(FakeCompletions(content=None, refusal="I can't help with that"))
        assert await client.extract("Madrid", 300000, FEATURES) is None

    @pytest.mark.asyncio
    async def test_budget_exhausted_skips_call(self):
        completions = FakeCompletions(content=FULL_REPLY)
        client = _client(completions, rate_limiter=LlmRateLimiter(max_per_minute=1, max_per_hour=100))

        assert await client.extract("Madrid", 300000, FEATURES) is not None
        assert await client.extract("Madrid", 300000, FEATURES) is None
        assert len(completions.calls) == 1

    @pytest.mark.asyncio
    async def test_failed_calls_still_count(self):
        completions = FakeCompletions(error=RuntimeError("boom"))
        limiter = LlmRateLimiter(max_per_minute=5, max_per_hour=100)
        await _client(completions, rate_limiter=limiter).extract("Madrid", 300000, FEATURES)
        assert limiter.calls_in_last(60) == 1


class TestLlmRateLimiter:
    def test_minute_window_slides(self):
        now = [0.0]
        limiter = LlmRateLimiter(max_per_minute=2, max_per_hour=100, clock=lambda: now[0])
        limiter.record_call()
        limiter.record_call()
        assert limiter.can_call() is False
        now[0] = 60.0
        assert limiter.can_call() is True

    def test_hour_window(self):
        now = [0.0]
        limiter = LlmRateLimiter(max_per_minute=0, max_per_hour=3, clock=lambda: now[0])
        for i in range(3):
            now[0] = i * 100.0
            limiter.record_call()
        assert limiter.can_call() is False
        now[0] = 3600.0
        assert limiter.can_call() is True

    def test_zero_disables_window(self):
        limiter = LlmRateLimiter(max_per_minute=0, max_per_hour=0)
        for _ in range(10):
            limiter.record_call()
        assert limiter.can_call() is True
