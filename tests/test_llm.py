"""Tests for the completion client wrapper and JSON extraction.

测试 LLM 响应解析：纯 JSON / 代码块 / 前后多余文字 / 错误映射。
"""

import asyncio
from types import SimpleNamespace

import httpx
import openai
import pytest

from topic_digest.config import Settings
from topic_digest.errors import (
    CompletionError,
    CompletionRateLimited,
    CompletionServiceTimeout,
    ConfigurationError,
    MalformedCompletionResponse,
)
from topic_digest.llm import CompletionClient, extract_json_object, strip_code_fences

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


# ── Helpers ──────────────────────────────────────────────────────────────


class FakeCompletions:
    def __init__(self, outcome):
        self.outcome = outcome
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def _fake_openai(outcome) -> SimpleNamespace:
    return SimpleNamespace(chat=SimpleNamespace(completions=FakeCompletions(outcome)))


def _response(content: str | None) -> SimpleNamespace:
    message = SimpleNamespace(content=content)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _complete(client: CompletionClient) -> str:
    return asyncio.run(client.complete(model="gpt-4o-mini", system="sys", user="user"))


# ── extract_json_object tests ────────────────────────────────────────────


class TestExtractJsonObject:
    """JSON 提取测试"""

    def test_plain(self):
        assert extract_json_object('{"a": 1}') == {"a": 1}

    def test_code_fence(self):
        """markdown 代码块"""
        assert extract_json_object('```json\n{"a": [1, 2]}\n```') == {"a": [1, 2]}

    def test_surrounding_prose(self):
        """前后多余文字"""
        text = 'Here you go:\n{"rankings": []}\nLet me know if you need more.'
        assert extract_json_object(text) == {"rankings": []}

    def test_braces_inside_strings(self):
        text = '{"reasoning": "uses {curly} braces", "n": 2} trailing }'
        assert extract_json_object(text) == {"reasoning": "uses {curly} braces", "n": 2}

    def test_no_object(self):
        with pytest.raises(MalformedCompletionResponse):
            extract_json_object("I cannot help with that.")

    def test_invalid_json(self):
        with pytest.raises(MalformedCompletionResponse):
            extract_json_object("{'single': 'quotes'}")

    def test_strip_code_fences_without_fence(self):
        assert strip_code_fences("  {}  ") == "{}"


# ── CompletionClient tests ───────────────────────────────────────────────


class TestCompletionClient:
    """SDK 异常映射测试"""

    def test_returns_content_and_requests_json(self):
        fake = _fake_openai(_response('{"ok": true}'))
        client = CompletionClient(fake)
        assert _complete(client) == '{"ok": true}'

        kwargs = fake.chat.completions.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][0] == {"role": "system", "content": "sys"}

    def test_empty_content(self):
        client = CompletionClient(_fake_openai(_response("   ")))
        with pytest.raises(MalformedCompletionResponse):
            _complete(client)

    def test_no_choices(self):
        empty = SimpleNamespace(choices=[], model_dump_json=lambda: "{}")
        with pytest.raises(MalformedCompletionResponse):
            _complete(CompletionClient(_fake_openai(empty)))

    def test_rate_limit_mapped(self):
        error = openai.RateLimitError(
            "slow down", response=httpx.Response(429, request=_REQUEST), body=None
        )
        with pytest.raises(CompletionRateLimited):
            _complete(CompletionClient(_fake_openai(error)))

    def test_timeout_mapped(self):
        error = openai.APITimeoutError(request=_REQUEST)
        with pytest.raises(CompletionServiceTimeout):
            _complete(CompletionClient(_fake_openai(error)))

    def test_other_api_errors_mapped(self):
        error = openai.APIConnectionError(request=_REQUEST)
        with pytest.raises(CompletionError):
            _complete(CompletionClient(_fake_openai(error)))

    def test_missing_api_key(self):
        with pytest.raises(ConfigurationError):
            CompletionClient.from_settings(Settings(openai_api_key=""))
