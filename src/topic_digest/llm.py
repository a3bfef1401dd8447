"""Completion service client.

Thin async wrapper over the OpenAI SDK. SDK exceptions are translated into
the pipeline's own error kinds so callers never import openai directly.
"""

import json
import logging
import re
from typing import Any

import openai
from openai import AsyncOpenAI

from .config import OpenAIConfig, Settings
from .errors import (
    CompletionError,
    CompletionRateLimited,
    CompletionServiceTimeout,
    ConfigurationError,
    MalformedCompletionResponse,
)

logger = logging.getLogger(__name__)


class CompletionClient:
    """Chat-completion client returning the raw message content."""

    def __init__(self, client: AsyncOpenAI) -> None:
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings, config: OpenAIConfig | None = None) -> "CompletionClient":
        config = config or OpenAIConfig()
        if not settings.openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY is required")
        client = AsyncOpenAI(
            api_key=settings.openai_api_key,
            base_url=config.base_url,
            max_retries=config.max_retries,
        )
        return cls(client)

    async def complete(
        self,
        *,
        model: str,
        system: str,
        user: str,
        temperature: float = 0.3,
        max_tokens: int | None = None,
        json_mode: bool = True,
    ) -> str:
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "temperature": temperature,
        }
        if max_tokens:
            kwargs["max_tokens"] = max_tokens
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self._client.chat.completions.create(**kwargs)
        except openai.RateLimitError as exc:
            raise CompletionRateLimited(str(exc)) from exc
        except openai.APITimeoutError as exc:
            raise CompletionServiceTimeout(str(exc)) from exc
        except openai.OpenAIError as exc:
            raise CompletionError(str(exc)) from exc

        if not response.choices:
            logger.error("LLM returned empty choices. Raw response: %s", response.model_dump_json()[:500])
            raise MalformedCompletionResponse("LLM returned no choices")

        content = response.choices[0].message.content or ""
        if not content.strip():
            raise MalformedCompletionResponse("LLM returned empty content")
        return content


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------

_CODE_FENCE = re.compile(r"```(?:json)?\s*\n?(.*?)```", re.DOTALL)


def strip_code_fences(text: str) -> str:
    text = text.strip()
    if "```" in text:
        match = _CODE_FENCE.search(text)
        if match:
            return match.group(1).strip()
    return text


def _first_object_span(text: str) -> str | None:
    """Return the first balanced {...} block, ignoring braces inside strings."""
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def extract_json_object(text: str) -> dict[str, Any]:
    """Parse the first JSON object in an LLM response.

    支持: 纯 JSON、markdown 代码块、前后多余文字。
    Raises MalformedCompletionResponse when nothing parseable is found.
    """
    text = strip_code_fences(text)
    candidate = _first_object_span(text)
    if candidate is None:
        raise MalformedCompletionResponse("no JSON object in response")
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise MalformedCompletionResponse(f"invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedCompletionResponse("response is not a JSON object")
    return data
