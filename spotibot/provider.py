"""Chat-completion backends for the agent loop."""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any

from spotibot.log import get_logger
from spotibot.types import LLMResponse, LLMToolCall

logger = get_logger("llm")


def _parse_arguments(args: Any) -> dict[str, Any]:
    if isinstance(args, dict):
        return args
    if not args:
        return {}
    try:
        parsed = json.loads(args)
    except json.JSONDecodeError:
        return {"raw": args}
    return parsed if isinstance(parsed, dict) else {"value": parsed}


class LLMProvider(ABC):
    """Abstract LLM provider. Implement for custom backends.

    Errors are reported in-band: after retries are exhausted ``chat`` returns
    an LLMResponse with ``finish_reason="error"`` instead of raising.
    """

    @abstractmethod
    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str = "",
        max_tokens: int = 0,
        temperature: float = -1.0,
    ) -> LLMResponse: ...

    async def chat_stream(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str = "",
        max_tokens: int = 0,
        temperature: float = -1.0,
    ) -> AsyncIterator[str | LLMResponse]:
        """Yield text chunks as str, then exactly one final LLMResponse.

        The base implementation wraps a single chat() call.
        """
        resp = await self.chat(messages, tools, model, max_tokens, temperature)
        if resp.content and resp.finish_reason != "error":
            yield resp.content
        yield resp


def _backoff(attempts: int, base: float) -> list[float]:
    """Delay before each attempt: none before the first, then base * 2**n."""
    return [0.0] + [base * (2 ** n) for n in range(max(1, attempts) - 1)]


class LiteLLMProvider(LLMProvider):
    """Any litellm-routable model (OpenAI, Anthropic, local gateways, ...).

    ``api_key``/``api_base`` are passed per request rather than through
    environment variables, so several providers can coexist in one process.
    """

    def __init__(
        self,
        model: str,
        api_key: str = "",
        api_base: str = "",
        max_tokens: int = 4096,
        temperature: float = 0.7,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
    ) -> None:
        self.model = model
        self.api_key = api_key
        self.api_base = api_base
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay

    def _kwargs(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None,
        model: str,
        max_tokens: int,
        temperature: float,
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": model or self.model,
            "messages": messages,
            "max_tokens": max_tokens or self.max_tokens,
            "temperature": temperature if temperature >= 0 else self.temperature,
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if tools:
            kwargs["tools"] = tools
        return kwargs

    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str = "",
        max_tokens: int = 0,
        temperature: float = -1.0,
    ) -> LLMResponse:
        from litellm import acompletion

        kwargs = self._kwargs(messages, tools, model, max_tokens, temperature)
        delays = _backoff(self.max_retries, self.retry_base_delay)
        error: Exception | None = None
        for attempt, delay in enumerate(delays, 1):
            if delay:
                await asyncio.sleep(delay)
            try:
                return self._parse(await acompletion(**kwargs))
            except Exception as e:
                error = e
                logger.warning(f"{kwargs['model']} completion failed ({attempt}/{len(delays)}): {e}")
        logger.error(f"{kwargs['model']} unavailable after {len(delays)} attempts")
        return LLMResponse(content=f"LLM error: {type(error).__name__}: {error}", finish_reason="error")

    async def chat_stream(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str = "",
        max_tokens: int = 0,
        temperature: float = -1.0,
    ) -> AsyncIterator[str | LLMResponse]:
        """Stream text chunks, then yield the final LLMResponse.

        Tool-call fragments are accumulated by index and only surface in the
        final response, once generation has finished.
        """
        from litellm import acompletion

        kwargs = self._kwargs(messages, tools, model, max_tokens, temperature)
        kwargs["stream"] = True
        try:
            resp = await acompletion(**kwargs)
            full: list[str] = []
            buffers: dict[int, dict[str, str]] = {}
            finish_reason = "stop"
            async for chunk in resp:
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                delta = choice.delta
                if getattr(delta, "content", None):
                    full.append(delta.content)
                    yield delta.content
                for tc in getattr(delta, "tool_calls", None) or []:
                    buf = buffers.setdefault(tc.index or 0, {"id": "", "name": "", "args": ""})
                    if tc.id:
                        buf["id"] = tc.id
                    if tc.function and tc.function.name:
                        buf["name"] = tc.function.name
                    if tc.function and tc.function.arguments:
                        buf["args"] += tc.function.arguments
                if choice.finish_reason:
                    finish_reason = choice.finish_reason
            tool_calls = [
                LLMToolCall(id=b["id"], name=b["name"], arguments=_parse_arguments(b["args"]))
                for _, b in sorted(buffers.items())
            ]
            yield LLMResponse(content="".join(full) or None, tool_calls=tool_calls, finish_reason=finish_reason)
        except Exception as e:
            logger.error(f"LLM stream failed: {e}")
            yield LLMResponse(content=f"LLM error: {type(e).__name__}: {e}", finish_reason="error")

    def _parse(self, resp: Any) -> LLMResponse:
        choice = resp.choices[0]
        msg = choice.message
        tool_calls = [
            LLMToolCall(id=tc.id, name=tc.function.name, arguments=_parse_arguments(tc.function.arguments))
            for tc in getattr(msg, "tool_calls", None) or []
        ]
        return LLMResponse(
            content=getattr(msg, "content", None),
            tool_calls=tool_calls,
            finish_reason=choice.finish_reason or "stop",
            usage=dict(resp.usage) if getattr(resp, "usage", None) else {},
        )
