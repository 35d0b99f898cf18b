"""Agent loop -- prompt, call tools through the engine, repeat until the model is done."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from spotibot.config import AgentConfig
from spotibot.context import ContextManager, ContextStore
from spotibot.engine import ExecutionEngine
from spotibot.log import get_logger
from spotibot.provider import LLMProvider
from spotibot.registry import ActionRegistry
from spotibot.types import (
    ActionExecutionContext,
    ActionExecutionResult,
    AIContext,
    FinishEvent,
    LLMResponse,
    StreamEvent,
    TextDelta,
    ToolCallEvent,
    ToolCallRecord,
    ToolResultEvent,
    ToolResultRecord,
    new_id,
)

logger = get_logger("agent")


@dataclass
class AgentResponse:
    text: str
    context: AIContext
    tool_calls: list[ToolCallRecord] = field(default_factory=list)
    tool_results: list[ToolResultRecord] = field(default_factory=list)
    success: bool = True
    error: str | None = None
    steps: int = 0


class AgentLoop:
    """One session's orchestration loop.

    Each step asks the model for a completion with the selected tool schemas.
    Tool calls run one at a time through the ExecutionEngine, in the order the
    model emitted them, and are recorded on the in-progress assistant message.
    The loop ends when the model answers without tool calls or after
    ``max_steps`` steps.
    """

    def __init__(
        self,
        provider: LLMProvider,
        registry: ActionRegistry,
        engine: ExecutionEngine,
        context: ContextManager | None = None,
        config: AgentConfig | None = None,
        store: ContextStore | None = None,
    ) -> None:
        self.provider = provider
        self.registry = registry
        self.engine = engine
        self.context = context or ContextManager()
        self.config = config or AgentConfig()
        self.store = store
        self._lock = asyncio.Lock()

    def initialize(
        self,
        spotify: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> AIContext:
        if spotify:
            self.context.update_spotify(**spotify)
        if metadata:
            self.context.update_session_metadata(metadata)
        ctx = self.context.context
        if ctx.spotify.usable:
            self.engine.initialize(ctx)
        else:
            logger.warning("Spotify not authenticated; only system actions will succeed")
        return ctx

    # ---- public API ----

    async def run(
        self,
        prompt: str,
        tools: list[str] | None = None,
        category: str | None = None,
        permissions: list[str] | None = None,
    ) -> AgentResponse:
        """Blocking prompt cycle."""
        async with self._lock:
            tool_defs, messages = self._begin(prompt, tools, category, permissions)
            calls: list[ToolCallRecord] = []
            results: list[ToolResultRecord] = []
            in_progress = False
            response: LLMResponse | None = None
            steps = 0

            for _ in range(self.config.max_steps):
                steps += 1
                response = await self.provider.chat(
                    messages=messages, tools=tool_defs or None, model=self.config.model,
                )
                if response.finish_reason == "error":
                    return self._fail(response.content or "LLM error", calls, results, steps)
                if not response.has_tool_calls:
                    break
                step_calls = self._open_tool_step(response, messages, in_progress)
                in_progress = True
                calls.extend(step_calls)
                for call in step_calls:
                    results.append(await self._run_call(call, messages))
            else:
                logger.info(f"Agent stopped after max_steps={self.config.max_steps}")

            text = (response.content or "") if response and not response.has_tool_calls else ""
            self._finish(text, in_progress)
            return AgentResponse(
                text=text, context=self.context.context,
                tool_calls=calls, tool_results=results, steps=steps,
            )

    async def stream(
        self,
        prompt: str,
        tools: list[str] | None = None,
        category: str | None = None,
        permissions: list[str] | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Streaming prompt cycle.

        Per step: text deltas while the model generates, then one event per
        tool call, then one per tool result. A single FinishEvent closes the
        stream.
        """
        async with self._lock:
            tool_defs, messages = self._begin(prompt, tools, category, permissions)
            in_progress = False
            response: LLMResponse | None = None

            for _ in range(self.config.max_steps):
                response = None
                async for item in self.provider.chat_stream(
                    messages=messages, tools=tool_defs or None, model=self.config.model,
                ):
                    if isinstance(item, LLMResponse):
                        response = item
                    elif item:
                        yield TextDelta(content=item)
                if response is None or response.finish_reason == "error":
                    error = (response.content if response else None) or "LLM returned no response"
                    logger.error(f"Agent stream failed: {error}")
                    self._save()
                    yield FinishEvent(context=self.context.context, success=False, error=error)
                    return
                if not response.has_tool_calls:
                    break
                step_calls = self._open_tool_step(response, messages, in_progress)
                in_progress = True
                for call in step_calls:
                    yield ToolCallEvent(tool_call=call)
                for call in step_calls:
                    yield ToolResultEvent(tool_result=await self._run_call(call, messages))
            else:
                logger.info(f"Agent stopped after max_steps={self.config.max_steps}")

            text = (response.content or "") if response and not response.has_tool_calls else ""
            self._finish(text, in_progress)
            yield FinishEvent(context=self.context.context, text=text)

    async def execute_action(self, name: str, parameters: dict[str, Any] | None = None) -> ActionExecutionResult:
        """Run one action directly, outside any model turn."""
        exec_ctx = ActionExecutionContext(context=self.context, tool_call_id=new_id(), parameters=parameters or {})
        return await self.engine.execute_action(name, exec_ctx)

    def available_tools(
        self, category: str | None = None, permissions: list[str] | None = None,
    ) -> list[dict[str, Any]]:
        return self.registry.get_definitions(category=category, permissions=permissions)

    def system_status(self) -> dict[str, Any]:
        ctx = self.context.context
        return {
            "engine": self.engine.status(),
            "registry": self.registry.get_stats(),
            "session": {
                "sessionId": ctx.session.session_id,
                "active": self.context.is_session_active(),
                "durationMs": self.context.session_duration_ms(),
                "messages": len(ctx.conversation_history),
            },
            "spotify": {
                "authenticated": ctx.spotify.usable,
                "userId": ctx.spotify.user_id,
            },
        }

    # ---- internals ----

    def _begin(
        self,
        prompt: str,
        tools: list[str] | None,
        category: str | None,
        permissions: list[str] | None,
    ) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
        self.context.add_message("user", prompt)
        tool_defs = self.registry.get_definitions(names=tools, category=category, permissions=permissions)
        messages = self.context.build_messages(self.config.system_prompt, self.config.history_messages)
        return tool_defs, messages

    def _open_tool_step(
        self, response: LLMResponse, messages: list[dict[str, Any]], in_progress: bool,
    ) -> list[ToolCallRecord]:
        records = [
            ToolCallRecord(id=tc.id or new_id(), name=tc.name, parameters=tc.arguments)
            for tc in response.tool_calls
        ]
        messages.append({
            "role": "assistant",
            "content": response.content,
            "tool_calls": [
                {
                    "id": r.id,
                    "type": "function",
                    "function": {"name": r.name, "arguments": json.dumps(r.parameters, ensure_ascii=False)},
                }
                for r in records
            ],
        })
        if not in_progress or not self._last_is_assistant():
            self.context.add_message("assistant", "")
        self.context.add_tool_calls(records)
        return records

    async def _run_call(self, call: ToolCallRecord, messages: list[dict[str, Any]]) -> ToolResultRecord:
        exec_ctx = ActionExecutionContext(context=self.context, tool_call_id=call.id, parameters=call.parameters)
        result = await self.engine.execute_action(call.name, exec_ctx)
        payload = result.to_dict()
        record = ToolResultRecord(
            tool_call_id=call.id, result=payload, success=result.success, error=result.error,
        )
        # clear_context/load_context can replace the history under us
        if not self._last_is_assistant():
            self.context.add_message("assistant", "", tool_calls=[call])
        self.context.add_tool_results([record])
        messages.append({
            "role": "tool",
            "tool_call_id": call.id,
            "name": call.name,
            "content": json.dumps(payload, ensure_ascii=False, default=str),
        })
        return record

    def _last_is_assistant(self) -> bool:
        last = self.context.last_message()
        return last is not None and last.role == "assistant"

    def _finish(self, text: str, in_progress: bool) -> None:
        if in_progress and self._last_is_assistant():
            self.context.set_last_assistant_content(text)
        else:
            self.context.add_message("assistant", text)
        self._save()

    def _fail(
        self,
        error: str,
        calls: list[ToolCallRecord],
        results: list[ToolResultRecord],
        steps: int,
    ) -> AgentResponse:
        logger.error(f"Agent run failed: {error}")
        self._save()
        return AgentResponse(
            text="", context=self.context.context, tool_calls=calls, tool_results=results,
            success=False, error=error, steps=steps,
        )

    def _save(self) -> None:
        if not (self.config.auto_save_context and self.store):
            return
        try:
            self.store.save(self.context)
        except OSError as e:
            logger.warning(f"Failed to auto-save context: {e}")
