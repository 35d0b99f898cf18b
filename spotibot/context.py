"""Conversation/session context -- one AIContext per session, plus a JSON snapshot store."""

from __future__ import annotations

import dataclasses
import json
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter, ValidationError

from spotibot.errors import ContextValidationError, NoAssistantMessageError
from spotibot.log import get_logger
from spotibot.types import (
    AIContext,
    ConversationMessage,
    Role,
    SessionInfo,
    SpotifyAuth,
    ToolCallRecord,
    ToolResultRecord,
    new_id,
    utcnow,
)

logger = get_logger("context")


_ADAPTER: TypeAdapter[AIContext] = TypeAdapter(AIContext)

DEFAULT_ACTIVE_THRESHOLD_MS = 30 * 60 * 1000


class ContextManager:
    """Owns the mutable AIContext of one session.

    Every mutating call refreshes ``session.last_activity``. Tool calls and
    results always attach to the latest message, which must be an assistant
    message; anything else is caller misuse and raises.
    """

    def __init__(
        self,
        spotify: dict[str, Any] | SpotifyAuth | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._clock = clock or utcnow
        self._context = self._create(self._coerce_auth(spotify))

    @staticmethod
    def _coerce_auth(spotify: dict[str, Any] | SpotifyAuth | None) -> SpotifyAuth:
        if spotify is None:
            return SpotifyAuth()
        if isinstance(spotify, SpotifyAuth):
            return dataclasses.replace(spotify)
        return SpotifyAuth(**spotify)

    def _create(self, spotify: SpotifyAuth) -> AIContext:
        now = self._clock()
        return AIContext(
            session=SessionInfo(session_id=new_id(), start_time=now, last_activity=now),
            spotify=spotify,
        )

    def _touch(self) -> None:
        self._context.session.last_activity = self._clock()

    @property
    def context(self) -> AIContext:
        return self._context

    @property
    def history(self) -> list[ConversationMessage]:
        return self._context.conversation_history

    # ---- mutation ----

    def update_spotify(self, **partial: Any) -> None:
        """Shallow-merge into the Spotify credentials. Unknown keys raise TypeError."""
        self._context.spotify = dataclasses.replace(self._context.spotify, **partial)
        self._touch()

    def update_session_metadata(self, partial: dict[str, Any]) -> None:
        self._context.session.metadata.update(partial)
        self._touch()

    def add_message(
        self,
        role: Role,
        content: str,
        tool_calls: list[ToolCallRecord] | None = None,
        tool_results: list[ToolResultRecord] | None = None,
    ) -> ConversationMessage:
        message = ConversationMessage(
            id=new_id(),
            role=role,
            content=content,
            timestamp=self._clock(),
            tool_calls=list(tool_calls) if tool_calls else None,
            tool_results=list(tool_results) if tool_results else None,
        )
        self.history.append(message)
        self._touch()
        return message

    def _last_assistant(self) -> ConversationMessage:
        last = self.last_message()
        if last is None or last.role != "assistant":
            raise NoAssistantMessageError("No assistant message to attach tool calls/results to")
        return last

    def add_tool_calls(self, calls: list[ToolCallRecord]) -> None:
        last = self._last_assistant()
        last.tool_calls = (last.tool_calls or []) + list(calls)
        self._touch()

    def add_tool_results(self, results: list[ToolResultRecord]) -> None:
        last = self._last_assistant()
        last.tool_results = (last.tool_results or []) + list(results)
        self._touch()

    def set_last_assistant_content(self, text: str) -> None:
        """Complete the in-progress assistant turn with the model's final text."""
        self._last_assistant().content = text
        self._touch()

    def clear_history(self) -> None:
        self._context.conversation_history = []
        self._touch()

    def reset_session(self) -> None:
        """Start a new session. Auth state survives; history and metadata do not."""
        self._context = self._create(self._context.spotify)

    # ---- queries ----

    def last_message(self) -> ConversationMessage | None:
        return self.history[-1] if self.history else None

    def get_messages_by_role(self, role: Role) -> list[ConversationMessage]:
        return [m for m in self.history if m.role == role]

    def get_recent_messages(self, count: int) -> list[ConversationMessage]:
        if count <= 0:
            return []
        return self.history[-count:]

    def session_duration_ms(self) -> int:
        session = self._context.session
        return int((session.last_activity - session.start_time).total_seconds() * 1000)

    def is_session_active(self, threshold_ms: int = DEFAULT_ACTIVE_THRESHOLD_MS) -> bool:
        idle = self._clock() - self._context.session.last_activity
        return idle.total_seconds() * 1000 < threshold_ms

    def validate(self) -> bool:
        try:
            _ADAPTER.validate_python(_ADAPTER.dump_python(self._context))
        except ValidationError:
            return False
        return True

    # ---- serialization ----

    def to_dict(self, include_history: bool = True) -> dict[str, Any]:
        data = _ADAPTER.dump_python(self._context, mode="json", by_alias=True)
        if not include_history:
            data.pop("conversationHistory", None)
        return data

    def export_context(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2)

    def import_context(self, text: str) -> None:
        """Replace the whole context with a snapshot.

        The snapshot is validated first; on any error the current context is
        left untouched and ContextValidationError is raised.
        """
        try:
            restored = _ADAPTER.validate_json(text)
        except ValidationError as e:
            raise ContextValidationError(f"Invalid context snapshot: {e}") from e
        self._context = restored

    # ---- LLM view ----

    def build_messages(self, system_prompt: str = "", max_messages: int = 20) -> list[dict[str, Any]]:
        """History as OpenAI-format chat messages.

        An assistant turn with tool calls expands to the tool_calls message,
        one ``tool`` message per call and then the final assistant text.
        """
        messages: list[dict[str, Any]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        for msg in self.get_recent_messages(max_messages):
            if msg.role != "assistant" or not msg.tool_calls:
                messages.append({"role": msg.role, "content": msg.content})
                continue
            messages.append({
                "role": "assistant",
                "content": None,
                "tool_calls": [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {"name": tc.name, "arguments": json.dumps(tc.parameters, ensure_ascii=False)},
                    }
                    for tc in msg.tool_calls
                ],
            })
            results = {r.tool_call_id: r for r in msg.tool_results or []}
            for tc in msg.tool_calls:
                r = results.get(tc.id)
                payload = r.result if r is not None else {"success": False, "error": "No result recorded"}
                messages.append({
                    "role": "tool",
                    "tool_call_id": tc.id,
                    "content": json.dumps(payload, ensure_ascii=False, default=str),
                })
            if msg.content:
                messages.append({"role": "assistant", "content": msg.content})
        return messages


class ContextStore:
    """Directory of exported context snapshots (``<name>.json``)."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory).expanduser()
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path_for(self, filename: str) -> Path:
        safe = Path(filename).name
        for ch in r':<>\|"?*':
            safe = safe.replace(ch, "_")
        if not safe or safe in (".", ".."):
            raise ValueError(f"Invalid context filename: {filename!r}")
        if not safe.endswith(".json"):
            safe += ".json"
        return self.directory / safe

    def save(self, manager: ContextManager, filename: str | None = None) -> Path:
        path = self._path_for(filename or f"context-{manager.context.session.session_id}")
        path.write_text(manager.export_context(), encoding="utf-8")
        logger.debug(f"Context saved to {path}")
        return path

    def load(self, filename: str) -> str:
        path = self._path_for(filename)
        if not path.exists():
            raise FileNotFoundError(f"Context file not found: {path.name}")
        return path.read_text(encoding="utf-8")

    def list(self) -> list[str]:
        return sorted(p.name for p in self.directory.glob("*.json"))
