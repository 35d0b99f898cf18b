"""Core data structures -- the foundation of SpotiBot."""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Literal, Union

from pydantic import AwareDatetime, BaseModel, ConfigDict, with_config
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from spotibot.context import ContextManager

ActionCategory = Literal["playlist", "track", "user", "search", "system"]
CATEGORIES: tuple[str, ...] = ("playlist", "track", "user", "search", "system")

Role = Literal["user", "assistant", "system"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


# ---- Actions ----


@dataclass(frozen=True)
class RateLimitPolicy:
    """At most max_calls successful executions per window_ms."""

    max_calls: int
    window_ms: int


@dataclass
class ActionExecutionResult:
    """Uniform envelope returned for every dispatched action."""

    success: bool
    data: Any = None
    error: str | None = None
    metadata: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        if self.success and self.error is not None:
            raise ValueError("successful result cannot carry an error")
        if not self.success and self.data is not None:
            raise ValueError("failed result cannot carry data")

    @classmethod
    def ok(cls, data: Any = None, **metadata: Any) -> ActionExecutionResult:
        return cls(success=True, data=data, metadata=metadata or None)

    @classmethod
    def fail(cls, error: str, metadata: dict[str, Any] | None = None) -> ActionExecutionResult:
        return cls(success=False, error=error, metadata=metadata or None)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"success": self.success}
        if self.success:
            out["data"] = self.data
        elif self.error is not None:
            out["error"] = self.error
        if self.metadata:
            out["metadata"] = self.metadata
        return out


@dataclass
class ActionExecutionContext:
    """Per-call execution context handed to handlers."""

    context: ContextManager
    tool_call_id: str
    parameters: dict[str, Any] = field(default_factory=dict)

    @property
    def ai_context(self) -> AIContext:
        return self.context.context


ActionHandler = Callable[[BaseModel, ActionExecutionContext], Awaitable[ActionExecutionResult]]


@dataclass
class ActionDefinition:
    """The unit of registration in the ActionRegistry."""

    name: str
    description: str
    category: str
    params: type[BaseModel]
    permissions: tuple[str, ...] | None = None
    rate_limit: RateLimitPolicy | None = None
    handler: ActionHandler | None = None

    def to_schema(self) -> dict[str, Any]:
        """Convert to OpenAI function calling format."""
        schema = self.params.model_json_schema(by_alias=True)
        schema.pop("title", None)
        schema.setdefault("properties", {})
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": schema,
            },
        }

    def summary(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "permissions": list(self.permissions) if self.permissions else None,
        }


# ---- Conversation context ----

# Snapshots use the camelCase keys of the JSON export; Python code uses field names.
SNAPSHOT_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)


@with_config(SNAPSHOT_CONFIG)
@dataclass
class ToolCallRecord:
    """A model-issued request to run an action, as stored in history."""

    id: str
    name: str
    parameters: dict[str, Any]
    timestamp: AwareDatetime = field(default_factory=utcnow)


@with_config(SNAPSHOT_CONFIG)
@dataclass
class ToolResultRecord:
    """Outcome of a tool call, as stored in history."""

    tool_call_id: str
    result: Any
    success: bool
    error: str | None = None
    timestamp: AwareDatetime = field(default_factory=utcnow)


@with_config(SNAPSHOT_CONFIG)
@dataclass
class ConversationMessage:
    id: str
    role: Role
    content: str
    timestamp: AwareDatetime
    tool_calls: list[ToolCallRecord] | None = None
    tool_results: list[ToolResultRecord] | None = None


@with_config(SNAPSHOT_CONFIG)
@dataclass
class SessionInfo:
    session_id: str
    start_time: AwareDatetime
    last_activity: AwareDatetime
    metadata: dict[str, Any] = field(default_factory=dict)
    user_id: str | None = None


@with_config(SNAPSHOT_CONFIG)
@dataclass
class SpotifyAuth:
    """Credentials for the remote music service."""

    access_token: str | None = None
    refresh_token: str | None = None
    user_id: str | None = None
    is_authenticated: bool = False

    @property
    def usable(self) -> bool:
        return self.is_authenticated and bool(self.access_token)


@with_config(SNAPSHOT_CONFIG)
@dataclass
class AIContext:
    session: SessionInfo
    spotify: SpotifyAuth
    conversation_history: list[ConversationMessage] = field(default_factory=list)


# ---- LLM wire types ----


@dataclass
class LLMToolCall:
    """A tool call requested by the model."""

    id: str
    name: str
    arguments: dict[str, Any]


@dataclass
class LLMResponse:
    """One model turn: text and/or requested tool calls."""

    content: str | None = None
    tool_calls: list[LLMToolCall] = field(default_factory=list)
    finish_reason: str = "stop"
    usage: dict[str, int] = field(default_factory=dict)

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


# ---- Streaming events ----


@dataclass
class TextDelta:
    content: str
    type: str = "text"


@dataclass
class ToolCallEvent:
    tool_call: ToolCallRecord
    type: str = "tool-call"


@dataclass
class ToolResultEvent:
    tool_result: ToolResultRecord
    type: str = "tool-result"


@dataclass
class FinishEvent:
    context: AIContext
    text: str = ""
    success: bool = True
    error: str | None = None
    type: str = "finish"


StreamEvent = Union[TextDelta, ToolCallEvent, ToolResultEvent, FinishEvent]
