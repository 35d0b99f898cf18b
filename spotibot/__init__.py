"""SpotiBot - Spotify actions as LLM tools, with a tool-calling agent loop."""

from spotibot.types import ActionDefinition, ActionExecutionResult, AIContext, LLMResponse, RateLimitPolicy
from spotibot.registry import ActionRegistry
from spotibot.engine import ExecutionEngine
from spotibot.context import ContextManager, ContextStore
from spotibot.agent import AgentLoop, AgentResponse
from spotibot.app import SpotiBot

__all__ = [
    "SpotiBot",
    "ActionRegistry",
    "ExecutionEngine",
    "ContextManager",
    "ContextStore",
    "AgentLoop",
    "AgentResponse",
    "ActionDefinition",
    "ActionExecutionResult",
    "AIContext",
    "LLMResponse",
    "RateLimitPolicy",
]
