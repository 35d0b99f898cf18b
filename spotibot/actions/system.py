"""System actions: introspection, context management, help."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from pydantic import Field

from spotibot.actions.base import ActionGroup, ActionParams, BoundHandler, NoParams
from spotibot.context import ContextStore
from spotibot.errors import ContextValidationError, SpotifyAPIError
from spotibot.log import get_logger
from spotibot.registry import ActionRegistry
from spotibot.spotify import SpotifyClient
from spotibot.types import CATEGORIES, ActionCategory, ActionExecutionContext, ActionExecutionResult, utcnow

logger = get_logger("actions")


class GetAvailableToolsParams(ActionParams):
    category: ActionCategory | None = Field(None, description="Filter tools by category")


class GetContextParams(ActionParams):
    include_history: bool = Field(False, description="Include conversation history")


class SaveContextParams(ActionParams):
    filename: str | None = Field(None, description="Filename to save context to (auto-generated if not provided)")


class LoadContextParams(ActionParams):
    filename: str = Field(description="Filename to load context from")


class GetHelpParams(ActionParams):
    topic: str | None = Field(None, description="Specific topic to get help for")


class ExecuteCommandParams(ActionParams):
    command: str = Field(description="CLI command to execute")
    args: list[str] = Field(default_factory=list, description="Command arguments")


class SystemActions(ActionGroup):
    """Handlers that never touch the remote service except for connection checks."""

    name = "system"

    def __init__(
        self,
        registry: ActionRegistry,
        client: SpotifyClient,
        status: Callable[[], dict[str, Any]],
        store: ContextStore | None = None,
    ) -> None:
        self.registry = registry
        self.client = client
        self._status = status
        self.store = store

    def routes(self) -> dict[str, BoundHandler]:
        return {
            "get_available_tools": self.get_available_tools,
            "get_system_status": self.get_system_status,
            "get_spotify_connection_status": self.get_spotify_connection_status,
            "refresh_spotify_token": self.refresh_spotify_token,
            "get_context": self.get_context,
            "clear_context": self.clear_context,
            "save_context": self.save_context,
            "load_context": self.load_context,
            "get_help": self.get_help,
            "execute_command": self.execute_command,
        }

    async def get_available_tools(self, p: GetAvailableToolsParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
        actions = self.registry.get_by_category(p.category) if p.category else self.registry.get_all()
        return ActionExecutionResult.ok(
            {"tools": [a.summary() for a in actions], "count": len(actions)},
            action="get_available_tools", category=p.category,
        )

    async def get_system_status(self, p: NoParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
        return ActionExecutionResult.ok(
            {"status": "operational", "timestamp": utcnow().isoformat(), **self._status()},
            action="get_system_status",
        )

    async def get_spotify_connection_status(self, p: NoParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
        has_access = bool(self.client.get_access_token())
        has_refresh = bool(self.client.get_refresh_token())
        profile = None
        error = None
        if has_access:
            try:
                profile = await self.client.get_me()
            except SpotifyAPIError as e:
                # expired or revoked token
                logger.info(f"Spotify connection check failed: {e}")
                error = e.message
        return ActionExecutionResult.ok(
            {
                "connected": profile is not None,
                "hasAccessToken": has_access,
                "hasRefreshToken": has_refresh,
                "userProfile": profile,
                "error": error,
            },
            action="get_spotify_connection_status",
        )

    async def refresh_spotify_token(self, p: NoParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
        if not self.client.get_refresh_token():
            return ActionExecutionResult.fail("No refresh token available")
        body = await self.client.refresh_access_token()
        token = self.client.get_access_token()
        ctx.context.update_spotify(access_token=token, refresh_token=self.client.get_refresh_token() or None)
        return ActionExecutionResult.ok(
            {"refreshed": True, "expiresIn": body.get("expires_in")},
            action="refresh_spotify_token",
        )

    async def get_context(self, p: GetContextParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
        data = ctx.context.to_dict(include_history=p.include_history)
        # never hand credentials to the model
        data["spotify"] = {k: v for k, v in data["spotify"].items() if not k.endswith("Token")}
        return ActionExecutionResult.ok(data, action="get_context", includeHistory=p.include_history)

    async def clear_context(self, p: NoParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
        ctx.context.clear_history()
        ctx.context.context.session.metadata = {}
        return ActionExecutionResult.ok({"cleared": True}, action="clear_context")

    async def save_context(self, p: SaveContextParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
        if self.store is None:
            return ActionExecutionResult.fail("Context storage is not configured")
        path = self.store.save(ctx.context, p.filename)
        return ActionExecutionResult.ok({"saved": True, "filename": path.name}, action="save_context")

    async def load_context(self, p: LoadContextParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
        if self.store is None:
            return ActionExecutionResult.fail("Context storage is not configured")
        try:
            text = self.store.load(p.filename)
            ctx.context.import_context(text)
        except (FileNotFoundError, ValueError, ContextValidationError) as e:
            return ActionExecutionResult.fail(str(e))
        session = ctx.ai_context.session
        return ActionExecutionResult.ok(
            {
                "loaded": True,
                "filename": p.filename,
                "sessionId": session.session_id,
                "messageCount": len(ctx.ai_context.conversation_history),
            },
            action="load_context",
        )

    async def get_help(self, p: GetHelpParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
        topic = (p.topic or "").strip()
        if topic:
            action = self.registry.get(topic)
            if action is not None:
                return ActionExecutionResult.ok(
                    {"action": {**action.summary(), "parameters": action.to_schema()["function"]["parameters"]}},
                    action="get_help", targetAction=topic,
                )
            if topic in CATEGORIES:
                return ActionExecutionResult.ok(
                    {"category": topic, "actions": [a.summary() for a in self.registry.get_by_category(topic)]},
                    action="get_help", topic=topic,
                )
            return ActionExecutionResult.fail(f"Action '{topic}' not found")

        return ActionExecutionResult.ok(
            {
                "availableActions": [
                    {"name": a.name, "description": a.description, "category": a.category}
                    for a in self.registry.get_all()
                ],
                "categories": list(CATEGORIES),
            },
            action="get_help",
        )

    async def execute_command(self, p: ExecuteCommandParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
        logger.warning(f"Refused raw command execution: {p.command} {' '.join(p.args)}".rstrip())
        return ActionExecutionResult.fail(
            "Direct command execution not implemented for security reasons",
            metadata={"action": "execute_command", "requestedCommand": p.command},
        )
