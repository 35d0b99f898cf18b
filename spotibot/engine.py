"""ExecutionEngine -- validated, rate-limited, retried dispatch of registered actions."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import ValidationError

from spotibot.actions import PlaylistActions, SearchActions, SystemActions, TrackActions, UserActions
from spotibot.config import ExecutionConfig
from spotibot.context import ContextStore
from spotibot.errors import AuthRequiredError
from spotibot.log import get_logger
from spotibot.operations import PlaylistOperations, TrackOperations
from spotibot.rate_limiter import FixedWindowRateLimiter
from spotibot.registry import ActionRegistry
from spotibot.routing import Route, RouteTable
from spotibot.spotify import SpotifyClient
from spotibot.types import ActionExecutionContext, ActionExecutionResult, AIContext

logger = get_logger("engine")


# Handler groups that call the remote service and therefore need credentials.
REMOTE_GROUPS = frozenset({"playlist", "track", "user", "search"})


def _validation_summary(err: ValidationError) -> str:
    parts = []
    for e in err.errors():
        loc = ".".join(str(x) for x in e.get("loc", ())) or "parameters"
        parts.append(f"{loc}: {e.get('msg', 'invalid')}")
    return "; ".join(parts)


class ExecutionEngine:
    """Dispatches actions by name.

    Order of checks: registry lookup, parameter validation, route lookup,
    auth gate, rate-limit admission. None of these are retried. Only the
    handler attempts are retried, with linear backoff, and the rate limiter
    is charged once on the first success.
    """

    def __init__(
        self,
        registry: ActionRegistry,
        client: SpotifyClient,
        config: ExecutionConfig | None = None,
        store: ContextStore | None = None,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
        batch_delay: float = 0.1,
    ) -> None:
        self.registry = registry
        self.client = client
        self.config = config or ExecutionConfig()
        self.limiter = FixedWindowRateLimiter(clock)
        self._sleep = sleep or asyncio.sleep
        self.initialized = False

        self.tracks = TrackOperations(client, batch_delay=batch_delay)
        self.playlists = PlaylistOperations(client, self.tracks)
        self.routes = RouteTable([
            PlaylistActions(client, self.tracks, self.playlists),
            TrackActions(client, self.tracks),
            SearchActions(client),
            UserActions(client),
            SystemActions(registry, client, self.status, store),
        ])

    def _log(self, message: str) -> None:
        if self.config.enable_logging:
            logger.info(message)

    def initialize(self, context: AIContext) -> None:
        """Bind the session's Spotify credentials to the client.

        Raises AuthRequiredError unless the context is authenticated and
        carries an access token.
        """
        auth = context.spotify
        if not auth.usable:
            raise AuthRequiredError()
        self.client.set_access_token(auth.access_token or "")
        if auth.refresh_token:
            self.client.set_refresh_token(auth.refresh_token)
        self.initialized = True
        self._log("Execution engine initialized")

    def _resolve(self, name: str) -> Route | None:
        definition = self.registry.get(name)
        if definition is not None and definition.handler is not None:
            return Route(group=definition.category, handler=definition.handler)
        return self.routes.resolve(name)

    def _sync_token(self, exec_ctx: ActionExecutionContext) -> None:
        token = exec_ctx.ai_context.spotify.access_token or ""
        if token and token != self.client.get_access_token():
            self.client.set_access_token(token)

    async def execute_action(self, name: str, exec_ctx: ActionExecutionContext) -> ActionExecutionResult:
        definition = self.registry.get(name)
        if definition is None:
            return ActionExecutionResult.fail(f"Action '{name}' not found")

        try:
            params = definition.params.model_validate(exec_ctx.parameters or {})
        except ValidationError as e:
            return ActionExecutionResult.fail(
                f"Invalid parameters for '{name}': {_validation_summary(e)}",
                metadata={"validationError": True},
            )

        route = self._resolve(name)
        if route is None:
            return ActionExecutionResult.fail(self.routes.unroutable_error(name))

        if route.group in REMOTE_GROUPS:
            if not exec_ctx.ai_context.spotify.usable:
                return ActionExecutionResult.fail(
                    AuthRequiredError().args[0], metadata={"authRequired": True},
                )
            self._sync_token(exec_ctx)

        policy = definition.rate_limit if self.config.enable_rate_limit else None
        if policy is not None:
            allowed, retry_after = self.limiter.check(name, policy)
            if not allowed:
                self._log(f"Rate limit hit for '{name}', retry in {retry_after}ms")
                return ActionExecutionResult.fail(
                    f"Rate limit exceeded for action '{name}'. Try again in {retry_after}ms",
                    metadata={"rateLimitExceeded": True, "retryAfterMs": retry_after},
                )

        attempts = max(1, self.config.max_retries)
        last_error: str | None = None
        for attempt in range(1, attempts + 1):
            result = await self._attempt(name, route, params, exec_ctx, attempt)
            if result.success:
                if policy is not None:
                    self.limiter.record_success(name)
                return result
            last_error = result.error or "unknown error"
            if attempt < attempts:
                await self._sleep(self.config.retry_delay_ms * attempt / 1000)
                self._log(f"Retrying action '{name}' (attempt {attempt + 1}/{attempts})")

        logger.warning(f"Action '{name}' failed after {attempts} attempts: {last_error}")
        return ActionExecutionResult.fail(
            f"Action '{name}' failed after {attempts} attempts. Last error: {last_error}"
        )

    async def _attempt(
        self,
        name: str,
        route: Route,
        params: Any,
        exec_ctx: ActionExecutionContext,
        attempt: int,
    ) -> ActionExecutionResult:
        self._log(f"Executing action '{name}' (attempt {attempt})")
        try:
            result = await route.handler(params, exec_ctx)
        except Exception as e:
            self._log(f"Action '{name}' raised {type(e).__name__}: {e}")
            return ActionExecutionResult.fail(str(e) or type(e).__name__)
        if not isinstance(result, ActionExecutionResult):
            return ActionExecutionResult.ok(result)
        return result

    def status(self) -> dict[str, Any]:
        return {
            "initialized": self.initialized,
            "config": self.config.model_dump(mode="json"),
            "rateLimitStates": self.limiter.snapshot(),
            "registeredActions": len(self.registry),
        }
