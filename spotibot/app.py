"""SpotiBot application: builds the registry, engine, client and agent from config."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from spotibot.agent import AgentLoop, AgentResponse
from spotibot.catalog import register_all_actions
from spotibot.config import SpotibotConfig, load_config, provider_for_model, validate_startup
from spotibot.context import ContextManager, ContextStore
from spotibot.engine import ExecutionEngine
from spotibot.log import configure as configure_logging
from spotibot.log import get_logger
from spotibot.provider import LiteLLMProvider, LLMProvider
from spotibot.registry import ActionRegistry
from spotibot.spotify import SpotifyClient
from spotibot.types import ActionExecutionResult

logger = get_logger("app")


class SpotiBot:
    """Main application. Create, initialize, prompt."""

    def __init__(
        self,
        config_path: str | None = None,
        config: SpotibotConfig | None = None,
        provider: LLMProvider | None = None,
        client: SpotifyClient | None = None,
        require_llm: bool = True,
    ) -> None:
        self.config = config or load_config(config_path)

        lc = self.config.log
        configure_logging(
            level=lc.level, fmt=lc.format, json_format=lc.json_format,
            file=lc.file, rotation=lc.rotation, retention=lc.retention,
        )

        validate_startup(self.config, require_llm=require_llm and provider is None)

        workspace = Path(self.config.agent.workspace).expanduser()
        workspace.mkdir(parents=True, exist_ok=True)
        if not os.access(workspace, os.W_OK):
            raise RuntimeError(f"Workspace directory not writable: {workspace}")
        self.workspace = workspace

        self.registry = ActionRegistry()
        rate_limits = {name: rule.to_policy() for name, rule in self.config.execution.rate_limits.items()}
        register_all_actions(self.registry, rate_limits)
        for name in rate_limits:
            if not self.registry.has(name):
                logger.warning(f"Rate limit configured for unknown action '{name}'")

        self.store = ContextStore(workspace / "contexts")
        self.client = client or SpotifyClient(self.config.spotify)
        self.engine = ExecutionEngine(self.registry, self.client, self.config.execution, store=self.store)
        self.provider: LLMProvider = provider or self._create_provider()
        self.agent = AgentLoop(
            provider=self.provider,
            registry=self.registry,
            engine=self.engine,
            context=ContextManager(),
            config=self.config.agent,
            store=self.store,
        )
        logger.info(f"SpotiBot ready: {len(self.registry)} actions, model={self.config.agent.model}")

    def initialize(self, metadata: dict[str, Any] | None = None) -> None:
        """Start the session with whatever credentials the config carries."""
        sp = self.config.spotify
        spotify: dict[str, Any] = {}
        if sp.access_token:
            spotify = {"access_token": sp.access_token, "is_authenticated": True}
            if sp.refresh_token:
                spotify["refresh_token"] = sp.refresh_token
        self.agent.initialize(spotify=spotify or None, metadata=metadata)

    async def prompt(self, text: str, **kwargs: Any) -> AgentResponse:
        return await self.agent.run(text, **kwargs)

    async def execute(self, name: str, parameters: dict[str, Any] | None = None) -> ActionExecutionResult:
        return await self.agent.execute_action(name, parameters)

    async def close(self) -> None:
        await self.client.close()

    def _create_provider(self) -> LLMProvider:
        agent = self.config.agent
        creds = provider_for_model(self.config, agent.model)
        return LiteLLMProvider(
            model=agent.model,
            api_key=creds.api_key,
            api_base=creds.api_base,
            max_tokens=agent.max_tokens,
            temperature=agent.temperature,
            max_retries=agent.llm_max_retries,
            retry_base_delay=agent.llm_retry_base_delay,
        )
