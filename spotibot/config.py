"""SpotiBot settings: JSON file, environment overrides and startup checks."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from spotibot.log import get_logger
from spotibot.types import RateLimitPolicy

logger = get_logger("config")

# Substring of the model name -> providers entry, for models given without a "<provider>/" prefix.
MODEL_PROVIDER_PREFIXES: dict[str, str] = {
    "anthropic": "anthropic",
    "claude": "anthropic",
    "gpt": "openai",
    "openai": "openai",
}

LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")

DEFAULT_SYSTEM_PROMPT = (
    "You are a Spotify assistant. Use the available tools to read and modify the "
    "user's playlists, saved tracks, follows and searches. Prefer fetching data "
    "before changing it, and report what you did in one short summary."
)


class SpotifyConfig(BaseModel):
    client_id: str = ""
    client_secret: str = ""
    redirect_uri: str = "http://localhost:3000/callback"
    access_token: str = ""
    refresh_token: str = ""
    api_base: str = "https://api.spotify.com/v1"
    accounts_base: str = "https://accounts.spotify.com"
    timeout: float = 30.0
    scopes: list[str] = Field(default_factory=lambda: [
        "user-read-private",
        "user-read-email",
        "playlist-read-private",
        "playlist-modify-private",
        "playlist-modify-public",
        "user-library-read",
        "user-library-modify",
        "user-follow-read",
        "user-follow-modify",
        "user-top-read",
        "user-read-recently-played",
        "user-read-currently-playing",
    ])


class RateLimitRule(BaseModel):
    max_calls: int
    window_ms: int

    def to_policy(self) -> RateLimitPolicy:
        return RateLimitPolicy(max_calls=self.max_calls, window_ms=self.window_ms)


class ExecutionConfig(BaseModel):
    """Dispatcher behaviour: rate limiting, retries, logging."""

    enable_rate_limit: bool = True
    max_retries: int = 3
    retry_delay_ms: int = 1000
    enable_logging: bool = True
    # action name -> policy; applied when the catalog is registered
    rate_limits: dict[str, RateLimitRule] = Field(default_factory=dict)


class AgentConfig(BaseModel):
    name: str = "SpotiBot"
    model: str = "gpt-4o-mini"
    max_tokens: int = 4096
    temperature: float = 0.7
    max_steps: int = 5
    streaming: bool = False
    auto_save_context: bool = True
    history_messages: int = 20
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    workspace: str = "~/.spotibot"
    llm_max_retries: int = 3
    llm_retry_base_delay: float = 1.0


class ProviderConfig(BaseModel):
    api_key: str = ""
    api_base: str = ""


class LogConfig(BaseModel):
    level: str = "INFO"
    format: str = ""         # empty = spotibot.log.DEFAULT_FORMAT
    json_format: bool = False
    file: str = ""           # empty = no file output
    rotation: str = "10 MB"  # loguru rotation param
    retention: str = "7 days"


class SpotibotConfig(BaseSettings):
    spotify: SpotifyConfig = Field(default_factory=SpotifyConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    # keyed by provider name: "openai", "anthropic", or any litellm prefix such as "ollama"
    providers: dict[str, ProviderConfig] = Field(default_factory=dict)
    log: LogConfig = Field(default_factory=LogConfig)

    model_config = SettingsConfigDict(
        env_prefix="SPOTIBOT_",
        env_nested_delimiter="__",
    )

    @classmethod
    def settings_customise_sources(cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings):
        # SPOTIBOT_* variables override values loaded from config.json
        return (env_settings, dotenv_settings, init_settings, file_secret_settings)


# Maps whose keys are names (action or provider names), not config fields.
_NAME_KEYED = frozenset({"rate_limits", "providers"})


def _camel_to_snake(name: str) -> str:
    s = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
    s = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", s)
    return s.lower()


def _convert_keys(data: Any, _parent: str = "") -> Any:
    if isinstance(data, list):
        return [_convert_keys(i) for i in data]
    if not isinstance(data, dict):
        return data
    if _parent in _NAME_KEYED:
        return {k: _convert_keys(v) for k, v in data.items()}
    return {_camel_to_snake(k): _convert_keys(v, _camel_to_snake(k)) for k, v in data.items()}


def config_file(config_path: str | None = None) -> Path:
    return Path(config_path).expanduser() if config_path else Path.home() / ".spotibot" / "config.json"


def load_config(config_path: str | None = None) -> SpotibotConfig:
    """Build the config from ``config.json`` (camelCase or snake_case keys) and
    ``SPOTIBOT_*`` environment variables. A missing or unreadable file means defaults.
    """
    path = config_file(config_path)
    file_data: dict[str, Any] = {}
    if path.is_file():
        try:
            file_data = _convert_keys(json.loads(path.read_text(encoding="utf-8")))
        except ValueError as e:
            logger.warning(f"Ignoring unreadable config {path}: {e}")
    # init kwargs rank below env vars in settings_customise_sources
    return SpotibotConfig(**file_data)


def provider_for_model(config: SpotibotConfig, model: str) -> ProviderConfig:
    """Credentials for ``model``: an explicit ``<provider>/`` prefix first, then
    the well-known name prefixes, then the ``openai`` entry.
    """
    providers = config.providers
    model_lower = model.lower()
    if "/" in model_lower:
        explicit = providers.get(model_lower.split("/", 1)[0])
        if explicit is not None:
            return explicit
    for prefix, name in MODEL_PROVIDER_PREFIXES.items():
        if prefix in model_lower and name in providers:
            return providers[name]
    return providers.get("openai") or ProviderConfig()


def validate_startup(config: SpotibotConfig, require_llm: bool = True) -> None:
    """Check the cross-field rules pydantic does not; raise one ValueError listing all of them.

    Not part of model validation so SpotibotConfig() stays constructible
    without credentials.
    """
    errors: list[str] = []

    if require_llm and not any(p.api_key or p.api_base for p in config.providers.values()):
        errors.append(
            "No LLM provider configured: set providers.<name>.apiKey (or apiBase), "
            "or SPOTIBOT_PROVIDERS__<NAME>__API_KEY"
        )

    sp = config.spotify
    if sp.refresh_token and not (sp.client_id and sp.client_secret):
        errors.append("spotify.refresh_token set but client_id/client_secret missing (needed to refresh)")

    ex = config.execution
    if ex.max_retries < 1:
        errors.append(f"execution.max_retries must be >= 1, got {ex.max_retries}")
    if ex.retry_delay_ms < 0:
        errors.append(f"execution.retry_delay_ms must be >= 0, got {ex.retry_delay_ms}")
    errors.extend(
        f"execution.rate_limits.{name}: max_calls and window_ms must be positive"
        for name, rule in ex.rate_limits.items()
        if rule.max_calls < 1 or rule.window_ms < 1
    )

    if config.agent.max_steps < 1:
        errors.append(f"agent.max_steps must be >= 1, got {config.agent.max_steps}")
    if config.log.level.upper() not in LOG_LEVELS:
        errors.append(f"log.level '{config.log.level}' is not one of {', '.join(LOG_LEVELS)}")

    if errors:
        raise ValueError("SpotiBot configuration errors:\n" + "\n".join(f"  - {e}" for e in errors))
