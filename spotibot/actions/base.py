"""Base classes for action parameter models and handler groups."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from spotibot.types import ActionExecutionContext, ActionExecutionResult

BoundHandler = Callable[[Any, ActionExecutionContext], Awaitable[ActionExecutionResult]]


class ActionParams(BaseModel):
    """Parameter struct for one action. Wire names are camelCase (playlistId, trackIds)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class NoParams(ActionParams):
    pass


class ActionGroup(ABC):
    """A flat table of handlers for one category of actions."""

    name: str = ""

    @abstractmethod
    def routes(self) -> dict[str, BoundHandler]:
        """Action name -> bound handler coroutine."""
        ...


def track_uri(track_id: str) -> str:
    """Accept either a bare track id or a full spotify:track: URI."""
    return track_id if track_id.startswith("spotify:") else f"spotify:track:{track_id}"


def count_items(body: Any, key: str | None = None) -> int:
    if not isinstance(body, dict):
        return 0
    container = body.get(key) if key else body
    if isinstance(container, dict):
        return len(container.get("items") or [])
    if isinstance(container, list):
        return len(container)
    return 0
