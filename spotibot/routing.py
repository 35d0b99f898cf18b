"""Action name -> handler group routing."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from spotibot.actions.base import ActionGroup, BoundHandler

_VERB_TOKENS = ("create", "get", "merge", "add", "remove")


def infer_handler_group(action_name: str) -> str | None:
    """Guess the handler group from the name's leading token and substrings.

    create/get/merge/add/remove: "playlist" wins over "track"/"song", which
    wins over "user". like/dislike -> track, search -> search,
    follow/unfollow -> user, system -> system. Anything else -> None.
    """
    token = action_name.split("_")[0]
    if token in _VERB_TOKENS:
        if "playlist" in action_name:
            return "playlist"
        if "track" in action_name or "song" in action_name:
            return "track"
        if "user" in action_name:
            return "user"
        return None
    if token in ("like", "dislike"):
        return "track"
    if token == "search":
        return "search"
    if token in ("follow", "unfollow"):
        return "user"
    if token == "system":
        return "system"
    return None


@dataclass(frozen=True)
class Route:
    group: str
    handler: BoundHandler


class RouteTable:
    """Static name -> (group, handler) table, built once from the handler groups."""

    def __init__(self, groups: Iterable[ActionGroup]) -> None:
        self._routes: dict[str, Route] = {}
        for group in groups:
            for name, handler in group.routes().items():
                if name in self._routes:
                    raise ValueError(
                        f"Action '{name}' routed by both '{self._routes[name].group}' and '{group.name}'"
                    )
                self._routes[name] = Route(group=group.name, handler=handler)

    def resolve(self, action_name: str) -> Route | None:
        return self._routes.get(action_name)

    def group_of(self, action_name: str) -> str | None:
        route = self._routes.get(action_name)
        return route.group if route else None

    def names(self) -> list[str]:
        return list(self._routes)

    def unroutable_error(self, action_name: str) -> str:
        group = infer_handler_group(action_name)
        if group is None:
            return f"Unknown action category for '{action_name}': generic execution not implemented"
        return f"Unknown {group} action: {action_name}"

    def __contains__(self, action_name: object) -> bool:
        return action_name in self._routes

    def __len__(self) -> int:
        return len(self._routes)
