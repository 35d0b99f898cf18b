"""ActionRegistry -- name-keyed action catalog with a category index."""

from __future__ import annotations

from typing import Any

from spotibot.errors import DuplicateNameError, InvalidCategoryError
from spotibot.types import CATEGORIES, ActionDefinition


class ActionRegistry:
    """Registration, lookup and filtering of action definitions.

    Populated once at startup by ``catalog.register_all_actions`` and read-only
    afterwards; register/unregister/clear exist mainly for tests.
    """

    def __init__(self) -> None:
        self._actions: dict[str, ActionDefinition] = {}
        self._by_category: dict[str, dict[str, None]] = {c: {} for c in CATEGORIES}

    def register(self, action: ActionDefinition) -> None:
        if action.name in self._actions:
            raise DuplicateNameError(action.name)
        if action.category not in self._by_category:
            raise InvalidCategoryError(action.category)
        self._actions[action.name] = action
        self._by_category[action.category][action.name] = None

    def unregister(self, name: str) -> None:
        action = self._actions.pop(name, None)
        if action is None:
            return
        self._by_category[action.category].pop(name, None)

    def get(self, name: str) -> ActionDefinition | None:
        return self._actions.get(name)

    def has(self, name: str) -> bool:
        return name in self._actions

    def get_by_category(self, category: str) -> list[ActionDefinition]:
        names = self._by_category.get(category)
        if not names:
            return []
        return [self._actions[n] for n in names if n in self._actions]

    def get_all(self) -> list[ActionDefinition]:
        return list(self._actions.values())

    def get_by_permissions(self, granted: list[str]) -> list[ActionDefinition]:
        """Actions with no requirement, or whose requirement is a subset of ``granted``.

        Exact string equality, no wildcards.
        """
        granted_set = set(granted)
        return [
            a for a in self._actions.values()
            if not a.permissions or all(p in granted_set for p in a.permissions)
        ]

    def get_definitions(
        self,
        names: list[str] | None = None,
        category: str | None = None,
        permissions: list[str] | None = None,
    ) -> list[dict[str, Any]]:
        """Tool schemas for the LLM. names > category > permissions > all."""
        if names is not None:
            actions = [self._actions[n] for n in names if n in self._actions]
        elif category is not None:
            actions = self.get_by_category(category)
        elif permissions is not None:
            actions = self.get_by_permissions(permissions)
        else:
            actions = self.get_all()
        return [a.to_schema() for a in actions]

    def get_stats(self) -> dict[str, Any]:
        return {
            "total_actions": len(self._actions),
            "actions_by_category": {c: len(names) for c, names in self._by_category.items()},
            "actions_with_permissions": sum(1 for a in self._actions.values() if a.permissions),
            "actions_with_rate_limit": sum(1 for a in self._actions.values() if a.rate_limit),
        }

    def clear(self) -> None:
        self._actions.clear()
        for names in self._by_category.values():
            names.clear()

    def __len__(self) -> int:
        return len(self._actions)

    def __contains__(self, name: object) -> bool:
        return name in self._actions
