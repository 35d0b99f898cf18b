from __future__ import annotations

import pytest

from spotibot.catalog import CATALOG, build_definitions, register_all_actions
from spotibot.engine import ExecutionEngine
from spotibot.errors import DuplicateNameError
from spotibot.registry import ActionRegistry
from spotibot.types import CATEGORIES, RateLimitPolicy

from conftest import FakeSpotifyClient


def test_catalog_size_and_categories(registry: ActionRegistry) -> None:
    stats = registry.get_stats()
    assert stats["total_actions"] == 39
    assert stats["actions_by_category"] == {
        "playlist": 6, "track": 8, "user": 9, "search": 6, "system": 10,
    }
    assert sum(stats["actions_by_category"].values()) == stats["total_actions"]
    assert stats["actions_with_permissions"] == 24
    assert stats["actions_with_rate_limit"] == 0


def test_names_are_unique() -> None:
    names = [entry[0] for entry in CATALOG]
    assert len(names) == len(set(names))
    assert {entry[1] for entry in CATALOG} == set(CATEGORIES)


def test_register_twice_fails() -> None:
    reg = ActionRegistry()
    assert register_all_actions(reg) == 39
    with pytest.raises(DuplicateNameError):
        register_all_actions(reg)


def test_permission_filters(registry: ActionRegistry) -> None:
    open_actions = registry.get_by_permissions([])
    assert len(open_actions) == 15
    assert all(a.category in ("search", "system") for a in open_actions)
    granted = {a.name for a in registry.get_by_permissions(["system:execute"])}
    assert "execute_command" in granted
    merge = {a.name for a in registry.get_by_permissions(["playlist:modify"])}
    assert "create_playlist" in merge
    assert "merge_playlists" not in merge


def test_rate_limits_attach_by_name() -> None:
    policy = RateLimitPolicy(max_calls=2, window_ms=1000)
    defs = {d.name: d for d in build_definitions({"search_tracks": policy})}
    assert defs["search_tracks"].rate_limit == policy
    assert defs["search_all"].rate_limit is None


def test_schemas_use_camel_case(registry: ActionRegistry) -> None:
    schema = registry.get("merge_playlists").to_schema()
    params = schema["function"]["parameters"]
    assert schema["type"] == "function"
    assert "sourcePlaylistIds" in params["properties"]
    assert "sourcePlaylistIds" in params["required"]
    assert "title" not in params
    assert registry.get("get_system_status").to_schema()["function"]["parameters"]["properties"] == {}


def test_every_action_is_routable(registry: ActionRegistry) -> None:
    engine = ExecutionEngine(registry, FakeSpotifyClient())
    missing = [d.name for d in registry.get_all() if engine.routes.resolve(d.name) is None]
    assert missing == []
    for definition in registry.get_all():
        assert engine.routes.resolve(definition.name).group == definition.category
