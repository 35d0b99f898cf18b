"""Shared test fixtures for the SpotiBot test suite."""
from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from spotibot.catalog import register_all_actions
from spotibot.config import AgentConfig, ExecutionConfig
from spotibot.context import ContextManager, ContextStore
from spotibot.engine import ExecutionEngine
from spotibot.provider import LLMProvider
from spotibot.registry import ActionRegistry
from spotibot.types import ActionExecutionContext, LLMResponse


# ---- Fakes ----


class FakeProvider(LLMProvider):
    """LLM provider that returns pre-configured responses in order."""

    def __init__(self, responses: list[LLMResponse] | None = None) -> None:
        self.responses: list[LLMResponse] = responses or []
        self.calls: list[list[dict[str, Any]]] = []
        self.tools_seen: list[list[dict[str, Any]] | None] = []

    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str = "",
        max_tokens: int = 0,
        temperature: float = -1.0,
    ) -> LLMResponse:
        self.calls.append([dict(m) for m in messages])
        self.tools_seen.append(tools)
        if not self.responses:
            return LLMResponse(content="(no more responses)")
        return self.responses.pop(0)


class FakeSpotifyClient:
    """In-memory stand-in for SpotifyClient. Records every call."""

    def __init__(self, playlists: dict[str, list[dict[str, Any]]] | None = None) -> None:
        self.playlists: dict[str, list[dict[str, Any]]] = playlists or {}
        self.saved: list[str] = []
        self.calls: list[tuple[str, tuple, dict]] = []
        self.access_token = ""
        self.refresh_token = ""
        self._created = 0

    def _record(self, name: str, *args: Any, **kwargs: Any) -> None:
        self.calls.append((name, args, kwargs))

    def calls_to(self, name: str) -> list[tuple[tuple, dict]]:
        return [(a, k) for n, a, k in self.calls if n == name]

    def set_access_token(self, token: str) -> None:
        self.access_token = token

    def set_refresh_token(self, token: str) -> None:
        self.refresh_token = token

    def get_access_token(self) -> str:
        return self.access_token

    def get_refresh_token(self) -> str:
        return self.refresh_token

    async def close(self) -> None:
        pass

    async def refresh_access_token(self) -> dict[str, Any]:
        self._record("refresh_access_token")
        self.access_token = "refreshed-token"
        return {"access_token": "refreshed-token", "expires_in": 3600}

    async def get_me(self) -> dict[str, Any]:
        self._record("get_me")
        return {"id": "user-1", "display_name": "Test User"}

    async def get_user_playlists(self, limit: int = 20, offset: int = 0) -> dict[str, Any]:
        self._record("get_user_playlists", limit=limit, offset=offset)
        items = [{"id": pid, "name": pid} for pid in self.playlists]
        return {"items": items[offset:offset + limit], "total": len(items)}

    async def get_playlist_tracks(self, playlist_id: str, limit: int = 100, offset: int = 0) -> dict[str, Any]:
        self._record("get_playlist_tracks", playlist_id, limit=limit, offset=offset)
        tracks = self.playlists.get(playlist_id, [])
        return {"items": [{"track": t} for t in tracks[offset:offset + limit]], "total": len(tracks)}

    async def create_playlist(self, name: str, public: bool = False, description: str = "") -> dict[str, Any]:
        self._record("create_playlist", name, public=public, description=description)
        self._created += 1
        pid = f"new-{self._created}"
        self.playlists[pid] = []
        return {"id": pid, "name": name, "public": public}

    async def add_tracks_to_playlist(self, playlist_id: str, uris: list[str]) -> dict[str, Any]:
        self._record("add_tracks_to_playlist", playlist_id, list(uris))
        tracks = self.playlists.setdefault(playlist_id, [])
        tracks.extend({"id": u.rsplit(":", 1)[-1], "uri": u, "name": u} for u in uris)
        return {"snapshot_id": "snap"}

    async def remove_tracks_from_playlist(self, playlist_id: str, uris: list[str]) -> dict[str, Any]:
        self._record("remove_tracks_from_playlist", playlist_id, list(uris))
        return {"snapshot_id": "snap"}

    async def add_to_saved_tracks(self, track_ids: list[str]) -> dict[str, Any]:
        self._record("add_to_saved_tracks", list(track_ids))
        self.saved.extend(track_ids)
        return {}

    async def remove_from_saved_tracks(self, track_ids: list[str]) -> dict[str, Any]:
        self._record("remove_from_saved_tracks", list(track_ids))
        self.saved = [t for t in self.saved if t not in set(track_ids)]
        return {}

    async def get_saved_tracks(self, limit: int = 20, offset: int = 0) -> dict[str, Any]:
        self._record("get_saved_tracks", limit=limit, offset=offset)
        return {"items": [{"track": {"id": t}} for t in self.saved[offset:offset + limit]]}

    async def get_currently_playing(self) -> dict[str, Any]:
        self._record("get_currently_playing")
        return {"is_playing": True, "item": {"id": "t1"}}

    async def get_tracks(self, track_ids: list[str]) -> dict[str, Any]:
        self._record("get_tracks", list(track_ids))
        return {"tracks": [{"id": t} for t in track_ids]}

    async def get_audio_features(self, track_ids: list[str]) -> dict[str, Any]:
        self._record("get_audio_features", list(track_ids))
        return {"audio_features": [{"id": t, "energy": 0.5} for t in track_ids]}

    async def search(self, query: str, types: list[str], limit: int = 20, offset: int = 0, market: str | None = None) -> dict[str, Any]:
        self._record("search", query, list(types), limit=limit, offset=offset, market=market)
        return {f"{t}s": {"items": [{"name": f"{query}-{t}"}]} for t in types}

    async def get_recommendations(self, **params: Any) -> dict[str, Any]:
        self._record("get_recommendations", **params)
        return {"tracks": [{"id": "rec-1"}, {"id": "rec-2"}]}

    async def get_my_top(self, kind: str, time_range: str = "medium_term", limit: int = 20, offset: int = 0) -> dict[str, Any]:
        self._record("get_my_top", kind, time_range=time_range, limit=limit, offset=offset)
        return {"items": [{"id": f"{kind}-1"}]}

    async def get_followed_artists(self, limit: int = 20, after: str | None = None) -> dict[str, Any]:
        self._record("get_followed_artists", limit=limit, after=after)
        return {"artists": {"items": [{"id": "a1"}, {"id": "a2"}]}}

    async def follow_artists(self, artist_ids: list[str]) -> dict[str, Any]:
        self._record("follow_artists", list(artist_ids))
        return {}

    async def unfollow_artists(self, artist_ids: list[str]) -> dict[str, Any]:
        self._record("unfollow_artists", list(artist_ids))
        return {}

    async def follow_playlist(self, playlist_id: str, public: bool = True) -> dict[str, Any]:
        self._record("follow_playlist", playlist_id, public=public)
        return {}

    async def unfollow_playlist(self, playlist_id: str) -> dict[str, Any]:
        self._record("unfollow_playlist", playlist_id)
        return {}

    async def get_recently_played(self, limit: int = 20, after: int | None = None, before: int | None = None) -> dict[str, Any]:
        self._record("get_recently_played", limit=limit, after=after, before=before)
        return {"items": []}


def make_tracks(n: int, prefix: str = "t") -> list[dict[str, Any]]:
    return [{"id": f"{prefix}{i}", "uri": f"spotify:track:{prefix}{i}", "name": f"Track {i}"} for i in range(n)]


class SleepRecorder:
    """Async sleep replacement that records requested delays (seconds)."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


AUTH = {"access_token": "token-abc", "refresh_token": "refresh-abc", "is_authenticated": True}


# ---- Fixtures ----


@pytest.fixture
def registry() -> ActionRegistry:
    reg = ActionRegistry()
    register_all_actions(reg)
    return reg


@pytest.fixture
def fake_client() -> FakeSpotifyClient:
    return FakeSpotifyClient()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def store(tmp_path: Path) -> ContextStore:
    return ContextStore(tmp_path / "contexts")


@pytest.fixture
def engine(registry: ActionRegistry, fake_client: FakeSpotifyClient, sleeper: SleepRecorder, store: ContextStore) -> ExecutionEngine:
    config = ExecutionConfig(max_retries=3, retry_delay_ms=10, enable_logging=False)
    return ExecutionEngine(registry, fake_client, config, store=store, sleep=sleeper, batch_delay=0)


@pytest.fixture
def authed_context() -> ContextManager:
    return ContextManager(spotify=dict(AUTH))


@pytest.fixture
def exec_ctx(authed_context: ContextManager):
    def _make(parameters: dict[str, Any] | None = None, context: ContextManager | None = None) -> ActionExecutionContext:
        return ActionExecutionContext(
            context=context or authed_context, tool_call_id="call-1", parameters=parameters or {},
        )
    return _make


@pytest.fixture
def agent_config() -> AgentConfig:
    return AgentConfig(max_steps=5, auto_save_context=False, history_messages=50)
