"""Handler behaviour, exercised through the engine the way the agent calls them."""
from __future__ import annotations

import pytest

from spotibot.context import ContextManager
from spotibot.errors import SpotifyAPIError

from conftest import make_tracks


class TestPlaylistActions:
    @pytest.mark.asyncio
    async def test_get_playlist_tracks_compact(self, engine, exec_ctx, fake_client):
        fake_client.playlists["p1"] = [
            {"id": "x", "uri": "spotify:track:x", "name": "X", "artists": [{"name": "A"}], "popularity": 5},
        ]
        result = await engine.execute_action("get_playlist_tracks", exec_ctx({"playlistId": "p1"}))
        assert result.success
        assert result.data["items"] == [{"id": "x", "name": "X", "uri": "spotify:track:x", "artists": ["A"]}]
        detailed = await engine.execute_action(
            "get_playlist_tracks", exec_ctx({"playlistId": "p1", "includeDetails": True}),
        )
        assert detailed.data["items"][0]["popularity"] == 5

    @pytest.mark.asyncio
    async def test_add_tracks_accepts_ids_or_uris(self, engine, exec_ctx, fake_client):
        fake_client.playlists["p1"] = []
        result = await engine.execute_action(
            "add_tracks_to_playlist", exec_ctx({"playlistId": "p1", "trackIds": ["abc", "spotify:track:def"]}),
        )
        assert result.success
        (args, _), = fake_client.calls_to("add_tracks_to_playlist")
        assert args == ("p1", ["spotify:track:abc", "spotify:track:def"])

    @pytest.mark.asyncio
    async def test_merge_requires_target_or_name(self, engine, exec_ctx, sleeper):
        result = await engine.execute_action("merge_playlists", exec_ctx({"sourcePlaylistIds": ["a"]}))
        assert not result.success
        assert result.metadata == {"validationError": True}
        assert sleeper.delays == []

    @pytest.mark.asyncio
    async def test_merge_playlists(self, engine, exec_ctx, fake_client):
        fake_client.playlists["a"] = make_tracks(3)
        result = await engine.execute_action(
            "merge_playlists", exec_ctx({"sourcePlaylistIds": ["a"], "newPlaylistName": "All"}),
        )
        assert result.success
        assert result.data["totalAdded"] == 3
        assert result.metadata["targetPlaylistId"] == "new-1"


class TestTrackActions:
    @pytest.mark.asyncio
    async def test_like_all_songs_from_playlists(self, engine, exec_ctx, fake_client):
        fake_client.playlists["p1"] = make_tracks(60)
        result = await engine.execute_action("like_all_songs_from_playlists", exec_ctx({"playlistIds": ["p1"]}))
        assert result.success
        assert result.data["tracksByPlaylist"] == {"p1": 60}
        assert len(fake_client.saved) == 60

    @pytest.mark.asyncio
    async def test_dislike_songs(self, engine, exec_ctx, fake_client):
        fake_client.saved = ["a", "b", "c"]
        result = await engine.execute_action("dislike_songs", exec_ctx({"trackIds": ["a", "c"]}))
        assert result.success
        assert fake_client.saved == ["b"]

    @pytest.mark.asyncio
    async def test_saved_tracks_bounds(self, engine, exec_ctx):
        result = await engine.execute_action("get_saved_tracks", exec_ctx({"limit": 0}))
        assert result.metadata == {"validationError": True}

    @pytest.mark.asyncio
    async def test_audio_features(self, engine, exec_ctx):
        result = await engine.execute_action("get_track_audio_features", exec_ctx({"trackIds": ["t1"]}))
        assert result.data["audio_features"][0]["id"] == "t1"


class TestSearchActions:
    @pytest.mark.asyncio
    async def test_search_tracks_defaults(self, engine, exec_ctx, fake_client):
        result = await engine.execute_action("search_tracks", exec_ctx({"query": "jazz"}))
        assert result.success
        assert result.metadata["count"] == 1
        (args, kwargs), = fake_client.calls_to("search")
        assert args == ("jazz", ["track"])
        assert kwargs == {"limit": 20, "offset": 0, "market": None}

    @pytest.mark.asyncio
    async def test_search_all_types(self, engine, exec_ctx, fake_client):
        await engine.execute_action("search_all", exec_ctx({"query": "q", "types": ["album", "artist"], "market": "BR"}))
        (args, kwargs), = fake_client.calls_to("search")
        assert args == ("q", ["album", "artist"])
        assert kwargs["market"] == "BR"

    @pytest.mark.asyncio
    async def test_search_all_rejects_unknown_type(self, engine, exec_ctx):
        result = await engine.execute_action("search_all", exec_ctx({"query": "q", "types": ["podcast"]}))
        assert result.metadata == {"validationError": True}

    @pytest.mark.asyncio
    async def test_recommendations(self, engine, exec_ctx, fake_client):
        result = await engine.execute_action(
            "get_recommendations", exec_ctx({"seedGenres": ["rock"], "targetEnergy": 0.8}),
        )
        assert result.success
        assert result.metadata["count"] == 2
        (_, kwargs), = fake_client.calls_to("get_recommendations")
        assert kwargs["seed_genres"] == ["rock"]
        assert kwargs["target_energy"] == 0.8

    @pytest.mark.asyncio
    async def test_recommendations_need_a_seed(self, engine, exec_ctx, fake_client):
        result = await engine.execute_action("get_recommendations", exec_ctx({}))
        assert not result.success
        assert result.metadata == {"validationError": True}
        assert "seedTracks" in result.error
        assert fake_client.calls_to("get_recommendations") == []


class TestUserActions:
    @pytest.mark.asyncio
    async def test_profile_records_user_id(self, engine, exec_ctx, authed_context):
        result = await engine.execute_action("get_user_profile", exec_ctx())
        assert result.success
        assert authed_context.context.spotify.user_id == "user-1"

    @pytest.mark.asyncio
    async def test_top_tracks(self, engine, exec_ctx, fake_client):
        await engine.execute_action("get_user_top_tracks", exec_ctx({"timeRange": "short_term", "limit": 5}))
        (args, kwargs), = fake_client.calls_to("get_my_top")
        assert args == ("tracks",)
        assert kwargs == {"time_range": "short_term", "limit": 5, "offset": 0}

    @pytest.mark.asyncio
    async def test_invalid_time_range(self, engine, exec_ctx):
        result = await engine.execute_action("get_user_top_artists", exec_ctx({"timeRange": "forever"}))
        assert result.metadata == {"validationError": True}

    @pytest.mark.asyncio
    async def test_follow_playlist_defaults_public(self, engine, exec_ctx, fake_client):
        await engine.execute_action("follow_playlist", exec_ctx({"playlistId": "p9"}))
        assert fake_client.calls_to("follow_playlist") == [(("p9",), {"public": True})]

    @pytest.mark.asyncio
    async def test_followed_artists_count(self, engine, exec_ctx):
        result = await engine.execute_action("get_followed_artists", exec_ctx())
        assert result.metadata["count"] == 2


class TestSystemActions:
    @pytest.mark.asyncio
    async def test_available_tools_by_category(self, engine, exec_ctx):
        result = await engine.execute_action("get_available_tools", exec_ctx({"category": "search"}))
        assert result.data["count"] == 6
        assert {t["category"] for t in result.data["tools"]} == {"search"}

    @pytest.mark.asyncio
    async def test_system_status(self, engine, exec_ctx):
        result = await engine.execute_action("get_system_status", exec_ctx())
        assert result.data["status"] == "operational"
        assert "rateLimitStates" in result.data

    @pytest.mark.asyncio
    async def test_connection_status_without_token(self, engine, exec_ctx, fake_client):
        result = await engine.execute_action("get_spotify_connection_status", exec_ctx())
        assert result.data["connected"] is False
        assert fake_client.calls_to("get_me") == []

    @pytest.mark.asyncio
    async def test_connection_status_with_expired_token(self, engine, exec_ctx, fake_client, sleeper, monkeypatch):
        async def expired():
            raise SpotifyAPIError(401, "The access token expired")

        fake_client.set_access_token("stale")
        monkeypatch.setattr(fake_client, "get_me", expired)
        result = await engine.execute_action("get_spotify_connection_status", exec_ctx())
        assert result.success
        assert result.data["connected"] is False
        assert result.data["hasAccessToken"] is True
        assert result.data["error"] == "The access token expired"
        assert sleeper.delays == []

    @pytest.mark.asyncio
    async def test_refresh_token_updates_context(self, engine, exec_ctx, fake_client, authed_context):
        fake_client.refresh_token = "refresh-abc"
        result = await engine.execute_action("refresh_spotify_token", exec_ctx())
        assert result.success
        assert authed_context.context.spotify.access_token == "refreshed-token"

    @pytest.mark.asyncio
    async def test_refresh_without_refresh_token_fails_after_retries(self, engine, exec_ctx, sleeper):
        result = await engine.execute_action("refresh_spotify_token", exec_ctx())
        assert not result.success
        assert result.error.endswith("Last error: No refresh token available")
        assert len(sleeper.delays) == 2

    @pytest.mark.asyncio
    async def test_get_context_hides_tokens(self, engine, exec_ctx, authed_context):
        authed_context.add_message("user", "hi")
        result = await engine.execute_action("get_context", exec_ctx())
        assert "conversationHistory" not in result.data
        assert "accessToken" not in result.data["spotify"]
        with_history = await engine.execute_action("get_context", exec_ctx({"includeHistory": True}))
        assert len(with_history.data["conversationHistory"]) == 1

    @pytest.mark.asyncio
    async def test_clear_context(self, engine, exec_ctx, authed_context):
        authed_context.add_message("user", "hi")
        authed_context.update_session_metadata({"k": "v"})
        await engine.execute_action("clear_context", exec_ctx())
        assert authed_context.history == []
        assert authed_context.context.session.metadata == {}
        assert authed_context.context.spotify.usable

    @pytest.mark.asyncio
    async def test_save_and_load_context(self, engine, exec_ctx, authed_context, store):
        authed_context.add_message("user", "remember me")
        saved = await engine.execute_action("save_context", exec_ctx({"filename": "snap"}))
        assert saved.data["filename"] == "snap.json"
        assert store.list() == ["snap.json"]

        other = ContextManager()
        loaded = await engine.execute_action("load_context", exec_ctx({"filename": "snap"}, context=other))
        assert loaded.success
        assert loaded.data["messageCount"] == 1
        assert other.history[0].content == "remember me"

    @pytest.mark.asyncio
    async def test_load_missing_context(self, engine, exec_ctx):
        result = await engine.execute_action("load_context", exec_ctx({"filename": "nope"}))
        assert not result.success
        assert "not found" in result.error

    @pytest.mark.asyncio
    async def test_help_for_action_and_general(self, engine, exec_ctx):
        one = await engine.execute_action("get_help", exec_ctx({"topic": "search_tracks"}))
        assert one.data["action"]["name"] == "search_tracks"
        assert "query" in one.data["action"]["parameters"]["properties"]
        general = await engine.execute_action("get_help", exec_ctx())
        assert len(general.data["availableActions"]) == 39
        assert general.data["categories"] == ["playlist", "track", "user", "search", "system"]

    @pytest.mark.asyncio
    async def test_execute_command_is_refused(self, engine, exec_ctx, sleeper):
        result = await engine.execute_action("execute_command", exec_ctx({"command": "rm", "args": ["-rf"]}))
        assert not result.success
        assert "security reasons" in result.error
        assert len(sleeper.delays) == 2
