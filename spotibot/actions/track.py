"""Track actions: saved-track (like/dislike) management and track lookups."""

from __future__ import annotations

from pydantic import Field

from spotibot.actions.base import ActionGroup, ActionParams, BoundHandler, NoParams, count_items
from spotibot.operations import SAVED_TRACKS_BATCH, TrackOperations, process_batch
from spotibot.spotify import SpotifyClient
from spotibot.types import ActionExecutionContext, ActionExecutionResult


class PlaylistIdsParams(ActionParams):
    playlist_ids: list[str] = Field(description="Array of playlist IDs to process")


class TrackIdsParams(ActionParams):
    track_ids: list[str] = Field(description="Array of track IDs")


class GetSavedTracksParams(ActionParams):
    limit: int = Field(20, ge=1, le=50, description="Number of tracks to retrieve")
    offset: int = Field(0, ge=0, description="Offset for pagination")


class TrackActions(ActionGroup):
    name = "track"

    def __init__(self, client: SpotifyClient, tracks: TrackOperations) -> None:
        self.client = client
        self.tracks = tracks

    def routes(self) -> dict[str, BoundHandler]:
        return {
            "like_all_songs_from_playlists": self.like_all_songs_from_playlists,
            "dislike_all_songs_from_playlists": self.dislike_all_songs_from_playlists,
            "like_songs": self.like_songs,
            "dislike_songs": self.dislike_songs,
            "get_current_track": self.get_current_track,
            "get_saved_tracks": self.get_saved_tracks,
            "get_track_details": self.get_track_details,
            "get_track_audio_features": self.get_track_audio_features,
        }

    async def like_all_songs_from_playlists(self, p: PlaylistIdsParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
        processed = await self.tracks.process_liked_songs(p.playlist_ids, "add")
        return ActionExecutionResult.ok(
            {"liked": True, "tracksByPlaylist": processed},
            action="like_all_songs_from_playlists", playlistCount=len(p.playlist_ids),
        )

    async def dislike_all_songs_from_playlists(self, p: PlaylistIdsParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
        processed = await self.tracks.process_liked_songs(p.playlist_ids, "remove")
        return ActionExecutionResult.ok(
            {"disliked": True, "tracksByPlaylist": processed},
            action="dislike_all_songs_from_playlists", playlistCount=len(p.playlist_ids),
        )

    async def like_songs(self, p: TrackIdsParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
        await process_batch(p.track_ids, SAVED_TRACKS_BATCH, self.client.add_to_saved_tracks, delay=self.tracks.batch_delay)
        return ActionExecutionResult.ok({"liked": True}, action="like_songs", trackCount=len(p.track_ids))

    async def dislike_songs(self, p: TrackIdsParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
        await process_batch(p.track_ids, SAVED_TRACKS_BATCH, self.client.remove_from_saved_tracks, delay=self.tracks.batch_delay)
        return ActionExecutionResult.ok({"disliked": True}, action="dislike_songs", trackCount=len(p.track_ids))

    async def get_current_track(self, p: NoParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
        body = await self.client.get_currently_playing()
        return ActionExecutionResult.ok(body, action="get_current_track", isPlaying=bool(body.get("is_playing")))

    async def get_saved_tracks(self, p: GetSavedTracksParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
        body = await self.client.get_saved_tracks(limit=p.limit, offset=p.offset)
        return ActionExecutionResult.ok(body, action="get_saved_tracks", count=count_items(body))

    async def get_track_details(self, p: TrackIdsParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
        body = await self.client.get_tracks(p.track_ids)
        return ActionExecutionResult.ok(body, action="get_track_details", trackCount=len(p.track_ids))

    async def get_track_audio_features(self, p: TrackIdsParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
        body = await self.client.get_audio_features(p.track_ids)
        return ActionExecutionResult.ok(body, action="get_track_audio_features", trackCount=len(p.track_ids))
