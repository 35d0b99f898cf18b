"""Playlist actions: create, list, read, merge, add/remove tracks."""

from __future__ import annotations

from typing import Any

from pydantic import Field, model_validator

from spotibot.actions.base import ActionGroup, ActionParams, BoundHandler, count_items, track_uri
from spotibot.operations import PlaylistOperations, TrackOperations
from spotibot.spotify import SpotifyClient
from spotibot.types import ActionExecutionContext, ActionExecutionResult


class CreatePlaylistParams(ActionParams):
    name: str = Field(description="Name of the new playlist")
    is_public: bool = Field(False, description="Whether the playlist should be public")
    description: str | None = Field(None, description="Description for the playlist")


class GetUserPlaylistsParams(ActionParams):
    limit: int = Field(20, ge=1, le=50, description="Number of playlists to retrieve")
    offset: int = Field(0, ge=0, description="Offset for pagination")


class GetPlaylistTracksParams(ActionParams):
    playlist_id: str = Field(description="ID of the playlist")
    include_details: bool = Field(False, description="Include detailed track information")


class MergePlaylistsParams(ActionParams):
    source_playlist_ids: list[str] = Field(description="IDs of playlists to merge")
    target_playlist_id: str | None = Field(
        None, description="ID of existing playlist to merge into (if not provided, creates new playlist)",
    )
    new_playlist_name: str | None = Field(
        None, description="Name for new playlist (required if targetPlaylistId not provided)",
    )
    new_playlist_public: bool = Field(False, description="Whether new playlist should be public")
    exclude_track_ids: list[str] = Field(default_factory=list, description="Track IDs to exclude from merge")

    @model_validator(mode="after")
    def _target_or_name(self) -> MergePlaylistsParams:
        if not self.target_playlist_id and not self.new_playlist_name:
            raise ValueError("Either targetPlaylistId or newPlaylistName must be provided")
        return self


class PlaylistTracksParams(ActionParams):
    playlist_id: str = Field(description="ID of the target playlist")
    track_ids: list[str] = Field(description="Array of track IDs")


def _compact_track(track: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": track.get("id"),
        "name": track.get("name"),
        "uri": track.get("uri"),
        "artists": [a.get("name") for a in track.get("artists") or []],
    }


class PlaylistActions(ActionGroup):
    name = "playlist"

    def __init__(self, client: SpotifyClient, tracks: TrackOperations, playlists: PlaylistOperations) -> None:
        self.client = client
        self.tracks = tracks
        self.playlists = playlists

    def routes(self) -> dict[str, BoundHandler]:
        return {
            "create_playlist": self.create_playlist,
            "get_user_playlists": self.get_user_playlists,
            "get_playlist_tracks": self.get_playlist_tracks,
            "merge_playlists": self.merge_playlists,
            "add_tracks_to_playlist": self.add_tracks_to_playlist,
            "remove_tracks_from_playlist": self.remove_tracks_from_playlist,
        }

    async def create_playlist(self, p: CreatePlaylistParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
        body = await self.client.create_playlist(p.name, public=p.is_public, description=p.description or "")
        return ActionExecutionResult.ok(body, action="create_playlist", playlistId=body.get("id"))

    async def get_user_playlists(self, p: GetUserPlaylistsParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
        body = await self.client.get_user_playlists(limit=p.limit, offset=p.offset)
        return ActionExecutionResult.ok(body, action="get_user_playlists", count=count_items(body))

    async def get_playlist_tracks(self, p: GetPlaylistTracksParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
        tracks = await self.tracks.get_playlist_tracks(p.playlist_id)
        items = tracks if p.include_details else [_compact_track(t) for t in tracks]
        return ActionExecutionResult.ok(
            {"items": items, "total": len(items)},
            action="get_playlist_tracks", playlistId=p.playlist_id, count=len(items),
        )

    async def merge_playlists(self, p: MergePlaylistsParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
        summary = await self.playlists.merge_playlists(
            p.source_playlist_ids,
            target_id=p.target_playlist_id,
            new_name=p.new_playlist_name,
            new_public=p.new_playlist_public,
            exclude_track_ids=p.exclude_track_ids,
        )
        return ActionExecutionResult.ok(
            {"merged": True, **summary},
            action="merge_playlists",
            sourceCount=len(p.source_playlist_ids),
            targetPlaylistId=summary["targetPlaylistId"],
        )

    async def add_tracks_to_playlist(self, p: PlaylistTracksParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
        uris = [track_uri(t) for t in p.track_ids]
        await self.playlists.add_uris(p.playlist_id, uris)
        return ActionExecutionResult.ok(
            {"added": True},
            action="add_tracks_to_playlist", playlistId=p.playlist_id, trackCount=len(uris),
        )

    async def remove_tracks_from_playlist(self, p: PlaylistTracksParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
        uris = [track_uri(t) for t in p.track_ids]
        await self.client.remove_tracks_from_playlist(p.playlist_id, uris)
        return ActionExecutionResult.ok(
            {"removed": True},
            action="remove_tracks_from_playlist", playlistId=p.playlist_id, trackCount=len(uris),
        )
