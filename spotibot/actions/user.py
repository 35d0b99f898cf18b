"""User actions: profile, top items, follows, listening history."""

from __future__ import annotations

from typing import Literal

from pydantic import Field

from spotibot.actions.base import ActionGroup, ActionParams, BoundHandler, NoParams, count_items
from spotibot.spotify import SpotifyClient
from spotibot.types import ActionExecutionContext, ActionExecutionResult

TimeRange = Literal["short_term", "medium_term", "long_term"]


class TopItemsParams(ActionParams):
    time_range: TimeRange = Field(
        "medium_term",
        description="Time range: short_term (4 weeks), medium_term (6 months), long_term (years)",
    )
    limit: int = Field(20, ge=1, le=50, description="Number of items to retrieve")
    offset: int = Field(0, ge=0, description="Offset for pagination")


class FollowedArtistsParams(ActionParams):
    limit: int = Field(20, ge=1, le=50, description="Number of artists to retrieve")
    after: str | None = Field(None, description="The last artist ID retrieved from the previous request")


class ArtistIdsParams(ActionParams):
    artist_ids: list[str] = Field(description="Array of artist IDs")


class FollowPlaylistParams(ActionParams):
    playlist_id: str = Field(description="ID of the playlist to follow")
    is_public: bool = Field(True, description="Whether the playlist will appear in the user's public playlists")


class UnfollowPlaylistParams(ActionParams):
    playlist_id: str = Field(description="ID of the playlist to unfollow")


class RecentlyPlayedParams(ActionParams):
    limit: int = Field(20, ge=1, le=50, description="Number of tracks to retrieve")
    after: int | None = Field(None, description="Unix timestamp in milliseconds; return items after this time")
    before: int | None = Field(None, description="Unix timestamp in milliseconds; return items before this time")


class UserActions(ActionGroup):
    name = "user"

    def __init__(self, client: SpotifyClient) -> None:
        self.client = client

    def routes(self) -> dict[str, BoundHandler]:
        return {
            "get_user_profile": self.get_user_profile,
            "get_user_top_tracks": self.get_user_top_tracks,
            "get_user_top_artists": self.get_user_top_artists,
            "get_followed_artists": self.get_followed_artists,
            "follow_artists": self.follow_artists,
            "unfollow_artists": self.unfollow_artists,
            "follow_playlist": self.follow_playlist,
            "unfollow_playlist": self.unfollow_playlist,
            "get_recently_played": self.get_recently_played,
        }

    async def get_user_profile(self, p: NoParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
        body = await self.client.get_me()
        user_id = body.get("id")
        # remember who we are talking to
        if user_id and ctx.ai_context.spotify.user_id != user_id:
            ctx.context.update_spotify(user_id=user_id)
        return ActionExecutionResult.ok(body, action="get_user_profile", userId=user_id)

    async def get_user_top_tracks(self, p: TopItemsParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
        body = await self.client.get_my_top("tracks", time_range=p.time_range, limit=p.limit, offset=p.offset)
        return ActionExecutionResult.ok(
            body, action="get_user_top_tracks", timeRange=p.time_range, count=count_items(body),
        )

    async def get_user_top_artists(self, p: TopItemsParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
        body = await self.client.get_my_top("artists", time_range=p.time_range, limit=p.limit, offset=p.offset)
        return ActionExecutionResult.ok(
            body, action="get_user_top_artists", timeRange=p.time_range, count=count_items(body),
        )

    async def get_followed_artists(self, p: FollowedArtistsParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
        body = await self.client.get_followed_artists(limit=p.limit, after=p.after)
        return ActionExecutionResult.ok(body, action="get_followed_artists", count=count_items(body, "artists"))

    async def follow_artists(self, p: ArtistIdsParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
        await self.client.follow_artists(p.artist_ids)
        return ActionExecutionResult.ok({"followed": True}, action="follow_artists", artistCount=len(p.artist_ids))

    async def unfollow_artists(self, p: ArtistIdsParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
        await self.client.unfollow_artists(p.artist_ids)
        return ActionExecutionResult.ok({"unfollowed": True}, action="unfollow_artists", artistCount=len(p.artist_ids))

    async def follow_playlist(self, p: FollowPlaylistParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
        await self.client.follow_playlist(p.playlist_id, public=p.is_public)
        return ActionExecutionResult.ok({"followed": True}, action="follow_playlist", playlistId=p.playlist_id)

    async def unfollow_playlist(self, p: UnfollowPlaylistParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
        await self.client.unfollow_playlist(p.playlist_id)
        return ActionExecutionResult.ok({"unfollowed": True}, action="unfollow_playlist", playlistId=p.playlist_id)

    async def get_recently_played(self, p: RecentlyPlayedParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
        body = await self.client.get_recently_played(limit=p.limit, after=p.after, before=p.before)
        return ActionExecutionResult.ok(body, action="get_recently_played", count=count_items(body))
