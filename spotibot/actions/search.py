"""Search actions and recommendations."""

from __future__ import annotations

from typing import Literal

from pydantic import Field, model_validator

from spotibot.actions.base import ActionGroup, ActionParams, BoundHandler, count_items
from spotibot.spotify import SpotifyClient
from spotibot.types import ActionExecutionContext, ActionExecutionResult

SearchType = Literal["track", "artist", "album", "playlist"]
ALL_SEARCH_TYPES: list[str] = ["track", "artist", "album", "playlist"]


class SearchParams(ActionParams):
    query: str = Field(description="Search query")
    limit: int = Field(20, ge=1, le=50, description="Number of results to return")
    offset: int = Field(0, ge=0, description="Offset for pagination")
    market: str | None = Field(None, description='Market/country code (e.g., "US", "BR")')


class SearchAllParams(ActionParams):
    query: str = Field(description="Search query")
    types: list[SearchType] = Field(
        default_factory=lambda: list(ALL_SEARCH_TYPES), description="Types of content to search for",
    )
    limit: int = Field(20, ge=1, le=50, description="Number of results per type")
    market: str | None = Field(None, description='Market/country code (e.g., "US", "BR")')


class RecommendationsParams(ActionParams):
    seed_tracks: list[str] | None = Field(None, description="Array of track IDs to use as seeds")
    seed_artists: list[str] | None = Field(None, description="Array of artist IDs to use as seeds")
    seed_genres: list[str] | None = Field(None, description="Array of genres to use as seeds")
    limit: int = Field(20, ge=1, le=100, description="Number of recommendations to return")
    market: str | None = Field(None, description='Market/country code (e.g., "US", "BR")')
    target_acousticness: float | None = Field(None, ge=0, le=1, description="Target acousticness (0.0 to 1.0)")
    target_danceability: float | None = Field(None, ge=0, le=1, description="Target danceability (0.0 to 1.0)")
    target_energy: float | None = Field(None, ge=0, le=1, description="Target energy (0.0 to 1.0)")
    target_valence: float | None = Field(None, ge=0, le=1, description="Target valence/positivity (0.0 to 1.0)")

    @model_validator(mode="after")
    def _needs_seed(self) -> RecommendationsParams:
        if not (self.seed_tracks or self.seed_artists or self.seed_genres):
            raise ValueError("At least one of seedTracks, seedArtists or seedGenres is required")
        return self


class SearchActions(ActionGroup):
    name = "search"

    def __init__(self, client: SpotifyClient) -> None:
        self.client = client

    def routes(self) -> dict[str, BoundHandler]:
        return {
            "search_tracks": self._typed("track"),
            "search_playlists": self._typed("playlist"),
            "search_artists": self._typed("artist"),
            "search_albums": self._typed("album"),
            "search_all": self.search_all,
            "get_recommendations": self.get_recommendations,
        }

    def _typed(self, kind: str) -> BoundHandler:
        action = f"search_{kind}s"

        async def handler(p: SearchParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
            body = await self.client.search(p.query, [kind], limit=p.limit, offset=p.offset, market=p.market)
            return ActionExecutionResult.ok(body, action=action, query=p.query, count=count_items(body, f"{kind}s"))

        handler.__name__ = action
        return handler

    async def search_all(self, p: SearchAllParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
        types = list(p.types) or list(ALL_SEARCH_TYPES)
        body = await self.client.search(p.query, types, limit=p.limit, market=p.market)
        return ActionExecutionResult.ok(body, action="search_all", query=p.query, types=types)

    async def get_recommendations(self, p: RecommendationsParams, ctx: ActionExecutionContext) -> ActionExecutionResult:
        body = await self.client.get_recommendations(
            seed_tracks=p.seed_tracks,
            seed_artists=p.seed_artists,
            seed_genres=p.seed_genres,
            limit=p.limit,
            market=p.market,
            target_acousticness=p.target_acousticness,
            target_danceability=p.target_danceability,
            target_energy=p.target_energy,
            target_valence=p.target_valence,
        )
        return ActionExecutionResult.ok(
            body, action="get_recommendations", count=len(body.get("tracks") or []),
        )
