"""Aggregate operations over the Spotify client: pagination, batching, merging."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from spotibot.log import get_logger
from spotibot.spotify import SpotifyClient

logger = get_logger("ops")


T = TypeVar("T")

PLAYLIST_PAGE_SIZE = 100
SAVED_TRACKS_BATCH = 50
PLAYLIST_ADD_BATCH = 100


async def process_batch(
    items: list[T],
    batch_size: int,
    processor: Callable[[list[T]], Awaitable[Any]],
    delay: float = 0.1,
) -> int:
    """Run processor over consecutive slices of items, pausing between slices.

    Returns the number of batches processed.
    """
    batches = 0
    for i in range(0, len(items), batch_size):
        await processor(items[i:i + batch_size])
        batches += 1
        if i + batch_size < len(items) and delay > 0:
            await asyncio.sleep(delay)
    return batches


class TrackOperations:
    def __init__(self, client: SpotifyClient, batch_delay: float = 0.1) -> None:
        self.client = client
        self.batch_delay = batch_delay

    async def get_playlist_tracks(self, playlist_id: str, page_size: int = PLAYLIST_PAGE_SIZE) -> list[dict[str, Any]]:
        """Every track of a playlist in playlist order.

        Fetches pages until one comes back shorter than page_size. Items whose
        track is null (removed/local files) are skipped.
        """
        tracks: list[dict[str, Any]] = []
        offset = 0
        while True:
            page = await self.client.get_playlist_tracks(playlist_id, limit=page_size, offset=offset)
            items = page.get("items") or []
            tracks.extend(item["track"] for item in items if item.get("track"))
            if len(items) < page_size:
                break
            offset += page_size
        return tracks

    async def process_liked_songs(self, playlist_ids: list[str], action: str) -> dict[str, int]:
        """Save ("add") or unsave ("remove") every track of the given playlists.

        Returns playlist id -> number of tracks processed.
        """
        if action not in ("add", "remove"):
            raise ValueError(f"action must be 'add' or 'remove', got {action!r}")
        op = self.client.add_to_saved_tracks if action == "add" else self.client.remove_from_saved_tracks
        processed: dict[str, int] = {}
        for playlist_id in playlist_ids:
            tracks = await self.get_playlist_tracks(playlist_id)
            track_ids = [t["id"] for t in tracks if t.get("id")]
            if not track_ids:
                logger.info(f"No tracks found in playlist {playlist_id}")
                processed[playlist_id] = 0
                continue
            await process_batch(track_ids, SAVED_TRACKS_BATCH, op, delay=self.batch_delay)
            processed[playlist_id] = len(track_ids)
            logger.info(
                f"{'Added' if action == 'add' else 'Removed'} {len(track_ids)} songs "
                f"{'to' if action == 'add' else 'from'} liked songs from playlist {playlist_id}"
            )
        return processed


class PlaylistOperations:
    def __init__(self, client: SpotifyClient, tracks: TrackOperations) -> None:
        self.client = client
        self.tracks = tracks

    async def add_uris(self, playlist_id: str, uris: list[str]) -> int:
        """Add URIs in API-sized batches. Returns the number of batches sent."""
        return await process_batch(
            uris, PLAYLIST_ADD_BATCH,
            lambda batch: self.client.add_tracks_to_playlist(playlist_id, batch),
            delay=self.tracks.batch_delay,
        )

    async def merge_playlists(
        self,
        source_ids: list[str],
        target_id: str | None = None,
        new_name: str | None = None,
        new_public: bool = False,
        exclude_track_ids: list[str] | None = None,
    ) -> dict[str, Any]:
        """Copy every track of source_ids into target_id (or a new playlist named new_name)."""
        if not target_id and not new_name:
            raise ValueError("Either targetPlaylistId or newPlaylistName must be provided")
        created = False
        if not target_id:
            playlist = await self.client.create_playlist(new_name or "", public=new_public)
            target_id = playlist["id"]
            created = True

        excluded = set(exclude_track_ids or [])
        added: dict[str, int] = {}
        for source_id in source_ids:
            tracks = await self.tracks.get_playlist_tracks(source_id)
            uris = [t["uri"] for t in tracks if t.get("uri") and t.get("id") not in excluded]
            if uris:
                await self.add_uris(target_id, uris)
            added[source_id] = len(uris)
            logger.info(f"Added {len(uris)} tracks from {source_id} to {target_id}")
        return {
            "targetPlaylistId": target_id,
            "created": created,
            "addedBySource": added,
            "totalAdded": sum(added.values()),
        }
