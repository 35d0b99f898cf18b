"""The fixed tool catalog: every action the model can call."""

from __future__ import annotations

from pydantic import BaseModel

from spotibot.actions import playlist, search, system, track, user
from spotibot.actions.base import NoParams
from spotibot.registry import ActionRegistry
from spotibot.types import ActionDefinition, RateLimitPolicy

# (name, category, params, description, permissions)
CATALOG: list[tuple[str, str, type[BaseModel], str, tuple[str, ...] | None]] = [
    # playlist
    ("create_playlist", "playlist", playlist.CreatePlaylistParams,
     "Create a new Spotify playlist", ("playlist:modify",)),
    ("get_user_playlists", "playlist", playlist.GetUserPlaylistsParams,
     "Get all user playlists from Spotify", ("playlist:read",)),
    ("get_playlist_tracks", "playlist", playlist.GetPlaylistTracksParams,
     "Get all tracks from a specific playlist", ("playlist:read",)),
    ("merge_playlists", "playlist", playlist.MergePlaylistsParams,
     "Merge multiple playlists into a new playlist or existing one", ("playlist:modify", "playlist:read")),
    ("add_tracks_to_playlist", "playlist", playlist.PlaylistTracksParams,
     "Add specific tracks to a playlist", ("playlist:modify",)),
    ("remove_tracks_from_playlist", "playlist", playlist.PlaylistTracksParams,
     "Remove specific tracks from a playlist", ("playlist:modify",)),
    # track
    ("like_all_songs_from_playlists", "track", track.PlaylistIdsParams,
     "Like all songs from selected playlists (add to saved tracks)", ("track:modify", "playlist:read")),
    ("dislike_all_songs_from_playlists", "track", track.PlaylistIdsParams,
     "Dislike all songs from selected playlists (remove from saved tracks)", ("track:modify", "playlist:read")),
    ("like_songs", "track", track.TrackIdsParams,
     "Like specific songs (add to saved tracks)", ("track:modify",)),
    ("dislike_songs", "track", track.TrackIdsParams,
     "Dislike specific songs (remove from saved tracks)", ("track:modify",)),
    ("get_current_track", "track", NoParams,
     "Get the currently playing track from Spotify", ("track:read",)),
    ("get_saved_tracks", "track", track.GetSavedTracksParams,
     "Get user saved tracks (liked songs)", ("track:read",)),
    ("get_track_details", "track", track.TrackIdsParams,
     "Get detailed information about specific tracks", ("track:read",)),
    ("get_track_audio_features", "track", track.TrackIdsParams,
     "Get audio features for tracks (tempo, energy, danceability, etc.)", ("track:read",)),
    # search
    ("search_tracks", "search", search.SearchParams, "Search for tracks on Spotify", None),
    ("search_playlists", "search", search.SearchParams, "Search for playlists on Spotify", None),
    ("search_artists", "search", search.SearchParams, "Search for artists on Spotify", None),
    ("search_albums", "search", search.SearchParams, "Search for albums on Spotify", None),
    ("search_all", "search", search.SearchAllParams, "Search for all types of content on Spotify", None),
    ("get_recommendations", "search", search.RecommendationsParams,
     "Get track recommendations based on seed tracks, artists, or genres", None),
    # user
    ("get_user_profile", "user", NoParams, "Get current user profile information", ("user:read",)),
    ("get_user_top_tracks", "user", user.TopItemsParams, "Get user top tracks", ("user:read",)),
    ("get_user_top_artists", "user", user.TopItemsParams, "Get user top artists", ("user:read",)),
    ("get_followed_artists", "user", user.FollowedArtistsParams, "Get artists followed by the user", ("user:read",)),
    ("follow_artists", "user", user.ArtistIdsParams, "Follow artists", ("user:modify",)),
    ("unfollow_artists", "user", user.ArtistIdsParams, "Unfollow artists", ("user:modify",)),
    ("follow_playlist", "user", user.FollowPlaylistParams, "Follow a playlist", ("user:modify",)),
    ("unfollow_playlist", "user", user.UnfollowPlaylistParams, "Unfollow a playlist", ("user:modify",)),
    ("get_recently_played", "user", user.RecentlyPlayedParams, "Get recently played tracks", ("user:read",)),
    # system
    ("get_available_tools", "system", system.GetAvailableToolsParams,
     "Get list of all available tools and their descriptions", None),
    ("get_system_status", "system", NoParams, "Get system status and health information", None),
    ("get_spotify_connection_status", "system", NoParams,
     "Check Spotify API connection status and authentication", None),
    ("refresh_spotify_token", "system", NoParams, "Refresh Spotify access token", None),
    ("get_context", "system", system.GetContextParams,
     "Get current session context and conversation history", None),
    ("clear_context", "system", NoParams, "Clear current session context and conversation history", None),
    ("save_context", "system", system.SaveContextParams, "Save current session context to file", None),
    ("load_context", "system", system.LoadContextParams, "Load session context from file", None),
    ("get_help", "system", system.GetHelpParams, "Get help information about available actions", None),
    ("execute_command", "system", system.ExecuteCommandParams,
     "Execute a raw Spotify CLI command", ("system:execute",)),
]


def build_definitions(rate_limits: dict[str, RateLimitPolicy] | None = None) -> list[ActionDefinition]:
    limits = rate_limits or {}
    return [
        ActionDefinition(
            name=name,
            description=description,
            category=category,
            params=params,
            permissions=permissions,
            rate_limit=limits.get(name),
        )
        for name, category, params, description, permissions in CATALOG
    ]


def register_all_actions(
    registry: ActionRegistry,
    rate_limits: dict[str, RateLimitPolicy] | None = None,
) -> int:
    """Register the whole catalog. Returns the number of actions registered."""
    definitions = build_definitions(rate_limits)
    for definition in definitions:
        registry.register(definition)
    return len(definitions)
