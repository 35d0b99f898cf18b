"""Spotify Web API client -- thin async wrapper over httpx."""

from __future__ import annotations

import base64
from typing import Any
from urllib.parse import urlencode

import httpx

from spotibot.config import SpotifyConfig
from spotibot.errors import SpotifyAPIError
from spotibot.log import get_logger

logger = get_logger("spotify")


class SpotifyClient:
    """Opaque remote-service capability: every method returns the decoded JSON body.

    Tokens are mutable (set_access_token / set_refresh_token) so one client can
    be created at startup and authenticated later by ExecutionEngine.initialize().
    """

    def __init__(self, config: SpotifyConfig | None = None, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.config = config or SpotifyConfig()
        self._access_token = self.config.access_token or ""
        self._refresh_token = self.config.refresh_token or ""
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    # -- token state --

    def set_access_token(self, token: str) -> None:
        self._access_token = token

    def set_refresh_token(self, token: str) -> None:
        self._refresh_token = token

    def get_access_token(self) -> str:
        return self._access_token

    def get_refresh_token(self) -> str:
        return self._refresh_token

    # -- transport --

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.timeout, transport=self._transport)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
    ) -> Any:
        if not self._access_token:
            raise SpotifyAPIError(401, "No access token set")
        url = f"{self.config.api_base.rstrip('/')}/{path.lstrip('/')}"
        clean_params = {k: v for k, v in (params or {}).items() if v is not None}
        resp = await self._get_client().request(
            method,
            url,
            params=clean_params or None,
            json=json_body,
            headers={"Authorization": f"Bearer {self._access_token}"},
        )
        return self._decode(resp)

    @staticmethod
    def _decode(resp: httpx.Response) -> Any:
        if resp.status_code >= 400:
            message = resp.reason_phrase
            try:
                body = resp.json()
                err = body.get("error")
                if isinstance(err, dict):
                    message = err.get("message", message)
                elif isinstance(err, str):
                    message = body.get("error_description", err)
            except ValueError:
                pass
            retry_after = resp.headers.get("Retry-After")
            raise SpotifyAPIError(
                resp.status_code, message,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        if resp.status_code == 204 or not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError:
            return {"raw": resp.text}

    # -- auth --

    def create_authorize_url(self, state: str = "state") -> str:
        query = urlencode({
            "client_id": self.config.client_id,
            "response_type": "code",
            "redirect_uri": self.config.redirect_uri,
            "scope": " ".join(self.config.scopes),
            "state": state,
        })
        return f"{self.config.accounts_base.rstrip('/')}/authorize?{query}"

    async def _token_request(self, data: dict[str, str]) -> dict[str, Any]:
        basic = base64.b64encode(
            f"{self.config.client_id}:{self.config.client_secret}".encode()
        ).decode("ascii")
        resp = await self._get_client().post(
            f"{self.config.accounts_base.rstrip('/')}/api/token",
            data=data,
            headers={"Authorization": f"Basic {basic}"},
        )
        return self._decode(resp)

    async def authorization_code_grant(self, code: str) -> dict[str, Any]:
        body = await self._token_request({
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.config.redirect_uri,
        })
        self._access_token = body.get("access_token", "")
        if body.get("refresh_token"):
            self._refresh_token = body["refresh_token"]
        return body

    async def refresh_access_token(self) -> dict[str, Any]:
        if not self._refresh_token:
            raise SpotifyAPIError(400, "No refresh token available")
        body = await self._token_request({
            "grant_type": "refresh_token",
            "refresh_token": self._refresh_token,
        })
        self._access_token = body.get("access_token", self._access_token)
        if body.get("refresh_token"):
            self._refresh_token = body["refresh_token"]
        logger.info("Spotify access token refreshed")
        return body

    # -- user --

    async def get_me(self) -> dict[str, Any]:
        return await self._request("GET", "/me")

    async def get_my_top(self, kind: str, time_range: str = "medium_term", limit: int = 20, offset: int = 0) -> dict[str, Any]:
        return await self._request(
            "GET", f"/me/top/{kind}",
            params={"time_range": time_range, "limit": limit, "offset": offset},
        )

    async def get_followed_artists(self, limit: int = 20, after: str | None = None) -> dict[str, Any]:
        return await self._request(
            "GET", "/me/following", params={"type": "artist", "limit": limit, "after": after},
        )

    async def follow_artists(self, artist_ids: list[str]) -> dict[str, Any]:
        return await self._request("PUT", "/me/following", params={"type": "artist"}, json_body={"ids": artist_ids})

    async def unfollow_artists(self, artist_ids: list[str]) -> dict[str, Any]:
        return await self._request("DELETE", "/me/following", params={"type": "artist"}, json_body={"ids": artist_ids})

    async def follow_playlist(self, playlist_id: str, public: bool = True) -> dict[str, Any]:
        return await self._request("PUT", f"/playlists/{playlist_id}/followers", json_body={"public": public})

    async def unfollow_playlist(self, playlist_id: str) -> dict[str, Any]:
        return await self._request("DELETE", f"/playlists/{playlist_id}/followers")

    async def get_recently_played(self, limit: int = 20, after: int | None = None, before: int | None = None) -> dict[str, Any]:
        return await self._request(
            "GET", "/me/player/recently-played",
            params={"limit": limit, "after": after, "before": before},
        )

    # -- playlists --

    async def get_user_playlists(self, limit: int = 20, offset: int = 0) -> dict[str, Any]:
        return await self._request("GET", "/me/playlists", params={"limit": limit, "offset": offset})

    async def get_playlist(self, playlist_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/playlists/{playlist_id}")

    async def get_playlist_tracks(self, playlist_id: str, limit: int = 100, offset: int = 0) -> dict[str, Any]:
        return await self._request(
            "GET", f"/playlists/{playlist_id}/tracks", params={"limit": limit, "offset": offset},
        )

    async def create_playlist(self, name: str, public: bool = False, description: str = "") -> dict[str, Any]:
        return await self._request(
            "POST", "/me/playlists",
            json_body={"name": name, "public": public, "description": description},
        )

    async def add_tracks_to_playlist(self, playlist_id: str, uris: list[str]) -> dict[str, Any]:
        return await self._request("POST", f"/playlists/{playlist_id}/tracks", json_body={"uris": uris})

    async def remove_tracks_from_playlist(self, playlist_id: str, uris: list[str]) -> dict[str, Any]:
        return await self._request(
            "DELETE", f"/playlists/{playlist_id}/tracks",
            json_body={"tracks": [{"uri": u} for u in uris]},
        )

    # -- tracks --

    async def add_to_saved_tracks(self, track_ids: list[str]) -> dict[str, Any]:
        return await self._request("PUT", "/me/tracks", json_body={"ids": track_ids})

    async def remove_from_saved_tracks(self, track_ids: list[str]) -> dict[str, Any]:
        return await self._request("DELETE", "/me/tracks", json_body={"ids": track_ids})

    async def get_saved_tracks(self, limit: int = 20, offset: int = 0) -> dict[str, Any]:
        return await self._request("GET", "/me/tracks", params={"limit": limit, "offset": offset})

    async def get_currently_playing(self) -> dict[str, Any]:
        return await self._request("GET", "/me/player/currently-playing")

    async def get_tracks(self, track_ids: list[str]) -> dict[str, Any]:
        return await self._request("GET", "/tracks", params={"ids": ",".join(track_ids)})

    async def get_audio_features(self, track_ids: list[str]) -> dict[str, Any]:
        return await self._request("GET", "/audio-features", params={"ids": ",".join(track_ids)})

    # -- search --

    async def search(
        self,
        query: str,
        types: list[str],
        limit: int = 20,
        offset: int = 0,
        market: str | None = None,
    ) -> dict[str, Any]:
        return await self._request(
            "GET", "/search",
            params={"q": query, "type": ",".join(types), "limit": limit, "offset": offset, "market": market},
        )

    async def get_recommendations(self, **params: Any) -> dict[str, Any]:
        query: dict[str, Any] = {}
        for key, value in params.items():
            if value is None or value == []:
                continue
            query[key] = ",".join(value) if isinstance(value, list) else value
        return await self._request("GET", "/recommendations", params=query)
