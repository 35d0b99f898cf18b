"""Spotify OAuth login: authorization-code flow with a localhost callback."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import httpx

from spotibot.errors import SpotifyAuthError
from spotibot.log import get_logger
from spotibot.spotify import SpotifyClient

logger = get_logger("auth")

_SUCCESS_PAGE = (
    "<html><body><h1>Authentication successful!</h1>"
    "<p>You can close this window now.</p></body></html>"
)
_FAILURE_PAGE = "<html><body><h1>Authentication failed</h1><p>{reason}</p></body></html>"


def parse_callback(value: str, state: str | None = None) -> str:
    """Authorization code from a pasted redirect URL, or ``value`` itself when it is a bare code."""
    value = value.strip()
    if "code=" not in value and "error=" not in value:
        if not value:
            raise SpotifyAuthError("No authorization code given")
        return value
    params = httpx.URL(value).params
    if "error" in params:
        raise SpotifyAuthError(f"Authorization denied: {params['error']}")
    if state is not None and params.get("state") not in (None, state):
        raise SpotifyAuthError("State mismatch in authorization callback")
    code = params.get("code")
    if not code:
        raise SpotifyAuthError("No authorization code in callback URL")
    return code


class CallbackListener:
    """One-shot HTTP listener for the ``redirect_uri`` callback.

    Serves every request with a short HTML page and resolves ``wait()`` with
    the first authorization code (or error) it sees.
    """

    def __init__(self, host: str = "127.0.0.1", port: int = 3000, state: str | None = None) -> None:
        self.host = host
        self.port = port
        self.state = state
        self._server: asyncio.Server | None = None
        self._result: asyncio.Future[str] | None = None

    @classmethod
    def for_redirect_uri(cls, redirect_uri: str, state: str | None = None) -> CallbackListener:
        url = httpx.URL(redirect_uri)
        return cls(host=url.host or "127.0.0.1", port=url.port or 80, state=state)

    async def start(self) -> None:
        self._result = asyncio.get_running_loop().create_future()
        self._server = await asyncio.start_server(self._handle_connection, self.host, self.port)
        # port 0 binds an ephemeral port
        self.port = self._server.sockets[0].getsockname()[1]
        logger.info(f"Waiting for the Spotify callback on {self.host}:{self.port}")

    async def stop(self) -> None:
        if self._server:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

    async def wait(self, timeout: float = 300.0) -> str:
        if self._result is None:
            raise RuntimeError("CallbackListener.start() was not called")
        try:
            return await asyncio.wait_for(asyncio.shield(self._result), timeout)
        except asyncio.TimeoutError:
            raise SpotifyAuthError(f"No authorization callback within {timeout:.0f}s") from None
        finally:
            await self.stop()

    async def _handle_connection(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            request_line = await asyncio.wait_for(reader.readline(), timeout=10.0)
            parts = request_line.decode("utf-8", errors="replace").split()
            target = parts[1] if len(parts) >= 2 else "/"
            # drain headers
            while (await reader.readline()).strip():
                pass
            if "code=" not in target and "error=" not in target:
                await self._respond(writer, 404, _FAILURE_PAGE.format(reason="Not the callback path"))
                return
            try:
                code = parse_callback(f"http://{self.host}{target}", self.state)
            except SpotifyAuthError as e:
                self._settle(exception=e)
                await self._respond(writer, 400, _FAILURE_PAGE.format(reason=e))
                return
            self._settle(code=code)
            await self._respond(writer, 200, _SUCCESS_PAGE)
        except (asyncio.TimeoutError, ConnectionError) as e:
            logger.debug(f"Callback connection dropped: {e}")
        finally:
            writer.close()

    def _settle(self, code: str | None = None, exception: Exception | None = None) -> None:
        if self._result is None or self._result.done():
            return
        if exception is not None:
            self._result.set_exception(exception)
        else:
            self._result.set_result(code)

    @staticmethod
    async def _respond(writer: asyncio.StreamWriter, status: int, html: str) -> None:
        reason = {200: "OK", 400: "Bad Request", 404: "Not Found"}[status]
        body = html.encode("utf-8")
        writer.write(
            f"HTTP/1.1 {status} {reason}\r\n"
            f"Content-Type: text/html; charset=utf-8\r\n"
            f"Content-Length: {len(body)}\r\n"
            f"Connection: close\r\n\r\n".encode("utf-8") + body
        )
        await writer.drain()


async def exchange_code(client: SpotifyClient, code: str) -> dict[str, Any]:
    """Run the code grant; the client keeps the resulting tokens."""
    body = await client.authorization_code_grant(code)
    if not body.get("access_token"):
        raise SpotifyAuthError("Token response did not include an access token")
    logger.info("Spotify authorization complete")
    return {
        "access_token": body["access_token"],
        "refresh_token": body.get("refresh_token"),
        "expires_in": body.get("expires_in"),
    }


def save_tokens(path: Path, tokens: dict[str, Any]) -> Path:
    """Merge the tokens into the ``spotify`` section of a JSON config file."""
    data: dict[str, Any] = {}
    if path.is_file():
        data = json.loads(path.read_text(encoding="utf-8"))
    spotify = data.setdefault("spotify", {})
    for key in ("access_token", "refresh_token"):
        spotify.pop(key, None)
    spotify["accessToken"] = tokens["access_token"]
    if tokens.get("refresh_token"):
        spotify["refreshToken"] = tokens["refresh_token"]
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
    logger.info(f"Spotify tokens saved to {path}")
    return path
