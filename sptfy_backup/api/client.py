"""
Async client for the parts of the Spotify Web API needed to mirror playlists.
"""

import asyncio
import logging
import time
from typing import Any, Dict, Optional

import aiohttp

from sptfy_backup.exceptions import FetchError
from sptfy_backup.models.playlist import PlaylistMetadata, Track, TrackPage

from .auth import SpotifyAuthenticator

log = logging.getLogger(__name__)


class SpotifyAPIClient:
    """
    Async client for the Spotify Web API (v1).

    Implements the playlist source used by metadata sync: playlist metadata and
    cursor-paginated track pages.
    """

    BASE_URL = "https://api.spotify.com/v1"
    PAGE_SIZE = 100

    def __init__(self, client_id: str, client_secret: str, timeout_seconds: float = 30):
        """
        Initializes the API client.

        Args:
            client_id: Spotify application client ID.
            client_secret: Spotify application client secret.
            timeout_seconds: Total timeout applied to every HTTP request.
        """
        self.timeout_seconds = timeout_seconds
        self._session: Optional[aiohttp.ClientSession] = None
        self._authenticator = SpotifyAuthenticator(self, client_id, client_secret)

    @property
    def authenticator(self) -> SpotifyAuthenticator:
        """Provides access to the authentication helper."""
        return self._authenticator

    async def get_session(self) -> aiohttp.ClientSession:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"Accept": "application/json"},
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds, connect=10),
            )
        return self._session

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    def _resolve_url(self, path_or_url: str) -> str:
        if path_or_url.startswith(("http://", "https://")):
            return path_or_url
        return f"{self.BASE_URL}/{path_or_url.lstrip('/')}"

    async def api_call(self, path_or_url: str, **params: Any) -> Dict[str, Any]:
        """
        Makes an authenticated GET request and returns the decoded JSON body.

        Args:
            path_or_url: An API path relative to BASE_URL, or an absolute URL such
                as a pagination cursor.
            **params: Query string parameters.

        Raises:
            ConfigurationError: If client credentials are missing.
            FetchError: On a non-success response or a network failure.
        """
        token = await self._authenticator.get_access_token()
        session = await self.get_session()
        url = self._resolve_url(path_or_url)

        start_time = time.monotonic()
        try:
            async with session.get(
                url,
                params=params or None,
                headers={"Authorization": f"Bearer {token}"},
            ) as r:
                duration_ms = (time.monotonic() - start_time) * 1000
                log.debug(f"GET {url} -> {r.status} ({duration_ms:.0f} ms)")

                if r.status == 401:
                    self._authenticator.invalidate()

                if r.status >= 400:
                    text = await r.text()
                    raise FetchError(
                        f"Spotify API error {r.status}: {text}",
                        status=r.status,
                        detail=text,
                    )
                return await r.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.debug(f"API call to {url} failed: {e!r}")
            raise FetchError(
                f"Spotify API request failed: {e or type(e).__name__}", detail=str(e)
            ) from e

    # Public API Methods
    async def fetch_playlist_metadata(self, playlist_id: str) -> PlaylistMetadata:
        data = await self.api_call(f"playlists/{playlist_id}")
        return parse_playlist_metadata(data)

    async def fetch_tracks_page(
        self, playlist_id: str, cursor: Optional[str] = None
    ) -> TrackPage:
        """
        Fetches one page of a playlist's tracks. `cursor` is the `next` URL
        returned by the previous page; None requests the first page.
        """
        if cursor:
            data = await self.api_call(cursor)
        else:
            data = await self.api_call(
                f"playlists/{playlist_id}/tracks", limit=self.PAGE_SIZE
            )
        return parse_track_page(data)


def parse_playlist_metadata(data: Dict[str, Any]) -> PlaylistMetadata:
    """Maps a Spotify playlist object to PlaylistMetadata."""
    owner = data.get("owner") or {}
    return PlaylistMetadata(
        name=data.get("name") or "",
        owner=owner.get("display_name") or owner.get("id") or "Unknown",
        description=data.get("description") or "",
        tracks_total=int((data.get("tracks") or {}).get("total") or 0),
        url=(data.get("external_urls") or {}).get("spotify") or "",
        images=list(data.get("images") or []),
    )


def parse_track_page(data: Dict[str, Any]) -> TrackPage:
    """Maps a Spotify paging object of playlist items to a TrackPage."""
    tracks = []
    for item in data.get("items") or []:
        t = (item or {}).get("track")
        if not t:
            continue
        tracks.append(
            Track(
                id=t.get("id"),
                name=t.get("name") or "",
                artists=", ".join(
                    a.get("name") or "" for a in t.get("artists") or []
                ),
                album=(t.get("album") or {}).get("name") or "",
                spotify_url=(t.get("external_urls") or {}).get("spotify") or "",
                duration_ms=int(t.get("duration_ms") or 0),
            )
        )
    return TrackPage(items=tracks, next_cursor=data.get("next") or None)
