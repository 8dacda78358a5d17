"""
Handles authentication with the Spotify Web API using the client-credentials grant.
"""

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Optional

import aiohttp

from sptfy_backup.exceptions import ConfigurationError, FetchError

if TYPE_CHECKING:
    from .client import SpotifyAPIClient

log = logging.getLogger(__name__)


class SpotifyAuthenticator:
    """
    Obtains and caches an app access token for the Spotify API client.
    """

    TOKEN_URL = "https://accounts.spotify.com/api/token"
    # Tokens are renewed this many seconds before they actually expire.
    EXPIRY_MARGIN_SECONDS = 60

    def __init__(self, api_client: "SpotifyAPIClient", client_id: str, client_secret: str):
        """
        Initializes the authenticator.

        Args:
            api_client: A reference to the main SpotifyAPIClient instance.
            client_id: Spotify application client ID.
            client_secret: Spotify application client secret.
        """
        self._api_client = api_client
        self._client_id = client_id
        self._client_secret = client_secret
        self._access_token: Optional[str] = None
        self._expires_at = 0.0
        self._lock = asyncio.Lock()

    @property
    def is_configured(self) -> bool:
        return bool(self._client_id and self._client_secret)

    def invalidate(self) -> None:
        """Forgets the cached token so the next call requests a new one."""
        self._access_token = None
        self._expires_at = 0.0

    async def get_access_token(self) -> str:
        """
        Returns a valid access token, requesting a new one when the cached token is
        missing or about to expire.

        Raises:
            ConfigurationError: If client credentials are not configured.
            FetchError: If the token endpoint rejects the request or is unreachable.
        """
        if not self.is_configured:
            raise ConfigurationError("Spotify client credentials not configured.")

        async with self._lock:
            now = time.monotonic()
            if self._access_token and now < self._expires_at - self.EXPIRY_MARGIN_SECONDS:
                return self._access_token

            log.debug("Requesting a new Spotify access token...")
            session = await self._api_client.get_session()
            try:
                async with session.post(
                    self.TOKEN_URL,
                    data={"grant_type": "client_credentials"},
                    auth=aiohttp.BasicAuth(self._client_id, self._client_secret),
                ) as r:
                    if r.status != 200:
                        text = await r.text()
                        raise FetchError(
                            f"Failed to fetch Spotify token: {r.status} {text}",
                            status=r.status,
                            detail=text,
                        )
                    data = await r.json()
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                raise FetchError(f"Failed to fetch Spotify token: {e}", detail=str(e)) from e

            self._access_token = data["access_token"]
            self._expires_at = now + float(data.get("expires_in", 3600))
            log.debug("Spotify access token acquired.")
            return self._access_token
