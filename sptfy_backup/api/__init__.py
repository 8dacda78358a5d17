"""
Spotify API Layer.

This package handles all communication with the Spotify Web API.
"""

from .auth import SpotifyAuthenticator
from .client import SpotifyAPIClient

__all__ = ["SpotifyAPIClient", "SpotifyAuthenticator"]
