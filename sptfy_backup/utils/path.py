"""
Utilities for handling file paths, local audio listings, and URL parsing.
"""

import re
from pathlib import Path
from typing import List, Optional

from pathvalidate import sanitize_filename

AUDIO_EXTENSIONS = frozenset({".mp3", ".m4a", ".flac", ".ogg", ".opus", ".wav"})

_URI_PATTERN = re.compile(r"spotify:playlist:(?P<id>[a-zA-Z0-9]+)")
_URL_PATTERN = re.compile(r"playlist/(?P<id>[a-zA-Z0-9]+)")


def extract_playlist_id(value: Optional[str]) -> Optional[str]:
    """
    Extracts a Spotify playlist ID from a URI, an open.spotify.com URL or a bare ID.
    Anything that matches neither form is assumed to already be an ID.
    """
    if not value or not value.strip():
        return None
    value = value.strip()

    for pattern in (_URI_PATTERN, _URL_PATTERN):
        match = pattern.search(value)
        if match:
            return match.group("id")
    return value


def playlist_directory(download_root: Path, playlist_id: str) -> Path:
    """Returns the mirror directory for a playlist, safe to use as a path component."""
    return download_root / sanitize_filename(playlist_id, replacement_text="_")


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)


def list_audio_files(directory_path: Path) -> List[str]:
    """
    Lists the audio file names directly inside a directory.

    A missing directory is reported as an empty listing rather than an error.
    """
    if not directory_path.is_dir():
        return []
    return sorted(
        entry.name
        for entry in directory_path.iterdir()
        if entry.is_file() and entry.suffix.lower() in AUDIO_EXTENSIONS
    )
