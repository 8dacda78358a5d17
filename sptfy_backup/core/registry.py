"""
In-memory registry of playlist sync state, keyed by remote playlist id.
"""

import logging
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from sptfy_backup.models.playlist import Playlist, PlaylistSummary
from sptfy_backup.utils.path import playlist_directory

log = logging.getLogger(__name__)


class PlaylistRegistry:
    """
    Process-wide store of Playlist entities. One instance is created at startup
    and handed to every component that reads or mutates playlist state.
    """

    def __init__(self, download_root: Path):
        self.download_root = Path(download_root)
        self._playlists: Dict[str, Playlist] = {}

    def get_or_create(self, playlist_id: str, url: str) -> Playlist:
        """
        Returns the playlist registered under `playlist_id`, creating it on first
        reference. The url of an existing entry is left as it was first registered.
        """
        playlist = self._playlists.get(playlist_id)
        if playlist is None:
            playlist = Playlist(
                id=playlist_id,
                url=url,
                download_dir=playlist_directory(self.download_root, playlist_id),
            )
            self._playlists[playlist_id] = playlist
            log.debug(f"Registered playlist {playlist_id} -> {playlist.download_dir}")
        return playlist

    def get(self, playlist_id: str) -> Optional[Playlist]:
        return self._playlists.get(playlist_id)

    def list_summaries(self) -> List[PlaylistSummary]:
        """Returns read-only summaries of all playlists in registration order."""
        return [p.summary() for p in self._playlists.values()]

    def __iter__(self) -> Iterator[Playlist]:
        return iter(list(self._playlists.values()))

    def __len__(self) -> int:
        return len(self._playlists)

    def __contains__(self, playlist_id: object) -> bool:
        return playlist_id in self._playlists
