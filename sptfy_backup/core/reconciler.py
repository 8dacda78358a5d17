"""
Reconciles a playlist's remote track list against the audio files in its mirror
directory.
"""

import asyncio
import logging
from pathlib import Path
from typing import Callable, List, Sequence

from sptfy_backup.models.playlist import LocalStatus, Playlist
from sptfy_backup.utils.formatting import slugify
from sptfy_backup.utils.path import list_audio_files

log = logging.getLogger(__name__)


class FileReconciler:
    """
    Marks each track Downloaded or Pending by fuzzy-matching track keys against
    local file names.

    Matching is by containment rather than equality: the downloader often appends
    quality or bitrate suffixes to file names, so a file key only has to contain
    the track key.
    """

    def __init__(self, list_files: Callable[[Path], List[str]] = list_audio_files):
        self._list_files = list_files

    async def local_file_keys(self, directory: Path) -> List[str]:
        """Lists audio files off the event loop and returns their normalized stems."""
        names = await asyncio.to_thread(self._list_files, directory)
        return [slugify(Path(name).stem) for name in names]

    def apply(self, playlist: Playlist, file_keys: Sequence[str]) -> int:
        """
        Updates track statuses and aggregates from a set of local file keys.
        Callers must hold `playlist.lock` if other tasks may mutate the playlist.

        Returns:
            The number of downloaded tracks.
        """
        downloaded = 0
        for track in playlist.tracks:
            found = any(track.key in file_key for file_key in file_keys)
            track.local_status = LocalStatus.DOWNLOADED if found else LocalStatus.PENDING
            if found:
                downloaded += 1

        playlist.downloaded_count = downloaded
        if not playlist.tracks_total:
            playlist.tracks_total = len(playlist.tracks)
        return downloaded

    async def reconcile(self, playlist: Playlist) -> int:
        """Rescans the playlist's directory and recomputes every track's status."""
        async with playlist.lock:
            file_keys = await self.local_file_keys(playlist.download_dir)
            downloaded = self.apply(playlist, file_keys)
        log.debug(
            f"Reconciled {playlist.id}: {downloaded}/{len(playlist.tracks)} tracks "
            f"present ({len(file_keys)} audio files)"
        )
        return downloaded
