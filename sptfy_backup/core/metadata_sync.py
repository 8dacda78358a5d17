"""
Fetches remote playlist metadata and track lists and applies them to the registry.
"""

import asyncio
import logging
from typing import List, Optional, Protocol, Set

from sptfy_backup.exceptions import SptfyBackupError
from sptfy_backup.models.playlist import (
    LocalStatus,
    Playlist,
    PlaylistMetadata,
    Track,
    TrackPage,
    utc_now,
)
from sptfy_backup.utils.formatting import build_track_key
from sptfy_backup.utils.structured_logger import SyncEventLogger

from .reconciler import FileReconciler

log = logging.getLogger(__name__)


class PlaylistSource(Protocol):
    async def fetch_playlist_metadata(self, playlist_id: str) -> PlaylistMetadata: ...

    async def fetch_tracks_page(
        self, playlist_id: str, cursor: Optional[str] = None
    ) -> TrackPage: ...


class MetadataSync:
    """Refreshes playlists from a remote source; failures are recorded, never raised."""

    def __init__(
        self,
        source: PlaylistSource,
        reconciler: FileReconciler,
        events: Optional[SyncEventLogger] = None,
    ):
        self._source = source
        self._reconciler = reconciler
        self._events = events or SyncEventLogger()
        self._tasks: Set[asyncio.Task] = set()

    async def fetch_all_tracks(self, playlist_id: str) -> List[Track]:
        """
        Follows the pagination cursor until it is exhausted and returns one flat
        list in provider order. Repeated track ids are dropped, and a cursor that
        comes back a second time ends the walk.
        """
        tracks: List[Track] = []
        seen_ids: Set[str] = set()
        seen_cursors: Set[str] = set()
        cursor = None

        while True:
            page = await self._source.fetch_tracks_page(playlist_id, cursor)
            for track in page.items:
                if track.id:
                    if track.id in seen_ids:
                        continue
                    seen_ids.add(track.id)
                tracks.append(track)

            cursor = page.next_cursor
            if not cursor:
                break
            if cursor in seen_cursors:
                log.warning(
                    f"[yellow]Pagination cursor repeated for {playlist_id}; "
                    "stopping early.[/yellow]"
                )
                break
            seen_cursors.add(cursor)

        return tracks

    async def refresh(self, playlist: Playlist) -> bool:
        """
        Replaces the playlist's metadata and track list with the remote state and
        reconciles it against local files.

        Returns:
            True on success. On failure the existing track list is kept, the error
            is stored in `playlist.error_message`, and False is returned.
        """
        try:
            meta = await self._source.fetch_playlist_metadata(playlist.id)
            tracks = await self.fetch_all_tracks(playlist.id)
            file_keys = await self._reconciler.local_file_keys(playlist.download_dir)
        except SptfyBackupError as e:
            return self._record_failure(playlist, str(e))
        except Exception as e:
            log.error(
                f"[red]Unexpected error refreshing {playlist.id}: {e}[/red]",
                exc_info=log.getEffectiveLevel() == logging.DEBUG,
            )
            return self._record_failure(playlist, str(e) or type(e).__name__)

        for track in tracks:
            track.key = build_track_key(track.artists, track.name)
            track.local_status = LocalStatus.PENDING

        async with playlist.lock:
            playlist.name = meta.name
            playlist.owner = meta.owner
            playlist.description = meta.description
            playlist.url = meta.url or playlist.url
            playlist.images = list(meta.images)
            # Never shrinks, so a transient partial response cannot lower it.
            if meta.tracks_total > playlist.tracks_total:
                playlist.tracks_total = meta.tracks_total
            playlist.tracks = tracks

            self._reconciler.apply(playlist, file_keys)

            playlist.last_metadata_refresh_at = utc_now()
            playlist.error_message = None

        self._events.refresh_completed(
            playlist.id, len(playlist.tracks), playlist.downloaded_count
        )
        return True

    def _record_failure(self, playlist: Playlist, message: str) -> bool:
        playlist.error_message = message
        self._events.refresh_failed(playlist.id, message)
        return False

    def refresh_in_background(self, playlist: Playlist) -> "asyncio.Task[bool]":
        """
        Schedules a refresh without waiting for it. The returned task resolves to
        the refresh result and never raises.
        """
        task = asyncio.create_task(
            self.refresh(playlist), name=f"refresh:{playlist.id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self) -> None:
        """Waits until all background refreshes scheduled so far have finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Cancels outstanding background refreshes."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
