"""
The main orchestrator: wires the registry, metadata sync, reconciler and job manager
together and exposes the operations used by the command line front end.
"""

import asyncio
import logging
from typing import List, Optional

from sptfy_backup.exceptions import PlaylistNotFoundError
from sptfy_backup.models.config import BackupConfig
from sptfy_backup.models.playlist import Playlist, PlaylistSummary
from sptfy_backup.utils.path import create_dir, extract_playlist_id
from sptfy_backup.utils.structured_logger import SyncEventLogger, create_event_logger

from .job_manager import DownloadJob, JobManager
from .metadata_sync import MetadataSync, PlaylistSource
from .reconciler import FileReconciler
from .registry import PlaylistRegistry
from .scheduler import PeriodicTask

log = logging.getLogger(__name__)


class BackupManager:
    """Orchestrates playlist mirroring for one process."""

    def __init__(
        self,
        config: BackupConfig,
        source: PlaylistSource,
        registry: Optional[PlaylistRegistry] = None,
        reconciler: Optional[FileReconciler] = None,
        job_manager: Optional[JobManager] = None,
        events: Optional[SyncEventLogger] = None,
    ):
        self.config = config
        self.events = events or create_event_logger(config.json_log_dir)
        self.registry = registry or PlaylistRegistry(config.download_root)
        self.reconciler = reconciler or FileReconciler()
        self.metadata_sync = MetadataSync(source, self.reconciler, self.events)
        self.job_manager = job_manager or JobManager.from_command_line(
            self.reconciler,
            config.downloader_cmd,
            config.downloader_args,
            events=self.events,
        )
        self._periodic = [
            PeriodicTask(
                "Metadata refresh",
                config.metadata_refresh_minutes * 60,
                self.refresh_all,
            ),
            PeriodicTask(
                "Download scan",
                config.download_scan_seconds,
                self.rescan_all,
            ),
        ]

    # Registry access
    def get_or_create(self, playlist_id: str, url: str) -> Playlist:
        return self.registry.get_or_create(playlist_id, url)

    def get(self, playlist_id: str) -> Optional[Playlist]:
        return self.registry.get(playlist_id)

    def require(self, playlist_id: str) -> Playlist:
        playlist = self.registry.get(playlist_id)
        if playlist is None:
            raise PlaylistNotFoundError(f"Playlist not found: {playlist_id}")
        return playlist

    def list_summaries(self) -> List[PlaylistSummary]:
        return self.registry.list_summaries()

    def add_playlist(self, url: str) -> Optional[Playlist]:
        """Registers a playlist from a URL, URI or bare id."""
        playlist_id = extract_playlist_id(url)
        if not playlist_id:
            log.warning(f"[yellow]Ignoring unparseable playlist source: {url!r}[/yellow]")
            return None
        return self.registry.get_or_create(playlist_id, url)

    def load_configured_playlists(self) -> List[Playlist]:
        """Registers every configured playlist source and returns them."""
        if not self.config.playlist_urls:
            log.warning("[yellow]No playlist URLs configured.[/yellow]")
            return []
        playlists = []
        for url in self.config.playlist_urls:
            playlist = self.add_playlist(url)
            if playlist is not None:
                playlists.append(playlist)
        return playlists

    # Operations
    def refresh(self, playlist_id: str) -> "asyncio.Task[bool]":
        """Fire-and-forget metadata refresh; the returned task signals completion."""
        return self.metadata_sync.refresh_in_background(self.require(playlist_id))

    def start_job(self, playlist_id: str) -> DownloadJob:
        """
        Starts a download job for a registered playlist.

        Raises:
            PlaylistNotFoundError: If the id is not registered.
            AlreadyInProgressError: If a job is already running for it.
        """
        return self.job_manager.start_job(self.require(playlist_id))

    async def refresh_all(self) -> List[bool]:
        """Refreshes every registered playlist, one after another."""
        results = []
        for playlist in self.registry:
            results.append(await self.metadata_sync.refresh(playlist))
        return results

    async def rescan_all(self) -> None:
        """Reconciles every registered playlist against its local files."""
        for playlist in self.registry:
            await self.reconciler.reconcile(playlist)

    # Lifecycle
    async def start(self) -> None:
        """
        Registers the configured playlists, schedules their initial refresh, and
        starts the periodic refresh and scan loops.
        """
        create_dir(self.config.download_root)
        for playlist in self.load_configured_playlists():
            self.metadata_sync.refresh_in_background(playlist)
        for task in self._periodic:
            task.start()

    async def close(self) -> None:
        """Stops periodic work and pending refreshes. Running jobs are not cancelled."""
        for task in self._periodic:
            await task.stop()
        await self.metadata_sync.close()
        running = self.job_manager.active_jobs()
        if running:
            log.warning(
                f"[yellow]{len(running)} download job(s) still running; "
                "they will not be cancelled.[/yellow]"
            )
        self.events.logger.close()
