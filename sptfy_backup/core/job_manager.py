"""
Supervises external download jobs: at most one per playlist, with output captured
into the playlist's log buffer and status driven by the process outcome.
"""

import asyncio
import logging
import shlex
import time
from dataclasses import dataclass, field
from datetime import datetime
from functools import partial
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Protocol, Sequence

from sptfy_backup.exceptions import AlreadyInProgressError, ProcessExitError, SpawnError
from sptfy_backup.media.downloader import DownloaderProcess, JobOutcome, OutputLine
from sptfy_backup.models.playlist import Playlist, PlaylistStatus, utc_now
from sptfy_backup.utils.path import create_dir
from sptfy_backup.utils.structured_logger import SyncEventLogger

from .reconciler import FileReconciler

log = logging.getLogger(__name__)


class ManagedProcess(Protocol):
    def output(self) -> AsyncIterator[OutputLine]: ...

    def kill(self) -> None: ...

    async def wait(self) -> int: ...


Spawner = Callable[[str, Path], Awaitable[ManagedProcess]]


@dataclass
class DownloadJob:
    """Handle for one run of the downloader against a playlist."""

    playlist_id: str
    started_at: datetime = field(default_factory=utc_now)
    task: Optional["asyncio.Task[JobOutcome]"] = field(default=None, repr=False)
    process: Optional[ManagedProcess] = field(default=None, repr=False)

    async def wait(self) -> JobOutcome:
        """Waits for the job to end and returns its outcome."""
        return await asyncio.shield(self.task)


class JobManager:
    """
    Starts download jobs and drives the playlist status state machine:
    idle/error -> syncing on start, syncing -> idle on exit 0, syncing -> error on
    a nonzero exit or a failed spawn.

    There is no cancellation or timeout: a job runs until the downloader exits.
    """

    def __init__(
        self,
        reconciler: FileReconciler,
        command: Sequence[str] = ("spotdl",),
        extra_args: Sequence[str] = (),
        spawner: Optional[Spawner] = None,
        events: Optional[SyncEventLogger] = None,
    ):
        self._reconciler = reconciler
        self.command = list(command)
        self.extra_args = list(extra_args)
        self.command_name = Path(self.command[0]).name
        self._spawner = spawner or partial(
            DownloaderProcess.spawn, self.command, extra_args=self.extra_args
        )
        self._events = events or SyncEventLogger()
        self._jobs: dict[str, DownloadJob] = {}

    @classmethod
    def from_command_line(
        cls, reconciler: FileReconciler, cmd: str, extra_args: Sequence[str] = (), **kwargs
    ) -> "JobManager":
        """Builds a manager from a shell-style command string plus extra arguments."""
        return cls(
            reconciler, command=shlex.split(cmd), extra_args=extra_args, **kwargs
        )

    def start_job(self, playlist: Playlist) -> DownloadJob:
        """
        Starts a download job for the playlist.

        The check for an existing job and the storing of the new handle happen
        without any suspension point, so concurrent callers cannot both pass.

        Raises:
            AlreadyInProgressError: If the playlist already has an active job.
        """
        if playlist.job is not None:
            raise AlreadyInProgressError(
                f"Sync already in progress for playlist {playlist.id}."
            )

        create_dir(playlist.download_dir)
        playlist.status = PlaylistStatus.SYNCING
        playlist.error_message = None

        job = DownloadJob(playlist_id=playlist.id)
        playlist.job = job
        self._jobs[playlist.id] = job
        job.task = asyncio.create_task(
            self._supervise(playlist, job), name=f"job:{playlist.id}"
        )
        self._events.job_started(playlist.id, playlist.url)
        return job

    def active_jobs(self) -> List[DownloadJob]:
        return list(self._jobs.values())

    async def wait_all(self) -> List[JobOutcome]:
        """Waits for every job that is running when called."""
        jobs = self.active_jobs()
        return list(await asyncio.gather(*(job.wait() for job in jobs)))

    async def _supervise(self, playlist: Playlist, job: DownloadJob) -> JobOutcome:
        started = time.monotonic()
        try:
            job.process = await self._spawner(playlist.url, playlist.download_dir)
        except SpawnError as e:
            return self._on_spawn_failure(playlist, job, str(e))
        except Exception as e:
            log.error(
                f"[red]Unexpected error starting downloader for {playlist.id}: {e}[/red]",
                exc_info=log.getEffectiveLevel() == logging.DEBUG,
            )
            return self._on_spawn_failure(playlist, job, str(e) or type(e).__name__)

        try:
            async for line in job.process.output():
                playlist.logs.append(line.stream, line.text)
            exit_code = await job.process.wait()
        except Exception as e:
            reason = str(e) or type(e).__name__
            log.error(f"[red]Lost track of downloader for {playlist.id}: {reason}[/red]")
            # The handle is only released once the child is gone.
            await self._terminate(job.process)
            self._release(playlist, job)
            playlist.status = PlaylistStatus.ERROR
            playlist.error_message = f"{self.command_name} failed while running: {reason}"
            await self._reconcile(playlist)
            return JobOutcome(error=reason)

        self._release(playlist, job)

        if exit_code == 0:
            playlist.last_sync_at = utc_now()
            playlist.status = PlaylistStatus.IDLE
        else:
            playlist.status = PlaylistStatus.ERROR
            playlist.error_message = str(ProcessExitError(self.command_name, exit_code))

        # Partial downloads may exist even after a failed run.
        await self._reconcile(playlist)

        self._events.job_finished(
            playlist.id,
            exit_code,
            time.monotonic() - started,
            playlist.downloaded_count,
        )
        return JobOutcome(exit_code=exit_code)

    def _on_spawn_failure(
        self, playlist: Playlist, job: DownloadJob, reason: str
    ) -> JobOutcome:
        self._release(playlist, job)
        playlist.status = PlaylistStatus.ERROR
        playlist.error_message = f"Failed to start {self.command_name}: {reason}"
        self._events.job_spawn_failed(playlist.id, reason)
        return JobOutcome(spawn_error=reason)

    def _release(self, playlist: Playlist, job: DownloadJob) -> None:
        if playlist.job is job:
            playlist.job = None
        if self._jobs.get(playlist.id) is job:
            del self._jobs[playlist.id]

    async def _reconcile(self, playlist: Playlist) -> None:
        try:
            await self._reconciler.reconcile(playlist)
        except OSError as e:
            log.error(f"[red]Failed to update download status after sync: {e}[/red]")

    async def _terminate(self, process: ManagedProcess) -> None:
        process.kill()
        try:
            await process.wait()
        except Exception as e:
            log.warning(f"Could not reap {self.command_name} after kill: {e}")
