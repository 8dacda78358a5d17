"""Tests for download job supervision"""

import asyncio
import sys
from types import SimpleNamespace

import pytest

from sptfy_backup.core.job_manager import JobManager
from sptfy_backup.core.reconciler import FileReconciler
from sptfy_backup.exceptions import AlreadyInProgressError, SpawnError
from sptfy_backup.media.downloader import MAX_LINE_BYTES, DownloaderProcess, OutputLine
from sptfy_backup.models.playlist import LogStream, PlaylistStatus

from conftest import FakeProcess, FakeSpawner, make_track


class TestStartJob:
    """Test the one-job-per-playlist rule"""

    @pytest.mark.asyncio
    async def test_second_start_is_rejected(self, playlist):
        gate = asyncio.Event()
        spawner = FakeSpawner(FakeProcess(gate=gate))
        manager = JobManager(FileReconciler(), spawner=spawner)

        job = manager.start_job(playlist)
        with pytest.raises(AlreadyInProgressError):
            manager.start_job(playlist)

        assert playlist.status is PlaylistStatus.SYNCING
        assert playlist.job is job
        assert manager.active_jobs() == [job]

        gate.set()
        outcome = await job.wait()
        assert outcome.succeeded
        assert len(spawner.calls) == 1

    @pytest.mark.asyncio
    async def test_concurrent_starts_one_wins(self, playlist):
        gate = asyncio.Event()
        manager = JobManager(FileReconciler(), spawner=FakeSpawner(FakeProcess(gate=gate)))

        async def attempt():
            await asyncio.sleep(0)
            try:
                return manager.start_job(playlist)
            except AlreadyInProgressError:
                return None

        results = await asyncio.gather(attempt(), attempt())
        started = [job for job in results if job is not None]
        assert len(started) == 1

        gate.set()
        await started[0].wait()

    @pytest.mark.asyncio
    async def test_creates_download_dir(self, playlist):
        manager = JobManager(FileReconciler(), spawner=FakeSpawner())
        job = manager.start_job(playlist)
        assert playlist.download_dir.is_dir()
        await job.wait()

    @pytest.mark.asyncio
    async def test_spawner_receives_url_and_directory(self, playlist):
        spawner = FakeSpawner()
        await JobManager(FileReconciler(), spawner=spawner).start_job(playlist).wait()
        assert spawner.calls == [(playlist.url, playlist.download_dir)]


class TestJobOutcome:
    """Test status transitions when the downloader exits"""

    @pytest.mark.asyncio
    async def test_exit_zero(self, playlist, sample_output):
        playlist.tracks = [make_track("Artist A", "Song One")]

        class WritingSpawner(FakeSpawner):
            async def __call__(self, url, cwd):
                (cwd / "Artist A - Song One.mp3").write_bytes(b"")
                return await super().__call__(url, cwd)

        manager = JobManager(
            FileReconciler(), spawner=WritingSpawner(FakeProcess(sample_output))
        )
        outcome = await manager.start_job(playlist).wait()

        assert outcome.exit_code == 0
        assert playlist.status is PlaylistStatus.IDLE
        assert playlist.last_sync_at is not None
        assert playlist.job is None
        assert playlist.error_message is None
        assert playlist.downloaded_count == 1
        assert [e.text for e in playlist.logs] == [line.text for line in sample_output]
        assert list(playlist.logs)[1].stream is LogStream.STDERR
        assert manager.active_jobs() == []

    @pytest.mark.asyncio
    async def test_nonzero_exit(self, playlist):
        manager = JobManager(FileReconciler(), spawner=FakeSpawner(FakeProcess(exit_code=2)))
        outcome = await manager.start_job(playlist).wait()

        assert outcome.exit_code == 2
        assert not outcome.succeeded
        assert playlist.status is PlaylistStatus.ERROR
        assert playlist.error_message == "spotdl exited with code 2"
        assert playlist.last_sync_at is None
        assert playlist.job is None

    @pytest.mark.asyncio
    async def test_spawn_failure(self, playlist):
        calls = []

        class RecordingReconciler(FileReconciler):
            async def reconcile(self, playlist):
                calls.append(playlist.id)
                return await super().reconcile(playlist)

        manager = JobManager(
            RecordingReconciler(),
            spawner=FakeSpawner(error=SpawnError("No such file or directory")),
        )
        outcome = await manager.start_job(playlist).wait()

        assert outcome.spawn_error == "No such file or directory"
        assert playlist.status is PlaylistStatus.ERROR
        assert playlist.error_message == "Failed to start spotdl: No such file or directory"
        assert playlist.job is None
        assert calls == []

    @pytest.mark.asyncio
    async def test_retry_after_error(self, playlist):
        spawner = FakeSpawner(FakeProcess(exit_code=1))
        manager = JobManager(FileReconciler(), spawner=spawner)
        await manager.start_job(playlist).wait()
        assert playlist.status is PlaylistStatus.ERROR

        spawner.process = FakeProcess(exit_code=0)
        outcome = await manager.start_job(playlist).wait()
        assert outcome.succeeded
        assert playlist.status is PlaylistStatus.IDLE
        assert playlist.error_message is None

    @pytest.mark.asyncio
    async def test_lost_output_kills_child_before_release(self, playlist):
        process = FakeProcess(
            [OutputLine(LogStream.STDOUT, "Found 2 songs")],
            read_error=ValueError("pipe closed"),
        )
        manager = JobManager(FileReconciler(), spawner=FakeSpawner(process))
        outcome = await manager.start_job(playlist).wait()

        assert process.killed
        assert outcome.error == "pipe closed"
        assert not outcome.succeeded
        assert playlist.status is PlaylistStatus.ERROR
        assert playlist.error_message == "spotdl failed while running: pipe closed"
        assert playlist.job is None
        assert [e.text for e in playlist.logs] == ["Found 2 songs"]

    @pytest.mark.asyncio
    async def test_wait_all(self, registry):
        manager = JobManager(FileReconciler(), spawner=FakeSpawner())
        for playlist_id in ("a", "b"):
            manager.start_job(registry.get_or_create(playlist_id, playlist_id))
        outcomes = await manager.wait_all()
        assert [o.exit_code for o in outcomes] == [0, 0]


class TestRealProcess:
    """Runs a real child process through the default spawner"""

    @pytest.mark.asyncio
    async def test_python_child_output_and_exit(self, playlist):
        script = (
            "import sys; print('hello from stdout'); "
            "print('hello from stderr', file=sys.stderr); sys.exit(3)"
        )
        # The playlist url is appended as argv[1] and ignored by the script.
        manager = JobManager(FileReconciler(), command=[sys.executable, "-c", script])
        outcome = await manager.start_job(playlist).wait()

        texts = {(e.stream, e.text) for e in playlist.logs}
        assert (LogStream.STDOUT, "hello from stdout") in texts
        assert (LogStream.STDERR, "hello from stderr") in texts
        assert outcome.exit_code == 3
        assert playlist.error_message.endswith("exited with code 3")

    @pytest.mark.asyncio
    async def test_url_precedes_extra_args(self, playlist):
        script = "import sys; print(' '.join(sys.argv[1:]))"
        manager = JobManager(
            FileReconciler(),
            command=[sys.executable, "-c", script],
            extra_args=["--bitrate", "320k"],
        )
        await manager.start_job(playlist).wait()
        assert [e.text for e in playlist.logs] == [f"{playlist.url} --bitrate 320k"]
        assert playlist.status is PlaylistStatus.IDLE

    @pytest.mark.asyncio
    async def test_missing_executable(self, tmp_path):
        with pytest.raises(SpawnError):
            await DownloaderProcess.spawn(
                [str(tmp_path / "no-such-downloader")], "https://x", tmp_path
            )

    def test_from_command_line(self):
        manager = JobManager.from_command_line(
            FileReconciler(), "python -m spotdl", ["--m3u"]
        )
        assert manager.command == ["python", "-m", "spotdl"]
        assert manager.extra_args == ["--m3u"]
        assert manager.command_name == "python"

    def test_output_line_is_frozen(self):
        line = OutputLine(LogStream.STDOUT, "x")
        with pytest.raises(AttributeError):
            line.text = "y"

    @pytest.mark.asyncio
    async def test_overlong_line_is_truncated(self, playlist):
        script = "import sys; sys.stdout.write('x' * 70000 + '\\n'); print('done')"
        manager = JobManager(FileReconciler(), command=[sys.executable, "-c", script])
        outcome = await manager.start_job(playlist).wait()

        texts = [e.text for e in playlist.logs]
        assert outcome.exit_code == 0
        assert playlist.status is PlaylistStatus.IDLE
        assert playlist.job is None
        assert texts[0] == "x" * MAX_LINE_BYTES
        assert texts[-1] == "done"
        assert len(texts) == 2


class TestOutputPump:
    """Test splitting of raw pipe data into lines"""

    async def _collect(self, stdout_data: bytes):
        stdout, stderr = asyncio.StreamReader(), asyncio.StreamReader()
        stdout.feed_data(stdout_data)
        stdout.feed_eof()
        stderr.feed_eof()
        process = DownloaderProcess(
            SimpleNamespace(stdout=stdout, stderr=stderr), name="spotdl"
        )
        return [line.text async for line in process.output()]

    @pytest.mark.asyncio
    async def test_crlf_and_unterminated_last_line(self):
        texts = await self._collect(b"first\r\n\nsecond\nthird")
        assert texts == ["first", "", "second", "third"]

    @pytest.mark.asyncio
    async def test_overlong_line_tail_is_dropped(self):
        data = b"a" * (MAX_LINE_BYTES * 3) + b"\nnext\n"
        texts = await self._collect(data)
        assert texts == ["a" * MAX_LINE_BYTES, "next"]

    @pytest.mark.asyncio
    async def test_invalid_utf8_is_replaced(self):
        texts = await self._collect(b"caf\xe9\n")
        assert texts == ["caf\ufffd"]
