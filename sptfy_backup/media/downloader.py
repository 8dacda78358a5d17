"""
Runs the external playlist downloader (spotdl by default) as a managed subprocess,
exposing its output as a single stream of tagged lines and its exit as one outcome.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Optional, Sequence

from sptfy_backup.exceptions import SpawnError
from sptfy_backup.models.playlist import LogStream

log = logging.getLogger(__name__)

READ_CHUNK_SIZE = 64 * 1024
MAX_LINE_BYTES = 64 * 1024


@dataclass(frozen=True)
class OutputLine:
    """A decoded line of output from one of the process's streams."""

    stream: LogStream
    text: str


@dataclass(frozen=True)
class JobOutcome:
    """How a download job ended: an exit code, or the reason it never started."""

    exit_code: Optional[int] = None
    spawn_error: Optional[str] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0 and not (self.spawn_error or self.error)


class DownloaderProcess:
    """
    Wraps an asyncio subprocess. Both output pipes are pumped concurrently into a
    single queue so that neither can fill up and stall the child.
    """

    def __init__(self, process: asyncio.subprocess.Process, name: str):
        self.name = name
        self._process = process
        self._queue: asyncio.Queue[Optional[OutputLine]] = asyncio.Queue()
        self._pumps = [
            asyncio.create_task(self._pump(process.stdout, LogStream.STDOUT)),
            asyncio.create_task(self._pump(process.stderr, LogStream.STDERR)),
        ]

    @classmethod
    async def spawn(
        cls,
        command: Sequence[str],
        url: str,
        cwd: Path,
        extra_args: Sequence[str] = (),
    ) -> "DownloaderProcess":
        """
        Launches `command url extra_args...` inside `cwd`.

        Raises:
            SpawnError: If the executable cannot be started.
        """
        argv = [*command, url, *extra_args]
        log.debug(f"Spawning downloader: {argv} (cwd={cwd})")
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                cwd=str(cwd),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise SpawnError(e.strerror or str(e)) from e
        return cls(process, name=Path(command[0]).name)

    @property
    def pid(self) -> int:
        return self._process.pid

    async def _pump(self, stream: Optional[asyncio.StreamReader], tag: LogStream):
        """
        Reads a pipe in fixed-size chunks and splits it into lines. A line longer
        than MAX_LINE_BYTES is cut at that length and the rest of it discarded, so
        a runaway line can never stop the pipe from being drained.
        """
        try:
            if stream is None:
                return
            pending = b""
            truncated = False
            while True:
                chunk = await stream.read(READ_CHUNK_SIZE)
                if not chunk:
                    break
                *lines, pending = (pending + chunk).split(b"\n")
                for raw in lines:
                    if truncated:
                        truncated = False
                        continue
                    await self._emit(raw, tag)
                if len(pending) > MAX_LINE_BYTES:
                    if not truncated:
                        await self._emit(pending[:MAX_LINE_BYTES], tag)
                        truncated = True
                    pending = b""
            if pending and not truncated:
                await self._emit(pending, tag)
        finally:
            await self._queue.put(None)

    async def _emit(self, raw: bytes, tag: LogStream) -> None:
        text = raw[:MAX_LINE_BYTES].decode("utf-8", errors="replace").rstrip("\r")
        log.debug(f"[{self.name} {tag.value}] {text}")
        await self._queue.put(OutputLine(tag, text))

    async def output(self) -> AsyncIterator[OutputLine]:
        """Yields output lines from both streams until both are closed."""
        open_streams = len(self._pumps)
        while open_streams:
            line = await self._queue.get()
            if line is None:
                open_streams -= 1
                continue
            yield line

    def kill(self) -> None:
        """Kills the process if it is still running."""
        if self._process.returncode is None:
            try:
                self._process.kill()
            except ProcessLookupError:
                log.debug(f"{self.name} (pid {self.pid}) already exited")

    async def wait(self) -> int:
        """
        Waits for the process to exit and returns its exit code. Pipe read errors
        are logged; they do not hide the exit code.
        """
        exit_code = await self._process.wait()
        for result in await asyncio.gather(*self._pumps, return_exceptions=True):
            if isinstance(result, Exception):
                log.warning(f"Lost part of {self.name} output: {result}")
        return exit_code
