"""Test configuration and fixtures"""

import asyncio
from pathlib import Path
from typing import List, Optional, Sequence

import pytest

from sptfy_backup.core.registry import PlaylistRegistry
from sptfy_backup.media.downloader import OutputLine
from sptfy_backup.models.playlist import LogStream, PlaylistMetadata, Track, TrackPage


def make_track(artists: str, name: str, track_id: Optional[str] = None) -> Track:
    return Track(
        id=track_id or f"{artists}-{name}".lower().replace(" ", "_"),
        name=name,
        artists=artists,
        album="Test Album",
        duration_ms=200000,
    )


def make_pages(*chunks: Sequence[Track]) -> List[TrackPage]:
    """Builds linked pages whose cursors are the index of the following page."""
    pages = []
    for index, chunk in enumerate(chunks):
        next_cursor = str(index + 1) if index + 1 < len(chunks) else None
        pages.append(TrackPage(items=list(chunk), next_cursor=next_cursor))
    return pages


def touch(directory: Path, *names: str) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    for name in names:
        (directory / name).write_bytes(b"")


class FakePlaylistSource:
    """In-memory playlist source; fails every call when `error` is set."""

    def __init__(
        self,
        metadata: Optional[PlaylistMetadata] = None,
        pages: Optional[List[TrackPage]] = None,
        error: Optional[Exception] = None,
    ):
        self.metadata = metadata or PlaylistMetadata(
            name="Road Trip",
            owner="alice",
            description="Songs for the car",
            tracks_total=0,
            url="https://open.spotify.com/playlist/abc123",
        )
        self.pages = pages if pages is not None else [TrackPage(items=[])]
        self.error = error
        self.cursors: List[Optional[str]] = []

    async def fetch_playlist_metadata(self, playlist_id: str) -> PlaylistMetadata:
        if self.error:
            raise self.error
        return self.metadata

    async def fetch_tracks_page(
        self, playlist_id: str, cursor: Optional[str] = None
    ) -> TrackPage:
        self.cursors.append(cursor)
        if self.error:
            raise self.error
        return self.pages[int(cursor) if cursor else 0]


class FakeProcess:
    """Stands in for a running downloader; holds its output until `gate` is set."""

    def __init__(
        self,
        lines: Sequence[OutputLine] = (),
        exit_code: int = 0,
        gate: Optional[asyncio.Event] = None,
        read_error: Optional[Exception] = None,
    ):
        self.lines = list(lines)
        self.exit_code = exit_code
        self.gate = gate
        self.read_error = read_error
        self.killed = False

    async def output(self):
        if self.gate is not None:
            await self.gate.wait()
        for line in self.lines:
            yield line
        if self.read_error is not None:
            raise self.read_error

    def kill(self) -> None:
        self.killed = True

    async def wait(self) -> int:
        return self.exit_code


class FakeSpawner:
    """Records spawn requests and hands out a prepared process or raises."""

    def __init__(self, process: Optional[FakeProcess] = None, error: Optional[Exception] = None):
        self.process = process or FakeProcess()
        self.error = error
        self.calls: List[tuple] = []

    async def __call__(self, url: str, cwd: Path) -> FakeProcess:
        self.calls.append((url, cwd))
        if self.error:
            raise self.error
        return self.process


@pytest.fixture
def download_root(tmp_path):
    """Root folder for playlist mirror directories"""
    return tmp_path / "downloads"


@pytest.fixture
def registry(download_root):
    return PlaylistRegistry(download_root)


@pytest.fixture
def playlist(registry):
    return registry.get_or_create("abc123", "https://open.spotify.com/playlist/abc123")


@pytest.fixture
def sample_output():
    return [
        OutputLine(LogStream.STDOUT, "Found 2 songs in Road Trip"),
        OutputLine(LogStream.STDERR, "WARNING: lyrics not found"),
        OutputLine(LogStream.STDOUT, 'Downloaded "Artist A - Song One"'),
    ]
