"""
Data models for mirrored playlists, their tracks, and the captured downloader output.
"""

import asyncio
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Deque, Iterator, List, Optional

from sptfy_backup.utils.formatting import build_track_key

if TYPE_CHECKING:
    from sptfy_backup.core.job_manager import DownloadJob

LOG_CAPACITY = 500


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PlaylistStatus(str, Enum):
    """Lifecycle status of a playlist. Only SYNCING has an active job."""

    IDLE = "idle"
    SYNCING = "syncing"
    ERROR = "error"


class LocalStatus(str, Enum):
    """Whether a track has a matching file in the playlist's mirror directory."""

    PENDING = "pending"
    DOWNLOADED = "downloaded"


class LogStream(str, Enum):
    STDOUT = "stdout"
    STDERR = "stderr"


@dataclass
class Track:
    """A single remote track within a playlist."""

    id: Optional[str]
    name: str
    artists: str
    album: str = ""
    spotify_url: str = ""
    duration_ms: int = 0
    key: str = ""
    local_status: LocalStatus = LocalStatus.PENDING

    def __post_init__(self):
        if not self.key:
            self.key = build_track_key(self.artists, self.name)

    @property
    def is_downloaded(self) -> bool:
        return self.local_status is LocalStatus.DOWNLOADED


@dataclass(frozen=True)
class PlaylistMetadata:
    """Descriptive metadata for a playlist as reported by the remote provider."""

    name: str
    owner: str
    description: str
    tracks_total: int
    url: str
    images: List[dict] = field(default_factory=list)


@dataclass(frozen=True)
class TrackPage:
    """One page of a playlist's track list plus the cursor of the next page."""

    items: List[Track]
    next_cursor: Optional[str] = None


@dataclass(frozen=True)
class LogEntry:
    """A timestamped line of downloader output, tagged with its source stream."""

    timestamp: datetime
    stream: LogStream
    text: str

    def format(self) -> str:
        return f"[{self.timestamp.isoformat()}] [{self.stream.value}] {self.text}"


class LogBuffer:
    """
    A bounded, append-only log. Once capacity is reached the oldest entries are
    evicted first.
    """

    def __init__(self, capacity: int = LOG_CAPACITY):
        self.capacity = capacity
        self._entries: Deque[LogEntry] = deque(maxlen=capacity)

    def append(
        self, stream: LogStream, text: str, timestamp: Optional[datetime] = None
    ) -> LogEntry:
        entry = LogEntry(timestamp or utc_now(), LogStream(stream), text)
        self._entries.append(entry)
        return entry

    def tail(self, count: int) -> List[LogEntry]:
        """Returns up to `count` of the most recent entries, oldest first."""
        if count <= 0:
            return []
        return list(self._entries)[-count:]

    def lines(self) -> List[str]:
        return [entry.format() for entry in self._entries]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LogEntry]:
        return iter(list(self._entries))


@dataclass(frozen=True)
class PlaylistSummary:
    """Read-only projection of a playlist without its tracks, job, or logs."""

    id: str
    name: str
    owner: str
    description: str
    tracks_total: int
    downloaded_count: int
    status: PlaylistStatus
    last_sync_at: Optional[datetime]
    last_metadata_refresh_at: Optional[datetime]
    error_message: Optional[str]
    url: str
    images: List[dict]

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        for key in ("last_sync_at", "last_metadata_refresh_at"):
            if data[key] is not None:
                data[key] = data[key].isoformat()
        return data


@dataclass
class Playlist:
    """Sync state for one remote playlist and its local mirror directory."""

    id: str
    url: str
    download_dir: Path
    name: str = "Loading..."
    owner: str = ""
    description: str = ""
    images: List[dict] = field(default_factory=list)
    tracks: List[Track] = field(default_factory=list)
    tracks_total: int = 0
    downloaded_count: int = 0
    status: PlaylistStatus = PlaylistStatus.IDLE
    last_sync_at: Optional[datetime] = None
    last_metadata_refresh_at: Optional[datetime] = None
    error_message: Optional[str] = None
    job: Optional["DownloadJob"] = field(default=None, repr=False)
    logs: LogBuffer = field(default_factory=LogBuffer, repr=False)

    # Serializes multi-step mutations (refresh apply, reconciliation).
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    @property
    def is_syncing(self) -> bool:
        return self.job is not None

    @property
    def pending_count(self) -> int:
        return sum(1 for t in self.tracks if not t.is_downloaded)

    def summary(self) -> PlaylistSummary:
        return PlaylistSummary(
            id=self.id,
            name=self.name,
            owner=self.owner,
            description=self.description,
            tracks_total=self.tracks_total,
            downloaded_count=self.downloaded_count,
            status=self.status,
            last_sync_at=self.last_sync_at,
            last_metadata_refresh_at=self.last_metadata_refresh_at,
            error_message=self.error_message,
            url=self.url,
            images=list(self.images),
        )
