"""
Data Models Layer.

This package contains the pydantic configuration model and the dataclasses that
describe playlist sync state throughout the application.
"""

from .config import BackupConfig
from .playlist import (
    LOG_CAPACITY,
    LocalStatus,
    LogBuffer,
    LogEntry,
    LogStream,
    Playlist,
    PlaylistMetadata,
    PlaylistStatus,
    PlaylistSummary,
    Track,
    TrackPage,
)

__all__ = [
    "LOG_CAPACITY",
    "BackupConfig",
    "LocalStatus",
    "LogBuffer",
    "LogEntry",
    "LogStream",
    "Playlist",
    "PlaylistMetadata",
    "PlaylistStatus",
    "PlaylistSummary",
    "Track",
    "TrackPage",
]
