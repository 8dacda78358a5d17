"""
Core synchronization engine.

The `BackupManager` wires together the `PlaylistRegistry`, `MetadataSync`,
`FileReconciler` and `JobManager`; each component receives the registry's
playlists explicitly rather than reaching for global state.
"""

from .backup_manager import BackupManager
from .job_manager import DownloadJob, JobManager
from .metadata_sync import MetadataSync, PlaylistSource
from .reconciler import FileReconciler
from .registry import PlaylistRegistry
from .scheduler import PeriodicTask

__all__ = [
    "BackupManager",
    "DownloadJob",
    "FileReconciler",
    "JobManager",
    "MetadataSync",
    "PeriodicTask",
    "PlaylistRegistry",
    "PlaylistSource",
]
