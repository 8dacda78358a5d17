"""
Defines custom exceptions for the application to allow for more specific error handling.
"""

from typing import Optional


class SptfyBackupError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(SptfyBackupError):
    """Raised for missing credentials or invalid configuration values."""


class FetchError(SptfyBackupError):
    """
    Raised when a request to the remote API fails, either with a non-success
    response or a network-level error.
    """

    def __init__(self, message: str, status: Optional[int] = None, detail: str = ""):
        super().__init__(message)
        self.status = status
        self.detail = detail


class PlaylistNotFoundError(SptfyBackupError):
    """Raised when an operation references a playlist id that is not registered."""


class AlreadyInProgressError(SptfyBackupError):
    """Raised when a download job is requested for a playlist that is already syncing."""


class ProcessExitError(SptfyBackupError):
    """Raised (or recorded) when the external downloader exits with a nonzero code."""

    def __init__(self, command: str, exit_code: int):
        super().__init__(f"{command} exited with code {exit_code}")
        self.command = command
        self.exit_code = exit_code


class SpawnError(SptfyBackupError):
    """Raised when the external downloader could not be launched at all."""
