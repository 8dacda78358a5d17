"""
Media Processing Layer.

This package is responsible for running the external downloader that writes audio
files into each playlist's mirror directory.
"""

from .downloader import DownloaderProcess, JobOutcome, OutputLine

__all__ = ["DownloaderProcess", "JobOutcome", "OutputLine"]
