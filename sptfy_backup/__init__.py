"""
sptfy-backup: mirror Spotify playlists into local folders using an external
downloader, tracking which tracks are already present on disk.
"""

__version__ = "0.1.0"
