"""
Storage Layer.

This package handles configuration persistence. Playlist state itself is kept in
memory only.
"""

from .config_manager import ConfigManager

__all__ = ["ConfigManager"]
