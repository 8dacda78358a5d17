"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BackupConfig(BaseModel):
    """A validated configuration model for the application."""

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    # Spotify client credentials. Missing credentials are not fatal here: every
    # fetch fails with a ConfigurationError that is recorded on the playlist.
    spotify_client_id: str = ""
    spotify_client_secret: str = ""

    # Sources and local mirror
    playlist_urls: list[str] = Field(default_factory=list)
    download_root: Path = Path("downloads")

    # External downloader
    downloader_cmd: str = "spotdl"
    downloader_args: list[str] = Field(default_factory=list)

    # Periodic timers (0 disables)
    metadata_refresh_minutes: int = 60
    download_scan_seconds: int = 30

    # Optional JSONL event log
    json_log_dir: Optional[Path] = None

    @field_validator("playlist_urls", "downloader_args", mode="before")
    @classmethod
    def split_comma_separated(cls, v):
        """Accepts either a list or a comma-separated string."""
        if v is None:
            return []
        if isinstance(v, str):
            return [part for part in v.split(",")]
        return v

    @field_validator("playlist_urls")
    @classmethod
    def validate_playlist_urls(cls, v: list[str]) -> list[str]:
        """Drops blank entries and duplicates while keeping the configured order."""
        cleaned = [url.strip() for url in v if url and url.strip()]
        return list(dict.fromkeys(cleaned))

    @field_validator("downloader_args")
    @classmethod
    def validate_downloader_args(cls, v: list[str]) -> list[str]:
        return [arg.strip() for arg in v if arg and arg.strip()]

    @field_validator("downloader_cmd")
    @classmethod
    def validate_downloader_cmd(cls, v: str) -> str:
        if not v:
            raise ValueError("Downloader command cannot be empty.")
        return v

    @field_validator("download_root")
    @classmethod
    def validate_download_root(cls, v: Path) -> Path:
        if not str(v).strip():
            raise ValueError("Download root cannot be empty.")
        return v.expanduser()

    @field_validator("metadata_refresh_minutes", "download_scan_seconds")
    @classmethod
    def validate_interval(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Intervals must be zero (disabled) or positive.")
        return v

    @property
    def has_credentials(self) -> bool:
        return bool(self.spotify_client_id and self.spotify_client_secret)

    @classmethod
    def get_ini_keys(cls) -> list[str]:
        """Returns all keys that are expected in the INI file, in declaration order."""
        return list(cls.model_fields)
