"""
Manages loading and saving of the INI configuration file, with environment
variable overrides.
"""

import configparser
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from sptfy_backup.exceptions import ConfigurationError
from sptfy_backup.models.config import BackupConfig

log = logging.getLogger(__name__)

# Environment variable -> config key
ENV_OVERRIDES = {
    "SPOTIFY_CLIENT_ID": "spotify_client_id",
    "SPOTIFY_CLIENT_SECRET": "spotify_client_secret",
    "PLAYLIST_URLS": "playlist_urls",
    "DOWNLOAD_ROOT": "download_root",
    "SPOTDL_CMD": "downloader_cmd",
    "SPOTDL_ARGS": "downloader_args",
    "METADATA_REFRESH_MINUTES": "metadata_refresh_minutes",
    "DOWNLOAD_SCAN_SECONDS": "download_scan_seconds",
    "JSON_LOG_DIR": "json_log_dir",
}


class ConfigManager:
    """Handles all operations related to the application's INI config file."""

    def __init__(self, config_file_path: Path, environ: Mapping[str, str] | None = None):
        self.config_file_path = config_file_path
        self._environ = os.environ if environ is None else environ
        self._parser = configparser.ConfigParser(interpolation=None)

    def load_config(self, cli_options: dict[str, Any] | None = None) -> BackupConfig:
        """
        Loads configuration from the INI file, applies environment and CLI
        overrides (in that order), and validates it.

        A missing file is not an error; defaults and overrides are used instead.

        Raises:
            ConfigurationError: If the file cannot be parsed or validation fails.
        """
        settings: dict[str, Any] = {}
        if self.config_file_path.is_file():
            try:
                self._parser.read(self.config_file_path, encoding="utf-8")
            except configparser.Error as e:
                raise ConfigurationError(f"Error parsing configuration file: {e}") from e
            settings.update(self._get_config_as_dict())
        else:
            log.debug(f"No configuration file at '{self.config_file_path}'.")

        settings.update(self._get_env_overrides())

        if cli_options:
            settings.update({k: v for k, v in cli_options.items() if v is not None})

        try:
            return BackupConfig(**settings)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def save_new_config(self, settings: dict[str, Any]) -> None:
        """
        Creates and saves a new configuration file, filling unspecified keys with
        model defaults.
        """
        config = configparser.ConfigParser(interpolation=None)
        config["DEFAULT"] = {}
        defaults = BackupConfig()

        for key in BackupConfig.get_ini_keys():
            value = settings.get(key, getattr(defaults, key, None))
            if isinstance(value, list):
                config["DEFAULT"][key] = ",".join(map(str, value))
            elif value is not None:
                config["DEFAULT"][key] = str(value)

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                config.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Reads the 'DEFAULT' section of the INI file into a dictionary."""
        section = self._parser["DEFAULT"]
        known = set(BackupConfig.get_ini_keys())
        unknown = [key for key in section if key not in known]
        if unknown:
            log.warning(
                f"[yellow]Ignoring unknown configuration keys: {', '.join(unknown)}[/yellow]"
            )
        return {key: section[key] for key in section if key in known and section[key]}

    def _get_env_overrides(self) -> dict[str, Any]:
        return {
            key: self._environ[var]
            for var, key in ENV_OVERRIDES.items()
            if self._environ.get(var)
        }
