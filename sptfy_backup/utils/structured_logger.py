"""
Structured logging system for sync and job lifecycle events.
Provides JSON-formatted logs with context and metadata.
"""

import json
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any

from rich.markup import escape


class StructuredLogger:
    """
    Logger that outputs both human-readable and machine-parseable logs.

    Usage:
        logger = StructuredLogger("sptfy_backup")
        logger.info("job_finished",
                    playlist_id="37i9dQZF1DXcBWIGoYBM5M",
                    exit_code=0,
                    duration_s=81.4)
    """

    def __init__(
        self,
        name: str,
        log_dir: Path | None = None,
        enable_json: bool = True,
        enable_console: bool = True,
    ):
        """
        Initialize structured logger.

        Args:
            name: Logger name
            log_dir: Directory for JSON log files (None = disabled)
            enable_json: Enable JSON file logging
            enable_console: Enable console output
        """
        self.name = name
        self.log_dir = log_dir
        self.enable_json = enable_json and log_dir is not None
        self.enable_console = enable_console

        self._logger = logging.getLogger(name)

        self._json_file = None
        if self.enable_json:
            log_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            json_log_path = log_dir / f"sptfy_backup_{timestamp}.jsonl"
            self._json_file = open(json_log_path, "a", encoding="utf-8")  # noqa: SIM115

        # Session context (added to all log entries)
        self._session_context: dict[str, Any] = {
            "session_id": f"{int(time.time())}_{id(self)}",
        }

    def _format_message(self, event: str, **context) -> str:
        """Format message for console output."""
        parts = [f"{event}:"]
        for key, value in context.items():
            parts.append(f"{key}={escape(str(value))}")
        return " ".join(parts)

    def _write_json(self, level: str, event: str, **context) -> None:
        """Write structured log entry to JSON file."""
        if not self._json_file or self._json_file.closed:
            return

        entry = {
            "timestamp": datetime.now().isoformat(),
            "level": level,
            "event": event,
            **self._session_context,
            **context,
        }

        try:
            self._json_file.write(json.dumps(entry, default=str) + "\n")
            self._json_file.flush()
        except (OSError, ValueError) as e:
            print(f"JSON logging failed: {e}", file=sys.stderr)

    def _log(self, level: int, event: str, **context) -> None:
        if self.enable_console:
            self._logger.log(level, self._format_message(event, **context))
        if self.enable_json:
            self._write_json(logging.getLevelName(level), event, **context)

    def debug(self, event: str, **context) -> None:
        self._log(logging.DEBUG, event, **context)

    def info(self, event: str, **context) -> None:
        self._log(logging.INFO, event, **context)

    def warning(self, event: str, **context) -> None:
        self._log(logging.WARNING, event, **context)

    def error(self, event: str, **context) -> None:
        self._log(logging.ERROR, event, **context)

    def close(self) -> None:
        """Close JSON log file."""
        if self._json_file and not self._json_file.closed:
            self._json_file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class SyncEventLogger:
    """Specialized logger for metadata refresh and download job events."""

    def __init__(self, logger: StructuredLogger | None = None):
        self.logger = logger or StructuredLogger(
            "sptfy_backup.events", enable_json=False
        )

    def refresh_completed(self, playlist_id: str, tracks: int, downloaded: int):
        self.logger.debug(
            "refresh_completed",
            playlist_id=playlist_id,
            tracks=tracks,
            downloaded=downloaded,
        )

    def refresh_failed(self, playlist_id: str, error: str):
        self.logger.warning("refresh_failed", playlist_id=playlist_id, error=error)

    def job_started(self, playlist_id: str, url: str):
        self.logger.info("job_started", playlist_id=playlist_id, url=url)

    def job_finished(
        self, playlist_id: str, exit_code: int, duration_s: float, downloaded: int
    ):
        log_fn = self.logger.info if exit_code == 0 else self.logger.error
        log_fn(
            "job_finished",
            playlist_id=playlist_id,
            exit_code=exit_code,
            duration_s=round(duration_s, 2),
            downloaded=downloaded,
        )

    def job_spawn_failed(self, playlist_id: str, error: str):
        self.logger.error("job_spawn_failed", playlist_id=playlist_id, error=error)


def create_event_logger(log_dir: Path | None = None) -> SyncEventLogger:
    """Creates the event logger, writing JSONL files when a directory is given."""
    base = StructuredLogger(
        "sptfy_backup.events", log_dir=log_dir, enable_json=log_dir is not None
    )
    return SyncEventLogger(base)
