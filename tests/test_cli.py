"""Tests for the command line interface"""

import json
import logging

import pytest
from typer.testing import CliRunner

from sptfy_backup import __version__
from sptfy_backup.cli import app as cli_app
from sptfy_backup.utils.structured_logger import create_event_logger

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    path = tmp_path / "config.ini"
    monkeypatch.setattr(cli_app, "CONFIG_FILE", path)
    for var in ("SPOTIFY_CLIENT_ID", "SPOTIFY_CLIENT_SECRET", "PLAYLIST_URLS"):
        monkeypatch.delenv(var, raising=False)
    return path


class TestCommands:
    def test_version(self):
        result = runner.invoke(cli_app.app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_init_writes_config(self, config_file, tmp_path):
        result = runner.invoke(
            cli_app.app,
            [
                "init",
                "cid",
                "secret",
                "--playlist",
                "https://open.spotify.com/playlist/abc123",
                "--download-root",
                str(tmp_path / "music"),
            ],
        )
        assert result.exit_code == 0, result.output
        text = config_file.read_text(encoding="utf-8")
        assert "spotify_client_id = cid" in text
        assert "playlist_urls = https://open.spotify.com/playlist/abc123" in text

    def test_validate_without_credentials(self, config_file):
        result = runner.invoke(cli_app.app, ["validate"])
        assert result.exit_code == 1

    def test_validate_after_init(self, config_file):
        runner.invoke(cli_app.app, ["init", "cid", "secret", "--force"])
        result = runner.invoke(cli_app.app, ["validate"])
        assert result.exit_code == 0, result.output
        assert "Configuration is valid" in result.output

    @pytest.mark.parametrize("args, level", [([], logging.INFO), (["-v"], logging.DEBUG)])
    def test_verbose_flag_sets_log_level(self, config_file, args, level):
        logger = logging.getLogger("sptfy_backup")
        try:
            runner.invoke(cli_app.app, [*args, "validate"])
            assert logger.level == level
        finally:
            logger.setLevel(logging.INFO)


class TestEventLog:
    """Test the JSONL event log"""

    def test_writes_jsonl(self, tmp_path):
        events = create_event_logger(tmp_path / "logs")
        events.job_finished("abc123", 0, 81.4, 7)
        events.logger.close()

        (log_file,) = (tmp_path / "logs").glob("*.jsonl")
        entry = json.loads(log_file.read_text(encoding="utf-8").splitlines()[0])
        assert entry["event"] == "job_finished"
        assert entry["playlist_id"] == "abc123"
        assert entry["duration_s"] == 81.4
        assert entry["level"] == "INFO"

    def test_console_only_by_default(self):
        events = create_event_logger()
        assert not events.logger.enable_json
