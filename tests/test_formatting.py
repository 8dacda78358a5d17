"""Tests for normalization and display helpers"""

from datetime import datetime, timezone
from pathlib import Path

from sptfy_backup.utils.formatting import (
    build_track_key,
    format_duration,
    format_progress,
    format_timestamp,
    slugify,
)
from sptfy_backup.utils.path import (
    extract_playlist_id,
    list_audio_files,
    playlist_directory,
)


class TestSlugify:
    """Test track key normalization"""

    def test_track_key(self):
        assert build_track_key("Billie Eilish", "bad guy!") == "billie-eilish---bad-guy"

    def test_is_deterministic(self):
        assert slugify("Daft Punk - One More Time") == slugify("Daft Punk - One More Time")

    def test_strips_diacritics(self):
        assert slugify("Beyoncé") == "beyonce"
        assert slugify("Sigur Rós") == "sigur-ros"

    def test_collapses_whitespace(self):
        assert slugify("  a   b\tc  ") == "a-b-c"

    def test_keeps_hyphens_and_underscores(self):
        assert slugify("Jay-Z & Kanye_West") == "jay-z-kanye_west"

    def test_empty_input(self):
        assert slugify("") == ""
        assert slugify(None) == ""

    def test_non_latin_titles_keep_word_characters(self):
        assert slugify("東京 フラッシュ") == slugify("東京 フラッシュ")
        assert slugify("東京 フラッシュ") != ""

    def test_file_stem_contains_track_key(self):
        key = build_track_key("Artist", "Song")
        assert key in slugify("Artist - Song (320kbps)")


class TestPlaylistIds:
    """Test playlist id extraction"""

    def test_open_spotify_url(self):
        url = "https://open.spotify.com/playlist/37i9dQZF1DXcBWIGoYBM5M?si=abcdef"
        assert extract_playlist_id(url) == "37i9dQZF1DXcBWIGoYBM5M"

    def test_uri(self):
        assert extract_playlist_id("spotify:playlist:37i9dQZF1DXcBWIGoYBM5M") == (
            "37i9dQZF1DXcBWIGoYBM5M"
        )

    def test_bare_id(self):
        assert extract_playlist_id("  abc123 ") == "abc123"

    def test_blank(self):
        assert extract_playlist_id("") is None
        assert extract_playlist_id("   ") is None

    def test_directory_is_sanitized(self):
        root = Path("/music")
        assert playlist_directory(root, "abc123") == root / "abc123"
        assert "/" not in playlist_directory(root, "a/b").name


class TestAudioListing:
    """Test local audio file discovery"""

    def test_missing_directory(self, tmp_path):
        assert list_audio_files(tmp_path / "missing") == []

    def test_filters_by_extension(self, tmp_path):
        for name in ("a.mp3", "b.FLAC", "c.txt", "d.opus", "cover.jpg"):
            (tmp_path / name).write_bytes(b"")
        (tmp_path / "nested.mp3").mkdir()
        assert list_audio_files(tmp_path) == ["a.mp3", "b.FLAC", "d.opus"]


class TestDisplayHelpers:
    def test_format_duration(self):
        assert format_duration(210000) == "3:30"
        assert format_duration(3661000) == "1:01:01"
        assert format_duration(-5) == "0:00"

    def test_format_progress(self):
        assert format_progress(3, 4) == "3/4 (75%)"
        assert format_progress(0, 0) == "0/0"

    def test_format_timestamp(self):
        assert format_timestamp(None) == "never"
        assert format_timestamp(datetime(2024, 1, 1, tzinfo=timezone.utc))
