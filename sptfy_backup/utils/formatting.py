"""
Helper functions for normalizing and formatting data into human-readable strings.
"""

import re
import unicodedata
from datetime import datetime
from typing import Optional

_NON_SLUG_CHARS = re.compile(r"[^\w\s-]")
_WHITESPACE = re.compile(r"\s+")


def slugify(text: Optional[str]) -> str:
    """
    Reduces free text to a matching slug: diacritics and punctuation are removed,
    case is folded and whitespace runs become single hyphens.

    The result depends only on the input text, so equal inputs always produce
    equal slugs.
    """
    decomposed = unicodedata.normalize("NFKD", text or "")
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    cleaned = _NON_SLUG_CHARS.sub("", stripped).strip().casefold()
    return _WHITESPACE.sub("-", cleaned)


def build_track_key(artists: str, name: str) -> str:
    """Builds the normalized matching key for a track from its artists and title."""
    return slugify(f"{artists} - {name}")


def format_duration(milliseconds: int) -> str:
    """Formats a track length in milliseconds as 'm:ss' (or 'h:mm:ss')."""
    s = max(0, int(milliseconds)) // 1000
    hours, remainder = divmod(s, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02}:{secs:02}"
    return f"{minutes}:{secs:02}"


def format_timestamp(value: Optional[datetime]) -> str:
    """Formats an optional timestamp for display, using the local timezone."""
    if value is None:
        return "never"
    return value.astimezone().strftime("%Y-%m-%d %H:%M:%S")


def format_progress(downloaded: int, total: int) -> str:
    """Formats a 'downloaded/total (pct%)' completion string."""
    if total <= 0:
        return f"{downloaded}/0"
    pct = min(100.0, downloaded / total * 100)
    return f"{downloaded}/{total} ({pct:.0f}%)"
