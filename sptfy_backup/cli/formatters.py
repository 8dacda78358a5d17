"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Iterable, Sequence

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from sptfy_backup.models.config import BackupConfig
from sptfy_backup.models.playlist import (
    LogEntry,
    LogStream,
    Playlist,
    PlaylistStatus,
    PlaylistSummary,
)
from sptfy_backup.utils.formatting import (
    format_duration,
    format_progress,
    format_timestamp,
)

console = Console()

STATUS_STYLES = {
    PlaylistStatus.IDLE: "green",
    PlaylistStatus.SYNCING: "cyan",
    PlaylistStatus.ERROR: "red",
}


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ConfigurationError": [
            "• Run `sptfy-backup init <CLIENT_ID> <CLIENT_SECRET>` to create a config file.",
            "• Or set SPOTIFY_CLIENT_ID / SPOTIFY_CLIENT_SECRET in the environment.",
            "• Run `sptfy-backup validate` to check the current settings.",
        ],
        "FetchError": [
            "• The Spotify API might be temporarily unavailable.",
            "• Check that the playlist is public and the id is correct.",
            "• Please try again in a few minutes.",
        ],
        "PlaylistNotFoundError": [
            "• Add the playlist URL to `playlist_urls` in the config file.",
            "• Or pass the full playlist URL instead of an id.",
        ],
        "AlreadyInProgressError": [
            "• Wait for the running download to finish before starting another.",
        ],
        "SpawnError": [
            "• Make sure spotdl is installed and on your PATH.",
            "• Or point `downloader_cmd` at the executable in the config file.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def format_status(status: PlaylistStatus) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status.value}[/{style}]"


def print_summary_table(
    summaries: Sequence[PlaylistSummary], target: Console | None = None
) -> None:
    """Prints one row per playlist with its completion and status."""
    target = target or console
    if not summaries:
        target.print("[yellow]No playlists registered.[/yellow]")
        return

    table = Table(title="Playlists", box=box.ROUNDED, show_lines=False)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Name", style="bold")
    table.add_column("Owner")
    table.add_column("Downloaded", justify="right")
    table.add_column("Status")
    table.add_column("Last sync")
    table.add_column("Last refresh")

    for s in summaries:
        table.add_row(
            s.id,
            escape(s.name),
            escape(s.owner),
            format_progress(s.downloaded_count, s.tracks_total),
            format_status(s.status),
            format_timestamp(s.last_sync_at),
            format_timestamp(s.last_metadata_refresh_at),
        )
    target.print(table)

    for s in summaries:
        if s.error_message:
            target.print(f"[red]✗ {s.id}:[/red] {escape(s.error_message)}")


def print_track_table(playlist: Playlist, target: Console | None = None) -> None:
    """Prints every track of a playlist with its local status."""
    target = target or console
    table = Table(
        title=f"{escape(playlist.name)} ({len(playlist.tracks)} tracks)",
        box=box.SIMPLE,
    )
    table.add_column("#", justify="right", style="dim")
    table.add_column("Artists")
    table.add_column("Title", style="bold")
    table.add_column("Album", style="dim")
    table.add_column("Length", justify="right")
    table.add_column("Local")

    for i, track in enumerate(playlist.tracks, start=1):
        local = (
            "[green]✓ downloaded[/green]"
            if track.is_downloaded
            else "[yellow]○ pending[/yellow]"
        )
        table.add_row(
            str(i),
            escape(track.artists),
            escape(track.name),
            escape(track.album),
            format_duration(track.duration_ms),
            local,
        )
    target.print(table)


def print_log_tail(
    playlist_id: str, entries: Iterable[LogEntry], target: Console | None = None
) -> None:
    """Prints captured downloader output, stderr lines highlighted."""
    target = target or console
    entries = list(entries)
    if not entries:
        return
    target.print(f"[dim]── last {len(entries)} log lines for {playlist_id} ──[/dim]")
    for entry in entries:
        style = "red" if entry.stream is LogStream.STDERR else "dim"
        target.print(Text(entry.format(), style=style))


def print_config(config_file: Path, config: BackupConfig) -> None:
    """Prints the effective configuration with secrets masked."""
    table = Table(title="Configuration", box=box.ROUNDED, show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Config file", str(config_file))
    for key, value in config.model_dump().items():
        if key == "spotify_client_secret" and value:
            value = f"{value[:4]}…"
        elif isinstance(value, list):
            value = "\n".join(map(str, value)) or "[dim](none)[/dim]"
        elif value is None or value == "":
            value = "[dim](not set)[/dim]"
        table.add_row(key, str(value))
    console.print(table)
