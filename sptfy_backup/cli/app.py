"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
import time
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from sptfy_backup import __version__
from sptfy_backup.api.client import SpotifyAPIClient
from sptfy_backup.core.backup_manager import BackupManager
from sptfy_backup.exceptions import AlreadyInProgressError, SptfyBackupError
from sptfy_backup.models.config import BackupConfig
from sptfy_backup.models.playlist import Playlist
from sptfy_backup.storage.config_manager import ConfigManager

from .formatters import (
    print_config,
    print_log_tail,
    print_summary_table,
    print_track_table,
)

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("sptfy_backup")

app = typer.Typer(
    name="sptfy-backup",
    help=(
        "Mirror Spotify playlists to local folders and keep them in sync. Use"
        " 'sptfy-backup <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "sptfy-backup"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Enable debug logging, including downloader output.",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
):
    """Spotify playlist backup"""
    if version:
        console.print(f"[bold]sptfy-backup[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 1:
        log_level = "DEBUG"
    logging.getLogger("sptfy_backup").setLevel(log_level)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


def _load_config(cli_options: dict | None = None) -> BackupConfig:
    config = ConfigManager(CONFIG_FILE).load_config(cli_options)
    if not config.has_credentials:
        log.warning(
            "[yellow]Spotify credentials are not configured; metadata refreshes "
            "will fail.[/yellow]"
        )
    return config


def _select_playlists(
    manager: BackupManager, selectors: list[str] | None
) -> list[Playlist]:
    """Resolves CLI selectors (ids, URIs or URLs) to playlists, or all configured ones."""
    if not selectors:
        return manager.load_configured_playlists()
    manager.load_configured_playlists()
    playlists = []
    for selector in selectors:
        playlist = manager.get(selector) or manager.add_playlist(selector)
        if playlist is not None and all(p.id != playlist.id for p in playlists):
            playlists.append(playlist)
    return playlists


@app.command()
def init(
    client_id: str = typer.Argument(..., help="Spotify application client id."),
    client_secret: str = typer.Argument(..., help="Spotify application client secret."),
    playlists: list[str] | None = typer.Option(  # noqa: B008
        None,
        "--playlist",
        "-p",
        help="Playlist URL to mirror. Can be given multiple times.",
    ),
    download_root: Path | None = typer.Option(  # noqa: B008
        None,
        "--download-root",
        "-d",
        help="Folder that receives one subfolder per playlist.",
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing config without asking."
    ),
):
    """Initialize configuration with Spotify credentials."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    settings: dict = {
        "spotify_client_id": client_id,
        "spotify_client_secret": client_secret,
    }
    if playlists:
        settings["playlist_urls"] = playlists
    if download_root is not None:
        settings["download_root"] = download_root

    config_manager = ConfigManager(CONFIG_FILE)
    config_manager.save_new_config(settings)
    console.print(f"\n[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
    if playlists:
        console.print("Ready to sync! Try: [cyan]sptfy-backup sync[/cyan]")
    else:
        console.print(
            "Add playlists with [cyan]--playlist <URL>[/cyan] or the PLAYLIST_URLS"
            " environment variable."
        )


@app.command()
def validate():
    """Validate and display the current configuration."""
    try:
        config = ConfigManager(CONFIG_FILE).load_config()
    except SptfyBackupError as e:
        console.print(f"[red]✗ Configuration is invalid: {e}[/red]")
        raise typer.Exit(code=1) from e

    print_config(CONFIG_FILE, config)
    if not config.has_credentials:
        console.print("[red]✗ Spotify client id or secret is missing.[/red]")
        raise typer.Exit(code=1)
    if not config.playlist_urls:
        console.print("[yellow]⚠️  No playlist URLs configured.[/yellow]")
    console.print("[green]✓ Configuration is valid.[/green]")


@app.command()
def status(
    selectors: list[str] | None = typer.Argument(  # noqa: B008
        None, help="Playlist ids or URLs. Defaults to every configured playlist."
    ),
    tracks: bool = typer.Option(
        False, "--tracks", "-t", help="Also list every track and its local status."
    ),
):
    """Refresh playlist metadata and show how much is mirrored locally."""

    async def _status_async():
        config = _load_config()
        api_client = SpotifyAPIClient(
            config.spotify_client_id, config.spotify_client_secret
        )
        manager = BackupManager(config, api_client)
        try:
            playlists = _select_playlists(manager, selectors)
            await asyncio.gather(*(manager.metadata_sync.refresh(p) for p in playlists))
            print_summary_table([p.summary() for p in playlists])
            if tracks:
                for playlist in playlists:
                    print_track_table(playlist)
        finally:
            await manager.close()
            await api_client.close()

    asyncio.run(_status_async())


@app.command()
def sync(
    selectors: list[str] | None = typer.Argument(  # noqa: B008
        None, help="Playlist ids or URLs. Defaults to every configured playlist."
    ),
    show_logs: int = typer.Option(
        0,
        "--show-logs",
        "-l",
        min=0,
        help="Print the last N downloader lines per playlist.",
    ),
):
    """Download every missing track, one downloader run per playlist."""

    async def _sync_async() -> bool:
        config = _load_config()
        api_client = SpotifyAPIClient(
            config.spotify_client_id, config.spotify_client_secret
        )
        manager = BackupManager(config, api_client)
        try:
            playlists = _select_playlists(manager, selectors)
            if not playlists:
                return True
            await asyncio.gather(*(manager.metadata_sync.refresh(p) for p in playlists))

            console.print(
                f"[bold cyan]🎵 Syncing {len(playlists)} playlist(s)...[/bold cyan]"
            )
            start_time = time.monotonic()
            jobs = {}
            for playlist in playlists:
                try:
                    jobs[playlist.id] = manager.start_job(playlist.id)
                except AlreadyInProgressError as e:
                    log.warning(f"[yellow]{e}[/yellow]")
            outcomes = await asyncio.gather(*(job.wait() for job in jobs.values()))
            duration = time.monotonic() - start_time

            print_summary_table([p.summary() for p in playlists])
            if show_logs:
                for playlist in playlists:
                    print_log_tail(playlist.id, playlist.logs.tail(show_logs))

            failed = [pid for pid, o in zip(jobs, outcomes) if not o.succeeded]
            if failed:
                console.print(
                    f"[bold red]✗ {len(failed)} of {len(jobs)} job(s) failed:"
                    f" {', '.join(failed)}[/bold red]"
                )
            else:
                console.print(
                    f"[bold green]✓ {len(jobs)} job(s) finished in {duration:.1f}s."
                    "[/bold green]"
                )
            return not failed
        finally:
            await manager.close()
            await api_client.close()

    if not asyncio.run(_sync_async()):
        raise typer.Exit(code=1)


@app.command()
def run(
    sync_on_start: bool = typer.Option(
        False,
        "--sync-on-start",
        help="Start a download job for every playlist once its first refresh is done.",
    ),
):
    """Keep every configured playlist mirrored until interrupted."""

    async def _run_async():
        config = _load_config()
        api_client = SpotifyAPIClient(
            config.spotify_client_id, config.spotify_client_secret
        )
        manager = BackupManager(config, api_client)
        try:
            await manager.start()
            console.print(
                f"[bold cyan]Watching {len(manager.registry)} playlist(s) in "
                f"'{config.download_root}'. Press Ctrl+C to stop.[/bold cyan]"
            )
            if sync_on_start:
                await manager.metadata_sync.wait_idle()
                for playlist in manager.registry:
                    try:
                        manager.start_job(playlist.id)
                    except AlreadyInProgressError as e:
                        log.warning(f"[yellow]{e}[/yellow]")
            await asyncio.Event().wait()
        finally:
            await manager.close()
            await api_client.close()

    try:
        asyncio.run(_run_async())
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped watching playlists.[/yellow]")
