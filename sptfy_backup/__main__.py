"""
Main entry point for sptfy-backup.
Sets up the console, runs the Typer app and turns application errors into a
readable panel with a nonzero exit status.
"""

import logging
import os
import sys

import typer
from rich.console import Console

from sptfy_backup.cli.app import app
from sptfy_backup.cli.formatters import format_error_with_suggestions
from sptfy_backup.exceptions import SptfyBackupError

log = logging.getLogger("sptfy_backup")


def main() -> None:
    """Main entry point function."""
    if os.name == "nt":
        try:
            sys.stdout.reconfigure(encoding="utf-8")
            sys.stderr.reconfigure(encoding="utf-8")
        except (TypeError, AttributeError):
            pass

    console = Console(stderr=True)
    command = sys.argv[1] if len(sys.argv) > 1 else None

    try:
        app()
    except (typer.Exit, typer.Abort):
        pass
    except KeyboardInterrupt:
        console.print("\n[yellow]⚠️  Stopped by user.[/yellow]")
        sys.exit(130)
    except SptfyBackupError as e:
        context = {"command": command} if command else None
        console.print(format_error_with_suggestions(e, context))
        sys.exit(1)
    except Exception as e:
        console.print(format_error_with_suggestions(e, {"type": "Unexpected"}))
        log.debug("Full traceback:", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
