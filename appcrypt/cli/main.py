"""
Main CLI entry point for appcrypt.

This module defines the root CLI group and initializes the application.

Usage:
    appcrypt --help
    appcrypt scan ./Payload/App.app --main App
    appcrypt apps inspect com.example.App
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler

from appcrypt import __version__
from appcrypt.config import Config, get_config
from appcrypt.cli.commands import apps, scan

logger = logging.getLogger(__name__)

# Rich console for pretty output
console = Console()


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["error"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def resolve_log_level(value: str) -> Optional[int]:
    """
    Convert a level name ("ERROR") or number ("10") to a logging level.

    Returns None for unknown names.
    """
    value = value.strip()
    if value.isdigit():
        return int(value)
    level = logging.getLevelName(value.upper())
    return level if isinstance(level, int) else None


def setup_logging(
    verbose: bool,
    debug: bool,
    log_json: bool = False,
    level: int = logging.WARNING,
) -> None:
    """
    Configure logging.

    --debug always selects DEBUG; --verbose lowers the configured level
    to INFO but never raises it.
    """
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = min(level, logging.INFO)

    if log_json:
        handler: logging.Handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(JSONFormatter())
        logging.basicConfig(level=level, handlers=[handler], force=True)
        return

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


@click.group()
@click.version_option(version=__version__, prog_name="appcrypt")
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Enable verbose output.",
)
@click.option(
    "--debug",
    is_flag=True,
    help="Enable debug output (more verbose than -v).",
)
@click.option(
    "--log-json",
    is_flag=True,
    help="Write log output as JSON lines.",
)
@click.option(
    "--config",
    type=click.Path(exists=False),
    help="Path to config file.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    debug: bool,
    log_json: bool,
    config: Optional[str],
) -> None:
    """
    appcrypt - Find the encrypted binaries of an iOS app.

    Pulls an app bundle from a jailbroken device and reports which
    executables and libraries are still FairPlay encrypted, grouped
    by main app and app extension.

    Examples:

        Scan a local bundle:
        $ appcrypt scan ./Payload/App.app --main App

        Inspect an installed app:
        $ appcrypt apps inspect com.example.App
    """
    ctx.ensure_object(dict)

    if config:
        loaded = Config.load(Path(config))
    else:
        loaded = get_config()

    level = resolve_log_level(loaded.log_level)
    setup_logging(
        verbose,
        debug,
        log_json or loaded.log_json,
        logging.WARNING if level is None else level,
    )
    if level is None:
        logger.warning(f"Unknown log level '{loaded.log_level}', using WARNING")

    ctx.obj["verbose"] = verbose
    ctx.obj["debug"] = debug
    ctx.obj["console"] = console
    ctx.obj["config"] = loaded


cli.add_command(scan.scan)
cli.add_command(apps.apps)


def main() -> None:
    """Main entry point."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        if "--debug" in sys.argv:
            raise
        sys.exit(1)


if __name__ == "__main__":
    main()
