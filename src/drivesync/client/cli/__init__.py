"""Command-line interface for drivesync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- sync: Upload a file or directory tree into the archive, at most once
- watch: Keep a directory synced, entry by entry
- config: Show the config file location and contents
"""

from __future__ import annotations

from pathlib import Path

import click

from drivesync.client.cli.config import (
    config_command,
    get_cli_config_file,
    load_cli_config,
    setup_logging,
)
from drivesync.client.cli.sync import sync_command
from drivesync.client.cli.watch import watch_command


@click.group()
@click.version_option(package_name="drivesync", prog_name="drivesync")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: ~/.config/drivesync/config.json).",
)
@click.option("--verbose", "-v", is_flag=True, help="Log progress.")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, verbose: bool) -> None:
    """drivesync - Archive local files into Google Drive, exactly once."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


cli.add_command(sync_command)
cli.add_command(watch_command)
cli.add_command(config_command)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    # Main entry points
    "cli",
    "main",
    # Config utilities
    "get_cli_config_file",
    "load_cli_config",
    "setup_logging",
]
