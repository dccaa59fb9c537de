"""Sync command for the drivesync CLI.

Commands:
- sync: Upload one file or directory tree into a category folder
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from drivesync.client.api import DriveClient
from drivesync.client.auth import AuthError, TokenAuth
from drivesync.client.cli.config import load_cli_config
from drivesync.client.sync import (
    SyncError,
    SyncOrchestrator,
    make_confirm,
    make_guesser,
)
from drivesync.core.types import SyncOutcome


@click.command("sync")
@click.argument("target", required=False, type=click.Path(exists=True, path_type=Path))
@click.option("--category", "-c", default=None, help="Category folder to upload into.")
@click.option("--root", default=None, help="Archive root folder name (default: from config).")
@click.option(
    "--recheck/--no-recheck",
    default=None,
    help="Verify the MD5 checksum of uploaded files (default: from config).",
)
@click.option("--create-missing", is_flag=True, help="Create a missing archive root or category.")
@click.option("--interactive", "-i", is_flag=True, help="Prompt for missing values and confirmations.")
@click.option("--guess", is_flag=True, help="Guess the category from the target's name.")
@click.pass_context
def sync_command(
    ctx: click.Context,
    target: Path | None,
    category: str | None,
    root: str | None,
    recheck: bool | None,
    create_missing: bool,
    interactive: bool,
    guess: bool,
) -> None:
    """Upload TARGET into a category folder of the archive, at most once.

    TARGET may be a file or a directory. A directory is uploaded as a
    folder of the same name, with its whole tree. Paths already synced
    are skipped.
    """
    config = load_cli_config(ctx)

    # Flags win over the config file
    if root:
        config.archive_root = root
    if recheck is not None:
        config.force_recheck = recheck
    if create_missing:
        config.create_missing = True
    if interactive:
        config.interactive = True

    if target is None:
        if not config.interactive:
            click.echo("Error: Missing argument 'TARGET'.", err=True)
            sys.exit(2)
        target = click.prompt("Target to sync", type=click.Path(exists=True, path_type=Path))

    if category is None and not guess:
        if config.interactive:
            category = click.prompt("Category", default=config.default_category)
        else:
            category = config.default_category

    auth = TokenAuth(config)
    try:
        auth.access_token()
    except AuthError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    with DriveClient(auth) as client:
        orchestrator = SyncOrchestrator.from_config(
            client, config, confirm=make_confirm(config.interactive)
        )
        try:
            if category is None:
                result = orchestrator.sync_with_guess(target, make_guesser(config))
            else:
                result = orchestrator.sync(target, category)
        except SyncError as e:
            click.echo(f"Failed to sync '{target}': {e}", err=True)
            sys.exit(1)

    if result.outcome is SyncOutcome.ALREADY_SYNCED:
        click.echo(f"Already synced: {result.path}")
    elif result.outcome is SyncOutcome.SKIPPED:
        click.echo(f"Ignored, not synced: {result.path}")
    elif result.outcome is SyncOutcome.MARK_FAILED:
        click.echo(
            click.style(
                f"Sync succeeded, yet failed to set sync mark: {result.warning}", fg="yellow"
            ),
            err=True,
        )
    else:
        click.echo("Sync succeeded.")
