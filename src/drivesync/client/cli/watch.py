"""Watch command for the drivesync CLI.

Commands:
- watch: Sync every entry of a directory, then each new one, until Ctrl+C
"""

from __future__ import annotations

import sys
import threading
from pathlib import Path

import click

from drivesync.client.api import DriveClient
from drivesync.client.auth import AuthError, TokenAuth
from drivesync.client.cli.config import load_cli_config
from drivesync.client.sync import SyncOrchestrator, make_guesser, never_confirm
from drivesync.client.sync.watcher import watch as run_watch


@click.command("watch")
@click.argument(
    "target",
    required=False,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
@click.pass_context
def watch_command(ctx: click.Context, target: Path | None) -> None:
    """Keep TARGET synced: each entry directly under it is one sync unit.

    TARGET defaults to the "target" of the config file. Missing folders
    are created only if create-missing is set; nothing is prompted.
    Failures are logged and watching continues.
    """
    config = load_cli_config(ctx)
    target = target or config.target
    if target is None:
        click.echo("Error: No target given and none configured.", err=True)
        sys.exit(2)
    if not target.is_dir():
        click.echo(f"Error: Target {target} is not a directory.", err=True)
        sys.exit(1)

    auth = TokenAuth(config)
    try:
        auth.access_token()
    except AuthError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    stop_event = threading.Event()
    with DriveClient(auth) as client:
        # Non-interactive: prompts would block the loop
        orchestrator = SyncOrchestrator.from_config(
            client, config, confirm=never_confirm, cancel_event=stop_event
        )
        click.echo(f"Watching {target}... (Ctrl+C to stop)")
        try:
            run_watch(orchestrator, target, make_guesser(config), stop_event)
        except KeyboardInterrupt:
            click.echo("\nStopping...")
        finally:
            stop_event.set()
