"""Configuration and logging utilities for the drivesync CLI.

This module provides shared functions used across CLI commands, and the
``config`` command itself.

Commands:
- config: Create (if needed) and print the config file
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click

from drivesync.core.config import ConfigError, SyncConfig, get_config_file, load_config

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(verbose: bool, log_file: Path | None = None) -> None:
    """Configure the drivesync logger.

    Logs go to stdout and, when given, to a file. Calling it again
    replaces the handlers of the previous call.

    Args:
        verbose: Log at INFO level instead of WARNING.
        log_file: Optional file to append logs to.
    """
    formatter = logging.Formatter(LOG_FORMAT)

    root_logger = logging.getLogger("drivesync")
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()
    root_logger.setLevel(logging.INFO if verbose else logging.WARNING)
    root_logger.propagate = False

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def get_cli_config_file(ctx: click.Context) -> Path:
    """Get the config file chosen with --config, or the discovered one."""
    config_path: Path | None = ctx.obj.get("config_path") if ctx.obj else None
    return config_path or get_config_file()


def load_cli_config(ctx: click.Context) -> SyncConfig:
    """Load the configuration for a command and set up logging.

    A default config file is created when none exists. Exits with status 1
    if the file is invalid.
    """
    config_file = get_cli_config_file(ctx)
    try:
        config = load_config(config_file, create=True)
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if ctx.obj and ctx.obj.get("verbose"):
        config.verbose = True
    setup_logging(config.verbose, config.log_file)
    return config


@click.command("config")
@click.pass_context
def config_command(ctx: click.Context) -> None:
    """Show the config file location and contents.

    A default config file is written first if none exists.
    """
    config = load_cli_config(ctx)
    click.echo(f"Config file: {get_cli_config_file(ctx)}")
    click.echo(json.dumps(config.to_dict(), indent=2))
