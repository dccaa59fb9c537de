"""Core module - Shared configuration and types."""

from drivesync.core.config import (
    DEFAULT_ARCHIVE_ROOT,
    DEFAULT_CATEGORY,
    ConfigError,
    SyncConfig,
    get_config_file,
    load_config,
    save_config,
)
from drivesync.core.types import SyncOutcome

__all__ = [
    # Config
    "DEFAULT_ARCHIVE_ROOT",
    "DEFAULT_CATEGORY",
    "ConfigError",
    "SyncConfig",
    "get_config_file",
    "load_config",
    "save_config",
    # Types
    "SyncOutcome",
]
