"""Configuration for drivesync.

This module provides:
- SyncConfig: Settings shared by the sync engine, the watcher and the CLI
- Config file discovery, loading and saving (JSON, kebab-case keys)
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

CONFIG_SUFFIX = Path("drivesync") / "config.json"
SYSTEM_CONFIG_ROOT = Path("/etc")

DEFAULT_ARCHIVE_ROOT = "archive"
DEFAULT_CATEGORY = "Uncategorized"
DEFAULT_RETRY_STARTING_RATE = 1.0  # seconds
DEFAULT_RETRY_RATIO = 2.0
DEFAULT_MAX_WORKERS = 16


class ConfigError(Exception):
    """Invalid or unreadable configuration."""


@dataclass
class SyncConfig:
    """Runtime configuration.

    Attributes:
        archive_root: Name of the archive root folder under the Drive root.
        default_category: Category used when none is given or guessed.
        force_recheck: Verify the MD5 checksum of every uploaded file.
        create_missing: Create a missing archive root or category without asking.
        interactive: Ask the operator before creating missing folders.
        verbose: Log progress at INFO level.
        retry_starting_rate: First backoff delay in seconds.
        retry_ratio: Multiplier applied to the delay after each retry.
        retry_max_attempts: Cap on attempts per operation (None retries forever).
        max_workers: Concurrent file uploads per directory sync.
        target: Directory watched by the ``watch`` command.
        client_secret_path: OAuth client secret JSON used for token refresh.
        token_path: Cached OAuth token JSON.
        log_file: Optional log file in addition to stdout.
        guess_extensions: File extension -> category map used when guessing.
    """

    archive_root: str = DEFAULT_ARCHIVE_ROOT
    default_category: str = DEFAULT_CATEGORY
    force_recheck: bool = True
    create_missing: bool = False
    interactive: bool = False
    verbose: bool = False
    retry_starting_rate: float = DEFAULT_RETRY_STARTING_RATE
    retry_ratio: float = DEFAULT_RETRY_RATIO
    retry_max_attempts: int | None = None
    max_workers: int = DEFAULT_MAX_WORKERS
    target: Path | None = None
    client_secret_path: Path | None = None
    token_path: Path | None = None
    log_file: Path | None = None
    guess_extensions: dict[str, str] = field(default_factory=dict)
    # Keys of the JSON file that were present but unknown (kept for round-trips)
    extra: dict[str, Any] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        """Normalize paths and validate values."""
        for name in ("target", "client_secret_path", "token_path", "log_file"):
            value = getattr(self, name)
            if value is not None and value != "":
                setattr(self, name, Path(value).expanduser().resolve())
            else:
                setattr(self, name, None)
        self.validate()

    def validate(self) -> None:
        """Check value ranges.

        Raises:
            ConfigError: If a value is out of range.
        """
        if not self.archive_root:
            raise ConfigError("archive-root must not be empty")
        if not self.default_category:
            raise ConfigError("default-category must not be empty")
        if self.retry_starting_rate <= 0:
            raise ConfigError("retry-starting-rate must be positive")
        if self.retry_ratio < 1:
            raise ConfigError("retry-ratio must be at least 1")
        if self.retry_max_attempts is not None and self.retry_max_attempts < 1:
            raise ConfigError("retry-max-attempts must be at least 1")
        if self.max_workers < 1:
            raise ConfigError("max-workers must be at least 1")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncConfig:
        """Create from a config file dictionary (kebab-case keys)."""
        kwargs: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        known = {f.name: f for f in fields(cls) if f.name != "extra"}
        for key, value in data.items():
            name = key.replace("-", "_")
            if name not in known:
                extra[key] = value
                continue
            kwargs[name] = _check_type(key, name, value)
        return cls(**kwargs, extra=extra)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a config file dictionary (kebab-case keys)."""
        data: dict[str, Any] = {}
        for f in fields(self):
            if f.name == "extra":
                continue
            value = getattr(self, f.name)
            if isinstance(value, Path):
                value = str(value)
            data[f.name.replace("_", "-")] = value
        data.update(self.extra)
        return data


_BOOL_FIELDS = {"force_recheck", "create_missing", "interactive", "verbose"}
_NUMBER_FIELDS = {"retry_starting_rate", "retry_ratio"}
_INT_FIELDS = {"retry_max_attempts", "max_workers"}


def _check_type(key: str, name: str, value: Any) -> Any:
    """Check the JSON type of a config value."""
    if name in _BOOL_FIELDS:
        if not isinstance(value, bool):
            raise ConfigError(f"{key} must be true or false, got {value!r}")
    elif name in _NUMBER_FIELDS:
        if isinstance(value, bool) or not isinstance(value, int | float):
            raise ConfigError(f"{key} must be a number, got {value!r}")
        value = float(value)
    elif name == "guess_extensions":
        if not isinstance(value, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in value.items()
        ):
            raise ConfigError(f"{key} must map extensions to category names, got {value!r}")
    elif name in _INT_FIELDS:
        if value is None and name == "retry_max_attempts":
            return None
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"{key} must be an integer, got {value!r}")
    elif value is not None and not isinstance(value, str):
        raise ConfigError(f"{key} must be a string, got {value!r}")
    return value


def get_user_config_dir() -> Path:
    """Get the per-user configuration directory.

    Returns:
        $XDG_CONFIG_HOME/drivesync, or ~/.config/drivesync.
    """
    xdg = os.environ.get("XDG_CONFIG_HOME")
    root = Path(xdg) if xdg else Path.home() / ".config"
    return root / CONFIG_SUFFIX.parent


def get_config_file() -> Path:
    """Find the config file to use.

    The user location wins over the system one. When neither exists, the
    location a default file would be created at is returned: the system
    location for root, the user location otherwise.
    """
    user_file = get_user_config_dir() / CONFIG_SUFFIX.name
    system_file = SYSTEM_CONFIG_ROOT / CONFIG_SUFFIX
    for candidate in (user_file, system_file):
        if candidate.is_file():
            return candidate
    if hasattr(os, "geteuid") and os.geteuid() == 0:
        return system_file
    return user_file


def load_config(path: Path | None = None, create: bool = False) -> SyncConfig:
    """Load configuration from a JSON file.

    Args:
        path: Explicit config file; discovered with get_config_file() if None.
        create: Write a default config file when none exists.

    Returns:
        The loaded configuration (defaults if the file does not exist).

    Raises:
        ConfigError: If the file cannot be parsed or holds invalid values.
    """
    config_file = path or get_config_file()
    if not config_file.exists():
        config = SyncConfig()
        if create:
            save_config(config, config_file)
            logger.warning(f"Config file doesn't exist, created a default one at {config_file}")
        return config

    try:
        data = json.loads(config_file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Failed to read config file {config_file}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_file} must hold a JSON object")
    return SyncConfig.from_dict(data)


def save_config(config: SyncConfig, path: Path | None = None) -> Path:
    """Save configuration to a JSON file.

    Returns:
        The path written to.
    """
    config_file = path or get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config.to_dict(), indent=2), encoding="utf-8")
    return config_file
