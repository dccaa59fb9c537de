"""Category guessing from a unit's basename."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import PurePath
from typing import Protocol

from drivesync.core.config import SyncConfig


class Guesser(Protocol):
    """Picks the most suitable category for a basename."""

    def guess(self, basename: str) -> str:
        """Return a category name."""
        ...


class DefaultCategoryGuesser:
    """Performs no guessing, always returning the default category."""

    def __init__(self, default: str) -> None:
        self.default = default

    def guess(self, basename: str) -> str:
        return self.default


class ExtensionGuesser:
    """Guesses the category from a file extension.

    Usage:
        guesser = ExtensionGuesser({".pdf": "Documents", ".jpg": "Photos"}, "Uncategorized")
        guesser.guess("scan.PDF")  # "Documents"
    """

    def __init__(self, mapping: Mapping[str, str], default: str) -> None:
        """Initialize with an extension map.

        Args:
            mapping: Extension (with or without the leading dot) -> category.
            default: Category for unknown extensions and directories.
        """
        self._mapping = {
            (ext if ext.startswith(".") else f".{ext}").lower(): category
            for ext, category in mapping.items()
        }
        self.default = default

    def guess(self, basename: str) -> str:
        suffix = PurePath(basename).suffix.lower()
        return self._mapping.get(suffix, self.default)


def make_guesser(config: SyncConfig) -> Guesser:
    """Build the guesser configured by guess-extensions."""
    if config.guess_extensions:
        return ExtensionGuesser(config.guess_extensions, config.default_category)
    return DefaultCategoryGuesser(config.default_category)
