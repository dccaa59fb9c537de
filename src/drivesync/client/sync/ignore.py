"""Ignore set for local traversal.

This module provides:
- IgnoreSet: Basenames that are never uploaded
- DEFAULT_IGNORED_NAMES: Metadata files, VCS/editor directories and locks
- MARK_PREFIX: Prefix shared by all sync mark files
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

MARK_NAME = ".sync_finished"
MARK_PREFIX = MARK_NAME

DEFAULT_IGNORED_NAMES = frozenset({
    ".DS_Store",
    ".localized",
    ".idea",
    ".git",
    ".drivesync-lock",
})


def is_mark_name(name: str) -> bool:
    """Check if a basename is a sync mark (directory or file mark)."""
    return name.startswith(MARK_PREFIX)


class IgnoreSet:
    """Fixed set of basenames excluded from traversal.

    Matching is by exact basename; sync marks are always ignored.
    """

    def __init__(self, names: Iterable[str] | None = None) -> None:
        """Initialize with extra names.

        Args:
            names: Basenames ignored in addition to the defaults.
        """
        self._names = set(DEFAULT_IGNORED_NAMES)
        if names:
            self._names.update(names)

    @property
    def names(self) -> frozenset[str]:
        """Get the ignored basenames (marks excluded)."""
        return frozenset(self._names)

    def add(self, name: str) -> None:
        """Ignore an additional basename."""
        self._names.add(name)

    def should_ignore(self, path: Path | str) -> bool:
        """Check if a path should be skipped.

        Args:
            path: Path (or bare basename) to check.

        Returns:
            True if the basename is ignored or is a sync mark.
        """
        name = Path(path).name
        return name in self._names or is_mark_name(name)
