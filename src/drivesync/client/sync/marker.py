"""Idempotency marks co-located with synced content.

A synced directory holds a ``.sync_finished`` file; a synced file gets a
``.sync_finished-<basename>`` sibling. Marks are only ever created here;
removing one (to force a re-sync) is up to the operator.
"""

from __future__ import annotations

import logging
from pathlib import Path

from drivesync.client.sync.ignore import MARK_NAME
from drivesync.client.sync.types import AlreadySyncedError, SetMarkFailedError, SyncError

logger = logging.getLogger(__name__)


class IdempotencyMarker:
    """Reads and writes sync marks."""

    def mark_path(self, path: Path) -> Path:
        """Get the mark location for a directory or a file."""
        path = Path(path)
        if path.is_dir():
            return path / MARK_NAME
        return path.parent / f"{MARK_NAME}-{path.name}"

    def is_marked(self, path: Path) -> bool:
        """Check if a unit has already been synced.

        Raises:
            SyncError: If the mark cannot be checked (e.g. permission denied).
        """
        mark = self.mark_path(path)
        try:
            mark.stat()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise SyncError(f"failed to check sync mark {mark}: {e}") from e
        return True

    def ensure_unmarked(self, path: Path) -> None:
        """Raise AlreadySyncedError if the unit carries a mark."""
        if self.is_marked(path):
            raise AlreadySyncedError(Path(path))

    def mark(self, path: Path) -> Path:
        """Record that a unit is fully synced.

        Must only be called once every upload of the unit succeeded.

        Returns:
            The mark path.

        Raises:
            SetMarkFailedError: If the mark file cannot be created.
        """
        mark = self.mark_path(path)
        try:
            mark.touch()
        except OSError as e:
            raise SetMarkFailedError(mark, e) from e
        logger.debug(f"Wrote sync mark {mark}")
        return mark
