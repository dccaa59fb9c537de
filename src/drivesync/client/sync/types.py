"""Shared types and dataclasses for sync operations.

This module provides:
- SyncError and subclasses: The sync error taxonomy
- SyncResult: Result of syncing one unit
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from drivesync.core.types import SyncOutcome


class SyncError(Exception):
    """Base exception for sync errors."""


class NotFoundError(SyncError):
    """A remote folder lookup returned no match."""

    def __init__(self, name: str, parent_id: str) -> None:
        self.name = name
        self.parent_id = parent_id
        super().__init__(f"no '{name}' in '{parent_id}'")


class MultipleResultsError(SyncError):
    """A remote folder lookup returned more than one match.

    Attributes:
        ids: All matching folder ids, so a caller can remove duplicates.
    """

    def __init__(self, name: str, parent_id: str, ids: list[str]) -> None:
        self.name = name
        self.parent_id = parent_id
        self.ids = list(ids)
        super().__init__(f"multiple '{name}' in '{parent_id}': {' '.join(self.ids)}")


class ChecksumMismatchError(SyncError):
    """The checksum reported by Drive differs from the local one."""

    def __init__(self, remote: str | None, local: str) -> None:
        self.remote = remote
        self.local = local
        super().__init__(f"md5Checksum mismatch: remote {remote}, local {local}")


class AlreadySyncedError(SyncError):
    """The unit carries a sync mark; nothing to do."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"already synced: {path}")


class SetMarkFailedError(SyncError):
    """Content was uploaded but the sync mark could not be written."""

    def __init__(self, mark_path: Path, cause: OSError) -> None:
        self.mark_path = mark_path
        super().__init__(f"failed to set sync mark {mark_path}: {cause}")


class ResolveError(SyncError):
    """Failed to resolve (or create) the archive root or a category."""


class UploadError(SyncError):
    """Failed to upload a file or create a folder."""

    def __init__(self, path: Path, message: str) -> None:
        self.path = path
        super().__init__(f"{path}: {message}")


class RetryCancelledError(SyncError):
    """A retry loop was cancelled while waiting to retry."""


@dataclass
class SyncResult:
    """Result of syncing one unit (a file or a directory tree).

    Attributes:
        outcome: What happened (fatal failures are raised instead).
        path: Local path of the unit.
        category: Category the unit was synced into.
        uploaded: Local paths of uploaded files.
        folders_created: Number of remote folders created for the tree.
        warning: Message accompanying a degraded outcome (MARK_FAILED).
    """

    outcome: SyncOutcome
    path: Path
    category: str
    uploaded: list[Path] = field(default_factory=list)
    folders_created: int = 0
    warning: str | None = None

    @property
    def succeeded(self) -> bool:
        """Check if content is (now or already) present remotely."""
        return self.outcome in (
            SyncOutcome.SUCCESS,
            SyncOutcome.ALREADY_SYNCED,
            SyncOutcome.MARK_FAILED,
        )
