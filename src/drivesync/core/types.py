"""Shared types for drivesync.

This module defines types and enums used by both the sync engine and the CLI.
"""

from __future__ import annotations

from enum import Enum


class SyncOutcome(str, Enum):
    """Outcome of syncing one unit (a file or a directory tree).

    Fatal failures are raised as exceptions rather than reported here.
    """

    SUCCESS = "success"
    ALREADY_SYNCED = "already_synced"
    MARK_FAILED = "mark_failed"
    SKIPPED = "skipped"
