"""Sync engine: uploads local trees into Drive category folders, at most once.

Architecture:
    SyncOrchestrator → TreeWalker → RemoteLocationResolver → ContentUploader

Components:
- **IdempotencyMarker**: ``.sync_finished`` marks next to synced content
- **RetryExecutor**: Exponential backoff for transient remote failures
- **RemoteLocationResolver**: Category name → folder id, cached, create-if-missing
- **ContentUploader**: File upload with MD5 verification, folder creation
- **TreeWalker**: Depth-first traversal, directories before their children
- **SyncOrchestrator**: Public entry points for files and directory trees
- **CreatedPathWatcher / watch**: Live path source for the watch command
"""

from drivesync.client.sync.engine import SyncOrchestrator, TreeWalker, WalkEntry
from drivesync.client.sync.guess import DefaultCategoryGuesser, ExtensionGuesser, Guesser, make_guesser
from drivesync.client.sync.ignore import DEFAULT_IGNORED_NAMES, MARK_NAME, IgnoreSet, is_mark_name
from drivesync.client.sync.joblog import JobLogger, new_job_id
from drivesync.client.sync.marker import IdempotencyMarker
from drivesync.client.sync.prompt import Confirm, ConsoleConfirm, make_confirm, never_confirm
from drivesync.client.sync.resolver import RemoteLocationResolver, ResolutionCache
from drivesync.client.sync.retry import (
    DEFAULT_BACKOFF_MULTIPLIER,
    DEFAULT_INITIAL_BACKOFF,
    NETWORK_EXCEPTIONS,
    RetryExecutor,
    is_rate_limited,
    retry_with_backoff,
    should_retry,
)
from drivesync.client.sync.types import (
    AlreadySyncedError,
    ChecksumMismatchError,
    MultipleResultsError,
    NotFoundError,
    ResolveError,
    RetryCancelledError,
    SetMarkFailedError,
    SyncError,
    SyncResult,
    UploadError,
)
from drivesync.client.sync.upload import ContentUploader, compute_md5
from drivesync.client.sync.watcher import CreatedPathWatcher, sync_and_report, watch

__all__ = [
    # Retry functions and constants
    "DEFAULT_BACKOFF_MULTIPLIER",
    "DEFAULT_INITIAL_BACKOFF",
    "NETWORK_EXCEPTIONS",
    "RetryExecutor",
    "is_rate_limited",
    "retry_with_backoff",
    "should_retry",
    # Errors and results
    "AlreadySyncedError",
    "ChecksumMismatchError",
    "MultipleResultsError",
    "NotFoundError",
    "ResolveError",
    "RetryCancelledError",
    "SetMarkFailedError",
    "SyncError",
    "SyncResult",
    "UploadError",
    # Marks and ignore set
    "DEFAULT_IGNORED_NAMES",
    "MARK_NAME",
    "IdempotencyMarker",
    "IgnoreSet",
    "is_mark_name",
    # Resolution
    "Confirm",
    "ConsoleConfirm",
    "RemoteLocationResolver",
    "ResolutionCache",
    "make_confirm",
    "never_confirm",
    # Upload and orchestration
    "ContentUploader",
    "SyncOrchestrator",
    "TreeWalker",
    "WalkEntry",
    "compute_md5",
    # Guessing
    "DefaultCategoryGuesser",
    "ExtensionGuesser",
    "Guesser",
    "make_guesser",
    # Logging
    "JobLogger",
    "new_job_id",
    # Watcher
    "CreatedPathWatcher",
    "sync_and_report",
    "watch",
]
