"""Sync engine: tree walking and orchestration.

This module provides:
- TreeWalker: Depth-first traversal yielding each directory before its children
- SyncOrchestrator: Public entry points (sync, sync_file, sync_directory, sync_with_guess)

Flow for a directory::

    walk ─┬─ directory ─> create folder (sequential, recorded before descending)
          └─ file ──────> upload on a worker thread (joined before marking)

The sync mark is written only after every upload of the unit succeeded.
"""

from __future__ import annotations

import logging
import os
import stat
import threading
from collections.abc import Iterator
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from pathlib import Path

from drivesync.client.api import RemoteStore
from drivesync.client.sync.guess import Guesser
from drivesync.client.sync.ignore import IgnoreSet
from drivesync.client.sync.joblog import JobLogger, new_job_id
from drivesync.client.sync.marker import IdempotencyMarker
from drivesync.client.sync.prompt import Confirm, never_confirm
from drivesync.client.sync.resolver import RemoteLocationResolver, ResolutionCache
from drivesync.client.sync.retry import RetryExecutor
from drivesync.client.sync.types import (
    AlreadySyncedError,
    SetMarkFailedError,
    SyncError,
    SyncResult,
    UploadError,
)
from drivesync.client.sync.upload import ContentUploader
from drivesync.core.config import DEFAULT_MAX_WORKERS, SyncConfig
from drivesync.core.types import SyncOutcome

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WalkEntry:
    """A visited local path."""

    path: Path
    is_dir: bool


class TreeWalker:
    """Depth-first, pre-order traversal of a local directory.

    The root is yielded first. A directory's children are listed only when
    the walk resumes after yielding it, so the consumer can act on a
    directory (e.g. create its remote folder) before any child is visited.
    Ignored entries are pruned; symlinks are skipped.
    """

    def __init__(self, ignore: IgnoreSet | None = None) -> None:
        self._ignore = ignore or IgnoreSet()

    def walk(self, root: Path) -> Iterator[WalkEntry]:
        """Walk a directory tree.

        Raises:
            OSError: If a directory cannot be listed.
        """
        root = Path(root)
        if self._ignore.should_ignore(root):
            return
        yield WalkEntry(root, True)

        stack = [iter(self._children(root))]
        while stack:
            entry = next(stack[-1], None)
            if entry is None:
                stack.pop()
                continue
            yield entry
            if entry.is_dir:
                stack.append(iter(self._children(entry.path)))

    def _children(self, directory: Path) -> list[WalkEntry]:
        """List the non-ignored entries of a directory, sorted by name."""
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)

        children = []
        for entry in entries:
            if self._ignore.should_ignore(entry.name):
                continue
            if entry.is_symlink():
                logger.warning(f"Skipping symlink {directory / entry.name}")
                continue
            children.append(WalkEntry(directory / entry.name, entry.is_dir(follow_symlinks=False)))
        return children


class SyncOrchestrator:
    """Uploads files and directory trees into category folders, at most once.

    Usage:
        orchestrator = SyncOrchestrator.from_config(client, config)
        result = orchestrator.sync(Path("~/scans/2019").expanduser(), "Documents")
        if result.outcome is SyncOutcome.ALREADY_SYNCED:
            ...
    """

    def __init__(
        self,
        store: RemoteStore,
        resolver: RemoteLocationResolver,
        retry: RetryExecutor,
        verify_checksum: bool = True,
        max_workers: int = DEFAULT_MAX_WORKERS,
        marker: IdempotencyMarker | None = None,
        ignore: IgnoreSet | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            store: Remote store receiving the content.
            resolver: Category resolver (its cache is shared by all syncs).
            retry: Executor wrapping every remote call.
            verify_checksum: Verify the MD5 of each uploaded file.
            max_workers: Concurrent file uploads per directory sync.
            marker: Sync mark reader/writer.
            ignore: Basenames never uploaded.
        """
        self._resolver = resolver
        self._retry = retry
        self._uploader = ContentUploader(store, verify_checksum=verify_checksum)
        self._max_workers = max_workers
        self._marker = marker or IdempotencyMarker()
        self._ignore = ignore or IgnoreSet()
        self._walker = TreeWalker(self._ignore)

    @classmethod
    def from_config(
        cls,
        store: RemoteStore,
        config: SyncConfig,
        confirm: Confirm = never_confirm,
        cancel_event: threading.Event | None = None,
        cache: ResolutionCache | None = None,
    ) -> SyncOrchestrator:
        """Build an orchestrator and its collaborators from configuration."""
        retry = RetryExecutor(
            initial_backoff=config.retry_starting_rate,
            backoff_multiplier=config.retry_ratio,
            max_attempts=config.retry_max_attempts,
            cancel_event=cancel_event,
        )
        resolver = RemoteLocationResolver(
            store,
            archive_root=config.archive_root,
            retry=retry,
            create_missing=config.create_missing,
            confirm=confirm,
            cache=cache,
        )
        return cls(
            store,
            resolver,
            retry,
            verify_checksum=config.force_recheck,
            max_workers=config.max_workers,
        )

    @property
    def resolver(self) -> RemoteLocationResolver:
        """Get the category resolver."""
        return self._resolver

    @property
    def ignore(self) -> IgnoreSet:
        """Get the ignore set."""
        return self._ignore

    def sync(self, path: Path, category: str) -> SyncResult:
        """Sync a file or a directory tree into a category.

        Returns:
            SUCCESS, ALREADY_SYNCED, MARK_FAILED or SKIPPED (ignored path).

        Raises:
            SyncError: If the path cannot be read or the sync fails.
        """
        path = Path(os.path.abspath(path))
        try:
            mode = path.stat().st_mode
        except OSError as e:
            raise SyncError(f"failed to stat path {path}: {e}") from e
        if stat.S_ISDIR(mode):
            return self.sync_directory(path, category)
        return self.sync_file(path, category)

    def sync_with_guess(self, path: Path, guesser: Guesser) -> SyncResult:
        """Sync a path into the category guessed from its basename."""
        return self.sync(path, guesser.guess(Path(path).name))

    def sync_file(self, path: Path, category: str) -> SyncResult:
        """Upload a single file directly into a category folder.

        Raises:
            ResolveError: If the category folder cannot be resolved.
            UploadError: If the upload fails fatally.
        """
        path = Path(os.path.abspath(path))
        if self._ignore.should_ignore(path):
            return SyncResult(SyncOutcome.SKIPPED, path, category)
        try:
            self._marker.ensure_unmarked(path)
        except AlreadySyncedError:
            return SyncResult(SyncOutcome.ALREADY_SYNCED, path, category)

        job = new_job_id()
        parent_id = self._resolver.resolve(category, job=job)
        self._upload(path, parent_id, job)

        result = SyncResult(SyncOutcome.SUCCESS, path, category, uploaded=[path])
        self._set_mark(result)
        logger.info(f"Sync completed for file '{path}' into category {category}.")
        return result

    def sync_directory(self, path: Path, category: str) -> SyncResult:
        """Upload a directory tree into a category folder.

        The directory becomes a folder of the same name inside the
        category; nested directories map to nested folders. Folders are
        created in walk order; files upload concurrently. Any fatal
        failure stops the walk, cancels queued uploads and fails the
        whole directory. A KeyboardInterrupt also cancels the executor's
        retries, so running uploads give up at their next backoff.

        Raises:
            ResolveError: If the category folder cannot be resolved.
            UploadError: If a folder creation or file upload fails fatally.
            SyncError: If the tree cannot be walked.
        """
        root = Path(os.path.abspath(path))
        if self._ignore.should_ignore(root):
            return SyncResult(SyncOutcome.SKIPPED, root, category)
        try:
            self._marker.ensure_unmarked(root)
        except AlreadySyncedError:
            return SyncResult(SyncOutcome.ALREADY_SYNCED, root, category)

        job = new_job_id()
        log = JobLogger(logger, job)
        # local directory -> id of its remote folder
        parent_ids: dict[Path, str] = {}
        futures: list[Future[Path]] = []
        failed = threading.Event()
        walk_error: Exception | None = None

        def on_done(future: Future[Path]) -> None:
            if not future.cancelled() and future.exception() is not None:
                failed.set()

        with ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="upload") as pool:
            try:
                try:
                    for entry in self._walker.walk(root):
                        if failed.is_set():
                            break
                        parent_id = parent_ids.get(entry.path.parent)
                        if parent_id is None:
                            parent_id = self._resolver.resolve(category, job=job)
                        if entry.is_dir:
                            parent_ids[entry.path] = self._create_folder(entry.path, parent_id, job)
                        else:
                            future = pool.submit(self._upload, entry.path, parent_id)
                            future.add_done_callback(on_done)
                            futures.append(future)
                except Exception as e:
                    walk_error = e

                if walk_error is not None or failed.is_set():
                    for future in futures:
                        future.cancel()
                wait(futures)
            except BaseException:
                # Interrupted (Ctrl+C): drop queued uploads, then stop the
                # running ones at their next retry boundary
                log.warning(f"Sync of directory '{root}' interrupted, cancelling uploads")
                pool.shutdown(wait=False, cancel_futures=True)
                self._retry.cancel()
                raise

        uploaded, upload_error = _collect(futures)
        if walk_error is not None:
            if isinstance(walk_error, SyncError):
                raise walk_error
            raise SyncError(f"failed to sync directory {root}: {walk_error}") from walk_error
        if upload_error is not None:
            raise upload_error

        result = SyncResult(
            SyncOutcome.SUCCESS,
            root,
            category,
            uploaded=uploaded,
            folders_created=len(parent_ids),
        )
        self._set_mark(result)
        log.info(f"Sync completed for directory '{root}' into category {category}.")
        return result

    def _create_folder(self, path: Path, parent_id: str, job: str) -> str:
        """Create the remote folder for a local directory."""
        try:
            folder_id = self._retry.run(
                lambda: self._uploader.create_folder(path.name, parent_id), job=job
            )
        except Exception as e:
            raise UploadError(path, f"failed to create directory: {e}") from e
        JobLogger(logger, job).info(f"Created directory '{path.name}' (from {path}) with ID {folder_id}")
        return folder_id

    def _upload(self, path: Path, parent_id: str, job: str | None = None) -> Path:
        """Upload one file with retry; runs on a worker thread for trees."""
        job = job or new_job_id()
        try:
            remote = self._retry.run(
                lambda: self._uploader.upload_file(path, parent_id), job=job
            )
        except Exception as e:
            raise UploadError(path, f"failed to upload file: {e}") from e
        JobLogger(logger, job).info(f"Uploaded file '{path.name}' (from {path}) with ID {remote.id}")
        return path

    def _set_mark(self, result: SyncResult) -> None:
        """Mark a fully uploaded unit, degrading the result if that fails."""
        try:
            self._marker.mark(result.path)
        except SetMarkFailedError as e:
            logger.warning(f"Sync succeeded, yet failed to set sync mark: {e}")
            result.outcome = SyncOutcome.MARK_FAILED
            result.warning = str(e)


def _collect(futures: list[Future[Path]]) -> tuple[list[Path], Exception | None]:
    """Gather finished uploads and the first failure, in submission order."""
    uploaded: list[Path] = []
    first_error: Exception | None = None
    for future in futures:
        try:
            uploaded.append(future.result())
        except CancelledError:
            continue
        except Exception as e:
            if first_error is None:
                first_error = e
    return uploaded, first_error
