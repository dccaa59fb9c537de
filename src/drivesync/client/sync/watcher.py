"""Live path source backed by a file system watcher.

This module provides:
- CreatedPathWatcher: Queues paths created directly under a watched directory
- watch: Syncs a directory's existing entries, then every newly created one
"""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import TYPE_CHECKING

from watchdog.events import DirCreatedEvent, FileCreatedEvent, FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from drivesync.client.sync.guess import Guesser
from drivesync.client.sync.ignore import IgnoreSet
from drivesync.client.sync.types import SyncError
from drivesync.core.types import SyncOutcome

if TYPE_CHECKING:
    from watchdog.observers.api import BaseObserver

    from drivesync.client.sync.engine import SyncOrchestrator
    from drivesync.client.sync.types import SyncResult

logger = logging.getLogger(__name__)


def is_hidden(path: Path) -> bool:
    """Check if a path is a dot file or dot directory."""
    return path.name.startswith(".")


class CreatedEventHandler(FileSystemEventHandler):
    """Queues files and directories created directly under the base path.

    Deeper events are dropped: a new entry's contents are synced with it.
    Hidden entries are dropped too.
    """

    def __init__(self, base_path: Path, paths: queue.Queue[Path], ignore: IgnoreSet) -> None:
        super().__init__()
        self._base_path = base_path
        self._paths = paths
        self._ignore = ignore

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle created event."""
        if not isinstance(event, FileCreatedEvent | DirCreatedEvent):
            return
        src_path = event.src_path
        if isinstance(src_path, bytes):
            src_path = src_path.decode("utf-8", errors="replace")
        path = Path(src_path)

        if path.parent != self._base_path or is_hidden(path) or self._ignore.should_ignore(path):
            return
        logger.debug(f"Watcher saw new entry {path}")
        self._paths.put(path)


class CreatedPathWatcher:
    """Watches a directory for new top-level entries.

    Usage:
        with CreatedPathWatcher(target) as watcher:
            for path in watcher.paths(stop_event):
                orchestrator.sync(path, category)
    """

    def __init__(
        self,
        watch_path: Path,
        ignore: IgnoreSet | None = None,
        poll_interval: float = 0.5,
    ) -> None:
        """Initialize the watcher.

        Args:
            watch_path: Directory to watch.
            ignore: Basenames whose creation is not reported.
            poll_interval: How often paths() checks its stop event, in seconds.
        """
        self._watch_path = Path(watch_path).resolve()
        if not self._watch_path.is_dir():
            raise ValueError(f"Watch path must be a directory: {watch_path}")
        self._poll_interval = poll_interval
        self._queue: queue.Queue[Path] = queue.Queue()
        self._handler = CreatedEventHandler(self._watch_path, self._queue, ignore or IgnoreSet())
        self._observer: BaseObserver = Observer()
        self._running = False

    @property
    def watch_path(self) -> Path:
        """Get the watched directory path."""
        return self._watch_path

    @property
    def is_running(self) -> bool:
        """Check if the watcher is running."""
        return self._running

    def start(self) -> None:
        """Start watching for new entries."""
        if self._running:
            return
        self._observer.schedule(self._handler, str(self._watch_path), recursive=False)
        self._observer.start()
        self._running = True

    def stop(self) -> None:
        """Stop watching."""
        if not self._running:
            return
        self._observer.stop()
        self._observer.join(timeout=5.0)
        self._running = False

    def paths(self, stop_event: threading.Event) -> Iterator[Path]:
        """Yield newly created paths until stop_event is set."""
        while not stop_event.is_set():
            try:
                yield self._queue.get(timeout=self._poll_interval)
            except queue.Empty:
                continue

    def __enter__(self) -> CreatedPathWatcher:
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.stop()


def sync_and_report(
    orchestrator: SyncOrchestrator,
    path: Path,
    category_for: Callable[[Path], str],
) -> SyncResult | None:
    """Sync one path from a live source, logging instead of raising.

    Returns:
        The result, or None if the sync failed.
    """
    try:
        result = orchestrator.sync(path, category_for(path))
    except SyncError as e:
        logger.warning(f"Failed to sync '{path}': {e}")
        return None

    if result.outcome is SyncOutcome.ALREADY_SYNCED:
        logger.info(f"Already synced: '{path}'")
    elif result.outcome is SyncOutcome.MARK_FAILED:
        logger.warning(f"Synced '{path}', yet failed to set sync mark: {result.warning}")
    elif result.outcome is SyncOutcome.SUCCESS:
        logger.info(f"Synced '{path}' into category {result.category}")
    return result


def watch(
    orchestrator: SyncOrchestrator,
    target: Path,
    guesser: Guesser,
    stop_event: threading.Event,
    on_result: Callable[[Path, SyncResult | None], None] | None = None,
    watcher: CreatedPathWatcher | None = None,
) -> None:
    """Sync everything under target, then keep syncing new entries.

    Each entry directly under target is one sync unit; hidden entries are
    skipped. Failures are logged and the loop moves on; it ends when
    stop_event is set.

    Args:
        orchestrator: Engine performing the syncs.
        target: Directory to watch.
        guesser: Picks the category of each entry from its name.
        stop_event: Ends the loop when set.
        on_result: Called after each entry is processed.
        watcher: Watcher to use (defaults to a CreatedPathWatcher on target).

    Raises:
        ValueError: If target is not a directory.
    """
    target = Path(target).resolve()
    if not target.is_dir():
        raise ValueError(f"Target {target} is not a directory")

    def category_for(path: Path) -> str:
        return guesser.guess(path.name)

    def handle(path: Path) -> None:
        result = sync_and_report(orchestrator, path, category_for)
        if on_result:
            on_result(path, result)

    watcher = watcher or CreatedPathWatcher(target, orchestrator.ignore)
    # Start before the initial pass so entries created meanwhile are not missed
    with watcher:
        logger.info("Syncing files/folders...")
        for child in sorted(target.iterdir()):
            if stop_event.is_set():
                return
            if is_hidden(child) or orchestrator.ignore.should_ignore(child):
                continue
            handle(child)
        logger.info("Initial sync completed.")

        logger.info(f"Starting watch of target '{target}'...")
        for path in watcher.paths(stop_event):
            handle(path)
