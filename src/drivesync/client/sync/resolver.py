"""Resolution of category names to remote folder ids.

This module provides:
- ResolutionCache: Thread-safe category -> folder id map with per-name locks
- RemoteLocationResolver: Finds (or creates) the archive root and category folders

Layout on Drive::

    My Drive/<archive root>/<category>/<synced content>
"""

from __future__ import annotations

import logging
import threading

from drivesync.client.api import ROOT_ID, RemoteStore
from drivesync.client.sync.joblog import JobLogger
from drivesync.client.sync.prompt import Confirm, never_confirm
from drivesync.client.sync.retry import RetryExecutor
from drivesync.client.sync.types import MultipleResultsError, NotFoundError, ResolveError

logger = logging.getLogger(__name__)


class ResolutionCache:
    """Thread-safe category name -> folder id mapping.

    Entries are only ever added. Each name also has a lock that callers
    hold across "look up remotely, then create" so concurrent first uses of
    a name collapse into a single creation.
    """

    def __init__(self) -> None:
        self._ids: dict[str, str] = {}
        self._name_locks: dict[str, threading.Lock] = {}
        self._lock = threading.Lock()

    def get(self, name: str) -> str | None:
        """Get the cached id for a name."""
        with self._lock:
            return self._ids.get(name)

    def set(self, name: str, folder_id: str) -> None:
        """Cache the id for a name."""
        with self._lock:
            self._ids[name] = folder_id

    def lock_for(self, name: str) -> threading.Lock:
        """Get the creation lock for a name."""
        with self._lock:
            return self._name_locks.setdefault(name, threading.Lock())

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._ids

    def __len__(self) -> int:
        with self._lock:
            return len(self._ids)


class RemoteLocationResolver:
    """Maps a category name to the id of its folder under the archive root.

    Missing folders are created when create_missing is set, or when the
    confirmation gate agrees. Ambiguous lookups (several folders of the
    same name) are always fatal.
    """

    def __init__(
        self,
        store: RemoteStore,
        archive_root: str,
        retry: RetryExecutor,
        create_missing: bool = False,
        confirm: Confirm = never_confirm,
        cache: ResolutionCache | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            store: Remote store to query and create folders in.
            archive_root: Name of the archive root under the Drive root.
            retry: Executor wrapping every remote call.
            create_missing: Create missing folders without asking.
            confirm: Asked before creating a missing folder otherwise.
            cache: Category cache, shared by everything using this resolver.
        """
        self._store = store
        self._archive_root = archive_root
        self._retry = retry
        self._create_missing = create_missing
        self._confirm = confirm
        self._cache = cache if cache is not None else ResolutionCache()
        self._root_id: str | None = None
        self._root_lock = threading.Lock()

    @property
    def cache(self) -> ResolutionCache:
        """Get the category cache."""
        return self._cache

    @property
    def archive_root_id(self) -> str | None:
        """Get the archive root id, if resolved yet."""
        return self._root_id

    def resolve(self, category: str, job: str | None = None) -> str:
        """Get the folder id of a category, creating folders as allowed.

        Args:
            category: Category folder name.
            job: Job id used to tag log records.

        Returns:
            The category folder id.

        Raises:
            ResolveError: If the archive root or category is missing and may
                not be created, is ambiguous, or the remote calls fail.
        """
        root_id = self._resolve_root(job)

        cached = self._cache.get(category)
        if cached is not None:
            return cached

        with self._cache.lock_for(category):
            cached = self._cache.get(category)
            if cached is not None:
                return cached
            category_id = self._find_or_create(
                category, root_id, f"category '{category}'", job
            )
            self._cache.set(category, category_id)
            return category_id

    def _resolve_root(self, job: str | None) -> str:
        """Get the archive root id, looking it up once per process."""
        if self._root_id is not None:
            return self._root_id
        with self._root_lock:
            if self._root_id is None:
                self._root_id = self._find_or_create(
                    self._archive_root, ROOT_ID, f"archive root '{self._archive_root}'", job
                )
            return self._root_id

    def _find(self, name: str, parent_id: str, job: str | None) -> str:
        """Look up exactly one folder by name.

        Raises:
            NotFoundError: If there is no such folder.
            MultipleResultsError: If there are several.
        """
        ids = self._retry.run(lambda: self._store.list_folders(name, parent_id), job=job)
        if not ids:
            raise NotFoundError(name, parent_id)
        if len(ids) > 1:
            raise MultipleResultsError(name, parent_id, ids)
        return ids[0]

    def _find_or_create(self, name: str, parent_id: str, what: str, job: str | None) -> str:
        """Look up a folder, creating it when missing and allowed."""
        log = JobLogger(logger, job)
        try:
            return self._find(name, parent_id, job)
        except NotFoundError as e:
            prompt = f"{what[0].upper()}{what[1:]} not found; create it now?"
            if not (self._create_missing or self._confirm(prompt)):
                raise ResolveError(f"failed to retrieve {what}: {e}") from e
        except Exception as e:
            # includes MultipleResultsError: duplicates are never auto-resolved
            raise ResolveError(f"failed to retrieve {what}: {e}") from e

        try:
            folder_id = self._retry.run(lambda: self._store.create_folder(name, parent_id), job=job)
        except Exception as e:
            raise ResolveError(f"failed to create {what}: {e}") from e
        log.info(f"Created {what} with ID {folder_id}")
        return folder_id
