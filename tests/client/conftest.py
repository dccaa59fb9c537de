"""Pytest fixtures for sync engine tests.

This module provides an in-memory Drive store and pre-wired engine
components that never sleep.
"""

from __future__ import annotations

import hashlib
import itertools
import threading
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import BinaryIO

import pytest

from drivesync.client.api import ROOT_ID, RemoteFile
from drivesync.client.sync import RemoteLocationResolver, RetryExecutor, SyncOrchestrator


@dataclass
class FakeObject:
    """A folder or file held by FakeDriveStore."""

    id: str
    name: str
    parent_id: str
    is_folder: bool
    content: bytes = b""


@dataclass
class FailureRule:
    """Raise `error` on calls to `op` (optionally only for one name)."""

    op: str
    error: BaseException
    name: str | None = None
    times: int | None = 1
    hits: int = field(default=0)


class FakeDriveStore:
    """Thread-safe in-memory RemoteStore that counts calls.

    Failures are injected with fail(); checksums returned by uploads can be
    overridden with bad_checksums.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self.objects: dict[str, FakeObject] = {}
        self.calls: Counter[str] = Counter()
        self.rules: list[FailureRule] = []
        self.bad_checksums = 0
        self.list_delay = 0.0

    def fail(self, op: str, error: BaseException, name: str | None = None, times: int | None = 1) -> None:
        """Make the next `times` calls to `op` raise `error` (None = forever)."""
        self.rules.append(FailureRule(op, error, name, times))

    def _call(self, op: str, name: str) -> None:
        with self._lock:
            self.calls[op] += 1
            for rule in self.rules:
                if rule.op != op or (rule.name is not None and rule.name != name):
                    continue
                if rule.times is not None and rule.hits >= rule.times:
                    continue
                rule.hits += 1
                raise rule.error

    def _add(self, name: str, parent_id: str, is_folder: bool, content: bytes = b"") -> FakeObject:
        with self._lock:
            obj = FakeObject(f"id{next(self._ids)}", name, parent_id, is_folder, content)
            self.objects[obj.id] = obj
            return obj

    def add_folder(self, name: str, parent_id: str = ROOT_ID) -> str:
        """Pre-create a folder without counting a call."""
        return self._add(name, parent_id, True).id

    def list_folders(self, name: str, parent_id: str) -> list[str]:
        self._call("list_folders", name)
        if self.list_delay:
            time.sleep(self.list_delay)
        with self._lock:
            return [
                o.id
                for o in self.objects.values()
                if o.is_folder and o.name == name and o.parent_id == parent_id
            ]

    def create_folder(self, name: str, parent_id: str) -> str:
        self._call("create_folder", name)
        return self._add(name, parent_id, True).id

    def create_file(
        self,
        name: str,
        parent_id: str,
        content: BinaryIO,
        mime_type: str | None = None,
        with_checksum: bool = True,
    ) -> RemoteFile:
        self._call("create_file", name)
        data = content.read()
        obj = self._add(name, parent_id, False, data)
        checksum = hashlib.md5(data).hexdigest()
        with self._lock:
            if self.bad_checksums:
                self.bad_checksums -= 1
                checksum = "0" * 32
        return RemoteFile(obj.id, checksum if with_checksum else None)

    def delete_object(self, object_id: str) -> None:
        self._call("delete_object", object_id)
        with self._lock:
            del self.objects[object_id]

    # === Inspection helpers ===

    def remote_calls(self) -> int:
        """Total number of store calls so far."""
        return sum(self.calls.values())

    def find(self, name: str, parent_id: str | None = None) -> list[FakeObject]:
        """Objects with a name (and parent, when given)."""
        return [
            o
            for o in self.objects.values()
            if o.name == name and (parent_id is None or o.parent_id == parent_id)
        ]

    def children(self, parent_id: str) -> dict[str, FakeObject]:
        """Objects directly under a folder, by name."""
        return {o.name: o for o in self.objects.values() if o.parent_id == parent_id}


@pytest.fixture
def store() -> FakeDriveStore:
    """Create an empty in-memory Drive."""
    return FakeDriveStore()


@pytest.fixture
def sleeps() -> list[float]:
    """Backoff delays requested by the retry executor."""
    return []


@pytest.fixture
def retry(sleeps: list[float]) -> RetryExecutor:
    """Create a retry executor that records delays instead of sleeping."""
    return RetryExecutor(initial_backoff=1.0, backoff_multiplier=2.0, sleep=sleeps.append)


@pytest.fixture
def resolver(store: FakeDriveStore, retry: RetryExecutor) -> RemoteLocationResolver:
    """Create a resolver allowed to create missing folders."""
    return RemoteLocationResolver(store, "archive", retry, create_missing=True)


@pytest.fixture
def orchestrator(
    store: FakeDriveStore, resolver: RemoteLocationResolver, retry: RetryExecutor
) -> SyncOrchestrator:
    """Create an orchestrator over the in-memory Drive."""
    return SyncOrchestrator(store, resolver, retry, max_workers=4)
