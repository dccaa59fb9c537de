"""File and folder creation on the remote store.

This module provides:
- ContentUploader: Uploads one file (with optional MD5 verification) or creates one folder
- compute_md5: Streams a local file through MD5
"""

from __future__ import annotations

import hashlib
import logging
import mimetypes
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from drivesync.client.api import RemoteFile, RemoteStore
from drivesync.client.sync.types import ChecksumMismatchError

logger = logging.getLogger(__name__)

HASH_BLOCK_SIZE = 64 * 1024


def compute_md5(path: Path) -> str:
    """Compute the MD5 hash of a file.

    Reads the file in blocks to handle large files efficiently.

    Returns:
        Hexadecimal MD5 hash string (the format Drive reports).
    """
    hasher = hashlib.md5()
    with open(path, "rb") as f:
        for block in iter(lambda: f.read(HASH_BLOCK_SIZE), b""):
            hasher.update(block)
    return hasher.hexdigest()


class ContentUploader:
    """Creates files and folders on the remote store.

    Neither operation checks for an existing object of the same name:
    a local directory never holds two entries with one name, so callers
    only ever create each remote object once.
    """

    def __init__(self, store: RemoteStore, verify_checksum: bool = True) -> None:
        """Initialize the uploader.

        Args:
            store: Remote store to create objects in.
            verify_checksum: Compare the remote MD5 with the local one after upload.
        """
        self._store = store
        self._verify = verify_checksum

    @property
    def verify_checksum(self) -> bool:
        """Check if uploads are verified."""
        return self._verify

    def create_folder(self, name: str, parent_id: str) -> str:
        """Create a folder and return its id."""
        return self._store.create_folder(name, parent_id)

    def upload_file(self, local_path: Path, parent_id: str) -> RemoteFile:
        """Upload a file into a folder.

        When verification is on, the local MD5 is computed on a helper
        thread while the upload is in flight.

        Args:
            local_path: File to upload.
            parent_id: Id of the destination folder.

        Returns:
            Metadata of the created file.

        Raises:
            ChecksumMismatchError: If the remote checksum differs from the local one.
            APIError: If the upload request fails.
            OSError: If the local file cannot be read.
        """
        local_path = Path(local_path)
        if not self._verify:
            return self._send(local_path, parent_id)

        with ThreadPoolExecutor(max_workers=1, thread_name_prefix="md5") as hasher:
            local_future = hasher.submit(compute_md5, local_path)
            remote = self._send(local_path, parent_id)
            local_sum = local_future.result()

        if remote.md5_checksum != local_sum:
            raise ChecksumMismatchError(remote.md5_checksum, local_sum)
        logger.debug(f"{local_path} has identical remote/local md5Checksum")
        return remote

    def _send(self, local_path: Path, parent_id: str) -> RemoteFile:
        """Stream a file to the remote store."""
        mime_type, _ = mimetypes.guess_type(local_path.name)
        with open(local_path, "rb") as content:
            return self._store.create_file(
                local_path.name,
                parent_id,
                content,
                mime_type=mime_type,
                with_checksum=self._verify,
            )
