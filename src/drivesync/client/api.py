"""HTTP client for the Google Drive v3 API.

This module provides:
- RemoteStore: The remote operations the sync engine depends on
- DriveClient: httpx implementation of RemoteStore against Drive v3
- APIError and subclasses: HTTP failures carrying status and reason
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any, BinaryIO, Protocol

import httpx

logger = logging.getLogger(__name__)

DRIVE_API_URL = "https://www.googleapis.com/drive/v3"
DRIVE_UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3"
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
ROOT_ID = "root"
UPLOAD_BLOCK_SIZE = 256 * 1024


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        reason: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.reason = reason

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"{self.message} (HTTP {self.status_code})"


class AuthenticationError(APIError):
    """Authentication failed."""


class NotFoundError(APIError):
    """Resource not found."""


@dataclass
class RemoteFile:
    """File metadata returned after an upload."""

    id: str
    md5_checksum: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RemoteFile:
        """Create from API response dictionary."""
        return cls(id=data["id"], md5_checksum=data.get("md5Checksum"))


class RemoteStore(Protocol):
    """Remote hierarchical object store used by the sync engine."""

    def list_folders(self, name: str, parent_id: str) -> list[str]:
        """Return ids of non-trashed folders named ``name`` under ``parent_id``."""
        ...

    def create_folder(self, name: str, parent_id: str) -> str:
        """Create a folder and return its id."""
        ...

    def create_file(
        self,
        name: str,
        parent_id: str,
        content: BinaryIO,
        mime_type: str | None = None,
        with_checksum: bool = True,
    ) -> RemoteFile:
        """Upload ``content`` as a new file and return its metadata."""
        ...

    def delete_object(self, object_id: str) -> None:
        """Delete a file or folder."""
        ...


def escape_query_value(value: str) -> str:
    """Escape a string literal for a Drive search query."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _stream(content: BinaryIO) -> Iterator[bytes]:
    """Yield blocks of a binary file object."""
    yield from iter(lambda: content.read(UPLOAD_BLOCK_SIZE), b"")


class DriveClient:
    """HTTP client for Google Drive v3."""

    def __init__(
        self,
        auth: str | httpx.Auth,
        api_url: str = DRIVE_API_URL,
        upload_url: str = DRIVE_UPLOAD_URL,
        timeout: float = 60.0,
    ) -> None:
        """Initialize the Drive client.

        Args:
            auth: Fixed OAuth2 bearer token, or an httpx auth flow that
                supplies (and refreshes) one per request.
            api_url: Base URL of the metadata API.
            upload_url: Base URL of the media upload API.
            timeout: Request timeout in seconds.
        """
        self._api_url = api_url.rstrip("/")
        self._upload_url = upload_url.rstrip("/")
        if isinstance(auth, str):
            self._client = httpx.Client(
                timeout=timeout,
                headers={"Authorization": f"Bearer {auth}"},
            )
        else:
            self._client = httpx.Client(timeout=timeout, auth=auth)

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> DriveClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Handle API response and raise appropriate exceptions."""
        if response.status_code < 400:
            return response

        message = response.reason_phrase or "Unknown error"
        reason = None
        try:
            body = response.json()
        except ValueError:
            body = {}
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict):
            message = error.get("message") or message
            details = error.get("errors") or []
            if details and isinstance(details[0], dict):
                reason = details[0].get("reason")

        if response.status_code == 401:
            raise AuthenticationError(message, 401, reason)
        if response.status_code == 404:
            raise NotFoundError(message, 404, reason)
        raise APIError(message, response.status_code, reason)

    # === Folder operations ===

    def list_folders(self, name: str, parent_id: str) -> list[str]:
        """List non-trashed folders with an exact name under a parent.

        Args:
            name: Exact folder name.
            parent_id: Id of the parent folder ("root" for My Drive).

        Returns:
            Ids of all matching folders.
        """
        query = " and ".join([
            f"'{escape_query_value(parent_id)}' in parents",
            f"name='{escape_query_value(name)}'",
            f"mimeType='{FOLDER_MIME_TYPE}'",
            "trashed=false",
        ])
        ids: list[str] = []
        page_token: str | None = None
        while True:
            params = {"q": query, "fields": "nextPageToken, files(id)", "spaces": "drive"}
            if page_token:
                params["pageToken"] = page_token
            response = self._handle_response(
                self._client.get(f"{self._api_url}/files", params=params)
            )
            data = response.json()
            ids.extend(f["id"] for f in data.get("files", []))
            page_token = data.get("nextPageToken")
            if not page_token:
                return ids

    def create_folder(self, name: str, parent_id: str) -> str:
        """Create a folder.

        The caller is responsible for checking that no folder of the same
        name exists; Drive happily creates duplicates.

        Returns:
            Id of the created folder.
        """
        response = self._handle_response(
            self._client.post(
                f"{self._api_url}/files",
                params={"fields": "id"},
                json={
                    "name": name,
                    "description": name,
                    "mimeType": FOLDER_MIME_TYPE,
                    "parents": [parent_id],
                },
            )
        )
        folder_id: str = response.json()["id"]
        return folder_id

    # === File operations ===

    def create_file(
        self,
        name: str,
        parent_id: str,
        content: BinaryIO,
        mime_type: str | None = None,
        with_checksum: bool = True,
    ) -> RemoteFile:
        """Upload a new file using a resumable upload session.

        Args:
            name: File name on Drive.
            parent_id: Id of the parent folder.
            content: Binary file object positioned at the start.
            mime_type: Content type; Drive detects it when None.
            with_checksum: Ask Drive to return the MD5 checksum.

        Returns:
            Metadata of the created file.
        """
        mime_type = mime_type or "application/octet-stream"
        start = content.tell()
        size = content.seek(0, os.SEEK_END) - start
        content.seek(start)
        fields = "id, md5Checksum" if with_checksum else "id"

        session = self._handle_response(
            self._client.post(
                f"{self._upload_url}/files",
                params={"uploadType": "resumable", "fields": fields},
                json={
                    "name": name,
                    "description": name,
                    "mimeType": mime_type,
                    "parents": [parent_id],
                },
                headers={
                    "X-Upload-Content-Type": mime_type,
                    "X-Upload-Content-Length": str(size),
                },
            )
        )
        location = session.headers.get("Location")
        if not location:
            raise APIError("Upload session has no location", session.status_code)

        response = self._handle_response(
            self._client.put(
                location,
                content=_stream(content),
                headers={"Content-Type": mime_type, "Content-Length": str(size)},
            )
        )
        return RemoteFile.from_dict(response.json())

    def delete_object(self, object_id: str) -> None:
        """Delete a file or folder permanently."""
        self._handle_response(self._client.delete(f"{self._api_url}/files/{object_id}"))
