"""OAuth token cache for the Drive client.

Obtaining the first token (the browser consent flow) is done outside
drivesync; this module only loads the cached token and refreshes it.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from collections.abc import Generator
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import httpx

from drivesync.core.config import SyncConfig, get_user_config_dir

logger = logging.getLogger(__name__)

TOKEN_URI = "https://oauth2.googleapis.com/token"
EXPIRY_MARGIN = timedelta(seconds=60)


class AuthError(Exception):
    """Failed to obtain a usable access token."""


@dataclass
class OAuthToken:
    """Cached OAuth2 token."""

    access_token: str
    refresh_token: str | None = None
    token_type: str = "Bearer"
    expiry: datetime | None = None

    @property
    def expired(self) -> bool:
        """Check if the access token is expired or about to expire."""
        if self.expiry is None:
            return False
        return datetime.now(UTC) + EXPIRY_MARGIN >= self.expiry

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OAuthToken:
        """Create from token file dictionary."""
        expiry = data.get("expiry")
        parsed = None
        if expiry:
            parsed = datetime.fromisoformat(expiry.replace("Z", "+00:00"))
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=UTC)
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            token_type=data.get("token_type", "Bearer"),
            expiry=parsed,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to token file dictionary."""
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_type": self.token_type,
            "expiry": self.expiry.isoformat() if self.expiry else None,
        }


def default_token_path() -> Path:
    """Get the default token cache location."""
    return get_user_config_dir() / "token.json"


def load_token(path: Path) -> OAuthToken:
    """Load a cached token.

    Raises:
        AuthError: If the file is missing or malformed.
    """
    if not path.exists():
        raise AuthError(
            f"No cached token at {path}. Authorize drivesync for Google Drive "
            "and save the token there first."
        )
    try:
        return OAuthToken.from_dict(json.loads(path.read_text(encoding="utf-8")))
    except (ValueError, KeyError) as e:
        raise AuthError(f"Malformed token file {path}: {e}") from e


def save_token(path: Path, token: OAuthToken) -> None:
    """Save a token, readable by the owner only."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        json.dump(token.to_dict(), f, indent=2)


def _load_client_secret(path: Path) -> dict[str, str]:
    """Read client id/secret from a Google client secret file."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise AuthError(f"Unable to read client secret file {path}: {e}") from e
    section = data.get("installed") or data.get("web") or data
    if "client_id" not in section or "client_secret" not in section:
        raise AuthError(f"Client secret file {path} has no client_id/client_secret")
    return dict(section)


def refresh_access_token(
    token: OAuthToken,
    client_secret_path: Path,
    http: httpx.Client | None = None,
) -> OAuthToken:
    """Exchange the refresh token for a new access token.

    Raises:
        AuthError: If there is no refresh token or the exchange fails.
    """
    if not token.refresh_token:
        raise AuthError("Access token expired and no refresh token is cached")
    secret = _load_client_secret(client_secret_path)
    client = http or httpx.Client(timeout=30.0)
    try:
        response = client.post(
            secret.get("token_uri", TOKEN_URI),
            data={
                "grant_type": "refresh_token",
                "refresh_token": token.refresh_token,
                "client_id": secret["client_id"],
                "client_secret": secret["client_secret"],
            },
        )
    finally:
        if http is None:
            client.close()
    if response.status_code != 200:
        raise AuthError(f"Token refresh failed: HTTP {response.status_code} {response.text}")

    data = response.json()
    return OAuthToken(
        access_token=data["access_token"],
        refresh_token=data.get("refresh_token", token.refresh_token),
        token_type=data.get("token_type", "Bearer"),
        expiry=datetime.now(UTC) + timedelta(seconds=int(data.get("expires_in", 3600))),
    )


def load_valid_token(config: SyncConfig, force_refresh: bool = False) -> OAuthToken:
    """Load the cached token, refreshing and re-caching it if expired.

    Args:
        config: Configuration naming the token and client secret files.
        force_refresh: Refresh even if the token looks valid (it was rejected).

    Raises:
        AuthError: If there is no usable token and it cannot be refreshed.
    """
    token_path = config.token_path or default_token_path()
    token = load_token(token_path)
    if token.expired or force_refresh:
        if config.client_secret_path is None:
            raise AuthError("Cannot refresh the access token: client-secret-path is not configured")
        logger.info("Refreshing access token")
        token = refresh_access_token(token, config.client_secret_path)
        save_token(token_path, token)
    return token


def get_access_token(config: SyncConfig) -> str:
    """Return a valid access token, refreshing and re-caching it if expired."""
    return load_valid_token(config).access_token


class TokenAuth(httpx.Auth):
    """Bearer authentication from the token cache, for long-running clients.

    The token is refreshed once it expires. A 401 response forces a refresh
    and the request is sent once more, unless its body was streamed.
    Safe to share between upload threads.
    """

    def __init__(self, config: SyncConfig) -> None:
        self._config = config
        self._lock = threading.Lock()
        self._token: OAuthToken | None = None

    def access_token(self, rejected: str | None = None) -> str:
        """Return a valid access token.

        Args:
            rejected: Token the server just refused; it is refreshed unless
                another request already replaced it.

        Raises:
            AuthError: If no valid token can be obtained.
        """
        with self._lock:
            token = self._token
            if rejected is not None and token is not None and token.access_token != rejected:
                return token.access_token
            if token is None or token.expired or rejected is not None:
                token = load_valid_token(self._config, force_refresh=rejected is not None)
                self._token = token
            return token.access_token

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        access_token = self.access_token()
        request.headers["Authorization"] = f"Bearer {access_token}"
        response = yield request
        if response.status_code != 401 or not isinstance(request.stream, httpx.ByteStream):
            return
        logger.info("Access token rejected, refreshing")
        request.headers["Authorization"] = f"Bearer {self.access_token(rejected=access_token)}"
        yield request
