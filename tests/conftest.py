"""Shared pytest fixtures."""

from __future__ import annotations

import logging
from collections.abc import Iterator

import pytest


@pytest.fixture(autouse=True)
def reset_drivesync_logger() -> Iterator[None]:
    """Undo setup_logging() so later tests see records through caplog."""
    yield
    drivesync_logger = logging.getLogger("drivesync")
    for handler in drivesync_logger.handlers[:]:
        drivesync_logger.removeHandler(handler)
        handler.close()
    drivesync_logger.setLevel(logging.NOTSET)
    drivesync_logger.propagate = True
