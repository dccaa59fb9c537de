"""Per-job log tagging.

Every sync operation gets a short job id that is passed explicitly to the
functions doing the work and attached to their log records, so concurrent
uploads can be told apart in the log.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import MutableMapping
from typing import Any


def new_job_id() -> str:
    """Generate a short hex job id."""
    return f"{secrets.randbelow(0xFFFFF):05x}"


class JobLogger(logging.LoggerAdapter):  # type: ignore[type-arg]
    """Logger adapter that tags records with a job id.

    The id is prefixed to the message and stored as ``record.job``.
    """

    def __init__(self, logger: logging.Logger, job: str | None) -> None:
        super().__init__(logger, {"job": job or "-"})

    @property
    def job(self) -> str:
        """Get the job id."""
        return str(self.extra["job"]) if self.extra else "-"

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        kwargs.setdefault("extra", {}).update(self.extra or {})
        return f"[Job #{self.job}] {msg}", kwargs
