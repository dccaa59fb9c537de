"""Yes/no confirmation gate for creating missing remote folders.

Non-interactive runs answer every question with "no", so folder creation
is then driven only by the create-missing setting.
"""

from __future__ import annotations

import sys
import threading
from collections.abc import Callable

import click

Confirm = Callable[[str], bool]


def never_confirm(prompt: str) -> bool:
    """Answer "no" without asking."""
    return False


class ConsoleConfirm:
    """Asks the operator on the terminal, defaulting to yes.

    Prompts are serialized so concurrent workers never interleave questions.
    Ctrl+C at a terminal prompt interrupts the run; a closed stdin answers no.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def __call__(self, prompt: str) -> bool:
        with self._lock:
            try:
                return click.confirm(prompt, default=True)
            except click.Abort as e:
                if sys.stdin is not None and sys.stdin.isatty():
                    raise KeyboardInterrupt from e
                return False


def make_confirm(interactive: bool) -> Confirm:
    """Get the confirmation gate for an interactive or unattended run."""
    return ConsoleConfirm() if interactive else never_confirm
