"""Compensating actions for multi-step workflows.

Each step that creates a remote resource registers how to undo it. When the
workflow aborts, pending actions run newest first. Failures are logged as
:class:`CleanupWarning` and never mask the original error.
"""

import logging
import warnings
from typing import Awaitable, Callable

from ..api.exceptions import CleanupWarning, VHICliError

logger = logging.getLogger(__name__)

Action = Callable[[], Awaitable[object]]


class Compensation:
    """One registered undo action."""

    def __init__(self, description: str, action: Action) -> None:
        self.description = description
        self.action = action
        self.attempted = False
        self.done = False
        self.released = False

    @property
    def pending(self) -> bool:
        return not (self.attempted or self.released)

    def __repr__(self) -> str:
        if self.released:
            state = "released"
        elif self.attempted:
            state = "done" if self.done else "failed"
        else:
            state = "pending"
        return f"<Compensation {self.description!r} {state}>"


class CleanupLog:
    """Ordered log of compensating actions."""

    def __init__(self) -> None:
        self._entries: list[Compensation] = []

    def add(self, description: str, action: Action) -> Compensation:
        """Register an undo action and return its handle."""
        entry = Compensation(description, action)
        self._entries.append(entry)
        logger.debug("Registered cleanup: %s", description)
        return entry

    def release(self, entry: Compensation) -> None:
        """Forget an action whose resource is now owned elsewhere."""
        entry.released = True

    @property
    def pending(self) -> list[Compensation]:
        return [entry for entry in self._entries if entry.pending]

    async def execute(self, entry: Compensation) -> None:
        """Run one action now. An action is attempted at most once.

        Raises:
            VHICliError: If the action fails
        """
        if not entry.pending:
            return
        entry.attempted = True
        await entry.action()
        entry.done = True
        logger.debug("Cleanup done: %s", entry.description)

    async def unwind(self) -> list[Compensation]:
        """Run every pending action, newest first, best-effort.

        Returns:
            The actions that failed
        """
        failed = []
        for entry in reversed(self._entries):
            if not entry.pending:
                continue
            logger.info("Cleaning up: %s", entry.description)
            try:
                await self.execute(entry)
            except VHICliError as e:
                warnings.warn(f"Cleanup failed ({entry.description}): {e}", CleanupWarning)
                failed.append(entry)
        return failed
