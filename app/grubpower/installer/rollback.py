"""Undo log for multi-step installs.

Each completed install step pushes the action that undoes it. When a later
step fails, the recorded actions run in reverse order.

Example:
    >>> with RollbackStack() as undo:
    ...     build_image()
    ...     undo.push("remove image", image.unlink)
    ...     add_entries()  # raises -> image.unlink() runs, error propagates
"""

import logging
from collections.abc import Callable
from types import TracebackType

logger = logging.getLogger(__name__)


class RollbackStack:
    """Stack of (description, undo action) pairs."""

    def __init__(self) -> None:
        self._actions: list[tuple[str, Callable[[], object]]] = []

    def __len__(self) -> int:
        return len(self._actions)

    @property
    def descriptions(self) -> list[str]:
        """Descriptions of recorded actions, oldest first."""
        return [description for description, _ in self._actions]

    def push(self, description: str, action: Callable[[], object]) -> None:
        """Record the undo action for a step that just completed."""
        self._actions.append((description, action))
        logger.debug("Recorded rollback action: %s", description)

    def clear(self) -> None:
        """Forget all recorded actions (the install succeeded)."""
        self._actions.clear()

    def rollback(self) -> list[str]:
        """Run recorded actions newest first, then clear the stack.

        A failing action is logged and does not stop the remaining ones.

        Returns:
            Descriptions of actions that failed.
        """
        failed: list[str] = []
        while self._actions:
            description, action = self._actions.pop()
            logger.info("Rolling back: %s", description)
            try:
                action()
            except Exception as e:
                logger.warning("Rollback step failed (%s): %s", description, e)
                failed.append(description)
        return failed

    def __enter__(self) -> "RollbackStack":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        if exc_type is not None:
            logger.error("Installation failed, rolling back changes...")
            self.rollback()
        else:
            self.clear()
        return False
