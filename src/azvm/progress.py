"""Thread-safe console narration.

Concurrent provisioning and operation sequences all report through one
ProgressReporter so their lines never interleave mid-line.
"""

import logging
import threading

from rich.console import Console

logger = logging.getLogger(__name__)


class ProgressReporter:
    """Thread-safe progress message coordinator."""

    def __init__(self, console: Console | None = None):
        """Initialize progress reporter.

        Args:
            console: Rich console to print to (stdout by default)
        """
        self.console = console or Console(highlight=False)
        self._lock = threading.Lock()

    def report(self, message: str, indent: int = 0) -> None:
        """Print a progress line (thread-safe).

        Args:
            message: Progress message
            indent: Number of tab stops to indent by
        """
        line = "\t" * indent + message
        with self._lock:
            self.console.print(line, markup=False, highlight=False, soft_wrap=True)
        logger.debug(message)

    def warn(self, message: str) -> None:
        """Print a warning line (thread-safe)."""
        with self._lock:
            self.console.print(f"Warning: {message}", style="yellow", markup=False, soft_wrap=True)
        logger.debug(f"Warning: {message}")


__all__ = ["ProgressReporter"]
