from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

from ..models.processing_result import ProgressEvent

"""Progress display with tqdm (TTY only).

The executor yields one ProgressEvent per unit; the tracker mirrors those
events onto a single tqdm bar. In non-TTY environments (CI, redirected
output) the bar is disabled to avoid control sequence spam, but the last
event is still remembered so callers can report the final percentage.
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    """True if stdout is a TTY and progress should be displayed."""
    return sys.stdout.isatty()


class ProgressTracker:
    """Progress bar driven by executor ProgressEvents."""

    def __init__(self, total: int, *, description: str = "Applying", unit: str = "row") -> None:
        """Initialize progress tracker.

        Args:
            total: Number of execution units in the batch
            description: Description for the progress bar
            unit: Unit name shown by tqdm
        """
        self.total = total
        self.description = description
        self.completed = 0
        self.percent = 0
        self.counts = {"succeeded": 0, "skipped": 0, "failed": 0}

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total,
                desc=description,
                unit=unit,
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def update(self, event: ProgressEvent) -> None:
        """Advance to ``event.completed`` and refresh the failure postfix."""
        step = event.completed - self.completed
        self.completed = event.completed
        self.percent = event.percent
        if event.status in self.counts and event.total:
            self.counts[event.status] += 1
        if self.enabled and self.pbar is not None:
            if step > 0:
                self.pbar.update(step)
            if self.counts["failed"] or self.counts["skipped"]:
                self.pbar.set_postfix(failed=self.counts["failed"], skipped=self.counts["skipped"])

    def close(self) -> None:
        """Close the progress bar."""
        if self.enabled and self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
