from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType

"""Execution outcome models for bulk imports.

ExecutionOutcome is the frozen result of one apply operation. It is built
incrementally by OutcomeAccumulator while the executor walks its units and is
never mutated after the batch completes.
"""

__all__ = [
    "SessionState",
    "FailureDetail",
    "ExecutionOutcome",
    "ProgressEvent",
    "OutcomeAccumulator",
]


class SessionState(Enum):
    """Import session lifecycle.

    State transitions: upload → preview → executing → complete,
    plus preview → upload (discard the loaded file).
    """
    UPLOAD = "upload"
    PREVIEW = "preview"
    EXECUTING = "executing"
    COMPLETE = "complete"


@dataclass(frozen=True)
class FailureDetail:
    """One failed or skipped execution unit kept for inspection."""
    row: int
    business_key: str
    error_type: str
    message: str


@dataclass(frozen=True)
class ExecutionOutcome:
    mode: str  # create/update
    succeeded: int = 0  # created (create mode) or updated (update mode)
    skipped: int = 0
    failed: int = 0
    links: Mapping[str, int] = field(default_factory=dict)  # secondary counters, read-only once built
    failures: tuple[FailureDetail, ...] = ()  # first N only

    def __post_init__(self) -> None:
        object.__setattr__(self, "links", MappingProxyType(dict(self.links)))

    @property
    def created(self) -> int:
        return self.succeeded if self.mode == "create" else 0

    @property
    def updated(self) -> int:
        return self.succeeded if self.mode == "update" else 0

    @property
    def total_units(self) -> int:
        return self.succeeded + self.skipped + self.failed


@dataclass(frozen=True)
class ProgressEvent:
    """Emitted by the executor after every unit, whatever its result."""
    completed: int
    total: int
    percent: int
    business_key: str
    status: str  # succeeded/skipped/failed


class OutcomeAccumulator:
    """Mutable counters used while a batch runs; ``freeze()`` yields the outcome."""

    def __init__(self, mode: str, max_failures: int = 20) -> None:
        self.mode = mode
        self.max_failures = max_failures
        self.succeeded = 0
        self.skipped = 0
        self.failed = 0
        self.links: dict[str, int] = {}
        self._failures: list[FailureDetail] = []

    def add_link(self, counter: str, count: int = 1) -> None:
        self.links[counter] = self.links.get(counter, 0) + count

    def record_failure(self, detail: FailureDetail, *, skipped: bool = False) -> None:
        if skipped:
            self.skipped += 1
        else:
            self.failed += 1
        if len(self._failures) < self.max_failures:
            self._failures.append(detail)

    def freeze(self) -> ExecutionOutcome:
        return ExecutionOutcome(
            mode=self.mode,
            succeeded=self.succeeded,
            skipped=self.skipped,
            failed=self.failed,
            links=self.links,
            failures=tuple(self._failures),
        )
