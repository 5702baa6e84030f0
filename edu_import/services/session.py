from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any

from ..db.store import Store
from ..logging.error_log import ErrorLogBuffer
from ..models.change_record import ChangeRecord
from ..models.column_spec import ImportMode, ImportSchema
from ..models.processing_result import ExecutionOutcome, ProgressEvent, SessionState
from ..models.validation_error import ValidationError, ValidationWarning
from ..schema.registry import lookup_kinds_for
from ..tabular.reader import ParseResult, parse_text, read_file
from .diff import ChangeSet, build_change_set
from .executor import BatchExecutor
from .lookup import LookupIndex
from .snapshot import load_existing, load_lookup_index
from .validator import ValidationReport, validate_rows

"""Import session: one operator, one file, one apply.

State machine::

    upload --load--> preview --execute--> executing --> complete
       ^                |
       +----discard-----+

``preview -> upload`` is the only backward edge. There is no cancel while
executing and ``complete`` is terminal; ``reset()`` starts over from upload
with fresh snapshots.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "SessionStateError",
    "SessionStatus",
    "ImportSession",
]


class SessionStateError(Exception):
    """Operation not allowed in the session's current state."""


@dataclass(frozen=True)
class SessionStatus:
    step_state: SessionState
    progress_percent: int
    errors: tuple[ValidationError, ...] = ()
    warnings: tuple[ValidationWarning, ...] = ()
    changes: tuple[ChangeRecord, ...] = ()
    unchanged_rows: tuple[int, ...] = ()
    outcome: ExecutionOutcome | None = None


@dataclass
class _Loaded:
    file_name: str = ""
    parse: ParseResult = field(default_factory=ParseResult)
    report: ValidationReport = field(default_factory=ValidationReport)
    change_set: ChangeSet = field(default_factory=ChangeSet)


class ImportSession:
    """Drives parse -> validate -> diff -> execute for one schema."""

    def __init__(
        self,
        schema: ImportSchema,
        store: Store,
        *,
        scope: Mapping[str, Any] | None = None,
        error_log: ErrorLogBuffer | None = None,
        max_failures: int = 20,
        today: date | None = None,
    ) -> None:
        self.schema = schema
        self.store = store
        self.scope = dict(scope or {})
        self.error_log = error_log
        self.max_failures = max_failures
        self.today = today
        self.state = SessionState.UPLOAD
        self.progress_percent = 0
        self.outcome: ExecutionOutcome | None = None
        self._loaded = _Loaded()
        self.index: LookupIndex = LookupIndex()
        self.existing: dict[str, dict[str, Any]] = {}
        self._open()

    def _open(self) -> None:
        self.index = load_lookup_index(self.store, lookup_kinds_for(self.schema), self.scope)
        if self.schema.mode is ImportMode.UPDATE:
            self.existing = load_existing(self.store, self.schema, self.scope)
        else:
            self.existing = {}

    def _require(self, *states: SessionState) -> None:
        if self.state not in states:
            allowed = "/".join(s.value for s in states)
            raise SessionStateError(f"session is '{self.state.value}', expected {allowed}")

    # ------------------------------------------------------------------ load
    def load_text(self, text: str, file_name: str = "upload.csv") -> SessionStatus:
        self._require(SessionState.UPLOAD)
        return self._load(parse_text(text), file_name)

    def load_file(self, path: Path) -> SessionStatus:
        self._require(SessionState.UPLOAD)
        return self._load(read_file(Path(path)), Path(path).name)

    def _load(self, parsed: ParseResult, file_name: str) -> SessionStatus:
        loaded = _Loaded(file_name=file_name, parse=parsed)
        if parsed.errors:
            # structural problems: nothing is offered for preview
            loaded.report = ValidationReport(errors=list(parsed.errors))
            self._loaded = loaded
            logger.error("%s: %s", file_name, parsed.errors[0].message)
            return self.status()
        existing = self.existing if self.schema.mode is ImportMode.UPDATE else None
        loaded.report = validate_rows(self.schema, parsed.rows, self.index, existing, headers=parsed.headers)
        if self.schema.mode is ImportMode.UPDATE:
            loaded.change_set = build_change_set(self.schema, loaded.report.valid_rows, self.existing, self.index)
        self._loaded = loaded
        self.state = SessionState.PREVIEW
        logger.info(
            "%s: rows=%d valid=%d errors=%d warnings=%d",
            file_name,
            len(loaded.report.rows),
            len(loaded.report.valid_rows),
            loaded.report.total_errors,
            len(loaded.report.warnings),
        )
        return self.status()

    def discard(self) -> SessionStatus:
        """preview -> upload; drops the loaded file."""
        self._require(SessionState.PREVIEW)
        self._loaded = _Loaded()
        self.state = SessionState.UPLOAD
        return self.status()

    # ----------------------------------------------------------------- query
    @property
    def report(self) -> ValidationReport:
        return self._loaded.report

    @property
    def change_set(self) -> ChangeSet:
        return self._loaded.change_set

    @property
    def unit_count(self) -> int:
        if self.schema.mode is ImportMode.UPDATE:
            return len(self._loaded.change_set.units)
        return len(self._loaded.report.valid_rows)

    @property
    def can_execute(self) -> bool:
        """Preview with zero validation errors and something to do."""
        return self.state is SessionState.PREVIEW and not self.report.errors and self.unit_count > 0

    def status(self) -> SessionStatus:
        return SessionStatus(
            step_state=self.state,
            progress_percent=self.progress_percent,
            errors=tuple(self.report.errors),
            warnings=tuple(self.report.warnings),
            changes=tuple(self.change_set.changes),
            unchanged_rows=tuple(self.change_set.unchanged_rows),
            outcome=self.outcome,
        )

    # --------------------------------------------------------------- execute
    def execute(self) -> Iterator[ProgressEvent]:
        """Start the apply; the returned iterator yields one ProgressEvent per unit.

        State checks happen immediately, before any iteration.
        """
        self._require(SessionState.PREVIEW)
        if self.report.errors:
            raise SessionStateError(f"{self.report.total_errors} validation error(s) must be fixed first")
        if self.unit_count == 0:
            raise SessionStateError("nothing to apply")
        executor = BatchExecutor(
            self.store,
            self.schema,
            self.index,
            scope=self.scope,
            error_log=self.error_log,
            file_name=self._loaded.file_name,
            max_failures=self.max_failures,
            today=self.today,
        )
        self.state = SessionState.EXECUTING
        self.progress_percent = 0
        if self.schema.mode is ImportMode.UPDATE:
            events = executor.run_update(self._loaded.change_set.units)
        else:
            events = executor.run_create(self._loaded.report.valid_rows)
        return self._drive(executor, events)

    def _drive(self, executor: BatchExecutor, events: Iterator[ProgressEvent]) -> Iterator[ProgressEvent]:
        for event in events:
            self.progress_percent = event.percent
            yield event
        self.outcome = executor.outcome
        self.state = SessionState.COMPLETE

    def apply(self) -> ExecutionOutcome:
        """Run ``execute()`` to the end and return the outcome."""
        for _ in self.execute():
            pass
        assert self.outcome is not None
        return self.outcome

    def reset(self) -> SessionStatus:
        """Back to the initial upload state with fresh snapshots."""
        if self.state is SessionState.EXECUTING:
            raise SessionStateError("cannot reset while executing")
        self._loaded = _Loaded()
        self.outcome = None
        self.progress_percent = 0
        self.state = SessionState.UPLOAD
        self._open()
        return self.status()
