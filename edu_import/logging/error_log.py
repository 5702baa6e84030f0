from __future__ import annotations

from collections import Counter
from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import ErrorRecord

"""Execution error log: buffered JSON Lines.

Records pile up in memory while a batch runs; ``flush()`` appends them to
``<logs_dir>/errors-YYYYMMDD-HHMMSS.log`` (UTC stamp taken on first use).
A run without execution failures leaves no file behind.
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    """Buffer of ErrorRecords for one run. Not thread safe; execution is sequential."""

    def __init__(self, logs_dir: Path | None = None) -> None:
        self.logs_dir = LOGS_DIR if logs_dir is None else Path(logs_dir)
        self.written = 0
        self._pending: list[ErrorRecord] = []
        self._path: Path | None = None

    @property
    def file_path(self) -> Path:
        if self._path is None:
            name = f"errors-{datetime.now(UTC).strftime(TIMESTAMP_FMT)}.log"
            self._path = self.logs_dir / name
        return self._path

    def append(self, record: ErrorRecord) -> None:
        self._pending.append(record)

    @property
    def records(self) -> list[ErrorRecord]:
        """Records not yet flushed."""
        return list(self._pending)

    def counts(self) -> dict[str, int]:
        """error_type -> number of pending records."""
        return dict(Counter(r.error_type for r in self._pending))

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._pending)

    def flush(self) -> Path | None:
        """Append pending records; None (and no file) when nothing is pending."""
        if not self._pending:
            return None
        path = self.file_path
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as fh:
            fh.writelines(r.to_json_line() + "\n" for r in self._pending)
        self.written += len(self._pending)
        self._pending.clear()
        return path
