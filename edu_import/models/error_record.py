from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the execution error log.

Execution failures (rejected creates/updates, failed secondary operations,
stale references) are written as JSON Lines for post-mortem inspection. They
are never re-validated. ``row`` is the source line of the unit; -1 marks
errors that cannot be tied to a row.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        entity: Entity type being imported (e.g. "staff")
        file: Source file name
        row: Source line number. Use -1 when the row is unknown
        business_key: Business key of the affected unit ('' if unknown)
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Persistence error message or description
    """
    timestamp: str  # ISO8601 UTC
    entity: str
    file: str
    row: int
    business_key: str
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(
        entity: str,
        file: str,
        row: int,
        business_key: str,
        error_type: str,
        message: str,
    ) -> ErrorRecord:
        """Create a new ErrorRecord stamped with the current UTC time."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            entity=entity,
            file=file,
            row=row,
            business_key=business_key,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        """Serialize to one JSON line (fixed key set)."""
        return json.dumps(asdict(self), ensure_ascii=False)
