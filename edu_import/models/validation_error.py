from __future__ import annotations

from dataclasses import dataclass

"""Row-level validation findings.

ValidationError is a value object, not an exception: the validator collects
them and hands them to the presentation layer. Row 0 is reserved for
structural problems with the file as a whole.
"""

__all__ = [
    "ValidationError",
    "ValidationWarning",
    "FILE_ROW",
]

FILE_ROW = 0


@dataclass(frozen=True)
class ValidationError:
    row: int
    field: str
    message: str


@dataclass(frozen=True)
class ValidationWarning:
    """Non-blocking finding (the row is still executed)."""
    row: int
    field: str
    message: str
