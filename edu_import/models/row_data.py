from __future__ import annotations

from dataclasses import dataclass, field

"""RawRow model: one data line of an import file after header normalization."""

__all__ = [
    "RawRow",
]


@dataclass(frozen=True)
class RawRow:
    """Logical representation of a single data line.

    ``row_number`` is the 1-based source line (header = 1, first data row = 2).
    Blank lines are never turned into rows but still consume a line number.
    """
    row_number: int
    values: dict[str, str] = field(default_factory=dict)  # normalized column -> raw string

    def get(self, column: str) -> str:
        """Trimmed raw value, '' when the column is absent or blank."""
        raw = self.values.get(column)
        return raw.strip() if raw else ""

    def has(self, column: str) -> bool:
        """True when the column is present and non-blank (the row has an opinion)."""
        return self.get(column) != ""
