from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from ..models.column_spec import ColumnKind, ColumnSpec, ImportMode, ImportSchema
from ..models.row_data import RawRow
from ..models.validation_error import FILE_ROW, ValidationError, ValidationWarning
from .lookup import LookupIndex
from .values import (
    EMAIL_RE,
    canonical_choice,
    comparable,
    parse_date,
    parse_number,
    phone_is_valid,
    render_value,
    split_list,
)

"""Row validation against an ImportSchema.

Checks per row, in order:
1. required columns must be non-blank
2. enumerated values must be one of the allowed options (case-insensitive)
3. dates must parse under one of the column's declared formats
4. lookup values must resolve through the LookupIndex
5. email / phone / number format checks
6. uniqueness of the business key (and unique columns such as email) across
   the file; the repeat is reported, never the first occurrence
7. schema row rules (e.g. multiple-choice options)

In update mode the business key is checked against the persisted entities
first; an unknown key supersedes every other check for that row. A cell that
renders the same as the persisted value is left alone: an unedited export
always re-imports, even when a stored value predates the column's checks.

All errors of a row are collected. Nothing here raises for bad data.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "ValidationReport",
    "normalize_key",
    "check_headers",
    "validate_rows",
]


def normalize_key(value: Any) -> str:
    return str(value).strip().lower() if value is not None else ""


@dataclass
class ValidationReport:
    errors: list[ValidationError] = field(default_factory=list)
    warnings: list[ValidationWarning] = field(default_factory=list)
    rows: list[RawRow] = field(default_factory=list)

    @property
    def error_rows(self) -> set[int]:
        return {e.row for e in self.errors}

    @property
    def valid_rows(self) -> list[RawRow]:
        bad = self.error_rows
        return [r for r in self.rows if r.row_number not in bad]

    @property
    def total_errors(self) -> int:
        return len(self.errors)

    def errors_for(self, row: int) -> list[ValidationError]:
        return [e for e in self.errors if e.row == row]


def check_headers(schema: ImportSchema, headers: Sequence[str]) -> tuple[list[ValidationError], list[ValidationWarning]]:
    """Row-0 findings about the header line itself.

    Missing required columns are errors; unknown columns are ignored with a
    warning.
    """
    present = set(headers)
    errors = [
        ValidationError(FILE_ROW, c.name, f"Missing required column: {c.name}")
        for c in schema.columns
        if c.required and c.name not in present
    ]
    known = set(schema.column_names)
    warnings = [
        ValidationWarning(FILE_ROW, h, f"Unknown column ignored: {h}")
        for h in headers
        if h and h not in known
    ]
    return errors, warnings


def _check_value(col: ColumnSpec, value: str, index: LookupIndex) -> str | None:
    """Error message for a non-blank cell, or None when it is acceptable."""
    label = col.label
    if col.kind is ColumnKind.ENUMERATED:
        if canonical_choice(col, value) is None:
            options = ", ".join(sorted(col.allowed_values or ()))
            return f'Invalid {label} "{value}". Valid options: {options}'
    elif col.kind is ColumnKind.DATE:
        if parse_date(col, value) is None:
            return f'Invalid {label} "{value}". Expected format: {col.expected_format}'
    elif col.kind is ColumnKind.LOOKUP:
        if index.resolve(col.lookup_kind or "", value) is None:
            return f"{label} not found: {value}"
    elif col.kind is ColumnKind.EMAIL:
        if not EMAIL_RE.match(value):
            return "Invalid email format"
    elif col.kind is ColumnKind.PHONE:
        if not phone_is_valid(value):
            return "Invalid phone number"
    elif col.kind is ColumnKind.NUMBER:
        num = parse_number(value)
        if num is None:
            return f"{label} must be a number"
        if col.min_value is not None and num < col.min_value:
            if col.min_value == 1:
                return f"{label} must be a positive number"
            return f"{label} must be at least {col.min_value:g}"
    return None


def _multiple_choice_options(row: RawRow) -> list[ValidationError]:
    if row.get("question_type").lower() != "multiple_choice":
        return []
    errors: list[ValidationError] = []
    if not row.has("option_a") or not row.has("option_b"):
        errors.append(ValidationError(row.row_number, "option_a", "MCQ requires at least options A and B"))
    answer = row.get("correct_answer").upper()
    if answer and answer not in ("A", "B", "C", "D"):
        errors.append(ValidationError(row.row_number, "correct_answer", "MCQ correct answer must be A, B, C, or D"))
    return errors


ROW_RULES: dict[str, Callable[[RawRow], list[ValidationError]]] = {
    "multiple_choice_options": _multiple_choice_options,
}


def _matches_persisted(col: ColumnSpec, value: str, record: Mapping[str, Any] | None, index: LookupIndex) -> bool:
    if record is None or not col.persist:
        return False
    persisted = render_value(col, record.get(col.target_field), index)
    return bool(persisted) and comparable(col, persisted) == comparable(col, value.strip())


def _link_warnings(col: ColumnSpec, row: RawRow, index: LookupIndex) -> list[ValidationWarning]:
    refs = split_list(row.get(col.name), col.list_separator or ";")
    return [
        ValidationWarning(row.row_number, col.name, f'{col.label}: "{ref}" not found, it will be skipped')
        for ref in refs
        if index.resolve(col.lookup_kind or "", ref) is None
    ]


def validate_rows(
    schema: ImportSchema,
    rows: Iterable[RawRow],
    index: LookupIndex,
    existing: Mapping[str, Mapping[str, Any]] | None = None,
    *,
    headers: Sequence[str] | None = None,
) -> ValidationReport:
    """Validate ``rows`` against ``schema``.

    Parameters
    ----------
    schema: the entity's ImportSchema
    rows: parsed rows in file order
    index: LookupIndex built for this session
    existing: update mode only; persisted entities keyed by normalized business key
    headers: normalized header line; when given, header findings are added at row 0
        and per-row "required" errors are not repeated for columns missing from it
    """
    report = ValidationReport()
    missing_columns: set[str] = set()
    if headers is not None:
        header_errors, header_warnings = check_headers(schema, headers)
        report.errors.extend(header_errors)
        report.warnings.extend(header_warnings)
        missing_columns = {e.field for e in header_errors}

    update_mode = schema.mode is ImportMode.UPDATE
    if update_mode and existing is None:
        existing = {}
    unique_columns = (schema.business_key, *schema.unique_columns)
    seen: dict[str, set[str]] = {name: set() for name in unique_columns}
    rules = [ROW_RULES[name] for name in schema.row_rules]

    for row in rows:
        report.rows.append(row)
        rn = row.row_number
        key_col = schema.key_column
        record = None

        if update_mode and key_col.name not in missing_columns:
            key = row.get(key_col.name)
            if not key:
                report.errors.append(ValidationError(rn, key_col.name, f"{key_col.label} is required"))
                continue
            if normalize_key(key) not in existing:  # type: ignore[operator]
                report.errors.append(ValidationError(rn, key_col.name, f"{schema.entity_label} not found: {key}"))
                continue
            record = existing[normalize_key(key)]  # type: ignore[index]

        for col in schema.columns:
            value = row.get(col.name)
            if not value:
                if col.required and col.name not in missing_columns and not (update_mode and col is key_col):
                    report.errors.append(ValidationError(rn, col.name, f"{col.label} is required"))
                continue
            if _matches_persisted(col, value, record, index):
                continue
            message = _check_value(col, value, index)
            if message is not None:
                report.errors.append(ValidationError(rn, col.name, message))
            elif col.lookup_kind and col.kind is not ColumnKind.LOOKUP:
                report.warnings.extend(_link_warnings(col, row, index))

        for name in unique_columns:
            value = normalize_key(row.get(name))
            if not value:
                continue
            if value in seen[name]:
                label = schema.column(name).label
                report.errors.append(ValidationError(rn, name, f"Duplicate {label.lower()} in file"))
            else:
                seen[name].add(value)

        for rule in rules:
            report.errors.extend(rule(row))

    logger.debug(
        "validated entity=%s rows=%d errors=%d warnings=%d",
        schema.entity_type,
        len(report.rows),
        len(report.errors),
        len(report.warnings),
    )
    return report
