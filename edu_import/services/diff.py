from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from ..models.change_record import ChangeRecord
from ..models.column_spec import ColumnKind, ImportSchema
from ..models.row_data import RawRow
from .lookup import LookupIndex
from .validator import normalize_key
from .values import apply_value, comparable, render_value

"""Diff engine: minimal field-level changes between rows and persisted entities.

A blank or absent cell means "no opinion" and never produces a change.
Incoming and persisted values are both rendered through ``render_value`` and
compared in normalized form (case-insensitive for enumerated values). Lookup
columns compare resolved identifiers; the change record still shows labels.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "UpdateUnit",
    "ChangeSet",
    "detect_changes",
    "build_change_set",
    "group_changes",
]


@dataclass
class UpdateUnit:
    """All changes for one persisted entity, written as a single update."""
    business_key: str
    row: int
    record_key: Any  # business key value as persisted, used to re-resolve the id
    changes: list[ChangeRecord] = field(default_factory=list)

    @property
    def fields(self) -> dict[str, Any]:
        return {c.target_field: c.applied_value for c in self.changes}


@dataclass
class ChangeSet:
    units: list[UpdateUnit] = field(default_factory=list)
    unchanged_rows: list[int] = field(default_factory=list)  # "no changes detected"

    @property
    def changes(self) -> list[ChangeRecord]:
        return [c for u in self.units for c in u.changes]

    @property
    def is_empty(self) -> bool:
        return not self.units


def detect_changes(
    schema: ImportSchema,
    row: RawRow,
    record: Mapping[str, Any],
    index: LookupIndex,
) -> list[ChangeRecord]:
    """ChangeRecords for one row against its persisted record, in column order."""
    key = row.get(schema.business_key)
    changes: list[ChangeRecord] = []
    for col in schema.columns:
        if col.name == schema.business_key or not col.persist or not row.has(col.name):
            continue
        raw = row.get(col.name)
        applied = apply_value(col, raw, index)
        persisted = record.get(col.target_field)
        if col.kind is ColumnKind.LOOKUP:
            if applied is None:
                continue
            old = render_value(col, persisted, index)
            new = raw
            differs = persisted is None or str(persisted) != str(applied)
        else:
            old = render_value(col, persisted, index)
            new = render_value(col, applied, index)
            differs = comparable(col, old) != comparable(col, new)
        if differs:
            changes.append(
                ChangeRecord(
                    business_key=key,
                    field=col.diff_field,
                    old_value=old,
                    new_value=new,
                    target_field=col.target_field,
                    applied_value=applied,
                    row=row.row_number,
                )
            )
    return changes


def build_change_set(
    schema: ImportSchema,
    rows: Iterable[RawRow],
    existing: Mapping[str, Mapping[str, Any]],
    index: LookupIndex,
) -> ChangeSet:
    """Diff validated rows against ``existing`` (keyed by normalized business key).

    Rows without changes are listed in ``unchanged_rows`` and produce no unit.
    """
    result = ChangeSet()
    for row in rows:
        record = existing.get(normalize_key(row.get(schema.business_key)))
        if record is None:
            logger.debug("diff: row %d has no persisted entity, skipped", row.row_number)
            continue
        changes = detect_changes(schema, row, record, index)
        if not changes:
            result.unchanged_rows.append(row.row_number)
            continue
        result.units.append(
            UpdateUnit(
                business_key=row.get(schema.business_key),
                row=row.row_number,
                record_key=record.get(schema.key_field),
                changes=changes,
            )
        )
    return result


def group_changes(changes: Iterable[ChangeRecord]) -> dict[str, dict[str, Any]]:
    """business key -> {target field: applied value}, first-seen order."""
    grouped: dict[str, dict[str, Any]] = {}
    for c in changes:
        grouped.setdefault(c.business_key, {})[c.target_field] = c.applied_value
    return grouped
