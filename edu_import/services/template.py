from __future__ import annotations

import io
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd

from ..models.column_spec import ColumnKind, ColumnSpec, ImportSchema
from .lookup import LookupIndex
from .values import render_value

"""Template generator, exporter and column reference guide.

- ``generate_template``: header row plus one example row, in schema order
- ``export_entities``: persisted entities rendered exactly like the diff
  engine renders persisted values, so re-importing an unedited export
  detects no changes
- ``describe_schema``: one guide entry per column (requirement, kind,
  valid options or format, example) with the lookup values available now
"""

__all__ = [
    "ColumnGuide",
    "template_frame",
    "export_frame",
    "generate_template",
    "export_entities",
    "describe_schema",
    "render_reference",
    "write_table",
]

MAX_GUIDE_VALUES = 20


@dataclass(frozen=True)
class ColumnGuide:
    column: str
    label: str
    required: bool
    kind: str
    options: str  # valid options, expected format or available lookup values
    example: str
    description: str


def template_frame(schema: ImportSchema) -> pd.DataFrame:
    return pd.DataFrame([[c.example for c in schema.columns]], columns=schema.column_names, dtype=str)


def export_frame(
    schema: ImportSchema,
    records: Iterable[Mapping[str, Any]],
    index: LookupIndex | None = None,
) -> pd.DataFrame:
    rows = [
        [render_value(c, rec.get(c.target_field), index) if c.persist else "" for c in schema.columns]
        for rec in records
    ]
    return pd.DataFrame(rows, columns=schema.column_names, dtype=str)


def _to_csv(df: pd.DataFrame) -> str:
    buf = io.StringIO()
    df.to_csv(buf, index=False, lineterminator="\n")
    return buf.getvalue()


def generate_template(schema: ImportSchema) -> str:
    """CSV text: header row + one example row."""
    return _to_csv(template_frame(schema))


def export_entities(
    schema: ImportSchema,
    records: Iterable[Mapping[str, Any]],
    index: LookupIndex | None = None,
) -> str:
    """CSV text of ``records`` in the schema's column order."""
    return _to_csv(export_frame(schema, records, index))


def _options(col: ColumnSpec, index: LookupIndex | None) -> str:
    if col.kind is ColumnKind.ENUMERATED:
        return ", ".join(sorted(col.allowed_values or ()))
    if col.kind is ColumnKind.DATE:
        return col.expected_format
    if col.kind is ColumnKind.NUMBER and col.min_value is not None:
        return f">= {col.min_value:g}"
    if col.lookup_kind:
        if index is None:
            return f"existing {col.lookup_kind}"
        values = index.display_labels(col.lookup_kind)
        shown = ", ".join(values[:MAX_GUIDE_VALUES])
        if len(values) > MAX_GUIDE_VALUES:
            shown += f", ... ({len(values)} total)"
        return shown or f"no {col.lookup_kind} defined"
    if col.list_separator:
        return f'values separated by "{col.list_separator}"'
    return ""


def describe_schema(schema: ImportSchema, index: LookupIndex | None = None) -> list[ColumnGuide]:
    return [
        ColumnGuide(
            column=c.name,
            label=c.label,
            required=c.required,
            kind=c.kind.value,
            options=_options(c, index),
            example=c.example,
            description=c.description,
        )
        for c in schema.columns
    ]


def render_reference(schema: ImportSchema, index: LookupIndex | None = None) -> str:
    """Plain-text column reference guide for the terminal."""
    guide = describe_schema(schema, index)
    df = pd.DataFrame(
        [
            {
                "column": g.column,
                "required": "yes" if g.required else "no",
                "kind": g.kind,
                "options / format": g.options,
                "example": g.example,
            }
            for g in guide
        ]
    )
    header = f"{schema.title} ({schema.entity_type}, {schema.mode.value})"
    if schema.description:
        header += f"\n{schema.description}"
    return f"{header}\n\n{df.to_string(index=False)}\n"


def write_table(df: pd.DataFrame, path: Path) -> Path:
    """Write a template/export frame as .csv or .xlsx depending on the suffix."""
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix.lower() == ".xlsx":
        df.to_excel(path, index=False)
    else:
        path.write_text(_to_csv(df), encoding="utf-8")
    return path
