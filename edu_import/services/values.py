from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from ..models.column_spec import ColumnKind, ColumnSpec
from .lookup import LookupIndex

"""Value interpretation shared by the validator, diff engine, executor and exporter.

``apply_value`` turns a raw cell into what gets written; ``render_value``
turns a persisted value into the string an export shows. The diff engine
compares both sides through ``render_value`` so that an unedited export never
produces a change.
"""

__all__ = [
    "EMAIL_RE",
    "PHONE_RE",
    "parse_date",
    "parse_number",
    "canonical_choice",
    "split_list",
    "apply_value",
    "render_value",
    "comparable",
]

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^\+?[\d\s\-()]{7,20}$")
_BOOLEAN_CHOICES = frozenset({"true", "false"})


def parse_date(spec: ColumnSpec, raw: str) -> date | None:
    for fmt in spec.date_formats:
        try:
            return datetime.strptime(raw.strip(), fmt).date()
        except ValueError:
            continue
    return None


def parse_number(raw: str) -> int | float | None:
    text = raw.strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        num = float(text)
    except ValueError:
        return None
    if num != num or num in (float("inf"), float("-inf")):
        return None
    return num


def phone_is_valid(raw: str) -> bool:
    if not PHONE_RE.match(raw.strip()):
        return False
    digits = sum(ch.isdigit() for ch in raw)
    return 7 <= digits <= 15


def canonical_choice(spec: ColumnSpec, raw: str) -> str | None:
    """Declared spelling of an enumerated value, matched case-insensitively."""
    wanted = raw.strip().lower()
    for choice in spec.allowed_values or ():
        if choice.lower() == wanted:
            return choice
    return None


def is_boolean(spec: ColumnSpec) -> bool:
    return spec.kind is ColumnKind.ENUMERATED and spec.allowed_values == _BOOLEAN_CHOICES


def split_list(raw: str, separator: str = ";") -> list[str]:
    """Split a multi-value cell; ',' is accepted alongside the declared separator."""
    parts = re.split(f"[{re.escape(separator)},]", raw)
    seen: list[str] = []
    for part in parts:
        item = part.strip()
        if item and item not in seen:
            seen.append(item)
    return seen


def apply_value(spec: ColumnSpec, raw: str, index: LookupIndex | None = None) -> Any:
    """Value written to the store for a validated, non-blank cell."""
    text = raw.strip()
    if spec.kind is ColumnKind.DATE:
        parsed = parse_date(spec, text)
        return parsed.isoformat() if parsed else text
    if spec.kind is ColumnKind.NUMBER:
        num = parse_number(text)
        return text if num is None else num
    if spec.kind is ColumnKind.ENUMERATED:
        choice = canonical_choice(spec, text) or text.lower()
        if is_boolean(spec):
            return choice == "true"
        return choice
    if spec.kind is ColumnKind.LOOKUP:
        return index.resolve(spec.lookup_kind or "", text) if index is not None else None
    if spec.list_separator:
        return split_list(text, spec.list_separator)
    return text


def _render_number(value: Any) -> str:
    try:
        dec = Decimal(str(value))
    except InvalidOperation:
        return str(value).strip()
    if dec == dec.to_integral_value():
        return str(int(dec))
    return format(dec.normalize(), "f")


def render_value(spec: ColumnSpec, value: Any, index: LookupIndex | None = None) -> str:
    """String form of a persisted (or applied) value, as an export shows it."""
    if value is None:
        return ""
    if spec.kind is ColumnKind.LOOKUP:
        label = index.label_for(spec.lookup_kind or "", value) if index is not None else None
        return label or ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        sep = spec.list_separator or ";"
        return sep.join(str(v).strip() for v in value)
    if spec.kind is ColumnKind.NUMBER and not isinstance(value, str):
        return _render_number(value)
    if spec.kind is ColumnKind.NUMBER:
        num = parse_number(value)
        return _render_number(num) if num is not None else value.strip()
    if spec.kind is ColumnKind.DATE and isinstance(value, str):
        parsed = parse_date(spec, value[:10]) if len(value) >= 10 else None
        return parsed.isoformat() if parsed else value.strip()
    return str(value).strip()


def comparable(spec: ColumnSpec, rendered: str) -> str:
    """Normalized form used for equality: case-insensitive for enumerated values."""
    if spec.kind is ColumnKind.ENUMERATED:
        return rendered.lower()
    return rendered
