from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

"""Lookup resolver: human-readable labels -> stable identifiers.

The index is an explicit value built once per session from a snapshot of the
persisted reference entities and passed to the validator, diff engine and
executor. Resolution is a single dict lookup on the trimmed, lowercased label:
no fuzzy matching, no partial matches.

Label variants per reference kind:
- classes:  name, "<level> <stream>", and the bare level for stream-less classes
- subjects: code and name
- students: admission number
"""

logger = logging.getLogger(__name__)

__all__ = [
    "LookupIndex",
    "build_lookup_index",
    "normalize_label",
]


def normalize_label(value: Any) -> str:
    return str(value).strip().lower() if value is not None else ""


def _class_labels(rec: Mapping[str, Any]) -> list[str]:
    labels = [rec.get("name")]
    level, stream = rec.get("level"), rec.get("stream")
    if level and stream:
        labels.append(f"{level} {stream}")
    elif level:
        labels.append(level)
    return labels


def _subject_labels(rec: Mapping[str, Any]) -> list[str]:
    return [rec.get("code"), rec.get("name")]


def _student_labels(rec: Mapping[str, Any]) -> list[str]:
    return [rec.get("admission_number")]


# kind -> (label variants, display label)
_LABELLERS: dict[str, tuple[Callable[[Mapping[str, Any]], list[Any]], str]] = {
    "classes": (_class_labels, "name"),
    "subjects": (_subject_labels, "code"),
    "students": (_student_labels, "admission_number"),
}


@dataclass(frozen=True)
class LookupIndex:
    """Per-kind label -> id maps plus id -> display label for rendering."""
    labels: dict[str, dict[str, Any]] = field(default_factory=dict)
    display: dict[str, dict[str, str]] = field(default_factory=dict)

    def resolve(self, kind: str, label: Any) -> Any | None:
        key = normalize_label(label)
        if not key:
            return None
        return self.labels.get(kind, {}).get(key)

    def label_for(self, kind: str, ident: Any) -> str | None:
        if ident is None:
            return None
        return self.display.get(kind, {}).get(str(ident))

    def kinds(self) -> list[str]:
        return list(self.labels)

    def display_labels(self, kind: str) -> list[str]:
        return sorted(self.display.get(kind, {}).values())


def build_lookup_index(snapshot: Mapping[str, Iterable[Mapping[str, Any]]]) -> LookupIndex:
    """Build a LookupIndex from ``{kind: [record, ...]}``.

    Records need an ``id`` plus the label fields of their kind. When two
    entities register the same label the first one keeps it; the clash is
    logged so the operator can rename one of them.
    """
    labels: dict[str, dict[str, Any]] = {}
    display: dict[str, dict[str, str]] = {}
    for kind, records in snapshot.items():
        labeller, display_field = _LABELLERS.get(kind, (lambda r: [r.get("name")], "name"))
        kind_labels: dict[str, Any] = {}
        kind_display: dict[str, str] = {}
        for rec in records:
            ident = rec.get("id")
            if ident is None:
                continue
            for variant in labeller(rec):
                key = normalize_label(variant)
                if not key:
                    continue
                owner = kind_labels.setdefault(key, ident)
                if owner != ident:
                    logger.debug("lookup label clash kind=%s label=%s kept=%s dropped=%s", kind, key, owner, ident)
            shown = rec.get(display_field) or rec.get("name")
            if shown:
                kind_display[str(ident)] = str(shown)
        labels[kind] = kind_labels
        display[kind] = kind_display
    return LookupIndex(labels=labels, display=display)
