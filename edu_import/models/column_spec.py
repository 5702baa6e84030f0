from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

"""Column and schema definitions for bulk imports.

An ImportSchema is the declarative description of one importable entity type:
which columns a file may carry, which of them are required, how each raw
value is interpreted and where it is stored. Schemas are pure data; the
validator, diff engine and executor read them but never mutate them.
"""

__all__ = [
    "ColumnKind",
    "ColumnSpec",
    "LinkSpec",
    "ImportMode",
    "ImportSchema",
    "SchemaDefinitionError",
]


class SchemaDefinitionError(Exception):
    """Raised when an ImportSchema violates its structural invariants."""


class ColumnKind(Enum):
    """How a raw cell value is interpreted.

    EMAIL and PHONE are text values with a format check.
    """
    TEXT = "text"
    DATE = "date"
    NUMBER = "number"
    ENUMERATED = "list"
    LOOKUP = "lookup"
    EMAIL = "email"
    PHONE = "phone"


class ImportMode(Enum):
    CREATE = "create"
    UPDATE = "update"


@dataclass(frozen=True)
class ColumnSpec:
    """Declarative description of one importable column.

    ``target`` is the persisted field the value is written to (defaults to
    ``name``). ``change_field`` is the name reported on change records; lookup
    columns use it to show e.g. ``class`` instead of ``class_id``. Columns with
    ``persist=False`` only drive secondary operations and never reach the
    primary create/update payload.
    """
    name: str
    label: str
    required: bool = False
    kind: ColumnKind = ColumnKind.TEXT
    allowed_values: frozenset[str] | None = None
    lookup_kind: str | None = None
    date_formats: tuple[str, ...] = ("%Y-%m-%d",)
    format_hint: str | None = None
    example: str = ""
    description: str = ""
    target: str | None = None
    change_field: str | None = None
    min_value: float | None = None
    list_separator: str | None = None  # ";" -> stored as a list of strings
    persist: bool = True

    @property
    def target_field(self) -> str:
        return self.target or self.name

    @property
    def diff_field(self) -> str:
        return self.change_field or self.name

    @property
    def expected_format(self) -> str:
        if self.format_hint:
            return self.format_hint
        hints = {"%Y-%m-%d": "YYYY-MM-DD", "%d-%m-%Y": "DD-MM-YYYY", "%d/%m/%Y": "DD/MM/YYYY"}
        return " or ".join(hints.get(f, f) for f in self.date_formats)


@dataclass(frozen=True)
class LinkSpec:
    """Secondary relationship created after the primary record (create mode).

    action="insert": one ``entity`` record per resolved reference, carrying
    ``owner_field`` (new record id) and ``target_field`` (resolved id).
    action="assign": update the referenced ``entity`` record, setting
    ``owner_field`` to the new record id.

    An insert whose owner, target and static fields already exist is skipped.
    ``counter=None`` performs the link without counting it.
    """
    column: str
    lookup_kind: str
    entity: str
    owner_field: str
    target_field: str = "id"
    counter: str | None = "links"
    action: str = "insert"
    separator: str = ";"
    static_fields: tuple[tuple[str, object], ...] = ()
    copy_fields: tuple[tuple[str, str], ...] = ()  # (link field, row column)


@dataclass(frozen=True)
class ImportSchema:
    """Ordered column list for one entity type plus how it is persisted."""
    entity_type: str
    title: str
    entity: str  # persisted entity (table) name
    entity_label: str  # human name used in messages, e.g. "Staff"
    mode: ImportMode
    business_key: str
    columns: tuple[ColumnSpec, ...]
    description: str = ""
    unique_columns: tuple[str, ...] = ()  # extra in-file uniqueness dimensions
    defaults: tuple[tuple[str, object], ...] = ()
    links: tuple[LinkSpec, ...] = ()
    row_rules: tuple[str, ...] = ()
    reuse_existing: bool = False  # create mode: link a persisted key instead of creating it again
    _by_name: dict[str, ColumnSpec] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        names = [c.name for c in self.columns]
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise SchemaDefinitionError(f"schema '{self.entity_type}' has duplicate columns: {dupes}")
        by_name = {c.name: c for c in self.columns}
        key = by_name.get(self.business_key)
        if key is None:
            raise SchemaDefinitionError(
                f"schema '{self.entity_type}' business key '{self.business_key}' is not a column"
            )
        if not key.required:
            raise SchemaDefinitionError(
                f"schema '{self.entity_type}' business key '{self.business_key}' must be required"
            )
        for extra in self.unique_columns:
            if extra not in by_name:
                raise SchemaDefinitionError(
                    f"schema '{self.entity_type}' unique column '{extra}' is not a column"
                )
        for link in self.links:
            if link.column not in by_name:
                raise SchemaDefinitionError(
                    f"schema '{self.entity_type}' link column '{link.column}' is not a column"
                )
        object.__setattr__(self, "_by_name", by_name)

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    @property
    def key_column(self) -> ColumnSpec:
        return self._by_name[self.business_key]

    @property
    def key_field(self) -> str:
        """Persisted field holding the business key."""
        return self.key_column.target_field

    def column(self, name: str) -> ColumnSpec | None:
        return self._by_name.get(name)

    def required_columns(self) -> list[str]:
        return [c.name for c in self.columns if c.required]

    def optional_columns(self) -> list[str]:
        return [c.name for c in self.columns if not c.required]
