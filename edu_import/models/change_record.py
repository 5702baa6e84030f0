from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

__all__ = [
    "ChangeRecord",
]


@dataclass(frozen=True)
class ChangeRecord:
    """One detected field-level difference between a row and its persisted entity.

    ``old_value``/``new_value`` are what the operator sees (lookup columns show
    labels). ``target_field``/``applied_value`` are what gets written (lookup
    columns write the resolved identifier).
    """
    business_key: str
    field: str
    old_value: str
    new_value: str
    target_field: str = ""
    applied_value: Any = field(default=None, compare=False)
    row: int = 0
