from __future__ import annotations

import copy
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from typing import Any

"""Persistence collaborator interface plus the in-memory implementation.

The engine only needs three operations on an opaque table API:

    create(entity, fields) -> id
    update(entity, id, fields) -> None
    query(entity, filters) -> list[dict]

No multi-row transaction is assumed: every call stands on its own. Failures
raise StoreError; an update whose target row no longer exists raises
StaleReferenceError.

InMemoryStore backs mock mode (DISABLE_DB_CONNECT=1) and the test suite.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "StoreError",
    "StaleReferenceError",
    "Store",
    "InMemoryStore",
]


class StoreError(Exception):
    """A persistence call was rejected."""


class StaleReferenceError(StoreError):
    """The targeted record no longer exists."""


class Store(ABC):
    @abstractmethod
    def create(self, entity: str, fields: Mapping[str, Any]) -> Any:
        """Insert one record and return its identifier."""

    @abstractmethod
    def update(self, entity: str, ident: Any, fields: Mapping[str, Any]) -> None:
        """Write ``fields`` onto the record ``ident``."""

    @abstractmethod
    def query(self, entity: str, filters: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        """Records of ``entity`` whose fields equal every filter value."""

    def close(self) -> None:  # pragma: no cover (trivial)
        pass


class InMemoryStore(Store):
    """Dict-backed store. Identifiers are sequential integers per entity."""

    def __init__(self, tables: Mapping[str, Iterable[Mapping[str, Any]]] | None = None) -> None:
        self._tables: dict[str, list[dict[str, Any]]] = {}
        for entity, records in (tables or {}).items():
            self.seed(entity, records)

    def seed(self, entity: str, records: Iterable[Mapping[str, Any]]) -> list[Any]:
        """Load records as-is; records without an ``id`` get one."""
        return [self._insert(entity, dict(r)) for r in records]

    def _insert(self, entity: str, record: dict[str, Any]) -> Any:
        table = self._tables.setdefault(entity, [])
        if record.get("id") is None:
            ints = [r["id"] for r in table if isinstance(r.get("id"), int)]
            record["id"] = max(ints, default=0) + 1
        table.append(record)
        return record["id"]

    def create(self, entity: str, fields: Mapping[str, Any]) -> Any:
        ident = self._insert(entity, copy.deepcopy(dict(fields)))
        logger.debug("memory create entity=%s id=%s", entity, ident)
        return ident

    def update(self, entity: str, ident: Any, fields: Mapping[str, Any]) -> None:
        for record in self._tables.get(entity, []):
            if record.get("id") == ident:
                record.update(copy.deepcopy(dict(fields)))
                return
        raise StaleReferenceError(f"{entity} {ident} no longer exists")

    def delete(self, entity: str, ident: Any) -> None:
        table = self._tables.get(entity, [])
        self._tables[entity] = [r for r in table if r.get("id") != ident]

    def query(self, entity: str, filters: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        filters = filters or {}
        return [
            copy.deepcopy(r)
            for r in self._tables.get(entity, [])
            if all(r.get(k) == v for k, v in filters.items())
        ]

    def records(self, entity: str) -> list[dict[str, Any]]:
        return self.query(entity)
