from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import psycopg2
from psycopg2 import sql
from psycopg2.extras import Json, RealDictCursor

from .store import StaleReferenceError, Store, StoreError

"""PostgreSQL implementation of the Store interface (psycopg2).

- Identifiers are composed with ``psycopg2.sql`` (never string formatted)
- ``create`` uses ``INSERT ... RETURNING id``
- each call is its own transaction: commit on success, rollback on failure
- an ``update`` touching zero rows raises StaleReferenceError
- list values are stored as arrays, dict values as jsonb

``table_names`` maps persisted entity names to tables (optionally
schema-qualified, e.g. ``school.staff``).
"""

logger = logging.getLogger(__name__)

__all__ = [
    "PostgresStore",
]


def _adapt(value: Any) -> Any:
    if isinstance(value, dict):
        return Json(value)
    return value


class PostgresStore(Store):
    def __init__(self, connection: Any, table_names: Mapping[str, str] | None = None) -> None:
        self.conn = connection
        self.table_names = dict(table_names or {})

    def _table(self, entity: str) -> sql.Composable:
        name = self.table_names.get(entity, entity)
        return sql.Identifier(*name.split("."))

    def _run(self, query: sql.Composable, params: list[Any], *, fetch: str | None = None) -> Any:
        try:
            with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(query, params)
                if fetch == "one":
                    result = cur.fetchone()
                elif fetch == "all":
                    result = cur.fetchall()
                else:
                    result = cur.rowcount
            self.conn.commit()
            return result
        except psycopg2.Error as e:
            self.conn.rollback()
            msg = (e.pgerror or str(e)).strip()
            raise StoreError(msg) from e

    def create(self, entity: str, fields: Mapping[str, Any]) -> Any:
        cols = list(fields)
        query = sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING id").format(
            self._table(entity),
            sql.SQL(", ").join(sql.Identifier(c) for c in cols),
            sql.SQL(", ").join(sql.Placeholder() for _ in cols),
        )
        row = self._run(query, [_adapt(fields[c]) for c in cols], fetch="one")
        if not row:
            raise StoreError(f"insert into {entity} returned no id")
        return row["id"]

    def update(self, entity: str, ident: Any, fields: Mapping[str, Any]) -> None:
        if not fields:
            return
        cols = list(fields)
        query = sql.SQL("UPDATE {} SET {} WHERE id = %s").format(
            self._table(entity),
            sql.SQL(", ").join(sql.SQL("{} = %s").format(sql.Identifier(c)) for c in cols),
        )
        count = self._run(query, [_adapt(fields[c]) for c in cols] + [ident])
        if count == 0:
            raise StaleReferenceError(f"{entity} {ident} no longer exists")

    def query(self, entity: str, filters: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        filters = filters or {}
        query = sql.SQL("SELECT * FROM {}").format(self._table(entity))
        if filters:
            query += sql.SQL(" WHERE ") + sql.SQL(" AND ").join(
                sql.SQL("{} = %s").format(sql.Identifier(k)) for k in filters
            )
        rows = self._run(query, list(filters.values()), fetch="all")
        logger.debug("query entity=%s filters=%s rows=%d", entity, sorted(filters), len(rows))
        return [dict(r) for r in rows]

    def close(self) -> None:
        if not self.conn.closed:
            self.conn.close()
