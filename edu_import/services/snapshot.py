from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from ..db.store import Store
from ..models.column_spec import ImportSchema
from ..schema.registry import REFERENCE_ENTITIES
from .lookup import LookupIndex, build_lookup_index
from .validator import normalize_key

"""Session snapshots read from the store once per session.

- reference records per lookup kind (input of build_lookup_index)
- persisted entities of the schema keyed by normalized business key
  (update mode existence checks and diffing, exports)

Every query is scoped to the tenant (``institution_id``) when a scope is given.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "load_reference_snapshot",
    "load_lookup_index",
    "load_existing",
]


def load_reference_snapshot(
    store: Store,
    kinds: Iterable[str],
    scope: Mapping[str, Any] | None = None,
) -> dict[str, list[dict[str, Any]]]:
    """``{kind: [record, ...]}`` for every requested lookup kind."""
    snapshot: dict[str, list[dict[str, Any]]] = {}
    for kind in sorted(kinds):
        entity = REFERENCE_ENTITIES.get(kind, kind)
        snapshot[kind] = store.query(entity, dict(scope or {}))
        logger.debug("snapshot kind=%s entity=%s records=%d", kind, entity, len(snapshot[kind]))
    return snapshot


def load_lookup_index(
    store: Store,
    kinds: Iterable[str],
    scope: Mapping[str, Any] | None = None,
) -> LookupIndex:
    return build_lookup_index(load_reference_snapshot(store, kinds, scope))


def load_existing(
    store: Store,
    schema: ImportSchema,
    scope: Mapping[str, Any] | None = None,
) -> dict[str, dict[str, Any]]:
    """Persisted entities for ``schema`` keyed by normalized business key."""
    records = store.query(schema.entity, dict(scope or {}))
    existing: dict[str, dict[str, Any]] = {}
    for rec in records:
        key = normalize_key(rec.get(schema.key_field))
        if key:
            existing.setdefault(key, rec)
    return existing
