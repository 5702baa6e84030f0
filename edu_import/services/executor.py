from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping, Sequence
from datetime import date
from typing import Any

from ..db.store import StaleReferenceError, Store, StoreError
from ..logging.error_log import ErrorLogBuffer
from ..models.column_spec import ImportMode, ImportSchema, LinkSpec
from ..models.error_record import ErrorRecord
from ..models.processing_result import ExecutionOutcome, FailureDetail, OutcomeAccumulator, ProgressEvent
from ..models.row_data import RawRow
from ..schema.registry import TODAY
from .diff import UpdateUnit
from .lookup import LookupIndex
from .values import apply_value, split_list

"""Batch executor: applies validated rows (create) or change units (update).

Execution is a generator. Units run strictly one after another, each with a
single persistence call for its primary write; after every unit, whatever its
result, a ProgressEvent is yielded. A failing unit never stops the batch and
is never retried.

Create mode:
    one ``create`` per row (schema defaults + tenant scope filled in), then the
    row's secondary link operations. A rejected link is logged but does not
    fail the row; unresolved references and links that already exist are
    skipped. Schemas with ``reuse_existing`` look the business key up first: a
    persisted match is not created again, counts as skipped and still gets its
    links.
Update mode:
    one ``update`` per entity carrying all of its changed fields. The business
    key is re-resolved to the durable id right before the write; an entity
    that vanished since the preview counts as skipped.

Error types written to the error log:
    CREATE_FAILED, UPDATE_FAILED, LINK_FAILED, STALE_REFERENCE
"""

logger = logging.getLogger(__name__)

__all__ = [
    "BatchExecutor",
    "progress_percent",
]

STATUS_SUCCEEDED = "succeeded"
STATUS_SKIPPED = "skipped"
STATUS_FAILED = "failed"


def progress_percent(completed: int, total: int) -> int:
    """Rounded percentage; 100 only once every unit is done."""
    if total <= 0:
        return 100
    pct = int(completed * 100 / total + 0.5)
    if completed < total:
        return min(pct, 99)
    return 100


class BatchExecutor:
    """Runs one apply for a schema against a Store.

    ``outcome`` is None until the generator returned by ``run_create`` /
    ``run_update`` has been exhausted.
    """

    def __init__(
        self,
        store: Store,
        schema: ImportSchema,
        index: LookupIndex,
        *,
        scope: Mapping[str, Any] | None = None,
        error_log: ErrorLogBuffer | None = None,
        file_name: str = "",
        max_failures: int = 20,
        today: date | None = None,
    ) -> None:
        self.store = store
        self.schema = schema
        self.index = index
        self.scope = dict(scope or {})
        self.error_log = error_log
        self.file_name = file_name
        self.max_failures = max_failures
        self.today = today
        self.outcome: ExecutionOutcome | None = None

    # ------------------------------------------------------------------ helpers
    def _log_error(self, row: int, key: str, error_type: str, message: str) -> None:
        if self.error_log is not None:
            self.error_log.append(
                ErrorRecord.create(
                    entity=self.schema.entity_type,
                    file=self.file_name,
                    row=row,
                    business_key=key,
                    error_type=error_type,
                    message=message,
                )
            )

    def _default_value(self, value: Any) -> Any:
        if value == TODAY:
            return (self.today or date.today()).isoformat()
        return value

    def build_payload(self, row: RawRow) -> dict[str, Any]:
        """Primary create payload for a validated row."""
        payload: dict[str, Any] = {}
        for col in self.schema.columns:
            if col.persist and row.has(col.name):
                payload[col.target_field] = apply_value(col, row.get(col.name), self.index)
        for name, value in self.schema.defaults:
            if payload.get(name) in (None, ""):
                payload[name] = self._default_value(value)
        payload.update(self.scope)
        return payload

    def _run_link(self, link: LinkSpec, row: RawRow, owner_id: Any, acc: OutcomeAccumulator) -> None:
        raw = row.get(link.column)
        if not raw:
            return
        refs = [raw] if link.action == "assign" else split_list(raw, link.separator)
        key = row.get(self.schema.business_key)
        for ref in refs:
            target_id = self.index.resolve(link.lookup_kind, ref)
            if target_id is None:
                logger.debug("row %d: %s reference '%s' not found, skipped", row.row_number, link.column, ref)
                continue
            try:
                if link.action == "assign":
                    self.store.update(link.entity, target_id, {link.owner_field: owner_id})
                else:
                    fields: dict[str, Any] = {link.owner_field: owner_id, link.target_field: target_id}
                    fields.update(dict(link.static_fields))
                    if self.store.query(link.entity, fields):
                        logger.debug("row %d: %s link to '%s' already exists", row.row_number, link.column, ref)
                        continue
                    for link_field, column in link.copy_fields:
                        spec = self.schema.column(column)
                        if spec is not None and row.has(column):
                            fields[link_field] = apply_value(spec, row.get(column), self.index)
                    fields.update(self.scope)
                    self.store.create(link.entity, fields)
            except StoreError as e:
                logger.warning("row %d: %s link to '%s' failed: %s", row.row_number, link.column, ref, e)
                self._log_error(row.row_number, key, "LINK_FAILED", f"{link.column} '{ref}': {e}")
                continue
            if link.counter:
                acc.add_link(link.counter)

    def _find_existing(self, row: RawRow) -> Any | None:
        key_col = self.schema.key_column
        filters = {key_col.target_field: apply_value(key_col, row.get(key_col.name)), **self.scope}
        found = self.store.query(self.schema.entity, filters)
        return found[0].get("id") if found else None

    # ----------------------------------------------------------------- create
    def run_create(self, rows: Sequence[RawRow]) -> Iterator[ProgressEvent]:
        """Create one entity per row, in file order."""
        if self.schema.mode is not ImportMode.CREATE:
            raise ValueError(f"schema '{self.schema.entity_type}' is not a create schema")
        acc = OutcomeAccumulator("create", self.max_failures)
        total = len(rows)
        if total == 0:
            self.outcome = acc.freeze()
            yield ProgressEvent(0, 0, 100, "", STATUS_SUCCEEDED)
            return
        for done, row in enumerate(rows, start=1):
            key = row.get(self.schema.business_key)
            try:
                existing_id = self._find_existing(row) if self.schema.reuse_existing else None
                if existing_id is not None:
                    logger.info("row %d: %s '%s' already exists, linking only", row.row_number, self.schema.entity, key)
                    new_id = existing_id
                else:
                    new_id = self.store.create(self.schema.entity, self.build_payload(row))
            except StoreError as e:
                logger.error("row %d: create %s '%s' failed: %s", row.row_number, self.schema.entity, key, e)
                self._log_error(row.row_number, key, "CREATE_FAILED", str(e))
                acc.record_failure(FailureDetail(row.row_number, key, "CREATE_FAILED", str(e)))
                status = STATUS_FAILED
            else:
                if existing_id is not None:
                    acc.skipped += 1
                    status = STATUS_SKIPPED
                else:
                    acc.succeeded += 1
                    status = STATUS_SUCCEEDED
                for link in self.schema.links:
                    self._run_link(link, row, new_id, acc)
            if done == total:
                self.outcome = acc.freeze()
            yield ProgressEvent(done, total, progress_percent(done, total), key, status)

    # ----------------------------------------------------------------- update
    def _resolve_id(self, unit: UpdateUnit) -> Any | None:
        filters = {self.schema.key_field: unit.record_key, **self.scope}
        if self.schema.key_field == "id":
            filters = {"id": unit.record_key}
        found = self.store.query(self.schema.entity, filters)
        return found[0].get("id") if found else None

    def run_update(self, units: Sequence[UpdateUnit]) -> Iterator[ProgressEvent]:
        """Apply one grouped update per entity."""
        if self.schema.mode is not ImportMode.UPDATE:
            raise ValueError(f"schema '{self.schema.entity_type}' is not an update schema")
        acc = OutcomeAccumulator("update", self.max_failures)
        total = len(units)
        if total == 0:
            self.outcome = acc.freeze()
            yield ProgressEvent(0, 0, 100, "", STATUS_SUCCEEDED)
            return
        for done, unit in enumerate(units, start=1):
            key = unit.business_key
            status = STATUS_SUCCEEDED
            try:
                ident = self._resolve_id(unit)
                if ident is None:
                    raise StaleReferenceError(f"{self.schema.entity_label} {key} no longer exists")
                self.store.update(self.schema.entity, ident, unit.fields)
            except StaleReferenceError as e:
                logger.warning("row %d: %s skipped: %s", unit.row, key, e)
                self._log_error(unit.row, key, "STALE_REFERENCE", str(e))
                acc.record_failure(FailureDetail(unit.row, key, "STALE_REFERENCE", str(e)), skipped=True)
                status = STATUS_SKIPPED
            except StoreError as e:
                logger.error("row %d: update %s '%s' failed: %s", unit.row, self.schema.entity, key, e)
                self._log_error(unit.row, key, "UPDATE_FAILED", str(e))
                acc.record_failure(FailureDetail(unit.row, key, "UPDATE_FAILED", str(e)))
                status = STATUS_FAILED
            else:
                acc.succeeded += 1
            if done == total:
                self.outcome = acc.freeze()
            yield ProgressEvent(done, total, progress_percent(done, total), key, status)
