from __future__ import annotations

import argparse
import os
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from dotenv import load_dotenv

from edu_import.config.loader import DEFAULT_CONFIG_PATH, ConfigError, ImportConfig, load_config
from edu_import.db.store import InMemoryStore, Store, StoreError
from edu_import.logging.error_log import ErrorLogBuffer
from edu_import.logging.init import log_summary, set_debug, setup_logging
from edu_import.models.column_spec import ImportMode, ImportSchema
from edu_import.schema.registry import UnknownEntityError, get_schema, list_entity_types, lookup_kinds_for
from edu_import.services.progress import ProgressTracker
from edu_import.services.session import ImportSession, SessionStatus
from edu_import.services.snapshot import load_lookup_index
from edu_import.services.summary import render_summary_line
from edu_import.services.template import export_frame, render_reference, template_frame, write_table

"""CLI entrypoint.

Sub-commands:
    schema <entity>            print the column reference guide
    template <entity>          write a header + example row file
    export <entity>            write current records (re-importable for updates)
    import <entity> <file>     create records from a file
    update <entity> <file>     apply changed fields from a file

``import`` / ``update`` accept ``--dry-run`` (validate and diff only).

Exit codes: 0 success (or nothing to do), 1 fatal (config, unreadable file,
validation errors), 2 partial failure (at least one unit failed).
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


@contextmanager
def _db_connection(cfg: ImportConfig) -> Iterator[object]:  # pragma: no cover (thin wrapper)
    """psycopg2 connection resolved from the environment, then the config.

    Resolution order:
        1. DATABASE_URL / PGDSN (whole DSN), else config ``database.dsn``
        2. PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
        3. config ``database`` section for whatever is still missing
    """
    import psycopg2

    db_cfg = cfg.database
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if not dsn:
        host = os.getenv("PGHOST", db_cfg.host or "localhost")
        port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
        user = os.getenv("PGUSER", db_cfg.user or "postgres")
        password = os.getenv("PGPASSWORD", db_cfg.password or "")
        database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
        dsn = f"host={host} port={port} user={user} dbname={database}"
        if password:
            dsn += f" password={password}"

    try:
        conn = psycopg2.connect(dsn)
    except psycopg2.Error as e:
        raise StoreError(f"connection failed: {e}") from e
    conn.autocommit = False
    try:
        yield conn
    finally:
        if not conn.closed:
            conn.close()


@contextmanager
def _open_store(cfg: ImportConfig) -> Iterator[Store]:
    """PostgresStore, or an empty InMemoryStore when DISABLE_DB_CONNECT=1."""
    logger = setup_logging()
    if os.getenv("DISABLE_DB_CONNECT") == "1":
        logger.info("DB connect disabled via DISABLE_DB_CONNECT=1 -> mock mode")
        yield InMemoryStore()
        return
    from edu_import.db.postgres_store import PostgresStore

    with _db_connection(cfg) as conn:
        yield PostgresStore(conn, table_names=cfg.entities)


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env with python-dotenv; its values win over the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="edu-import", description="Bulk CSV/xlsx import for institution records")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Config file (YAML)")
    sub = p.add_subparsers(dest="command", required=True)
    entities = list_entity_types()

    sp = sub.add_parser("schema", help="Print the column reference guide")
    sp.add_argument("entity", choices=entities)
    sp.add_argument("--lookups", action="store_true", help="Include values available in the database")

    sp = sub.add_parser("template", help="Write an empty template with one example row")
    sp.add_argument("entity", choices=entities)
    sp.add_argument("-o", "--output", type=Path, help="Output .csv/.xlsx (default: stdout)")

    sp = sub.add_parser("export", help="Export current records")
    sp.add_argument("entity", choices=entities)
    sp.add_argument("-o", "--output", type=Path, help="Output .csv/.xlsx (default: stdout)")

    for name, text in (("import", "Create records from a file"), ("update", "Update records from a file")):
        sp = sub.add_parser(name, help=text)
        sp.add_argument("entity", choices=entities)
        sp.add_argument("file", type=Path)
        sp.add_argument("--dry-run", action="store_true", help="Validate and preview only")
    return p.parse_args(argv)


def _emit(df, output: Path | None) -> None:
    if output is None:
        df.to_csv(sys.stdout, index=False, lineterminator="\n")
    else:
        write_table(df, output)


def _report(status: SessionStatus, limit: int) -> None:
    logger = setup_logging()
    for e in status.errors[:limit]:
        logger.error(f"row={e.row} field={e.field} {e.message}")
    if len(status.errors) > limit:
        logger.error(f"... {len(status.errors) - limit} more error(s)")
    for w in status.warnings[:limit]:
        logger.warning(f"row={w.row} field={w.field} {w.message}")
    for c in status.changes:
        logger.info(f"row={c.row} key={c.business_key} {c.field}: '{c.old_value}' -> '{c.new_value}'")
    if status.unchanged_rows:
        logger.info(f"no changes detected in {len(status.unchanged_rows)} row(s)")


def _run_schema(args: argparse.Namespace, schema: ImportSchema) -> int:
    index = None
    if args.lookups:
        cfg = load_config(args.config)
        with _open_store(cfg) as store:
            index = load_lookup_index(store, lookup_kinds_for(schema), cfg.scope)
    sys.stdout.write(render_reference(schema, index))
    return EXIT_SUCCESS_ALL


def _run_export(args: argparse.Namespace, schema: ImportSchema) -> int:
    cfg = load_config(args.config)
    with _open_store(cfg) as store:
        index = load_lookup_index(store, lookup_kinds_for(schema), cfg.scope)
        records = store.query(schema.entity, cfg.scope)
    _emit(export_frame(schema, records, index), args.output)
    setup_logging().info(f"exported {len(records)} {schema.entity} record(s)")
    return EXIT_SUCCESS_ALL


def _run_apply(args: argparse.Namespace, schema: ImportSchema) -> int:
    logger = setup_logging()
    expected = ImportMode.CREATE if args.command == "import" else ImportMode.UPDATE
    if schema.mode is not expected:
        command = "import" if schema.mode is ImportMode.CREATE else "update"
        logger.error(f"'{schema.entity_type}' is a {schema.mode.value} schema; use the '{command}' command")
        return EXIT_FATAL

    cfg = load_config(args.config)
    error_log = ErrorLogBuffer(Path(cfg.logs_directory))
    with _open_store(cfg) as store:
        session = ImportSession(
            schema,
            store,
            scope=cfg.scope,
            error_log=error_log,
            max_failures=cfg.max_reported_failures,
        )
        status = session.load_file(args.file)
        _report(status, cfg.max_reported_failures)
        if status.errors:
            logger.error(f"{len(status.errors)} validation error(s); nothing was written")
            return EXIT_FATAL
        if session.unit_count == 0:
            logger.info("nothing to apply")
            return EXIT_SUCCESS_ALL
        if args.dry_run:
            logger.info(f"dry run: {session.unit_count} {schema.entity_label.lower()} record(s) would be written")
            return EXIT_SUCCESS_ALL

        start = time.perf_counter()
        with ProgressTracker(session.unit_count, description=schema.title) as tracker:
            for event in session.execute():
                tracker.update(event)
        elapsed = time.perf_counter() - start

    outcome = session.outcome
    assert outcome is not None
    for f in outcome.failures:
        logger.error(f"row={f.row} key={f.business_key} {f.error_type}: {f.message}")
    summary_line = render_summary_line(schema.entity_type, outcome, elapsed)
    log_summary(summary_line[len("SUMMARY "):])
    by_type = ", ".join(f"{k}={v}" for k, v in sorted(error_log.counts().items()))
    log_path = error_log.flush()
    if log_path is not None:
        logger.info(f"error log written: {log_path} ({by_type})")
    return EXIT_PARTIAL_FAILURE if outcome.failed else EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # [] must not fall back to sys.argv (tests call main([...]) under pytest)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        set_debug(True)
        logger.debug("debug mode enabled")

    try:
        schema = get_schema(args.entity)
    except UnknownEntityError as e:
        logger.error(e.args[0])
        return EXIT_FATAL

    try:
        if args.command == "schema":
            return _run_schema(args, schema)
        if args.command == "template":
            _emit(template_frame(schema), args.output)
            return EXIT_SUCCESS_ALL
        if args.command == "export":
            return _run_export(args, schema)
        return _run_apply(args, schema)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL
    except StoreError as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
