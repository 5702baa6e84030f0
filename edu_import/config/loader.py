from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

"""Config loader.

Responsibilities:
- Load YAML (default ``config/import.yml``)
- Validate it against the JSON schema shipped next to this module
- Apply defaults (logs_directory=./logs, max_reported_failures=20)

Connection settings from the environment (DATABASE_URL / PGDSN / PG*) take
precedence over the ``database`` section; that resolution happens where the
connection is opened.
"""

__all__ = [
    "ConfigError",
    "DatabaseConfig",
    "ImportConfig",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "load_config",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/import.yml")


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DatabaseConfig:
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class ImportConfig:
    institution_id: str | int
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    logs_directory: str = "./logs"
    max_reported_failures: int = 20
    entities: dict[str, str] = field(default_factory=dict)  # entity -> table name

    @property
    def scope(self) -> dict[str, Any]:
        """Tenant filter applied to every query and create."""
        return {"institution_id": self.institution_id}


def _validate_config_schema(data: Any) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: if the schema file is missing or invalid, or the data
            fails validation (missing keys, wrong types, unknown keys)
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> ImportConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e

    _validate_config_schema(data)

    db_raw = data.get("database", {})
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    return ImportConfig(
        institution_id=data["institution_id"],
        database=db,
        logs_directory=data.get("logs_directory", "./logs"),
        max_reported_failures=data.get("max_reported_failures", 20),
        entities=dict(data.get("entities", {})),
    )
