# Shared pytest fixtures
from __future__ import annotations

import logging
import tempfile
from datetime import date
from pathlib import Path

import pytest

from edu_import.db.store import InMemoryStore
from edu_import.logging.init import reset_logging
from edu_import.models.row_data import RawRow
from edu_import.services.lookup import build_lookup_index
from edu_import.tabular.reader import parse_text

INSTITUTION = "inst-1"
SCOPE = {"institution_id": INSTITUTION}


def _scoped(records: list[dict]) -> list[dict]:
    return [{**r, "institution_id": INSTITUTION} for r in records]


CLASSES = _scoped([
    {"id": 1, "name": "1A", "level": "Grade 1", "stream": "A"},
    {"id": 2, "name": "2A", "level": "Grade 2", "stream": "A"},
    {"id": 3, "name": "Form 4", "level": "Form 4", "stream": None},
])

SUBJECTS = _scoped([
    {"id": 1, "code": "MATH", "name": "Mathematics"},
    {"id": 2, "code": "ENG", "name": "English"},
    {"id": 3, "code": "SCI", "name": "Science"},
])

STUDENTS = _scoped([
    {
        "id": 1, "admission_number": "STU001", "first_name": "Amina", "middle_name": None,
        "last_name": "Otieno", "gender": "female", "date_of_birth": "2012-03-04",
        "nationality": "Kenyan", "class_id": 1, "boarding_status": "day", "status": "active",
    },
    {
        "id": 2, "admission_number": "STU002", "first_name": "Brian", "middle_name": "K",
        "last_name": "Kamau", "gender": "male", "date_of_birth": date(2011, 7, 21),
        "nationality": "Kenyan", "class_id": 1, "boarding_status": "boarding", "status": "active",
    },
])

STAFF = _scoped([
    {
        "id": 1, "employee_number": "EMP001", "first_name": "John", "middle_name": None,
        "last_name": "Smith", "email": "john.smith@school.edu", "phone": "+254712345678",
        "department": "Teaching", "designation": "Teacher", "employment_type": "permanent",
        "date_joined": date(2020, 1, 15), "is_active": True,
    },
])


def _restore_app_logger() -> None:
    reset_logging()
    app = logging.getLogger("edu_import")
    for h in app.handlers[:]:
        app.removeHandler(h)
    app.setLevel(logging.NOTSET)
    app.propagate = True  # let caplog see module loggers


@pytest.fixture(autouse=True)
def _clean_logging():
    _restore_app_logger()
    yield
    _restore_app_logger()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return f"""institution_id: {INSTITUTION}
logs_directory: ./logs
max_reported_failures: 5
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: school
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def store() -> InMemoryStore:
    return InMemoryStore({
        "classes": CLASSES,
        "subjects": SUBJECTS,
        "students": STUDENTS,
        "staff": STAFF,
    })


@pytest.fixture()
def index():
    return build_lookup_index({"classes": CLASSES, "subjects": SUBJECTS, "students": STUDENTS})


def rows_from(text: str) -> list[RawRow]:
    """Parse CSV text and return its rows (asserting it parsed cleanly)."""
    result = parse_text(text)
    assert result.errors == [], result.errors
    return result.rows
