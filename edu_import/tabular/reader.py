from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pandas as pd

from ..models.row_data import RawRow
from ..models.validation_error import FILE_ROW, ValidationError

"""Tabular reader: CSV / xlsx text -> headers + RawRows.

- Line 1 is the header, the first data row is line 2. The header is read as
  an ordinary row (header=None) and normalized here, so two identical column
  names are reported instead of being renamed by pandas.
- Every cell is read as a string (dtype=str, keep_default_na=False) so values
  such as "NA" or "0712" survive untouched.
- Blank lines are skipped; their line numbers are not reused.
- Malformed input never raises: the result carries one row-0 error on the
  "file" field and no rows.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "ParseResult",
    "normalize_header",
    "parse_text",
    "parse_frame",
    "read_file",
]

_WS_RE = re.compile(r"\s+")
SUPPORTED_SUFFIXES = (".csv", ".xlsx")


@dataclass
class ParseResult:
    headers: list[str] = field(default_factory=list)
    rows: list[RawRow] = field(default_factory=list)
    errors: list[ValidationError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def normalize_header(raw: Any) -> str:
    """'  Date Joined ' -> 'date_joined'."""
    return _WS_RE.sub("_", str(raw).strip().lower())


def _file_error(message: str) -> ParseResult:
    return ParseResult(errors=[ValidationError(FILE_ROW, "file", message)])


def _cell(val: Any) -> str:
    if val is None:
        return ""
    if isinstance(val, float) and pd.isna(val):
        return ""
    return str(val)


def parse_frame(df: pd.DataFrame) -> ParseResult:
    """Turn a headerless all-string DataFrame into RawRows.

    Frame row 0 is the header line; frame row ``i`` is line ``i + 1`` of the source.
    """
    if df.empty:
        return _file_error("File has no header row")
    headers = [normalize_header(_cell(c)) for c in df.iloc[0]]
    if not any(headers):
        return _file_error("File has no header row")
    seen: set[str] = set()
    for h in headers:
        if h and h in seen:
            return _file_error(f"Duplicate column: {h}")
        seen.add(h)

    rows: list[RawRow] = []
    for pos, raw in enumerate(df.iloc[1:].itertuples(index=False, name=None), start=1):
        values = {h: _cell(v) for h, v in zip(headers, raw, strict=False)}
        if not any(v.strip() for v in values.values()):
            continue
        rows.append(RawRow(row_number=pos + 1, values=values))
    return ParseResult(headers=headers, rows=rows)


def parse_text(text: str) -> ParseResult:
    """Parse comma separated text. See module docstring for line numbering."""
    if not text or not text.strip():
        return _file_error("File is empty")
    try:
        df = pd.read_csv(
            io.StringIO(text.lstrip("\ufeff")),
            header=None,
            dtype=str,
            keep_default_na=False,
            na_filter=False,
            skip_blank_lines=False,
        )
    except pd.errors.EmptyDataError:
        return _file_error("File is empty")
    except (pd.errors.ParserError, ValueError) as e:
        logger.debug("csv parse failed: %s", e)
        return _file_error(f"Could not parse file: {e}")
    return parse_frame(df)


def read_file(path: Path) -> ParseResult:
    """Read a .csv (UTF-8) or .xlsx file from disk."""
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        return _file_error(f"Unsupported file type: {path.suffix or path.name}")
    if not path.exists():
        return _file_error(f"File not found: {path}")
    if suffix == ".csv":
        try:
            text = path.read_text(encoding="utf-8-sig")
        except UnicodeDecodeError:
            return _file_error("File is not valid UTF-8 text")
        return parse_text(text)
    try:
        df = pd.read_excel(path, sheet_name=0, header=None, dtype=str, keep_default_na=False, na_filter=False)
    except Exception as e:  # openpyxl raises a variety of zip/xml errors
        logger.debug("xlsx read failed: %s", e)
        return _file_error(f"Could not read workbook: {e}")
    return parse_frame(df)
