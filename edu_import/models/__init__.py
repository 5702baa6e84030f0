"""Domain models for the bulk import engine.

Schemas and column specs describe what a file may contain; RawRow,
ValidationError and ChangeRecord carry a session's data between the parser,
validator, diff engine and executor; ExecutionOutcome is the frozen result of
one apply.
"""

from .change_record import ChangeRecord
from .column_spec import ColumnKind, ColumnSpec, ImportMode, ImportSchema, LinkSpec, SchemaDefinitionError
from .processing_result import ExecutionOutcome, FailureDetail, OutcomeAccumulator, ProgressEvent, SessionState
from .row_data import RawRow
from .validation_error import FILE_ROW, ValidationError, ValidationWarning

__all__ = [
    # Schema models
    "ColumnKind",
    "ColumnSpec",
    "ImportMode",
    "ImportSchema",
    "LinkSpec",
    "SchemaDefinitionError",
    # Session data
    "RawRow",
    "ValidationError",
    "ValidationWarning",
    "FILE_ROW",
    "ChangeRecord",
    # Execution
    "ExecutionOutcome",
    "FailureDetail",
    "OutcomeAccumulator",
    "ProgressEvent",
    "SessionState",
]
