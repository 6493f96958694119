"""
Entidades del dominio.
"""
from .employee import (
    CodedValue,
    EMPLOYEE_FIELDS,
    ExistingRecord,
    FieldDefinition,
    FieldType,
    IncomingRecord,
    Snapshot,
)
from .sync_results import ChangeRecord, FieldChange, RecordOutcome, RecordResult, SyncSummary

__all__ = [
    "ChangeRecord",
    "CodedValue",
    "EMPLOYEE_FIELDS",
    "ExistingRecord",
    "FieldChange",
    "FieldDefinition",
    "FieldType",
    "IncomingRecord",
    "RecordOutcome",
    "RecordResult",
    "Snapshot",
    "SyncSummary",
]
