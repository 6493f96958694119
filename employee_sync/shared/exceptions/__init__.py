"""
Excepciones del sync de empleados.
"""
from .base import AppException
from .security import SecurityException
from .sync import (
    AuditWriteException,
    RecordSyncException,
    RecordValidationException,
    SourceApiException,
    StoreUnavailableException,
    SyncConfigError,
)

__all__ = [
    "AppException",
    "AuditWriteException",
    "RecordSyncException",
    "RecordValidationException",
    "SecurityException",
    "SourceApiException",
    "StoreUnavailableException",
    "SyncConfigError",
]
