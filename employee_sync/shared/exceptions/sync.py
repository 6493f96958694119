"""
Excepciones del pipeline de sincronización de empleados.

Solo StoreUnavailableException (fase de snapshot) escapa de un sync.
Los errores por registro se convierten en contadores y entradas de auditoría.
"""
from typing import Any, Optional

from employee_sync.shared.exceptions.base import AppException


class StoreUnavailableException(AppException):
    """El store destino no responde o falla una página del snapshot."""
    
    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            message=message,
            status_code=503,
            error_code="STORE_UNAVAILABLE",
            details=details
        )


class RecordSyncException(AppException):
    """Falla el create/update de un registro individual."""
    
    def __init__(self, message: str, external_id: Any = None, details: Optional[dict] = None):
        merged = dict(details or {})
        if external_id is not None:
            merged["external_id"] = str(external_id)
        super().__init__(
            message=message,
            status_code=502,
            error_code="RECORD_SYNC_ERROR",
            details=merged
        )
        self.external_id = external_id


class RecordValidationException(AppException):
    """Un registro no trae su identificador externo."""
    
    def __init__(self, message: str, field: str = None):
        details = {"field": field} if field else None
        super().__init__(
            message=message,
            status_code=422,
            error_code="RECORD_VALIDATION_ERROR",
            details=details
        )


class AuditWriteException(AppException):
    """Falla al escribir la auditoría. Nunca sale del AuditRecorder."""
    
    def __init__(self, message: str):
        super().__init__(
            message=message,
            status_code=500,
            error_code="AUDIT_WRITE_ERROR"
        )


class SourceApiException(AppException):
    """Error obteniendo empleados desde la API origen."""
    
    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            message=message,
            status_code=502,
            error_code="SOURCE_API_ERROR",
            details=details
        )


class SyncConfigError(AppException):
    """Error de configuración del pipeline."""
    
    def __init__(self, message: str, missing: Optional[list[str]] = None):
        super().__init__(
            message=message,
            status_code=500,
            error_code="SYNC_CONFIG_ERROR",
            details={"missing": missing} if missing else None
        )
