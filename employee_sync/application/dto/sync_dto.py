"""
DTOs de la API de sincronizacion.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from employee_sync.domain.entities.sync_results import SyncSummary


class SyncSummaryDTO(BaseModel):
    """Resultado de una corrida de sync."""
    success: bool
    message: str
    total_records: int = Field(..., ge=0)
    created: int = Field(..., ge=0)
    updated: int = Field(..., ge=0)
    unchanged: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    total_field_changes: int = Field(..., ge=0)
    cancelled: bool = False
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_seconds: float = 0.0

    @classmethod
    def from_summary(cls, summary: SyncSummary) -> "SyncSummaryDTO":
        if summary.cancelled:
            message = f"Sync cancelado tras {summary.processed} registro(s)"
        elif summary.failed:
            message = f"Sync completado con {summary.failed} registro(s) fallido(s)"
        else:
            message = "Sync completado"
        return cls(
            success=summary.failed == 0 and not summary.cancelled,
            message=message,
            total_records=summary.total_records,
            created=summary.created,
            updated=summary.updated,
            unchanged=summary.unchanged,
            failed=summary.failed,
            total_field_changes=summary.total_field_changes,
            cancelled=summary.cancelled,
            start_time=summary.start_time,
            end_time=summary.end_time,
            duration_seconds=round(summary.duration_seconds, 3),
        )


class ConnectionTestDTO(BaseModel):
    """Resultado del test de conexion al store."""
    success: bool
    user_id: str
