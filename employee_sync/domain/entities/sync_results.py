"""
Resultados del sync: cambios por campo, registro de cambios y resumen.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from employee_sync.domain.entities.employee import FieldType


@dataclass(frozen=True)
class FieldChange:
    """Un campo cuyo valor difiere entre el registro existente y el entrante."""
    field_name: str
    old_value: Any
    new_value: Any
    field_type: FieldType

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field_name,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "field_type": self.field_type.value,
        }


@dataclass(frozen=True)
class ChangeRecord:
    """Cambios de un registro entrante en una corrida."""
    external_id: str
    display_name: str
    timestamp: datetime
    changes: Tuple[FieldChange, ...] = ()
    is_new_record: bool = False

    @property
    def has_changes(self) -> bool:
        return bool(self.changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "external_id": self.external_id,
            "display_name": self.display_name,
            "timestamp": self.timestamp.isoformat(),
            "is_new_record": self.is_new_record,
            "changes": [c.to_dict() for c in self.changes],
        }


class RecordOutcome(Enum):
    """Resultado del procesamiento de un registro."""
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    FAILED = "failed"


@dataclass(frozen=True)
class RecordResult:
    """
    Resultado etiquetado de un registro.
    
    El orquestador agrega estos resultados en los contadores del resumen;
    el aislamiento por registro queda explicito en el tipo de retorno.
    """
    outcome: RecordOutcome
    external_id: str
    display_name: str
    change: Optional[ChangeRecord] = None
    error: Optional[str] = None

    @property
    def field_change_count(self) -> int:
        return len(self.change.changes) if self.change else 0


@dataclass
class SyncSummary:
    """
    Contadores agregados de una corrida.
    
    Solo el orquestador lo modifica; nadie lo lee hasta el fin de la corrida.
    """
    start_time: datetime
    end_time: Optional[datetime] = None
    total_records: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    failed: int = 0
    total_field_changes: int = 0
    cancelled: bool = False

    @property
    def duration_seconds(self) -> float:
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    @property
    def processed(self) -> int:
        return self.created + self.updated + self.unchanged + self.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_records": self.total_records,
            "created": self.created,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "failed": self.failed,
            "total_field_changes": self.total_field_changes,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration_seconds": round(self.duration_seconds, 3),
            "cancelled": self.cancelled,
        }
