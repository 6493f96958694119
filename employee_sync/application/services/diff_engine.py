"""
Motor de diff campo a campo.

Compara un registro entrante contra su registro existente (si lo hay) y
produce un ChangeRecord con los campos que cambiaron, en el orden de
declaración del esquema.

Política de igualdad:
- null == null; null vs no-null es un cambio
- valores codificados (option sets) se comparan por su código entero
- fechas se comparan solo por fecha de calendario (la hora se ignora a
  propósito: es pérdida de precisión deliberada)
- decimales se comparan por valor numérico, sin importar si llegan como
  float o Decimal
- el resto por igualdad de valor

Funciones puras: sin I/O y sin mutar las entradas.
"""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional, Sequence

from employee_sync.domain.entities.employee import (
    CodedValue,
    EMPLOYEE_FIELDS,
    ExistingRecord,
    FieldDefinition,
    FieldType,
    IncomingRecord,
)
from employee_sync.domain.entities.sync_results import ChangeRecord, FieldChange
from employee_sync.shared.utils.date_utils import to_calendar_date, utc_now


def _coded_int(value: Any) -> Any:
    if isinstance(value, CodedValue):
        return value.value
    if isinstance(value, bool):
        return value
    try:
        return int(value)
    except (TypeError, ValueError):
        return value


def _as_decimal(value: Any) -> Any:
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return value


def values_equal(old: Any, new: Any, field_type: FieldType) -> bool:
    """Igualdad según el tipo del campo."""
    if old is None and new is None:
        return True
    if old is None or new is None:
        return False

    if field_type is FieldType.CODED:
        return _coded_int(old) == _coded_int(new)
    if field_type is FieldType.DATE:
        old_date, new_date = to_calendar_date(old), to_calendar_date(new)
        if old_date is None or new_date is None:
            return old == new
        return old_date == new_date
    if field_type is FieldType.DECIMAL:
        return _as_decimal(old) == _as_decimal(new)
    return old == new


def format_value(value: Any, field_type: Optional[FieldType] = None) -> Any:
    """
    Formatea un valor para la auditoría.

    Códigos como entero, fechas como YYYY-MM-DD; el resto pasa tal cual.
    """
    if value is None:
        return None
    if isinstance(value, CodedValue):
        return value.value
    if field_type is FieldType.CODED:
        return _coded_int(value)
    if isinstance(value, (datetime, date)) or field_type is FieldType.DATE:
        calendar_date = to_calendar_date(value)
        return calendar_date.isoformat() if calendar_date else value
    return value


def compare(
    existing: Optional[ExistingRecord],
    incoming: IncomingRecord,
    fields: Sequence[FieldDefinition] = EMPLOYEE_FIELDS,
    *,
    timestamp: Optional[datetime] = None,
) -> ChangeRecord:
    """
    Compara un registro entrante contra su registro existente.

    Args:
        existing: Registro existente o None si no hubo match
        incoming: Registro entrante
        fields: Esquema explícito de campos comparables
        timestamp: Marca de tiempo del cambio (default: ahora en UTC)

    Returns:
        ChangeRecord: is_new_record=True y sin cambios si no hay existente
    """
    stamp = timestamp or utc_now()
    if existing is None:
        return ChangeRecord(
            external_id=incoming.external_id,
            display_name=incoming.display_name,
            timestamp=stamp,
            changes=(),
            is_new_record=True,
        )

    changes: List[FieldChange] = []
    for definition in fields:
        # Solo los campos que trae el entrante; un campo ausente no se toca.
        if not incoming.has_field(definition.name):
            continue
        new_value = incoming.get(definition.name)
        old_value = existing.get(definition.name)
        if values_equal(old_value, new_value, definition.field_type):
            continue
        changes.append(
            FieldChange(
                field_name=definition.name,
                old_value=format_value(old_value, definition.field_type),
                new_value=format_value(new_value, definition.field_type),
                field_type=definition.field_type,
            )
        )

    return ChangeRecord(
        external_id=incoming.external_id,
        display_name=incoming.display_name,
        timestamp=stamp,
        changes=tuple(changes),
        is_new_record=False,
    )
