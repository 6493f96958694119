"""
Mapeo de usuarios de la API origen al esquema de empleados del store.

Se mantiene libre de I/O: el mapa de géneros se obtiene una vez por
corrida y se pasa como argumento.
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional

from loguru import logger

from employee_sync.domain.entities.employee import (
    CodedValue,
    DISPLAY_NAME_FIELD,
    GENDER_FIELD,
    IncomingRecord,
)
from employee_sync.shared.utils.date_utils import parse_lenient_date


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def _decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def map_employee(source: Mapping[str, Any], gender_map: Mapping[str, int]) -> IncomingRecord:
    """
    Mapea un usuario de la API a un IncomingRecord.

    Reglas:
    - crfbe_id = id de la fuente como string (id externo)
    - crfbe_gender solo si la etiqueta existe en el mapa de géneros
    - crfbe_birithdate solo si la fecha viene y se puede parsear
    """
    raw_id = source.get("id")
    external_id = "" if raw_id is None else str(raw_id).strip()

    first_name = source.get("firstName") or ""
    last_name = source.get("lastName") or ""
    address = source.get("address") or {}
    coordinates = address.get("coordinates") or {}

    fields: Dict[str, Any] = {
        DISPLAY_NAME_FIELD: f"{first_name} {last_name}".strip(),
        "crfbe_firstname": _text(source.get("firstName")),
        "crfbe_lastname": _text(source.get("lastName")),
        "crfbe_age": source.get("age"),
        "crfbe_email": _text(source.get("email")),
        "crfbe_workphone": _text(source.get("phone")),
        "crfbe_username": _text(source.get("username")),
        "crfbe_password": _text(source.get("password")),
        "crfbe_image": _text(source.get("image")),
        "crfbe_address1": _text(address.get("address")),
        "crfbe_city": _text(address.get("city")),
        "crfbe_statecode": _text(address.get("stateCode")),
        "crfbe_zip": _text(address.get("postalCode")),
        "crfbe_latitude": _decimal(coordinates.get("lat")),
        "crfbe_longitude": _decimal(coordinates.get("lng")),
    }

    gender_label = (source.get("gender") or "").strip().lower()
    if gender_label and gender_label in gender_map:
        fields[GENDER_FIELD] = CodedValue(int(gender_map[gender_label]), label=gender_label)
    elif gender_label:
        logger.debug(f"Género '{gender_label}' sin código en el mapa; se omite para {external_id}")

    birth_date = parse_lenient_date(source.get("birthDate"))
    if birth_date is not None:
        fields["crfbe_birithdate"] = birth_date

    return IncomingRecord(external_id=external_id, fields=fields)


def map_employees(
    sources: Iterable[Mapping[str, Any]],
    gender_map: Mapping[str, int],
) -> List[IncomingRecord]:
    """Mapea una lista de usuarios de la API."""
    return [map_employee(source, gender_map) for source in sources]
