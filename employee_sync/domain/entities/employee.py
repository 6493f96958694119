"""
Entidades del dominio de empleados.

Define el esquema del sync (campos comparables, en orden de declaracion),
los valores codificados (option sets) y los registros entrante/existente.
Todo es inmutable: el core solo lee estos objetos.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple


# Nombres logicos de columnas en el store destino
EXTERNAL_ID_FIELD = "crfbe_id"
DISPLAY_NAME_FIELD = "crfbe_name"
STORE_ID_FIELD = "crfbe_employeeid"
GENDER_FIELD = "crfbe_gender"


class FieldType(Enum):
    """
    Tipo de un campo del esquema.
    
    Determina la politica de igualdad y el formato en la auditoria.
    """
    TEXT = "text"
    INTEGER = "integer"
    DECIMAL = "decimal"
    CODED = "coded"     # Option set: se compara por codigo entero
    DATE = "date"       # Se compara solo por fecha de calendario


@dataclass(frozen=True)
class CodedValue:
    """
    Valor categorico representado por un codigo entero.
    
    La igualdad usa solo el codigo; la etiqueta es informativa.
    """
    value: int
    label: Optional[str] = field(default=None, compare=False)

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class FieldDefinition:
    """Campo comparable del esquema."""
    name: str
    field_type: FieldType


# Esquema del dominio de empleados. El orden define el orden de los cambios.
EMPLOYEE_FIELDS: Tuple[FieldDefinition, ...] = (
    FieldDefinition(EXTERNAL_ID_FIELD, FieldType.TEXT),
    FieldDefinition(DISPLAY_NAME_FIELD, FieldType.TEXT),
    FieldDefinition("crfbe_firstname", FieldType.TEXT),
    FieldDefinition("crfbe_lastname", FieldType.TEXT),
    FieldDefinition("crfbe_age", FieldType.INTEGER),
    FieldDefinition(GENDER_FIELD, FieldType.CODED),
    FieldDefinition("crfbe_email", FieldType.TEXT),
    FieldDefinition("crfbe_workphone", FieldType.TEXT),
    FieldDefinition("crfbe_username", FieldType.TEXT),
    FieldDefinition("crfbe_password", FieldType.TEXT),
    # Nombre real de la columna en Dataverse (typo incluido)
    FieldDefinition("crfbe_birithdate", FieldType.DATE),
    FieldDefinition("crfbe_image", FieldType.TEXT),
    FieldDefinition("crfbe_address1", FieldType.TEXT),
    FieldDefinition("crfbe_city", FieldType.TEXT),
    FieldDefinition("crfbe_statecode", FieldType.TEXT),
    FieldDefinition("crfbe_zip", FieldType.TEXT),
    FieldDefinition("crfbe_latitude", FieldType.DECIMAL),
    FieldDefinition("crfbe_longitude", FieldType.DECIMAL),
)


def _freeze(values: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    return MappingProxyType(dict(values or {}))


@dataclass(frozen=True)
class IncomingRecord:
    """
    Registro de la fuente ya mapeado al esquema destino.
    
    external_id es inmutable. store_id solo se asigna (en una copia) cuando
    el registro hace match con uno existente y hay que actualizarlo.
    """
    external_id: str
    fields: Mapping[str, Any] = field(default_factory=dict)
    store_id: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", _freeze(self.fields))

    @property
    def display_name(self) -> str:
        name = self.fields.get(DISPLAY_NAME_FIELD)
        return str(name) if name else (self.external_id or "(sin nombre)")

    def has_field(self, name: str) -> bool:
        return name in self.fields

    def get(self, name: str, default: Any = None) -> Any:
        return self.fields.get(name, default)

    def with_store_id(self, store_id: str) -> "IncomingRecord":
        """Retorna una copia enlazada a la identidad del registro existente."""
        return replace(self, store_id=store_id)

    def to_payload(self) -> Dict[str, Any]:
        """Campos a enviar al store, con el id externo como campo plano."""
        payload = dict(self.fields)
        payload[EXTERNAL_ID_FIELD] = self.external_id
        return payload


@dataclass(frozen=True)
class ExistingRecord:
    """Registro actual del store destino (vista de solo lectura)."""
    store_id: str
    fields: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", _freeze(self.fields))

    @property
    def external_id(self) -> Optional[str]:
        value = self.fields.get(EXTERNAL_ID_FIELD)
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    def get(self, name: str, default: Any = None) -> Any:
        return self.fields.get(name, default)


# Indice externo -> registro existente, construido al inicio de cada corrida
Snapshot = Dict[str, ExistingRecord]
