"""
Cliente del store destino sobre la Web API de Dataverse.

Requisitos cubiertos:
- lectura paginada (Prefer: odata.maxpagesize + @odata.nextLink)
- create (POST) con el id externo como campo plano
- update (PATCH) por la identidad del store
- metadatos de option sets (mapa etiqueta -> código)
- rate-limit/backoff (429, 5xx)
"""

from __future__ import annotations

import re
import time
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Optional, Sequence, Type

import requests
from loguru import logger

from employee_sync.domain.entities.employee import (
    CodedValue,
    EMPLOYEE_FIELDS,
    ExistingRecord,
    FieldDefinition,
    FieldType,
    IncomingRecord,
    STORE_ID_FIELD,
)
from employee_sync.domain.repositories.record_store import (
    IChoiceMapProvider,
    IRecordStoreClient,
    StorePage,
)
from employee_sync.infrastructure.external.dataverse.connection import DataverseConnectionProvider
from employee_sync.shared.exceptions.base import AppException
from employee_sync.shared.exceptions.sync import RecordSyncException, StoreUnavailableException
from employee_sync.shared.utils.date_utils import parse_lenient_date

_ENTITY_ID_RE = re.compile(r"\(([0-9a-fA-F-]{36})\)\s*$")


def parse_entity_id(header_value: Optional[str]) -> Optional[str]:
    """Extrae el GUID de un header OData-EntityId."""
    if not header_value:
        return None
    match = _ENTITY_ID_RE.search(header_value)
    return match.group(1) if match else None


def to_store_value(value: Any) -> Any:
    """Serializa un valor del dominio al JSON de la Web API."""
    if isinstance(value, CodedValue):
        return value.value
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value


def from_store_value(value: Any, field_type: FieldType) -> Any:
    """Convierte un valor de la Web API al tipo del dominio."""
    if value is None:
        return None
    if field_type is FieldType.CODED:
        return CodedValue(int(value))
    if field_type is FieldType.DATE:
        return parse_lenient_date(str(value))
    if field_type is FieldType.DECIMAL:
        try:
            return Decimal(str(value))
        except (InvalidOperation, ValueError):
            return value
    return value


class DataverseRecordStore(IRecordStoreClient, IChoiceMapProvider):
    """
    Cliente del store Dataverse para una entidad.

    Importante:
    - Las lecturas fallidas lanzan StoreUnavailableException.
    - Las mutaciones fallidas lanzan RecordSyncException.
    """

    def __init__(
        self,
        connection: DataverseConnectionProvider,
        *,
        entity_set: str = "crfbe_employees",
        entity_name: str = "crfbe_employee",
        fields: Sequence[FieldDefinition] = EMPLOYEE_FIELDS,
        page_size: int = 5000,
        max_retries: int = 3,
        min_backoff_s: float = 0.8,
        max_backoff_s: float = 20.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._conn = connection
        self._entity_set = entity_set
        self._entity_name = entity_name
        self._fields = tuple(fields)
        self._page_size = page_size
        self._max_retries = max_retries
        self._min_backoff_s = min_backoff_s
        self._max_backoff_s = max_backoff_s
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Lectura
    # ------------------------------------------------------------------

    def fetch_page(self, paging_token: Optional[str] = None) -> StorePage:
        if paging_token:
            # nextLink ya trae $select y el skiptoken.
            url, params = paging_token, None
        else:
            select = [STORE_ID_FIELD] + [f.name for f in self._fields]
            url, params = self._conn.url_for(self._entity_set), {"$select": ",".join(select)}

        resp = self._request(
            "GET",
            url,
            params=params,
            headers={"Prefer": f"odata.maxpagesize={self._page_size}"},
            error_cls=StoreUnavailableException,
        )
        payload = resp.json()
        records = [self._from_row(row) for row in payload.get("value") or []]
        next_link = payload.get("@odata.nextLink")
        return StorePage(records=records, next_token=next_link, has_more=bool(next_link))

    def _from_row(self, row: Dict[str, Any]) -> ExistingRecord:
        fields: Dict[str, Any] = {}
        for definition in self._fields:
            if definition.name in row:
                fields[definition.name] = from_store_value(row[definition.name], definition.field_type)
        return ExistingRecord(store_id=str(row.get(STORE_ID_FIELD) or ""), fields=fields)

    def get_choice_map(self, attribute_name: str) -> Dict[str, int]:
        url = self._conn.url_for(
            f"EntityDefinitions(LogicalName='{self._entity_name}')"
            f"/Attributes(LogicalName='{attribute_name}')"
            f"/Microsoft.Dynamics.CRM.PicklistAttributeMetadata"
        )
        resp = self._request(
            "GET",
            url,
            params={"$select": "LogicalName", "$expand": "OptionSet($select=Options)"},
            error_cls=StoreUnavailableException,
        )
        options = ((resp.json().get("OptionSet") or {}).get("Options")) or []

        choice_map: Dict[str, int] = {}
        for option in options:
            label = ((option.get("Label") or {}).get("UserLocalizedLabel") or {}).get("Label")
            value = option.get("Value")
            if label is None or value is None:
                continue
            choice_map[str(label).lower()] = int(value)

        logger.info(
            f"Se obtuvieron {len(choice_map)} opciones para {self._entity_name}.{attribute_name}"
        )
        return choice_map

    # ------------------------------------------------------------------
    # Mutaciones
    # ------------------------------------------------------------------

    def _to_body(self, record: IncomingRecord) -> Dict[str, Any]:
        body = {name: to_store_value(value) for name, value in record.to_payload().items()}
        body.pop(STORE_ID_FIELD, None)
        return body

    def create(self, record: IncomingRecord) -> str:
        # Id externo como campo plano: la creación por alternate key no es confiable.
        resp = self._request(
            "POST",
            self._conn.url_for(self._entity_set),
            json=self._to_body(record),
            error_cls=RecordSyncException,
            external_id=record.external_id,
        )
        new_id = parse_entity_id(resp.headers.get("OData-EntityId"))
        if not new_id:
            try:
                new_id = str((resp.json() or {}).get(STORE_ID_FIELD) or "")
            except ValueError:
                new_id = ""
        return new_id

    def update(self, record: IncomingRecord) -> None:
        if not record.store_id:
            raise RecordSyncException(
                f"No se puede actualizar {record.external_id} sin identidad del store",
                external_id=record.external_id,
            )
        self._request(
            "PATCH",
            self._conn.url_for(f"{self._entity_set}({record.store_id})"),
            json=self._to_body(record),
            # If-Match evita que un PATCH sobre un id borrado cree un registro.
            headers={"If-Match": "*"},
            error_cls=RecordSyncException,
            external_id=record.external_id,
        )

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    def _raise(self, error_cls: Type[AppException], message: str, external_id: Optional[str]) -> None:
        if error_cls is RecordSyncException:
            raise RecordSyncException(message, external_id=external_id)
        raise error_cls(message)

    def _request(
        self,
        method: str,
        url: str,
        *,
        error_cls: Type[AppException],
        external_id: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> requests.Response:
        """
        Request HTTP con backoff para 429/5xx.

        Estrategia:
        - 429: respeta Retry-After si existe, si no exponencial.
        - 5xx: exponencial. Errores de red: exponencial solo en GET.
        - 3xx y 4xx (no 429): error inmediato. Los redirects no se siguen.
        """
        for attempt in range(self._max_retries + 1):
            try:
                resp = self._conn.send(method, url, headers=headers, json=json, params=params)
            except requests.RequestException as e:
                # Un POST/PATCH cortado pudo haberse aplicado: solo GET reintenta.
                if method != "GET" or attempt >= self._max_retries:
                    self._raise(error_cls, f"Dataverse {method} fallo tras {attempt} reintentos: {e}", external_id)
                self._sleep(self._backoff(attempt, None))
                continue

            if 200 <= resp.status_code < 300:
                return resp

            if resp.status_code == 429 or 500 <= resp.status_code < 600:
                if attempt >= self._max_retries:
                    self._raise(
                        error_cls,
                        f"Dataverse error {resp.status_code} tras {attempt} reintentos: {resp.text}",
                        external_id,
                    )
                self._sleep(self._backoff(attempt, resp.headers.get("Retry-After")))
                continue

            self._raise(error_cls, f"Dataverse {method} fallo {resp.status_code}: {resp.text}", external_id)

        # Inalcanzable: el loop retorna o lanza.
        self._raise(error_cls, f"Dataverse {method} sin respuesta", external_id)

    def _backoff(self, attempt: int, retry_after: Optional[str]) -> float:
        if retry_after:
            try:
                return float(retry_after)
            except ValueError:
                return self._min_backoff_s
        base = min(self._max_backoff_s, self._min_backoff_s * (2 ** attempt))
        return base + (0.15 * base)
