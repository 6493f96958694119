"""
Configuración de fixtures para pytest.
"""
from __future__ import annotations

import io
import json as jsonlib
import threading
import uuid
from typing import Dict, Iterable, List, Optional, Set

import pytest
import requests
from requests.adapters import HTTPAdapter

from employee_sync.domain.entities.employee import (
    ExistingRecord,
    EXTERNAL_ID_FIELD,
    IncomingRecord,
)
from employee_sync.domain.repositories.record_store import IRecordStoreClient, StorePage
from employee_sync.shared.exceptions.sync import RecordSyncException, StoreUnavailableException
from employee_sync.shared.utils.audit_logger import AuditRecorder


class InMemoryRecordStore(IRecordStoreClient):
    """
    Store en memoria para tests.

    - Pagina los registros existentes de a page_size.
    - create/update modifican el estado, de modo que un segundo sync ve los cambios.
    - fail_on contiene ids externos cuyo create/update falla.
    """

    def __init__(
        self,
        existing: Iterable[ExistingRecord] = (),
        *,
        page_size: int = 2,
        fail_on: Iterable[str] = (),
        fail_fetch_on_page: Optional[int] = None,
    ) -> None:
        self.records: List[ExistingRecord] = list(existing)
        self.page_size = page_size
        self.fail_on: Set[str] = set(fail_on)
        self.fail_fetch_on_page = fail_fetch_on_page
        self.created: List[IncomingRecord] = []
        self.updated: List[IncomingRecord] = []
        self.fetch_calls = 0
        self._lock = threading.Lock()

    @property
    def mutation_count(self) -> int:
        return len(self.created) + len(self.updated)

    def fetch_page(self, paging_token: Optional[str] = None) -> StorePage:
        self.fetch_calls += 1
        if self.fail_fetch_on_page is not None and self.fetch_calls == self.fail_fetch_on_page:
            raise StoreUnavailableException("store caido")
        start = int(paging_token or 0)
        end = start + self.page_size
        has_more = end < len(self.records)
        return StorePage(
            records=list(self.records[start:end]),
            next_token=str(end) if has_more else None,
            has_more=has_more,
        )

    def create(self, record: IncomingRecord) -> str:
        if record.external_id in self.fail_on:
            raise RecordSyncException("create rechazado", external_id=record.external_id)
        store_id = str(uuid.uuid4())
        with self._lock:
            self.created.append(record)
            self.records.append(ExistingRecord(store_id=store_id, fields=record.to_payload()))
        return store_id

    def update(self, record: IncomingRecord) -> None:
        if record.external_id in self.fail_on:
            raise RecordSyncException("update rechazado", external_id=record.external_id)
        with self._lock:
            self.updated.append(record)
            for i, existing in enumerate(self.records):
                if existing.store_id == record.store_id:
                    merged: Dict = dict(existing.fields)
                    merged.update(record.to_payload())
                    self.records[i] = ExistingRecord(store_id=existing.store_id, fields=merged)
                    return
        raise RecordSyncException("registro inexistente", external_id=record.external_id)


class RoutingAdapter(HTTPAdapter):
    """
    Adapter HTTP sin red: responde segun una tabla url -> (status, headers, body).

    Guarda todas las URLs pedidas para verificar a donde llego la sesion.
    """

    def __init__(self, routes):
        super().__init__()
        self.routes = routes
        self.seen: List[str] = []

    def send(self, request, **kwargs):
        self.seen.append(request.url)
        status, headers, payload = self.routes.get(request.url, (404, {}, None))
        body = b"" if payload is None else jsonlib.dumps(payload).encode("utf-8")
        resp = requests.Response()
        resp.status_code = status
        resp.headers.update(headers)
        resp.raw = io.BytesIO(body)
        resp._content = body
        resp._content_consumed = True
        resp.encoding = "utf-8"
        resp.url = request.url
        resp.request = request
        return resp


def session_with_routes(routes):
    """requests.Session con un RoutingAdapter montado para https."""
    adapter = RoutingAdapter(routes)
    session = requests.Session()
    session.mount("https://", adapter)
    return session, adapter


def existing(store_id: str, external_id: Optional[str], **fields) -> ExistingRecord:
    """Helper para construir un registro existente."""
    values = dict(fields)
    if external_id is not None:
        values[EXTERNAL_ID_FIELD] = external_id
    return ExistingRecord(store_id=store_id, fields=values)


def incoming(external_id: str, **fields) -> IncomingRecord:
    """Helper para construir un registro entrante."""
    return IncomingRecord(external_id=external_id, fields=fields)


@pytest.fixture
def audit_recorder(tmp_path):
    """AuditRecorder que escribe en tmp_path."""
    recorder = AuditRecorder(tmp_path / "audit", retention_count=3)
    yield recorder
    recorder.close()


@pytest.fixture
def read_audit(tmp_path):
    """Retorna (texto, lineas_jsonl) de los archivos de auditoria escritos."""
    import json

    def _read():
        audit_dir = tmp_path / "audit"
        text = "".join(p.read_text(encoding="utf-8") for p in sorted(audit_dir.glob("*.log")))
        events = []
        for p in sorted(audit_dir.glob("*.jsonl")):
            for line in p.read_text(encoding="utf-8").splitlines():
                if line.strip():
                    events.append(json.loads(line))
        return text, events

    return _read
