"""
Tests del orquestador de sync y del caso de uso completo.

Verifican que:
- Sin match se crea, con match y cambios se actualiza, sin cambios se omite
- Un registro fallido no aborta la corrida ni cuenta como creado/actualizado
- Un registro sin id externo falla sin llamar al store
- El sync es idempotente
- La cancelación deja de tomar registros nuevos y marca el resumen
- Con varios workers los contadores son los mismos que en secuencia
"""
from __future__ import annotations

import threading
from datetime import date
from decimal import Decimal

import pytest

from employee_sync.application.use_cases.employee_sync_use_cases import (
    EmployeeSyncOrchestrator,
    EmployeeSyncUseCase,
)
from employee_sync.domain.entities.employee import CodedValue, IncomingRecord
from employee_sync.domain.repositories.record_store import IChoiceMapProvider
from employee_sync.shared.exceptions.sync import StoreUnavailableException
from tests.conftest import InMemoryRecordStore, existing, incoming


class _RecordingAudit:
    def __init__(self):
        self.changes = []
        self.failures = []
        self.summaries = []
        self.closed = False
        self._lock = threading.Lock()

    def record_change(self, change):
        with self._lock:
            self.changes.append(change)

    def record_failure(self, external_id, display_name, error):
        with self._lock:
            self.failures.append((external_id, display_name, error))

    def record_summary(self, summary):
        self.summaries.append(summary)

    def close(self):
        self.closed = True


def _orchestrator(store, audit=None, **kwargs):
    return EmployeeSyncOrchestrator(store, audit or _RecordingAudit(), **kwargs)


@pytest.mark.unit
def test_scenario_empty_snapshot_creates() -> None:
    store = InMemoryRecordStore()
    summary = _orchestrator(store).sync([incoming("1", crfbe_name="A")])

    assert (summary.created, summary.updated, summary.unchanged, summary.failed) == (1, 0, 0, 0)
    assert [r.external_id for r in store.created] == ["1"]
    assert store.updated == []


@pytest.mark.unit
def test_scenario_identical_record_is_unchanged() -> None:
    store = InMemoryRecordStore([existing("s1", "1", crfbe_name="A")])
    audit = _RecordingAudit()

    summary = _orchestrator(store, audit).sync([incoming("1", crfbe_name="A")])

    assert summary.unchanged == 1
    assert summary.total_field_changes == 0
    assert store.mutation_count == 0
    assert audit.changes == []


@pytest.mark.unit
def test_scenario_changed_name_updates() -> None:
    store = InMemoryRecordStore([existing("s1", "1", crfbe_name="A")])
    audit = _RecordingAudit()

    summary = _orchestrator(store, audit).sync([incoming("1", crfbe_name="B")])

    assert summary.updated == 1
    assert summary.total_field_changes == 1
    [change] = audit.changes
    [field_change] = change.changes
    assert (field_change.field_name, field_change.old_value, field_change.new_value) == ("crfbe_name", "A", "B")
    # El update viaja con la identidad del registro existente.
    assert store.updated[0].store_id == "s1"


@pytest.mark.unit
def test_scenario_empty_external_id_fails_without_store_call() -> None:
    store = InMemoryRecordStore()
    audit = _RecordingAudit()

    summary = _orchestrator(store, audit).sync([IncomingRecord(external_id="")])

    assert summary.failed == 1
    assert store.mutation_count == 0
    assert len(audit.failures) == 1


@pytest.mark.unit
def test_unmatched_record_routes_to_create_never_update() -> None:
    store = InMemoryRecordStore([existing("s1", "1", crfbe_name="A")])

    _orchestrator(store).sync([incoming("2", crfbe_name="B"), incoming("3", crfbe_name="C")])

    assert [r.external_id for r in store.created] == ["2", "3"]
    assert store.updated == []


@pytest.mark.unit
def test_failed_record_is_isolated() -> None:
    store = InMemoryRecordStore([existing("s2", "2", crfbe_name="Viejo")], fail_on={"2"})
    audit = _RecordingAudit()
    records = [incoming("1", crfbe_name="A"), incoming("2", crfbe_name="Nuevo"), incoming("3", crfbe_name="C")]

    summary = _orchestrator(store, audit).sync(records)

    assert (summary.created, summary.updated, summary.failed) == (2, 0, 1)
    assert summary.total_field_changes == 0
    assert audit.failures[0][0] == "2"
    assert "update rechazado" in audit.failures[0][2]


@pytest.mark.unit
def test_sync_is_idempotent() -> None:
    store = InMemoryRecordStore([existing("s1", "1", crfbe_name="A", crfbe_age=20)])
    records = [
        incoming("1", crfbe_name="A", crfbe_age=21),
        incoming(
            "2",
            crfbe_name="B",
            crfbe_gender=CodedValue(2, label="female"),
            crfbe_birithdate=date(1990, 5, 3),
            crfbe_latitude=Decimal("40.7128"),
        ),
    ]
    orchestrator = _orchestrator(store)

    first = orchestrator.sync(records)
    second = orchestrator.sync(records)

    assert (first.created, first.updated) == (1, 1)
    assert (second.created, second.updated, second.unchanged) == (0, 0, 2)


@pytest.mark.unit
def test_snapshot_failure_aborts_without_summary() -> None:
    store = InMemoryRecordStore(fail_fetch_on_page=1)
    audit = _RecordingAudit()

    with pytest.raises(StoreUnavailableException):
        _orchestrator(store, audit).sync([incoming("1", crfbe_name="A")])

    assert audit.summaries == []
    assert store.mutation_count == 0


@pytest.mark.unit
def test_summary_is_recorded_once() -> None:
    audit = _RecordingAudit()
    summary = _orchestrator(InMemoryRecordStore(), audit, batch_size=1).sync(
        [incoming(str(i), crfbe_name=f"N{i}") for i in range(3)]
    )

    assert audit.summaries == [summary]
    assert summary.end_time is not None
    assert summary.processed == summary.total_records == 3
    assert summary.cancelled is False


@pytest.mark.unit
def test_cancel_before_start_processes_nothing() -> None:
    store = InMemoryRecordStore()
    audit = _RecordingAudit()
    cancel = threading.Event()
    cancel.set()

    summary = _orchestrator(store, audit).sync([incoming("1", crfbe_name="A")], cancel_event=cancel)

    assert summary.cancelled is True
    assert summary.processed == 0
    assert store.mutation_count == 0
    assert len(audit.summaries) == 1


@pytest.mark.unit
def test_cancel_mid_run_stops_taking_records() -> None:
    cancel = threading.Event()

    class _CancellingStore(InMemoryRecordStore):
        def create(self, record):
            store_id = super().create(record)
            cancel.set()
            return store_id

    store = _CancellingStore()
    records = [incoming(str(i), crfbe_name=f"N{i}") for i in range(5)]

    summary = _orchestrator(store, batch_size=2).sync(records, cancel_event=cancel)

    assert summary.cancelled is True
    assert summary.created == 1
    assert summary.failed == 0
    assert len(store.created) == 1


@pytest.mark.unit
def test_parallel_workers_match_sequential_counters(audit_recorder) -> None:
    seed = [existing(f"s{i}", str(i), crfbe_name=f"N{i}") for i in range(0, 20, 2)]
    records = [incoming(str(i), crfbe_name=f"N{i}" if i % 4 == 0 else f"X{i}") for i in range(20)]

    sequential = _orchestrator(InMemoryRecordStore(seed, page_size=3), batch_size=7).sync(records)
    parallel_store = InMemoryRecordStore(seed, page_size=3)
    parallel = EmployeeSyncOrchestrator(
        parallel_store, audit_recorder, batch_size=7, max_workers=4
    ).sync(records)

    for name in ("created", "updated", "unchanged", "failed", "total_field_changes"):
        assert getattr(parallel, name) == getattr(sequential, name)
    assert parallel.created == 10
    assert parallel.updated == 5
    assert parallel.unchanged == 5


@pytest.mark.unit
def test_invalid_pool_settings_are_rejected() -> None:
    with pytest.raises(ValueError):
        _orchestrator(InMemoryRecordStore(), batch_size=0)
    with pytest.raises(ValueError):
        _orchestrator(InMemoryRecordStore(), max_workers=0)


class _ChoiceStore(InMemoryRecordStore, IChoiceMapProvider):
    def get_choice_map(self, attribute_name):
        assert attribute_name == "crfbe_gender"
        return {"male": 1, "female": 2}


class _FakeApi:
    def __init__(self, users):
        self.users = users
        self.paths = []

    def get_employees(self, path="users"):
        self.paths.append(path)
        return self.users


@pytest.mark.unit
def test_use_case_maps_and_syncs_source_users() -> None:
    api = _FakeApi([
        {
            "id": 1,
            "firstName": "Emily",
            "lastName": "Johnson",
            "gender": "female",
            "birthDate": "1996-5-30",
            "address": {"city": "Phoenix", "coordinates": {"lat": -77.16213, "lng": -92.084824}},
        },
        {"id": 2, "firstName": "Michael", "lastName": "Williams", "gender": "other"},
    ])
    store = _ChoiceStore()
    audit = _RecordingAudit()

    with EmployeeSyncUseCase(api, store, audit, users_path="users") as use_case:
        summary = use_case.run()

    assert api.paths == ["users"]
    assert summary.created == 2
    emily = store.created[0]
    assert emily.external_id == "1"
    assert emily.display_name == "Emily Johnson"
    assert emily.get("crfbe_gender") == CodedValue(2)
    assert emily.get("crfbe_birithdate") == date(1996, 5, 30)
    assert not store.created[1].has_field("crfbe_gender")
    assert audit.closed is True


@pytest.mark.unit
def test_use_case_test_connection_requires_provider() -> None:
    use_case = EmployeeSyncUseCase(_FakeApi([]), InMemoryRecordStore(), _RecordingAudit())

    with pytest.raises(ValueError):
        use_case.test_connection()
