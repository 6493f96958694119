"""
Casos de uso para la sincronizacion de empleados API -> Dataverse.

Diseño (resumen):
- Carga un snapshot de los registros existentes (indexado por id externo)
- Por cada registro entrante decide create / update / no-op
- Solo envia la mutacion necesaria, en lotes acotados
- Aisla fallos por registro: un registro malo no aborta la corrida
- Deja auditoria de cada cambio y un resumen final

Estrategia de idempotencia:
- Un segundo sync con la misma entrada y sin cambios externos reporta todo
  como sin cambios (los creados en la primera corrida ahora hacen match).
"""
from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence

from loguru import logger

from employee_sync.application.services.diff_engine import compare
from employee_sync.application.services.employee_mapper import map_employees
from employee_sync.application.services.snapshot_loader import SnapshotLoader
from employee_sync.domain.entities.employee import (
    EMPLOYEE_FIELDS,
    FieldDefinition,
    GENDER_FIELD,
    IncomingRecord,
    Snapshot,
)
from employee_sync.domain.entities.sync_results import (
    RecordOutcome,
    RecordResult,
    SyncSummary,
)
from employee_sync.domain.repositories.record_store import IChoiceMapProvider, IRecordStoreClient
from employee_sync.shared.exceptions.base import AppException
from employee_sync.shared.exceptions.sync import RecordValidationException
from employee_sync.shared.utils.audit_logger import AuditRecorder
from employee_sync.shared.utils.date_utils import utc_now


# Errores recuperables a nivel de registro. Los demas (bugs) se propagan.
RECOVERABLE_RECORD_ERRORS = (AppException, ValueError, OSError)


class EmployeeSyncOrchestrator:
    """
    Orquestador del sync por registro.

    Con max_workers == 1 procesa en secuencia. Con max_workers > 1 usa un
    ThreadPoolExecutor acotado por lote: el snapshot es de solo lectura, los
    contadores los agrega solo este hilo a partir de los RecordResult y la
    auditoria serializa sus escrituras con su propio lock.
    """

    def __init__(
        self,
        store: IRecordStoreClient,
        audit: AuditRecorder,
        *,
        fields: Sequence[FieldDefinition] = EMPLOYEE_FIELDS,
        snapshot_loader: Optional[SnapshotLoader] = None,
        batch_size: int = 100,
        max_workers: int = 1,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size debe ser >= 1")
        if max_workers < 1:
            raise ValueError("max_workers debe ser >= 1")
        self._store = store
        self._audit = audit
        self._fields = tuple(fields)
        self._loader = snapshot_loader or SnapshotLoader(store)
        self._batch_size = batch_size
        self._max_workers = max_workers

    def sync(
        self,
        incoming: Sequence[IncomingRecord],
        cancel_event: Optional[threading.Event] = None,
    ) -> SyncSummary:
        """
        Ejecuta una corrida completa.

        Args:
            incoming: Registros entrantes ya mapeados
            cancel_event: Señal externa de cancelacion, revisada entre registros

        Returns:
            SyncSummary: Contadores de la corrida (tambien queda en auditoria)

        Raises:
            StoreUnavailableException: si falla la carga del snapshot
        """
        summary = SyncSummary(start_time=utc_now(), total_records=len(incoming))
        logger.info(f"Iniciando sync de {len(incoming)} registro(s)")

        # Unico punto que aborta la corrida completa.
        snapshot = self._loader.load_snapshot()

        total_batches = (len(incoming) + self._batch_size - 1) // self._batch_size
        executor = (
            ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="employee-sync-")
            if self._max_workers > 1
            else None
        )
        try:
            for batch_number, start in enumerate(range(0, len(incoming), self._batch_size), start=1):
                batch = incoming[start:start + self._batch_size]
                results = self._process_batch(batch, snapshot, cancel_event, executor)
                for result in results:
                    self._aggregate(summary, result)

                logger.info(
                    f"Lote {batch_number}/{total_batches} procesado "
                    f"({min(start + self._batch_size, len(incoming))}/{len(incoming)})"
                )
                if self._is_cancelled(cancel_event) and summary.processed < summary.total_records:
                    summary.cancelled = True
                    logger.warning(
                        f"Sync cancelado: {summary.processed}/{summary.total_records} registro(s) procesados"
                    )
                    break
        finally:
            if executor is not None:
                executor.shutdown(wait=True)

        summary.end_time = utc_now()
        self._audit.record_summary(summary)
        logger.success(
            f"Sync completado: creados={summary.created}, actualizados={summary.updated}, "
            f"sin_cambios={summary.unchanged}, fallidos={summary.failed}, "
            f"campos={summary.total_field_changes}, duracion={summary.duration_seconds:.2f}s"
        )
        return summary

    @staticmethod
    def _is_cancelled(cancel_event: Optional[threading.Event]) -> bool:
        return cancel_event is not None and cancel_event.is_set()

    def _process_batch(
        self,
        batch: Sequence[IncomingRecord],
        snapshot: Snapshot,
        cancel_event: Optional[threading.Event],
        executor: Optional[ThreadPoolExecutor],
    ) -> List[RecordResult]:
        if executor is None:
            results: List[RecordResult] = []
            for record in batch:
                if self._is_cancelled(cancel_event):
                    break
                results.append(self.process_record(record, snapshot))
            return results

        futures = [
            executor.submit(self._process_unless_cancelled, record, snapshot, cancel_event)
            for record in batch
        ]
        return [r for r in (f.result() for f in futures) if r is not None]

    def _process_unless_cancelled(
        self,
        record: IncomingRecord,
        snapshot: Snapshot,
        cancel_event: Optional[threading.Event],
    ) -> Optional[RecordResult]:
        # Los registros no iniciados no cuentan como procesados ni fallidos.
        if self._is_cancelled(cancel_event):
            return None
        return self.process_record(record, snapshot)

    def process_record(self, record: IncomingRecord, snapshot: Snapshot) -> RecordResult:
        """
        Procesa un registro: validar, hacer match, y crear o actualizar.

        Nunca lanza por errores del registro: los convierte en un
        RecordResult FAILED con su motivo.
        """
        external_id = (record.external_id or "").strip()
        if not external_id:
            error = RecordValidationException(
                f"Registro '{record.display_name}' sin id externo", field="external_id"
            )
            logger.warning(error.message)
            return self._failed(record, error)

        try:
            existing = snapshot.get(external_id)
            if existing is None:
                return self._create(record)
            return self._update(record, existing)
        except RECOVERABLE_RECORD_ERRORS as e:
            logger.error(f"Error sincronizando {record.display_name} ({external_id}): {e}")
            return self._failed(record, e)

    def _create(self, record: IncomingRecord) -> RecordResult:
        # El id externo viaja como campo plano, no como alternate key.
        new_id = self._store.create(record)
        change = compare(None, record, self._fields)
        self._audit.record_change(change)
        logger.debug(f"Creado {record.display_name} ({record.external_id}) -> {new_id}")
        return RecordResult(
            outcome=RecordOutcome.CREATED,
            external_id=record.external_id,
            display_name=record.display_name,
            change=change,
        )

    def _update(self, record: IncomingRecord, existing) -> RecordResult:
        change = compare(existing, record, self._fields)
        if not change.has_changes:
            return RecordResult(
                outcome=RecordOutcome.UNCHANGED,
                external_id=record.external_id,
                display_name=record.display_name,
                change=change,
            )

        self._store.update(record.with_store_id(existing.store_id))
        self._audit.record_change(change)
        logger.debug(
            f"Actualizado {record.display_name} ({record.external_id}): "
            f"{len(change.changes)} campo(s)"
        )
        return RecordResult(
            outcome=RecordOutcome.UPDATED,
            external_id=record.external_id,
            display_name=record.display_name,
            change=change,
        )

    def _failed(self, record: IncomingRecord, error: Exception) -> RecordResult:
        message = error.message if isinstance(error, AppException) else str(error)
        self._audit.record_failure(record.external_id, record.display_name, message)
        return RecordResult(
            outcome=RecordOutcome.FAILED,
            external_id=record.external_id,
            display_name=record.display_name,
            error=message,
        )

    @staticmethod
    def _aggregate(summary: SyncSummary, result: RecordResult) -> None:
        if result.outcome is RecordOutcome.CREATED:
            summary.created += 1
        elif result.outcome is RecordOutcome.UPDATED:
            summary.updated += 1
            summary.total_field_changes += result.field_change_count
        elif result.outcome is RecordOutcome.UNCHANGED:
            summary.unchanged += 1
        else:
            summary.failed += 1


class EmployeeSyncUseCase:
    """
    Corrida completa: API origen -> mapeo -> sync contra Dataverse.

    Encapsula el flujo: obtener empleados, obtener el mapa de generos (una
    vez por corrida), mapear y sincronizar.
    """

    def __init__(
        self,
        api_client,
        store,
        audit: AuditRecorder,
        *,
        users_path: str = "users",
        batch_size: int = 100,
        max_workers: int = 1,
        connection=None,
    ) -> None:
        self._api = api_client
        self._store = store
        self._audit = audit
        self._users_path = users_path
        self._connection = connection
        self.orchestrator = EmployeeSyncOrchestrator(
            store,
            audit,
            batch_size=batch_size,
            max_workers=max_workers,
        )

    def run(self, cancel_event: Optional[threading.Event] = None) -> SyncSummary:
        """Ejecuta la corrida completa y retorna el resumen."""
        logger.info("Obteniendo empleados desde la API...")
        sources = self._api.get_employees(self._users_path)
        logger.info(f"Se encontraron {len(sources)} empleado(s) en la API")

        gender_map = {}
        if isinstance(self._store, IChoiceMapProvider):
            gender_map = self._store.get_choice_map(GENDER_FIELD)

        records = map_employees(sources, gender_map)
        return self.orchestrator.sync(records, cancel_event=cancel_event)

    def test_connection(self) -> str:
        """Verifica la conexion al store. Retorna el id de usuario del store."""
        if self._connection is None:
            raise ValueError("No hay proveedor de conexion configurado")
        return self._connection.health_check()

    def close(self) -> None:
        self._audit.close()
        if self._connection is not None:
            self._connection.close()

    def __enter__(self) -> "EmployeeSyncUseCase":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def build_from_settings(config=None) -> EmployeeSyncUseCase:
    """
    Constructor "oficial" del pipeline a partir de Settings.

    Raises:
        SyncConfigError: si faltan claves obligatorias de Dataverse
    """
    from employee_sync.core.config import settings as default_settings, validate_sync_settings
    from employee_sync.infrastructure.external.dataverse.client import DataverseRecordStore
    from employee_sync.infrastructure.external.dataverse.connection import (
        DataverseConnectionProvider,
        DataverseCredentials,
    )
    from employee_sync.infrastructure.external.dummyjson.api_client import DummyJSONClient
    from employee_sync.infrastructure.security.host_validator import HostValidator
    from employee_sync.shared.exceptions.sync import SyncConfigError

    config = config or default_settings
    missing = validate_sync_settings(config)
    if missing:
        raise SyncConfigError(
            f"Faltan variables de entorno obligatorias: {', '.join(missing)}",
            missing=missing,
        )

    validator = HostValidator()
    api_client = DummyJSONClient(
        base_url=config.API_BASE_URL,
        allowed_hosts=config.api_allowed_hosts,
        host_validator=validator,
        timeout_s=config.API_TIMEOUT_SECONDS,
    )
    connection = DataverseConnectionProvider(
        DataverseCredentials(
            url=config.DATAVERSE_URL,
            tenant_id=config.DATAVERSE_TENANT_ID,
            client_id=config.DATAVERSE_CLIENT_ID,
            client_secret=config.DATAVERSE_CLIENT_SECRET,
        ),
        allowed_hosts=config.dataverse_allowed_hosts,
        host_validator=validator,
        api_version=config.DATAVERSE_API_VERSION,
        timeout_s=config.DATAVERSE_TIMEOUT_SECONDS,
    )
    store = DataverseRecordStore(
        connection,
        entity_set=config.DATAVERSE_ENTITY_SET,
        entity_name=config.DATAVERSE_ENTITY_NAME,
        page_size=config.DATAVERSE_PAGE_SIZE,
        max_retries=config.DATAVERSE_MAX_RETRIES,
    )
    audit = AuditRecorder(config.AUDIT_LOG_DIR, retention_count=config.AUDIT_RETENTION_COUNT)
    return EmployeeSyncUseCase(
        api_client,
        store,
        audit,
        users_path=config.API_USERS_PATH,
        batch_size=config.SYNC_BATCH_SIZE,
        max_workers=config.SYNC_MAX_WORKERS,
        connection=connection,
    )
