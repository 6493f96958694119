"""
Carga del snapshot de registros existentes.

Pide todas las páginas al store destino siguiendo el token de continuación
y construye un índice id externo -> registro existente.
"""
from __future__ import annotations

from typing import Optional

from loguru import logger

from employee_sync.domain.entities.employee import Snapshot
from employee_sync.domain.repositories.record_store import IRecordStoreClient
from employee_sync.shared.exceptions.security import SecurityException
from employee_sync.shared.exceptions.sync import StoreUnavailableException


class SnapshotLoader:
    """
    Construye el Snapshot de una corrida.

    - Un registro sin id externo se omite (no se puede hacer match).
    - Ids duplicados: gana el último visto (no debería pasar, pero no rompe).
    - Si una página falla se lanza StoreUnavailableException sin reintentar:
      el caller decide si aborta o reintenta la corrida completa.
    """

    def __init__(self, store: IRecordStoreClient, *, max_pages: Optional[int] = None) -> None:
        self._store = store
        self._max_pages = max_pages

    def load_snapshot(self) -> Snapshot:
        snapshot: Snapshot = {}
        token: Optional[str] = None
        pages = 0
        skipped = 0
        duplicates = 0

        while True:
            try:
                page = self._store.fetch_page(token)
            except (StoreUnavailableException, SecurityException):
                raise
            except Exception as e:
                raise StoreUnavailableException(
                    f"Falló la página {pages + 1} del snapshot: {e}",
                    details={"page": pages + 1},
                ) from e

            pages += 1
            for record in page.records:
                external_id = record.external_id
                if not external_id:
                    skipped += 1
                    continue
                if external_id in snapshot:
                    duplicates += 1
                snapshot[external_id] = record

            logger.debug(f"Snapshot: página {pages} con {len(page.records)} registro(s)")

            if not page.has_more or not page.next_token:
                break
            if self._max_pages is not None and pages >= self._max_pages:
                raise StoreUnavailableException(
                    f"El store sigue reportando páginas tras {pages}; se aborta el snapshot",
                    details={"pages": pages},
                )
            token = page.next_token

        if skipped:
            logger.warning(f"Snapshot: {skipped} registro(s) sin id externo omitidos")
        if duplicates:
            logger.warning(f"Snapshot: {duplicates} id(s) externos duplicados (gana el último)")
        logger.info(f"Snapshot cargado: {len(snapshot)} registro(s) en {pages} página(s)")
        return snapshot
