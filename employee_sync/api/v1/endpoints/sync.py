"""
Endpoints para sincronizacion de empleados.
Permite lanzar el sync API -> Dataverse y probar la conexion desde la UI.
"""
import asyncio
import threading

from fastapi import APIRouter, HTTPException, status
from loguru import logger

from employee_sync.application.dto.sync_dto import ConnectionTestDTO, SyncSummaryDTO
from employee_sync.application.use_cases.employee_sync_use_cases import build_from_settings
from employee_sync.shared.exceptions.base import AppException


router = APIRouter(prefix="/sync", tags=["Sync"])

# Una sola corrida a la vez por proceso.
_sync_lock = threading.Lock()


def _run_employee_sync() -> SyncSummaryDTO:
    """
    Ejecuta la corrida completa.
    Esta funcion es sincrona y se ejecuta en un thread separado.
    Libera _sync_lock al terminar: el lock vive lo que vive la corrida,
    no lo que vive el request.
    """
    try:
        with build_from_settings() as use_case:
            summary = use_case.run()
        return SyncSummaryDTO.from_summary(summary)
    finally:
        _sync_lock.release()


def _run_connection_test() -> ConnectionTestDTO:
    with build_from_settings() as use_case:
        user_id = use_case.test_connection()
    return ConnectionTestDTO(success=True, user_id=user_id)


@router.post(
    "/employees",
    response_model=SyncSummaryDTO,
    status_code=status.HTTP_200_OK,
    summary="Sincronizar empleados con Dataverse"
)
async def sync_employees() -> SyncSummaryDTO:
    """
    Ejecuta la sincronizacion de empleados API -> Dataverse.

    La sincronizacion:
    - Carga el snapshot de Dataverse y compara registro por registro
    - Crea los nuevos, actualiza los que cambiaron y omite el resto
    - Deja auditoria de cada cambio
    - Rechaza con 409 si ya hay una corrida en curso
    """
    if not _sync_lock.acquire(blocking=False):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Ya hay una sincronizacion en curso"
        )
    try:
        logger.info("Iniciando sincronizacion de empleados desde API")
        # Ejecutar sync en thread separado para no bloquear el event loop.
        # shield: si el cliente se desconecta, la corrida sigue y libera el lock.
        result = await asyncio.shield(asyncio.to_thread(_run_employee_sync))
        logger.info(f"Sync completado: {result.message}")
        return result
    except AppException:
        raise
    except Exception as e:
        logger.error(f"Error en sincronizacion de empleados: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error al sincronizar: {str(e)}"
        )


@router.get(
    "/connection",
    response_model=ConnectionTestDTO,
    summary="Probar conexion con Dataverse"
)
async def test_connection() -> ConnectionTestDTO:
    """Verifica credenciales y conectividad con Dataverse (WhoAmI)."""
    return await asyncio.to_thread(_run_connection_test)
