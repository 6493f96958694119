"""
Manejadores de eventos de inicio y cierre de la aplicacion.
"""
from typing import Callable

from fastapi import FastAPI
from loguru import logger

from employee_sync.core.config import settings, validate_sync_settings
from employee_sync.core.logging_config import configure_logging


def startup_handler(app: FastAPI) -> Callable:
    """
    Manejador de eventos de inicio de la aplicacion.

    Args:
        app: Instancia de FastAPI

    Returns:
        Callable: Funcion asincrona de inicio
    """
    async def startup() -> None:
        """Inicializa recursos al inicio de la aplicacion."""
        configure_logging(settings.LOG_LEVEL, settings.LOG_FILE)
        logger.info(f"Iniciando {settings.APP_NAME} v{settings.APP_VERSION}")
        logger.info(f"Entorno: {settings.ENVIRONMENT}")

        _validate_config()

        logger.success("Aplicacion iniciada correctamente")
        if settings.is_development:
            _print_available_urls()

    return startup


def _validate_config() -> None:
    """Advierte si falta configuracion critica. No impide el arranque."""
    missing = validate_sync_settings(settings)
    if missing:
        logger.warning(f"CONFIG: faltan {', '.join(missing)} - el sync no funcionara")


def _print_available_urls() -> None:
    """Imprime las URLs disponibles de la aplicacion."""
    access_host = "localhost" if settings.HOST == "0.0.0.0" else settings.HOST
    base_url = f"http://{access_host}:{settings.PORT}"

    logger.info("=" * 60)
    logger.info(f"  Swagger UI:  {base_url}/docs")
    logger.info(f"  Health:      {base_url}/health")
    logger.info(f"  Sync:        POST {base_url}/api/v1/sync/employees")
    logger.info("=" * 60)


def shutdown_handler(app: FastAPI) -> Callable:
    """
    Manejador de eventos de cierre de la aplicacion.

    Args:
        app: Instancia de FastAPI

    Returns:
        Callable: Funcion asincrona de cierre
    """
    async def shutdown() -> None:
        """Libera recursos al cerrar la aplicacion."""
        logger.info("Cerrando aplicacion...")
        await logger.complete()
        logger.success("Aplicacion cerrada correctamente")

    return shutdown
