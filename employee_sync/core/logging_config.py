"""
Configuracion de logging operacional (loguru).

Los sinks de auditoria los agrega AuditRecorder; aqui se filtran para que
las lineas de auditoria no se mezclen con el log operacional.
"""
import sys
from pathlib import Path
from typing import Optional

from loguru import logger


_configured = False


def _not_audit(record) -> bool:
    return "audit_channel" not in record["extra"]


def configure_logging(level: str = "INFO", log_file: Optional[str] = None, *, force: bool = False) -> None:
    """
    Configura los handlers de loguru: stderr + archivo rotativo.

    Args:
        level: Nivel minimo de log
        log_file: Ruta del archivo de log (None para solo consola)
        force: Reconfigurar aunque ya se haya configurado en este proceso
    """
    global _configured
    if _configured and not force:
        return

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        filter=_not_audit,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            rotation="10 MB",
            retention="10 days",
            level=level,
            filter=_not_audit,
            encoding="utf-8",
        )

    _configured = True
    logger.debug(f"Logging configurado (nivel: {level})")
