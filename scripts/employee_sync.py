"""
CLI: API de empleados -> Dataverse (one-way sync).

Uso recomendado:
  - Ejecutar como job (cron/systemd timer).
  - Ctrl+C cancela de forma ordenada: termina el registro en curso,
    escribe el resumen y sale.

Variables de entorno requeridas:
  - DATAVERSE_URL
  - DATAVERSE_TENANT_ID
  - DATAVERSE_CLIENT_ID
  - DATAVERSE_CLIENT_SECRET

Ejecución:
  python scripts/employee_sync.py
  python scripts/employee_sync.py --test-connection
  python scripts/employee_sync.py --workers 4

Códigos de salida:
  0 sync completo sin fallos
  1 sync completo con registros fallidos (o cancelado)
  2 error fatal (configuración, seguridad o store no disponible)
"""

from __future__ import annotations

import argparse
import signal
import sys
import threading
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

# Permite ejecutar este script desde cualquier cwd sin configurar PYTHONPATH.
_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

# Cargar variables desde .env antes de construir Settings.
load_dotenv(_REPO_ROOT / ".env", override=False)

from employee_sync.core.config import Settings
from employee_sync.core.logging_config import configure_logging
from employee_sync.application.use_cases.employee_sync_use_cases import build_from_settings
from employee_sync.shared.exceptions.base import AppException


EXIT_OK = 0
EXIT_RECORD_FAILURES = 1
EXIT_FATAL = 2


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sincroniza empleados desde la API hacia Dataverse.")
    parser.add_argument(
        "--test-connection",
        action="store_true",
        help="Solo prueba la conexión con Dataverse (no ejecuta sync).",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Cantidad de workers concurrentes (por defecto SYNC_MAX_WORKERS).",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = _parse_args(argv)

    overrides = {}
    if args.workers is not None:
        if args.workers < 1:
            logger.error("--workers debe ser >= 1")
            return EXIT_FATAL
        overrides["SYNC_MAX_WORKERS"] = args.workers
    config = Settings(**overrides)
    configure_logging(config.LOG_LEVEL, config.LOG_FILE)

    cancel_event = threading.Event()

    def _on_sigint(signum, frame) -> None:
        if cancel_event.is_set():
            raise KeyboardInterrupt
        logger.warning("Cancelación solicitada, terminando el registro en curso... (Ctrl+C de nuevo para forzar)")
        cancel_event.set()

    try:
        use_case = build_from_settings(config)
    except AppException as e:
        logger.error(f"Configuración inválida: {e.message}")
        return EXIT_FATAL

    with use_case:
        try:
            if args.test_connection:
                user_id = use_case.test_connection()
                logger.success(f"Conexión OK (UserId: {user_id})")
                return EXIT_OK

            previous = signal.signal(signal.SIGINT, _on_sigint)
            try:
                summary = use_case.run(cancel_event=cancel_event)
            finally:
                signal.signal(signal.SIGINT, previous)
        except AppException as e:
            logger.error(f"Sync abortado [{e.error_code}]: {e.message}")
            return EXIT_FATAL

    if summary.failed or summary.cancelled:
        return EXIT_RECORD_FAILURES
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
