"""
Cliente minimo de la API origen de empleados (DummyJSON).

Requisitos cubiertos:
- requests
- validacion de host antes de cada llamada
- payload envuelto ({"users": [...]}) o un solo usuario
"""

from __future__ import annotations

from typing import Any, Iterable, Optional
from urllib.parse import urljoin

import requests
from loguru import logger

from employee_sync.infrastructure.security.host_validator import HostValidator
from employee_sync.shared.exceptions.sync import SourceApiException


class DummyJSONClient:
    """
    Cliente HTTP de la API origen. Solo lectura.

    Importante:
    - No mapea al esquema destino: eso lo hace employee_mapper.
    - Pide todos los usuarios de una vez (?limit=0).
    """

    CALLER = "DummyJSON API"

    def __init__(
        self,
        *,
        base_url: str,
        allowed_hosts: Iterable[str],
        host_validator: Optional[HostValidator] = None,
        session: Optional[requests.Session] = None,
        timeout_s: int = 30,
    ) -> None:
        self._base_url = base_url if base_url.endswith("/") else base_url + "/"
        self._allowed_hosts = list(allowed_hosts)
        self._validator = host_validator or HostValidator()
        self._session = session or requests.Session()
        self._timeout_s = timeout_s

    def get_employees(self, path: str = "users") -> list[dict[str, Any]]:
        """
        Obtiene los empleados de la API.

        Raises:
            SecurityException: si el host no esta permitido
            SourceApiException: error HTTP, de red o de JSON
        """
        full_url = urljoin(self._base_url, path.lstrip("/")) + "?limit=0"
        self._validator.validate(full_url, self._allowed_hosts, self.CALLER)

        logger.info(f"Obteniendo empleados desde {path}")
        try:
            resp = self._session.get(
                full_url,
                headers={"Accept": "application/json"},
                timeout=self._timeout_s,
                # Un redirect llevaria la llamada a un host no validado.
                allow_redirects=False,
            )
        except requests.RequestException as e:
            raise SourceApiException(f"Error HTTP consultando {path}: {e}") from e

        if 300 <= resp.status_code < 400:
            location = resp.headers.get("Location")
            logger.error(f"Redireccion rechazada desde {path} hacia {location}")
            raise SourceApiException(
                f"La API respondio una redireccion ({resp.status_code}) no permitida",
                details={"status_code": resp.status_code, "location": location},
            )

        if not 200 <= resp.status_code < 300:
            logger.error(f"Fallo al obtener empleados. Status code: {resp.status_code}")
            raise SourceApiException(
                f"La API respondio {resp.status_code} para {path}",
                details={"status_code": resp.status_code},
            )

        try:
            payload = resp.json()
        except ValueError as e:
            raise SourceApiException(f"Respuesta JSON invalida desde {path}: {e}") from e

        if isinstance(payload, dict) and "users" in payload:
            employees = list(payload.get("users") or [])
            logger.info(f"Se obtuvieron {len(employees)} empleado(s)")
            return employees

        if isinstance(payload, dict):
            logger.info("Se obtuvo 1 empleado")
            return [payload]

        raise SourceApiException(f"Payload inesperado desde {path}: {type(payload).__name__}")
