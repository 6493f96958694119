"""
Proveedor de conexión a Dataverse (Web API).

Responsabilidades:
- Una sola requests.Session reutilizada durante la corrida
- Token OAuth2 client-credentials cacheado y renovado antes de expirar
- Validación de host de cada URL antes de llamarla (store y authority)
- Health check (WhoAmI)

El motor de sync no conoce este ciclo de vida: recibe un cliente listo.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

import requests
from loguru import logger

from employee_sync.infrastructure.security.host_validator import HostValidator
from employee_sync.shared.exceptions.sync import StoreUnavailableException


@dataclass(frozen=True)
class DataverseCredentials:
    url: str
    tenant_id: str
    client_id: str
    client_secret: str


class DataverseConnectionProvider:
    """
    Conexión a la Web API de Dataverse.

    Importante:
    - send() no reintenta: los reintentos son del DataverseRecordStore.
    - Thread-safe para la renovación del token.
    """

    CALLER = "Dataverse"

    def __init__(
        self,
        credentials: DataverseCredentials,
        *,
        allowed_hosts: Iterable[str],
        host_validator: Optional[HostValidator] = None,
        session: Optional[requests.Session] = None,
        api_version: str = "9.2",
        timeout_s: int = 30,
        authority_url: str = "https://login.microsoftonline.com",
        token_skew_s: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._creds = credentials
        self._allowed_hosts = list(allowed_hosts)
        self._validator = host_validator or HostValidator()
        self._session = session or requests.Session()
        self._timeout_s = timeout_s
        self._authority_url = authority_url.rstrip("/")
        self._token_skew_s = token_skew_s
        self._clock = clock
        self._base_url = credentials.url.rstrip("/")
        self.api_url = f"{self._base_url}/api/data/v{api_version}/"

        self._token: Optional[str] = None
        self._token_expires_at = 0.0
        self._token_lock = threading.Lock()

    @property
    def token_url(self) -> str:
        return f"{self._authority_url}/{self._creds.tenant_id}/oauth2/v2.0/token"

    def _token_is_valid(self) -> bool:
        return self._token is not None and self._clock() < self._token_expires_at - self._token_skew_s

    def _acquire_token(self) -> str:
        self._validator.validate(self._base_url, self._allowed_hosts, self.CALLER)
        self._validator.validate(self.token_url, self._allowed_hosts, self.CALLER)
        logger.info(f"Obteniendo token de Dataverse para {self._base_url}")

        try:
            resp = self._session.post(
                self.token_url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self._creds.client_id,
                    "client_secret": self._creds.client_secret,
                    "scope": f"{self._base_url}/.default",
                },
                timeout=self._timeout_s,
                allow_redirects=False,
            )
        except requests.RequestException as e:
            raise StoreUnavailableException(f"No se pudo conectar a Dataverse: {e}") from e

        if not 200 <= resp.status_code < 300:
            logger.error(f"Fallo la autenticacion con Dataverse: {resp.status_code}")
            raise StoreUnavailableException(
                f"No se pudo autenticar con Dataverse ({resp.status_code}): {resp.text}",
                details={"status_code": resp.status_code},
            )

        try:
            payload = resp.json()
            token = payload["access_token"]
            expires_in = float(payload.get("expires_in", 3600))
        except (ValueError, KeyError) as e:
            raise StoreUnavailableException(f"Respuesta de token invalida: {e}") from e

        self._token = token
        self._token_expires_at = self._clock() + expires_in
        logger.info("Conexion con Dataverse establecida")
        return token

    def get_token(self) -> str:
        """Retorna un token vigente, renovandolo si está por expirar."""
        with self._token_lock:
            if not self._token_is_valid():
                self._acquire_token()
            return self._token

    def headers(self, extra: Optional[dict[str, str]] = None) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.get_token()}",
            "Accept": "application/json",
            "Content-Type": "application/json; charset=utf-8",
            "OData-MaxVersion": "4.0",
            "OData-Version": "4.0",
        }
        if extra:
            headers.update(extra)
        return headers

    def url_for(self, relative: str) -> str:
        return self.api_url + relative.lstrip("/")

    def send(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[dict[str, str]] = None,
        json: Any = None,
        params: Optional[dict[str, Any]] = None,
    ) -> requests.Response:
        """
        Ejecuta una llamada autenticada. Valida el host antes de llamar.

        Raises:
            SecurityException: host fuera del allow-list
            requests.RequestException: error de red (el caller decide)
        """
        self._validator.validate(url, self._allowed_hosts, self.CALLER)
        resp = self._session.request(
            method=method,
            url=url,
            headers=self.headers(headers),
            json=json,
            params=params,
            timeout=self._timeout_s,
            # Redirects no se siguen: el destino no pasaria por el allow-list.
            allow_redirects=False,
        )
        if resp.status_code == 401:
            # Token revocado o expirado antes de tiempo: se fuerza renovación.
            with self._token_lock:
                self._token = None
        elif 300 <= resp.status_code < 400:
            logger.warning(f"Redireccion de Dataverse rechazada: {url} -> {resp.headers.get('Location')}")
        return resp

    def health_check(self) -> str:
        """
        Verifica la conexión con WhoAmI.

        Returns:
            str: UserId de la aplicación en Dataverse
        """
        try:
            resp = self.send("GET", self.url_for("WhoAmI"))
        except requests.RequestException as e:
            raise StoreUnavailableException(f"Test de conexion fallido: {e}") from e

        if not 200 <= resp.status_code < 300:
            raise StoreUnavailableException(
                f"Test de conexion fallido ({resp.status_code}): {resp.text}",
                details={"status_code": resp.status_code},
            )
        user_id = str(resp.json().get("UserId", ""))
        logger.info(f"Test de conexion exitoso. UserId: {user_id}")
        return user_id

    def close(self) -> None:
        self._session.close()
