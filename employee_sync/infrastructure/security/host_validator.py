"""
Validacion de hosts salientes (allow-list).

Toda llamada de red pasa por aqui antes de ejecutarse.

Reglas:
- Solo https
- Match exacto de hostname (sin distinguir mayusculas)
- "*.dominio" hace match con cualquier subdominio de dominio, pero no con
  el dominio pelado (hay que listarlo aparte)
"""
from __future__ import annotations

from typing import Iterable, Optional
from urllib.parse import urlsplit

from loguru import logger

from employee_sync.shared.exceptions.security import SecurityException


class HostValidator:
    """Valida URLs contra una lista de hosts permitidos."""

    SECURE_SCHEME = "https"

    def is_allowed(self, url: Optional[str], allowed_hosts: Optional[Iterable[str]]) -> bool:
        """
        Indica si la URL apunta a un host permitido.

        Nunca lanza: una URL vacia o mal formada retorna False.
        """
        if not url or not str(url).strip():
            logger.warning("URL vacia o nula")
            return False

        try:
            parts = urlsplit(str(url).strip())
            host = (parts.hostname or "").lower()
        except ValueError:
            logger.warning(f"Formato de URL invalido: {url}")
            return False

        if not parts.scheme or not host:
            logger.warning(f"Formato de URL invalido: {url}")
            return False

        if parts.scheme.lower() != self.SECURE_SCHEME:
            logger.warning(f"URL no-HTTPS rechazada: {url}")
            return False

        for allowed in allowed_hosts or []:
            normalized = str(allowed).strip().lower()
            if not normalized:
                continue

            if normalized.startswith("*."):
                domain = normalized[2:]
                if domain and host.endswith("." + domain):
                    logger.debug(f"Host {host} coincide con wildcard {normalized}")
                    return True
                continue

            if host == normalized:
                logger.debug(f"Host {host} coincide con host permitido {normalized}")
                return True

        logger.warning(f"Host {host} no esta en la lista de permitidos")
        return False

    def validate(self, url: Optional[str], allowed_hosts: Optional[Iterable[str]], caller: str) -> None:
        """
        Valida la URL o lanza SecurityException nombrando al caller.

        Raises:
            SecurityException: si el host no esta permitido
        """
        if not self.is_allowed(url, allowed_hosts):
            raise SecurityException(caller=caller, url=str(url))
