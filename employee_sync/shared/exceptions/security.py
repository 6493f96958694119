"""
Excepciones relacionadas con la validación de hosts salientes.
"""
from employee_sync.shared.exceptions.base import AppException


class SecurityException(AppException):
    """
    Excepción cuando una llamada saliente apunta a un host fuera del allow-list.

    Es fatal para la llamada que la dispara: nunca se degrada en silencio.
    """
    
    def __init__(self, caller: str, url: str):
        super().__init__(
            message=(
                f"Validación de host fallida para {caller}. "
                f"La URL '{url}' no está en la lista de hosts permitidos."
            ),
            status_code=403,
            error_code="HOST_NOT_ALLOWED",
            details={"caller": caller, "url": url}
        )
        self.caller = caller
        self.url = url
