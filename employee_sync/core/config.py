"""
Configuracion central del sync de empleados.
Gestiona variables de entorno y configuraciones globales.

Todas las claves se leen del entorno o de un archivo .env. Las listas de
hosts permitidos aceptan una lista JSON o un string separado por comas.
"""
import json
from typing import List

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Clase de configuracion del sync.
    Lee variables de entorno y proporciona valores por defecto.
    """

    # Configuracion de la aplicacion
    APP_NAME: str = Field(default="Employee Sync")
    APP_VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="production")

    # Configuracion del servidor
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8000)

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FILE: str = Field(default="logs/employee_sync.log")

    # API origen (solo lectura)
    API_BASE_URL: str = Field(default="https://dummyjson.com/")
    API_USERS_PATH: str = Field(default="users")
    API_ALLOWED_HOSTS: str = Field(default="dummyjson.com")
    API_TIMEOUT_SECONDS: int = Field(default=30)

    # Dataverse (destino)
    DATAVERSE_URL: str = Field(default="")
    DATAVERSE_TENANT_ID: str = Field(default="")
    DATAVERSE_CLIENT_ID: str = Field(default="")
    DATAVERSE_CLIENT_SECRET: str = Field(default="")
    DATAVERSE_ALLOWED_HOSTS: str = Field(default="*.dynamics.com,login.microsoftonline.com")
    DATAVERSE_API_VERSION: str = Field(default="9.2")
    DATAVERSE_ENTITY_NAME: str = Field(default="crfbe_employee")
    DATAVERSE_ENTITY_SET: str = Field(default="crfbe_employees")
    DATAVERSE_TIMEOUT_SECONDS: int = Field(default=30)
    DATAVERSE_MAX_RETRIES: int = Field(default=3)
    DATAVERSE_PAGE_SIZE: int = Field(default=5000)

    # Motor de sincronizacion
    SYNC_BATCH_SIZE: int = Field(default=100)
    SYNC_MAX_WORKERS: int = Field(default=1)

    # Auditoria
    AUDIT_LOG_DIR: str = Field(default="logs/audit")
    AUDIT_RETENTION_COUNT: int = Field(default=30)

    @computed_field
    @property
    def api_allowed_hosts(self) -> List[str]:
        """Hosts permitidos para la API origen."""
        return parse_host_list(self.API_ALLOWED_HOSTS)

    @computed_field
    @property
    def dataverse_allowed_hosts(self) -> List[str]:
        """Hosts permitidos para Dataverse (incluye el authority de OAuth)."""
        return parse_host_list(self.DATAVERSE_ALLOWED_HOSTS)

    @computed_field
    @property
    def is_development(self) -> bool:
        """Indica si el entorno es de desarrollo."""
        return self.ENVIRONMENT.lower() == "development"

    class Config:
        """Configuracion de Pydantic."""
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


def parse_host_list(hosts: str) -> List[str]:
    """
    Parsea una lista de hosts.
    Acepta una lista JSON o un string separado por comas.
    """
    if not hosts or not hosts.strip():
        return []
    try:
        parsed = json.loads(hosts)
    except json.JSONDecodeError:
        return [h.strip() for h in hosts.split(",") if h.strip()]
    if not isinstance(parsed, list):
        return [str(parsed).strip()] if str(parsed).strip() else []
    return [str(h).strip() for h in parsed if str(h).strip()]


def validate_sync_settings(config: Settings) -> List[str]:
    """Retorna las claves obligatorias para un sync que faltan en la configuracion."""
    required = {
        "DATAVERSE_URL": config.DATAVERSE_URL,
        "DATAVERSE_TENANT_ID": config.DATAVERSE_TENANT_ID,
        "DATAVERSE_CLIENT_ID": config.DATAVERSE_CLIENT_ID,
        "DATAVERSE_CLIENT_SECRET": config.DATAVERSE_CLIENT_SECRET,
    }
    return [name for name, value in required.items() if not value]


# Instancia global de configuracion
settings = Settings()
