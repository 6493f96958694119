"""
Interfaz del cliente del store destino.
Define el contrato que debe cumplir cualquier implementación.

El core nunca abre ni cierra la conexión subyacente: recibe un cliente
listo para usar.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from employee_sync.domain.entities.employee import ExistingRecord, IncomingRecord


@dataclass(frozen=True)
class StorePage:
    """Una página de registros existentes más el token de continuación."""
    records: List[ExistingRecord] = field(default_factory=list)
    next_token: Optional[str] = None
    has_more: bool = False


class IRecordStoreClient(ABC):
    """
    Interfaz del store destino.
    Define las operaciones de lectura paginada y de mutación.
    """
    
    @abstractmethod
    def fetch_page(self, paging_token: Optional[str] = None) -> StorePage:
        """
        Obtiene una página de registros existentes.
        
        Args:
            paging_token: Token de continuación (None para la primera página)
            
        Returns:
            StorePage: Registros de la página y token de la siguiente
        """
        pass
    
    @abstractmethod
    def create(self, record: IncomingRecord) -> str:
        """
        Crea un registro nuevo.
        
        Args:
            record: Registro entrante (el id externo va como campo plano)
            
        Returns:
            str: Identidad asignada por el store
        """
        pass
    
    @abstractmethod
    def update(self, record: IncomingRecord) -> None:
        """
        Actualiza un registro existente.
        
        Args:
            record: Registro entrante con store_id asignado
        """
        pass


class IChoiceMapProvider(ABC):
    """
    Interfaz para leer tablas de códigos (option sets) del store destino.
    Se consulta una vez por corrida.
    """
    
    @abstractmethod
    def get_choice_map(self, attribute_name: str) -> Dict[str, int]:
        """
        Obtiene el mapa etiqueta -> código de un atributo categórico.
        
        Args:
            attribute_name: Nombre lógico del atributo
            
        Returns:
            Dict[str, int]: Etiquetas en minúsculas -> código entero
        """
        pass
