"""
Sync de empleados: API origen (solo lectura) -> Dataverse.

Crea registros nuevos, actualiza solo los que cambiaron y deja auditoria
de cada cambio.
"""

__version__ = "1.0.0"
