"""
Casos de uso de la aplicacion.
"""
from .employee_sync_use_cases import EmployeeSyncOrchestrator, EmployeeSyncUseCase, build_from_settings

__all__ = ["EmployeeSyncOrchestrator", "EmployeeSyncUseCase", "build_from_settings"]
