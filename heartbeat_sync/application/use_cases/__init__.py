"""
Casos de uso de la aplicacion.
"""
from .reconcile_use_cases import ReconcileHeartbeatsUseCase, RunReport, build_from_settings

__all__ = ["ReconcileHeartbeatsUseCase", "RunReport", "build_from_settings"]
