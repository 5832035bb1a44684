"""
Excepciones del pipeline Postgres (heartbeats) -> Airtable.

Taxonomía:
- SyncConfigError: configuración inválida, se detecta antes de cualquier I/O.
- SourceQueryError: la query paginada de agregados falló. Es fatal: aborta la corrida.
- AirtableApiError: fallo de lookup o de escritura en Airtable. Se recupera
  localmente (log + skip/clear) y marca la corrida como degradada.
"""
from typing import Any, Optional

from heartbeat_sync.shared.exceptions.base import SyncException


class SyncConfigError(SyncException):
    """Error de configuración del pipeline."""

    def __init__(self, message: str, setting: Optional[str] = None):
        details = {"setting": setting} if setting else None
        super().__init__(
            message=message,
            error_code="CONFIG_ERROR",
            details=details
        )


class SourceQueryError(SyncException):
    """La query de agregados contra Postgres falló."""

    def __init__(self, message: str, offset: Optional[int] = None, limit: Optional[int] = None):
        super().__init__(
            message=message,
            error_code="SOURCE_QUERY_ERROR",
            details={"offset": offset, "limit": limit}
        )


class AirtableApiError(SyncException):
    """Error de integración con Airtable."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        self.status_code = status_code
        super().__init__(
            message=message,
            error_code="AIRTABLE_API_ERROR",
            details={"status_code": status_code, "body": body}
        )
