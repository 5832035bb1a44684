"""
Configuracion central del job de reconciliacion.
Gestiona variables de entorno y valores por defecto.

Todas las variables se leen una sola vez al inicio de la corrida.
Los tamaños de pagina/lote conocidos en produccion son:
- PAGE_SIZE: 1000 (default) o 2500
- LOOKUP_BATCH_SIZE / WRITE_BATCH_SIZE: 10 (Airtable acepta max 10 records por PATCH)
"""
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings

from heartbeat_sync.shared.exceptions import SyncConfigError


class Settings(BaseSettings):
    """
    Clase de configuracion del job.
    Lee variables de entorno (y .env) y proporciona valores por defecto.
    """

    # Fuente: Postgres con users + heartbeats
    DATABASE_URL: str = Field(default="")

    # Destino: Airtable
    AIRTABLE_TOKEN: str = Field(default="")
    AIRTABLE_BASE_ID: str = Field(default="")
    AIRTABLE_TABLE_NAME: str = Field(default="")
    AIRTABLE_ID_FIELD: str = Field(default="User ID")
    AIRTABLE_EMAIL_FIELD: str = Field(default="Email")
    AIRTABLE_BASE_URL: str = Field(default="https://api.airtable.com/v0")
    AIRTABLE_TIMEOUT_S: int = Field(default=30)
    # Airtable limita a 5 req/s por base
    AIRTABLE_MIN_REQUEST_INTERVAL_S: float = Field(default=0.2)
    # 0 = sin reintentos: un fallo se registra y la corrida queda degradada
    AIRTABLE_MAX_RETRIES: int = Field(default=0)

    # Paginacion y lotes
    PAGE_SIZE: int = Field(default=1000, gt=0)
    LOOKUP_BATCH_SIZE: int = Field(default=10, gt=0)
    WRITE_BATCH_SIZE: int = Field(default=10, gt=0, le=10)

    # Parametros de la query de agregados
    IDLE_GAP_CAP_SECONDS: int = Field(default=120, gt=0)
    ACTIVE_WINDOW_DAYS: int = Field(default=30, gt=0)

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FILE: Optional[str] = Field(default=None)

    def require(self, *names: str) -> None:
        """
        Valida que las variables indicadas tengan valor.

        Raises:
            SyncConfigError: con la primera variable faltante
        """
        for name in names:
            if not getattr(self, name):
                raise SyncConfigError(
                    f"Falta variable de entorno obligatoria: {name}",
                    setting=name,
                )

    class Config:
        """Configuracion de Pydantic."""
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


REQUIRED_SETTINGS = (
    "DATABASE_URL",
    "AIRTABLE_TOKEN",
    "AIRTABLE_BASE_ID",
    "AIRTABLE_TABLE_NAME",
)


def get_settings(**overrides) -> Settings:
    """
    Construye la configuracion leyendo el entorno.

    Los overrides (p.ej. desde argumentos CLI) tienen prioridad sobre el entorno.
    """
    return Settings(**overrides)
