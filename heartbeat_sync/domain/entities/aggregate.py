"""
Entidades del dominio de reconciliacion.

- AggregateRow: resumen de actividad de un usuario, tal como lo entrega la query
  de agregados (una fila por usuario y pagina).
- TargetRecordRef: referencia opaca a un record de Airtable.
- PendingUpdate: campos a escribir en un record destino, junto con la
  actividad de la fila origen que los produjo (para "replace only if newer").
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional


def normalize_email(email: Optional[str]) -> Optional[str]:
    """
    Clave de fallback normalizada (trim + lower).

    Retorna None si el email es vacio o solo espacios.
    """
    if email is None:
        return None
    key = str(email).strip().lower()
    return key or None


def _as_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    return int(value)


def _as_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    return float(value)


def _as_list(value: Any) -> Optional[List[Any]]:
    if value is None:
        return None
    return list(value)


@dataclass(frozen=True)
class AggregateRow:
    """
    Fila de agregados por usuario.

    Los contadores siempre son >= 0. Las listas son los valores distintos
    observados (maquinas e instalaciones "editor|os|maquina").
    """

    entity_id: str
    email: Optional[str]
    name: Optional[str] = None
    created_at: Optional[datetime] = None
    first_activity: Optional[datetime] = None
    last_activity: Optional[datetime] = None

    known_machine_count: Optional[int] = None
    known_machines: Optional[List[Any]] = None
    active_machine_count_30d: Optional[int] = None
    active_machines_30d: Optional[List[Any]] = None

    known_installation_count: Optional[int] = None
    known_installations: Optional[List[Any]] = None
    active_installation_count_30d: Optional[int] = None
    active_installations_30d: Optional[List[Any]] = None

    total_active_seconds: Optional[float] = None
    total_active_hours: Optional[float] = None

    @property
    def email_key(self) -> Optional[str]:
        return normalize_email(self.email)

    @classmethod
    def from_db_row(cls, row: Mapping[str, Any]) -> "AggregateRow":
        """
        Construye la entidad desde una fila (dict_row) de la query de agregados.

        Los nombres de columna con prefijo numerico ("30_day_...") son los del
        contrato SQL; aqui se mapean a atributos Python.
        """
        return cls(
            entity_id=str(row["id"]),
            email=row.get("email"),
            name=row.get("name"),
            created_at=row.get("created_at"),
            first_activity=row.get("first_heartbeat"),
            last_activity=row.get("last_heartbeat"),
            known_machine_count=_as_int(row.get("known_machine_count")),
            known_machines=_as_list(row.get("known_machines")),
            active_machine_count_30d=_as_int(row.get("30_day_active_machine_count")),
            active_machines_30d=_as_list(row.get("30_day_active_machines")),
            known_installation_count=_as_int(row.get("known_installation_count")),
            known_installations=_as_list(row.get("known_installations")),
            active_installation_count_30d=_as_int(row.get("30_day_active_installation_count")),
            active_installations_30d=_as_list(row.get("30_day_active_installations")),
            total_active_seconds=_as_float(row.get("total_active_seconds")),
            total_active_hours=_as_float(row.get("total_active_hours")),
        )


def is_newer(candidate: Optional[datetime], current: Optional[datetime]) -> bool:
    """
    True si `candidate` es estrictamente mas reciente que `current`.

    Un timestamp ausente (None) es mas antiguo que cualquier timestamp.
    """
    if candidate is None:
        return False
    if current is None:
        return True
    return candidate > current


@dataclass(frozen=True)
class TargetRecordRef:
    """Referencia a un record de Airtable y la clave por la que se resolvio."""

    record_id: str
    matched_by: str = "primary"


@dataclass
class PendingUpdate:
    """Campos pendientes de escribir en un record destino."""

    target: TargetRecordRef
    fields: Dict[str, Any]
    entity_id: str
    last_activity: Optional[datetime] = None
