"""
Tipos y utilidades puras para el pipeline Postgres -> Airtable.

Se mantienen libres de I/O para poder testearlos fácilmente.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional


def ensure_utc(dt: datetime) -> datetime:
    """
    Normaliza datetime a UTC (aware).

    Postgres puede devolver `timestamp without time zone`; se asume UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def isoformat_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializa datetime a ISO8601 con 'Z' (UTC), formato que Airtable acepta
    en campos de fecha.
    """
    if dt is None:
        return None
    dt_utc = ensure_utc(dt)
    return dt_utc.replace(microsecond=0).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class AirtableRecord:
    """Registro Airtable mínimo devuelto por un lookup."""

    record_id: str
    fields: dict[str, Any]


Transform = Callable[[Any], Any]


@dataclass(frozen=True)
class FieldMapping:
    """
    Define el mapeo de un atributo de AggregateRow a un campo Airtable.

    - airtable_field: nombre del field en Airtable
    - source_attr: atributo de AggregateRow
    - transform: función opcional para transformar el valor antes de escribir
    """

    airtable_field: str
    source_attr: str
    transform: Optional[Transform] = None
