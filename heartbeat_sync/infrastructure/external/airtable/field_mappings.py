"""
Mapeos AggregateRow -> campos Airtable.

Este es el punto recomendado para tener "control total" sobre:
- qué campos se escriben en Airtable
- cómo se transforman los valores (contadores, listas, fechas)

Los nombres de campo deben coincidir con los de la tabla Airtable real.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

from heartbeat_sync.application.services.field_normalizer import (
    null_if_zero,
    sanitize_array_field,
)
from heartbeat_sync.domain.entities import AggregateRow

from .types import FieldMapping, isoformat_z


DEFAULT_FIELD_MAPPINGS: list[FieldMapping] = [
    FieldMapping(airtable_field="Name", source_attr="name"),
    FieldMapping(airtable_field="First Heartbeat", source_attr="first_activity", transform=isoformat_z),
    FieldMapping(airtable_field="Last Heartbeat", source_attr="last_activity", transform=isoformat_z),
    FieldMapping(airtable_field="Known Machine Count", source_attr="known_machine_count", transform=null_if_zero),
    FieldMapping(airtable_field="Known Machines", source_attr="known_machines", transform=sanitize_array_field),
    FieldMapping(
        airtable_field="30 Day Active Machine Count",
        source_attr="active_machine_count_30d",
        transform=null_if_zero,
    ),
    FieldMapping(
        airtable_field="30 Day Active Machines",
        source_attr="active_machines_30d",
        transform=sanitize_array_field,
    ),
    FieldMapping(
        airtable_field="Known Installation Count",
        source_attr="known_installation_count",
        transform=null_if_zero,
    ),
    FieldMapping(
        airtable_field="Known Installations",
        source_attr="known_installations",
        transform=sanitize_array_field,
    ),
    FieldMapping(
        airtable_field="30 Day Active Installation Count",
        source_attr="active_installation_count_30d",
        transform=null_if_zero,
    ),
    FieldMapping(
        airtable_field="30 Day Active Installations",
        source_attr="active_installations_30d",
        transform=sanitize_array_field,
    ),
    FieldMapping(airtable_field="Total Coding Hours", source_attr="total_active_hours", transform=null_if_zero),
]


def map_row_to_fields(
    row: AggregateRow,
    mappings: Optional[Sequence[FieldMapping]] = None,
) -> dict[str, Any]:
    """
    Mapea un AggregateRow a los campos Airtable (incluye valores None).

    Cada FieldMapping decide cómo transformar el valor.
    """
    fields: dict[str, Any] = {}
    for m in mappings if mappings is not None else DEFAULT_FIELD_MAPPINGS:
        raw = getattr(row, m.source_attr)
        fields[m.airtable_field] = m.transform(raw) if m.transform else raw
    return fields


def compact_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """
    Quita los campos None del payload.

    En un PATCH de Airtable, `null` borra el campo; omitirlo lo deja intacto.
    """
    return {k: v for k, v in fields.items() if v is not None}
