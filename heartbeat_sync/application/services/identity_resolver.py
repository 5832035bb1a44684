"""
Resolucion de identidad: AggregateRow -> record de Airtable.

Por cada lote de filas (LOOKUP_BATCH_SIZE) se hace UNA llamada de lookup con
una formula OR sobre ambos niveles de clave (id de usuario y email). Los
records devueltos se indexan localmente por ambos campos, asi cada fila se
resuelve por id primero y por email como fallback sin un segundo round trip.

Un lote cuyo lookup falla se registra, marca el outcome como fallido y sus
filas se omiten (sin reintento en la corrida).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Protocol, Sequence

from loguru import logger

from heartbeat_sync.domain.entities import AggregateRow, TargetRecordRef, normalize_email
from heartbeat_sync.infrastructure.external.airtable.airtable_client import build_lookup_formula
from heartbeat_sync.infrastructure.external.airtable.types import AirtableRecord
from heartbeat_sync.shared.exceptions import AirtableApiError


class RecordLookup(Protocol):
    def find_records(
        self,
        *,
        filter_formula: str,
        fields: Optional[Sequence[str]] = None,
        max_records: Optional[int] = None,
    ) -> List[AirtableRecord]:
        ...


@dataclass
class LookupOutcome:
    """
    Resultado de resolver un conjunto de filas.

    matches: entity_id -> TargetRecordRef (o None si no hubo match)
    failed_batches: lotes cuyo lookup fallo
    skipped: filas omitidas por un lote fallido
    """

    matches: Dict[str, Optional[TargetRecordRef]] = field(default_factory=dict)
    failed_batches: int = 0
    skipped: int = 0

    @property
    def ok(self) -> bool:
        return self.failed_batches == 0

    def merge(self, other: "LookupOutcome") -> None:
        self.matches.update(other.matches)
        self.failed_batches += other.failed_batches
        self.skipped += other.skipped


def chunked(items: Sequence[AggregateRow], size: int) -> Iterator[Sequence[AggregateRow]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class IdentityResolver:
    """
    Resuelve filas contra la tabla Airtable por id (primario) y email (fallback).
    """

    def __init__(
        self,
        lookup: RecordLookup,
        *,
        id_field: str = "User ID",
        email_field: str = "Email",
        batch_size: int = 10,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size debe ser > 0")
        self._lookup = lookup
        self._id_field = id_field
        self._email_field = email_field
        self._batch_size = batch_size

    def resolve(self, rows: Sequence[AggregateRow]) -> LookupOutcome:
        """Resuelve todas las filas, en lotes de `batch_size`."""
        outcome = LookupOutcome()
        for batch in chunked(rows, self._batch_size):
            outcome.merge(self.resolve_batch(batch))
        return outcome

    def resolve_batch(self, batch: Sequence[AggregateRow]) -> LookupOutcome:
        outcome = LookupOutcome()
        if not batch:
            return outcome

        ids = _unique(row.entity_id for row in batch)
        emails = _unique(row.email_key for row in batch if row.email_key)
        formula = build_lookup_formula(self._id_field, self._email_field, ids, emails)

        try:
            records = self._lookup.find_records(
                filter_formula=formula,
                fields=[self._id_field, self._email_field],
                max_records=min(100, (len(ids) + len(emails)) * 2),
            )
        except AirtableApiError as e:
            logger.error(f"Lookup fallido para {len(batch)} filas ({ids[0]}..{ids[-1]}): {e.message}")
            outcome.failed_batches = 1
            outcome.skipped = len(batch)
            return outcome

        by_id, by_email = self._index(records)

        for row in batch:
            record_id = by_id.get(row.entity_id)
            if record_id is not None:
                outcome.matches[row.entity_id] = TargetRecordRef(record_id=record_id, matched_by="primary")
                continue

            key = row.email_key
            record_id = by_email.get(key) if key else None
            if record_id is not None:
                outcome.matches[row.entity_id] = TargetRecordRef(record_id=record_id, matched_by="fallback")
                continue

            outcome.matches[row.entity_id] = None
            logger.debug(f"Sin record en Airtable para usuario {row.entity_id} (email={row.email})")

        return outcome

    def _index(self, records: Iterable[AirtableRecord]) -> tuple[Dict[str, str], Dict[str, str]]:
        """
        Indexa records por id y por email normalizado.

        Ante duplicados en Airtable se conserva el primer record devuelto.
        """
        by_id: Dict[str, str] = {}
        by_email: Dict[str, str] = {}
        for rec in records:
            raw_id = rec.fields.get(self._id_field)
            if raw_id is not None and str(raw_id) != "":
                by_id.setdefault(_id_key(raw_id), rec.record_id)

            email_key = normalize_email(rec.fields.get(self._email_field))
            if email_key:
                by_email.setdefault(email_key, rec.record_id)
        return by_id, by_email


def _id_key(value: object) -> str:
    # Airtable devuelve campos numericos como float (42.0)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _unique(values: Iterable[Optional[str]]) -> List[str]:
    seen: Dict[str, None] = {}
    for v in values:
        if v is not None:
            seen.setdefault(v, None)
    return list(seen)
