"""
Escritura en lote hacia Airtable con tolerancia a fallos parciales.

- La cola de pendientes es un OrderedDict indexado por record_id: dos
  resoluciones que caen en el mismo record se pisan (solo si la nueva es mas
  reciente) en vez de duplicarse, lo que haria fallar el PATCH entero.
- flush_if_full escribe exactamente cuando la cola llega a la capacidad.
- flush_remaining escribe lo que quede al final del stream.
- discard_entity saca el update de un usuario superado antes de que se escriba.
- Cada flush es una sola llamada; la cola se vacia con exito o con error.
  Un flush fallido no se reintenta: se registra y el outcome lo reporta.
"""
from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from loguru import logger

from heartbeat_sync.domain.entities import PendingUpdate, TargetRecordRef, is_newer
from heartbeat_sync.shared.exceptions import AirtableApiError


class RecordWriter(Protocol):
    def update_records(self, updates: Sequence[Tuple[str, Dict[str, Any]]]) -> List[str]:
        ...


@dataclass(frozen=True)
class FlushOutcome:
    attempted: int
    written: int
    ok: bool
    error: Optional[str] = None


class BatchUpserter:
    """
    Acumula (record_id, campos) y los escribe en lotes de `capacity`.

    Uso:
        upserter = BatchUpserter(client, capacity=10)
        upserter.enqueue(ref, fields, last_activity=row.last_activity, entity_id=row.entity_id)
        upserter.flush_if_full()
        ...
        upserter.flush_remaining()
    """

    def __init__(self, writer: RecordWriter, capacity: int = 10) -> None:
        if capacity <= 0:
            raise ValueError("capacity debe ser > 0")
        self._writer = writer
        self._capacity = capacity
        self._queue: "OrderedDict[str, PendingUpdate]" = OrderedDict()
        self.flushes: List[FlushOutcome] = []

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._queue)

    def pending(self) -> List[PendingUpdate]:
        return list(self._queue.values())

    def enqueue(
        self,
        target: TargetRecordRef,
        fields: Dict[str, Any],
        *,
        entity_id: str,
        last_activity: Optional[datetime] = None,
    ) -> bool:
        """
        Encola campos para un record destino.

        Si ya hay una entrada para el mismo record, solo se reemplaza cuando
        `last_activity` es estrictamente mas reciente. Retorna True si quedo
        encolada.
        """
        current = self._queue.get(target.record_id)
        if current is not None and not is_newer(last_activity, current.last_activity):
            logger.info(
                f"Record {target.record_id}: se mantiene usuario {current.entity_id}, "
                f"se descarta {entity_id} (no es mas reciente)"
            )
            return False

        if current is None and len(self._queue) >= self._capacity:
            # la cola nunca supera la capacidad
            self._flush()
        elif current is not None:
            logger.info(
                f"Record {target.record_id}: usuario {entity_id} reemplaza a {current.entity_id} en la cola"
            )
        self._queue[target.record_id] = PendingUpdate(
            target=target,
            fields=fields,
            entity_id=entity_id,
            last_activity=last_activity,
        )
        return True

    def discard_entity(self, entity_id: str) -> int:
        """
        Quita de la cola los updates de un usuario que dejo de ser ganador.

        Retorna cuantas entradas se quitaron.
        """
        stale = [record_id for record_id, u in self._queue.items() if u.entity_id == entity_id]
        for record_id in stale:
            del self._queue[record_id]
            logger.info(f"Record {record_id}: se descarta el update pendiente de usuario {entity_id} (superado)")
        return len(stale)

    def flush_if_full(self) -> Optional[FlushOutcome]:
        if len(self._queue) >= self._capacity:
            return self._flush()
        return None

    def flush_remaining(self) -> Optional[FlushOutcome]:
        if self._queue:
            return self._flush()
        return None

    def _flush(self) -> FlushOutcome:
        batch = list(self._queue.values())
        self._queue.clear()

        payload = [(u.target.record_id, u.fields) for u in batch]
        try:
            written = self._writer.update_records(payload)
        except AirtableApiError as e:
            logger.error(
                f"Escritura fallida de {len(batch)} records "
                f"({', '.join(u.target.record_id for u in batch)}): {e.message}"
            )
            outcome = FlushOutcome(attempted=len(batch), written=0, ok=False, error=e.message)
        else:
            logger.info(f"Lote escrito: {len(written)}/{len(batch)} records")
            outcome = FlushOutcome(attempted=len(batch), written=len(written), ok=True)

        self.flushes.append(outcome)
        return outcome
