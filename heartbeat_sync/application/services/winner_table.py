"""
Tabla de ganadores por email ("latest wins").

Varios usuarios origen pueden apuntar a la misma persona (re-registro con
el mismo email). Solo el de actividad mas reciente se escribe en Airtable.
La tabla vive durante toda la corrida paginada: el ganador de un email
puede aparecer en cualquier pagina.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Iterator, Optional, Set

from loguru import logger

from heartbeat_sync.domain.entities import AggregateRow, is_newer


@dataclass(frozen=True)
class WinnerEntry:
    entity_id: str
    last_activity: Optional[datetime]
    row: AggregateRow


class WinnerTable:
    """
    Mapeo email normalizado -> fila ganadora.

    Las filas sin email no compiten: siempre son ganadoras de si mismas.

    `on_superseded` recibe el entity_id desplazado cada vez que otro usuario
    toma su lugar (p. ej. para sacar su update de la cola de escritura).
    """

    def __init__(self, on_superseded: Optional[Callable[[str], None]] = None) -> None:
        self._entries: Dict[str, WinnerEntry] = {}
        self._superseded: Set[str] = set()
        self._on_superseded = on_superseded

    @property
    def superseded_count(self) -> int:
        """Usuarios distintos descartados (un duplicado no cuenta dos veces)."""
        return len(self._superseded)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, email_key: object) -> bool:
        return email_key in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def get(self, email_key: str) -> Optional[WinnerEntry]:
        return self._entries.get(email_key)

    def offer(self, row: AggregateRow) -> bool:
        """
        Ofrece una fila a la tabla.

        Reemplaza la entrada si no existe o si la fila tiene `last_activity`
        estrictamente mayor. Retorna True si la fila quedo como ganadora.
        """
        key = row.email_key
        if key is None:
            return True

        current = self._entries.get(key)
        if current is None or is_newer(row.last_activity, current.last_activity):
            if current is not None and current.entity_id != row.entity_id:
                self._superseded.add(current.entity_id)
                logger.info(
                    f"Usuario {current.entity_id} superado por {row.entity_id} "
                    f"(email={key}, {current.last_activity} < {row.last_activity})"
                )
                if self._on_superseded is not None:
                    self._on_superseded(current.entity_id)
            self._superseded.discard(row.entity_id)
            self._entries[key] = WinnerEntry(
                entity_id=row.entity_id,
                last_activity=row.last_activity,
                row=row,
            )
            return True

        if current.entity_id != row.entity_id:
            self._superseded.add(row.entity_id)
            logger.info(
                f"Usuario {row.entity_id} descartado: {current.entity_id} es mas reciente "
                f"(email={key}, {row.last_activity} <= {current.last_activity})"
            )
        return current.entity_id == row.entity_id and current.last_activity == row.last_activity

    def is_winner(self, row: AggregateRow) -> bool:
        """True si la fila sigue siendo la ganadora vigente de su email."""
        key = row.email_key
        if key is None:
            return True
        current = self._entries.get(key)
        return (
            current is not None
            and current.entity_id == row.entity_id
            and current.last_activity == row.last_activity
        )
