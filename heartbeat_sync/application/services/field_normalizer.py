"""
Normalizacion de valores antes de escribirlos en Airtable.

Reglas:
- Un contador igual a 0 se convierte en None (ausente). Un 0 literal pisaria
  un valor previo mas rico en Airtable con una falsa señal de "sin actividad".
- Una lista se filtra (None, vacios, solo espacios, solo separadores) y se
  serializa como JSON indentado. Si no sobrevive nada, el valor es None,
  nunca una lista vacia.
"""
from __future__ import annotations

import json
from typing import Any, Iterable, List, Optional

INSTALLATION_SEPARATOR = "|"


def null_if_zero(value: Any) -> Any:
    """Retorna None si el valor numerico es 0; si no, el valor tal cual."""
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value == 0:
        return None
    return value


def _is_meaningful(item: Any, separator: str) -> bool:
    if item is None:
        return False
    text = str(item)
    if not text.strip():
        return False
    # "||" sale de CONCAT(editor, '|', os, '|', machine) con todo NULL
    return bool(text.replace(separator, "").strip())


def sanitize_array(
    values: Optional[Iterable[Any]],
    separator: str = INSTALLATION_SEPARATOR,
) -> Optional[List[Any]]:
    """
    Filtra entradas vacias de una lista.

    Retorna None si no sobrevive ninguna entrada. Es idempotente: una lista
    ya saneada y no vacia se retorna igual.
    """
    if values is None:
        return None
    if isinstance(values, str):
        values = [values]
    kept = [item for item in values if _is_meaningful(item, separator)]
    return kept or None


def serialize_array(values: Optional[List[Any]]) -> Optional[str]:
    """Serializa una lista como texto JSON indentado (None si no hay lista)."""
    if values is None:
        return None
    return json.dumps(values, indent=2, ensure_ascii=False)


def sanitize_array_field(
    values: Optional[Iterable[Any]],
    separator: str = INSTALLATION_SEPARATOR,
) -> Optional[str]:
    """Sanea y serializa un campo lista en un solo paso."""
    return serialize_array(sanitize_array(values, separator))
