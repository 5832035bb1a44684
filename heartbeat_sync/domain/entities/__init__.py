"""
Entidades del dominio.
"""
from heartbeat_sync.domain.entities.aggregate import (
    AggregateRow,
    PendingUpdate,
    TargetRecordRef,
    is_newer,
    normalize_email,
)

__all__ = [
    "AggregateRow",
    "PendingUpdate",
    "TargetRecordRef",
    "is_newer",
    "normalize_email",
]
