"""
Excepciones compartidas del pipeline.
"""
from heartbeat_sync.shared.exceptions.base import SyncException
from heartbeat_sync.shared.exceptions.sync import (
    AirtableApiError,
    SourceQueryError,
    SyncConfigError,
)

__all__ = [
    "SyncException",
    "SyncConfigError",
    "SourceQueryError",
    "AirtableApiError",
]
