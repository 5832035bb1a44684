"""
Acceso a la base origen (users + heartbeats).
"""
from heartbeat_sync.infrastructure.database.heartbeat_repository import (
    AGGREGATE_PAGE_SQL,
    HeartbeatAggregateRepository,
    normalize_psycopg_dsn,
)

__all__ = [
    "AGGREGATE_PAGE_SQL",
    "HeartbeatAggregateRepository",
    "normalize_psycopg_dsn",
]
