"""
Configuración de fixtures para pytest.

Todo corre en memoria: no hay red ni base de datos. Airtable y el
repositorio origen se reemplazan por dobles simples.
"""
from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import pytest

from heartbeat_sync.domain.entities import AggregateRow
from heartbeat_sync.infrastructure.external.airtable.types import AirtableRecord
from heartbeat_sync.shared.exceptions import AirtableApiError, SourceQueryError


SETTINGS_ENV_VARS = (
    "DATABASE_URL",
    "AIRTABLE_TOKEN",
    "AIRTABLE_BASE_ID",
    "AIRTABLE_TABLE_NAME",
    "AIRTABLE_ID_FIELD",
    "AIRTABLE_EMAIL_FIELD",
    "PAGE_SIZE",
    "LOOKUP_BATCH_SIZE",
    "WRITE_BATCH_SIZE",
    "IDLE_GAP_CAP_SECONDS",
    "ACTIVE_WINDOW_DAYS",
    "AIRTABLE_MAX_RETRIES",
    "LOG_LEVEL",
    "LOG_FILE",
)


def ts(hour: int, minute: int = 0) -> datetime:
    return datetime(2025, 12, 16, hour, minute, tzinfo=timezone.utc)


def make_row(entity_id: str, email: Optional[str] = None, last_activity: Optional[datetime] = None, **kwargs) -> AggregateRow:
    defaults: Dict[str, Any] = {
        "name": f"user-{entity_id}",
        "known_machine_count": 1,
        "known_machines": ["laptop"],
    }
    defaults.update(kwargs)
    return AggregateRow(entity_id=entity_id, email=email, last_activity=last_activity, **defaults)


class FakeAirtable:
    """
    Tabla Airtable en memoria.

    find_records interpreta la fórmula de forma simplificada: un record
    coincide si su id o su email (en minúsculas) aparecen como literal.
    """

    def __init__(
        self,
        records: Iterable[AirtableRecord] = (),
        *,
        fail_lookup_calls: Iterable[int] = (),
        fail_write_calls: Iterable[int] = (),
        id_field: str = "User ID",
        email_field: str = "Email",
    ) -> None:
        self.records = list(records)
        self.fail_lookup_calls = set(fail_lookup_calls)
        self.fail_write_calls = set(fail_write_calls)
        self.id_field = id_field
        self.email_field = email_field
        self.lookup_calls: List[Dict[str, Any]] = []
        self.write_calls: List[List[Tuple[str, Dict[str, Any]]]] = []

    def find_records(
        self,
        *,
        filter_formula: str,
        fields: Optional[Sequence[str]] = None,
        max_records: Optional[int] = None,
    ) -> List[AirtableRecord]:
        call_index = len(self.lookup_calls)
        self.lookup_calls.append(
            {"filter_formula": filter_formula, "fields": fields, "max_records": max_records}
        )
        if call_index in self.fail_lookup_calls:
            raise AirtableApiError("Airtable error 503", status_code=503)

        matches = []
        for rec in self.records:
            uid = rec.fields.get(self.id_field)
            email = rec.fields.get(self.email_field)
            if uid is not None and f"='{uid}'" in filter_formula:
                matches.append(rec)
            elif email and f"='{str(email).lower()}'" in filter_formula:
                matches.append(rec)
        if max_records is not None:
            matches = matches[:max_records]
        return matches

    def update_records(self, updates: Sequence[Tuple[str, Dict[str, Any]]]) -> List[str]:
        call_index = len(self.write_calls)
        self.write_calls.append(list(updates))
        if call_index in self.fail_write_calls:
            raise AirtableApiError("Airtable request falló 422: INVALID_VALUE_FOR_COLUMN", status_code=422)
        return [record_id for record_id, _ in updates]

    @property
    def written(self) -> Dict[str, Dict[str, Any]]:
        """Último payload escrito por record (de las llamadas exitosas)."""
        result: Dict[str, Dict[str, Any]] = {}
        for index, call in enumerate(self.write_calls):
            if index in self.fail_write_calls:
                continue
            for record_id, fields in call:
                result[record_id] = fields
        return result


class InMemoryAggregateRepository:
    """Repositorio origen en memoria con la misma interfaz que HeartbeatAggregateRepository."""

    def __init__(self, rows: Sequence[AggregateRow], *, fail_at_offset: Optional[int] = None) -> None:
        self.rows = list(rows)
        self.fail_at_offset = fail_at_offset
        self.opened = 0
        self.closed = 0
        self.fetches: List[Tuple[int, int]] = []

    @contextmanager
    def connect(self):
        self.opened += 1
        try:
            yield object()
        finally:
            self.closed += 1

    def page_fetcher(self, conn):
        def _fetch(offset: int, limit: int) -> List[AggregateRow]:
            self.fetches.append((offset, limit))
            if self.fail_at_offset is not None and offset >= self.fail_at_offset:
                raise SourceQueryError("relation \"heartbeats\" does not exist", offset=offset, limit=limit)
            return self.rows[offset:offset + limit]

        return _fetch


def airtable_record(record_id: str, user_id: Any = None, email: Optional[str] = None) -> AirtableRecord:
    fields: Dict[str, Any] = {}
    if user_id is not None:
        fields["User ID"] = user_id
    if email is not None:
        fields["Email"] = email
    return AirtableRecord(record_id=record_id, fields=fields)


@pytest.fixture
def row_factory():
    return make_row


@pytest.fixture
def at():
    return ts


@pytest.fixture
def record_factory():
    return airtable_record


@pytest.fixture
def fake_airtable_factory():
    return FakeAirtable


@pytest.fixture
def repository_factory():
    return InMemoryAggregateRepository


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Entorno sin variables del job y cwd sin .env."""
    for name in SETTINGS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return monkeypatch
