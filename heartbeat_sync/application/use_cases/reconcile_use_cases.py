"""
Caso de uso: reconciliar agregados de heartbeats (Postgres) -> Airtable.

Diseño (resumen):
- Abre la conexion origen (se cierra en cualquier salida)
- Pagina la query de agregados (PAGE_SIZE)
- Cada pagina alimenta la tabla de ganadores por email
- Resuelve las filas ganadoras contra Airtable en lotes (LOOKUP_BATCH_SIZE)
- Re-chequea que la fila siga siendo ganadora justo antes de encolar
- Si una pagina posterior supera a un usuario ya encolado, su update sale de la cola
- Escribe en lotes (WRITE_BATCH_SIZE) y vacia el resto al final

Todo es secuencial: la tabla de ganadores debe reflejar las paginas previas
antes de resolver la siguiente, y Airtable limita requests y payloads.

Solo un error de la query origen aborta la corrida. Los fallos de lookup y
de escritura se registran y se agregan en RunReport.degraded.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from loguru import logger

from heartbeat_sync.application.services.batch_upserter import BatchUpserter, FlushOutcome, RecordWriter
from heartbeat_sync.application.services.identity_resolver import IdentityResolver, RecordLookup
from heartbeat_sync.application.services.paginator import AggregatePaginator
from heartbeat_sync.application.services.winner_table import WinnerTable
from heartbeat_sync.core.config import REQUIRED_SETTINGS, Settings
from heartbeat_sync.domain.entities import AggregateRow
from heartbeat_sync.infrastructure.database.heartbeat_repository import (
    HeartbeatAggregateRepository,
    describe_dsn,
)
from heartbeat_sync.infrastructure.external.airtable.airtable_client import (
    AirtableClient,
    AirtableCredentials,
)
from heartbeat_sync.infrastructure.external.airtable.field_mappings import (
    compact_fields,
    map_row_to_fields,
)
from heartbeat_sync.infrastructure.external.airtable.types import FieldMapping

EXIT_OK = 0
EXIT_DEGRADED = 1
EXIT_FATAL = 2


@dataclass
class RunReport:
    """Contadores de la corrida y estado final."""

    pages: int = 0
    fetches: int = 0
    rows: int = 0
    superseded: int = 0
    unresolved: int = 0
    lookup_failures: int = 0
    lookup_skipped: int = 0
    write_failures: int = 0
    records_written: int = 0
    flushes: List[FlushOutcome] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return self.lookup_failures > 0 or self.write_failures > 0

    @property
    def exit_code(self) -> int:
        return EXIT_DEGRADED if self.degraded else EXIT_OK

    def record_flush(self, outcome: FlushOutcome) -> None:
        self.flushes.append(outcome)
        if outcome.ok:
            self.records_written += outcome.written
        else:
            self.write_failures += 1

    def summary(self) -> str:
        return (
            f"paginas={self.pages} filas={self.rows} superadas={self.superseded} "
            f"sin_match={self.unresolved} escritos={self.records_written} "
            f"lookups_fallidos={self.lookup_failures} escrituras_fallidas={self.write_failures}"
        )


class DryRunWriter:
    """Writer que solo registra el payload (no escribe en Airtable)."""

    def __init__(self) -> None:
        self.calls: List[List[Tuple[str, Dict[str, Any]]]] = []

    def update_records(self, updates: Sequence[Tuple[str, Dict[str, Any]]]) -> List[str]:
        self.calls.append(list(updates))
        for record_id, fields in updates:
            logger.info(f"[DRY-RUN] PATCH {record_id}: {fields}")
        return [record_id for record_id, _ in updates]


class ReconcileHeartbeatsUseCase:
    """
    Orquestador de una corrida completa.

    Cada corrida usa su propia WinnerTable y su propio BatchUpserter.
    """

    def __init__(
        self,
        *,
        repository: HeartbeatAggregateRepository,
        lookup: RecordLookup,
        writer: RecordWriter,
        page_size: int = 1000,
        lookup_batch_size: int = 10,
        write_batch_size: int = 10,
        id_field: str = "User ID",
        email_field: str = "Email",
        field_mappings: Optional[Sequence[FieldMapping]] = None,
    ) -> None:
        self._repository = repository
        self._lookup = lookup
        self._writer = writer
        self._page_size = page_size
        self._lookup_batch_size = lookup_batch_size
        self._write_batch_size = write_batch_size
        self._id_field = id_field
        self._email_field = email_field
        self._field_mappings = field_mappings

    def run(self) -> RunReport:
        """
        Ejecuta la corrida.

        Raises:
            SourceQueryError: si la query origen falla (la conexion igual se cierra)
        """
        report = RunReport()
        upserter = BatchUpserter(self._writer, capacity=self._write_batch_size)
        winners = WinnerTable(on_superseded=upserter.discard_entity)
        resolver = IdentityResolver(
            self._lookup,
            id_field=self._id_field,
            email_field=self._email_field,
            batch_size=self._lookup_batch_size,
        )

        with self._repository.connect() as conn:
            paginator = AggregatePaginator(self._repository.page_fetcher(conn), page_size=self._page_size)
            try:
                for page in paginator.iter_pages():
                    report.pages += 1
                    report.rows += len(page)
                    self._process_page(page, winners=winners, resolver=resolver, upserter=upserter, report=report)
            finally:
                report.fetches = paginator.fetch_count

        upserter.flush_remaining()
        for outcome in upserter.flushes:
            report.record_flush(outcome)
        report.superseded = winners.superseded_count

        log = logger.warning if report.degraded else logger.success
        log(f"Reconciliacion {'DEGRADADA' if report.degraded else 'completada'}: {report.summary()}")
        return report

    def _process_page(
        self,
        page: List[AggregateRow],
        *,
        winners: WinnerTable,
        resolver: IdentityResolver,
        upserter: BatchUpserter,
        report: RunReport,
    ) -> None:
        candidates = [row for row in page if winners.offer(row)]
        # una fila puede haber sido superada por otra posterior de la misma pagina
        candidates = [row for row in candidates if winners.is_winner(row)]
        if not candidates:
            return

        outcome = resolver.resolve(candidates)
        report.lookup_failures += outcome.failed_batches
        report.lookup_skipped += outcome.skipped

        for row in candidates:
            if row.entity_id not in outcome.matches:
                continue
            target = outcome.matches[row.entity_id]
            if target is None:
                report.unresolved += 1
                logger.info(f"Usuario {row.entity_id} omitido: sin record en Airtable")
                continue
            if not winners.is_winner(row):
                logger.info(f"Usuario {row.entity_id} omitido: ya no es el ganador de su email")
                continue

            fields = compact_fields(map_row_to_fields(row, self._field_mappings))
            if not fields:
                continue
            upserter.enqueue(target, fields, entity_id=row.entity_id, last_activity=row.last_activity)
            upserter.flush_if_full()


def build_from_settings(
    settings: Settings,
    *,
    dry_run: bool = False,
) -> ReconcileHeartbeatsUseCase:
    """
    Constructor "oficial" del caso de uso a partir de Settings.

    Raises:
        SyncConfigError: si falta alguna variable obligatoria
    """
    settings.require(*REQUIRED_SETTINGS)

    repository = HeartbeatAggregateRepository(
        settings.DATABASE_URL,
        idle_cap_seconds=settings.IDLE_GAP_CAP_SECONDS,
        window_days=settings.ACTIVE_WINDOW_DAYS,
    )
    airtable = AirtableClient(
        AirtableCredentials(token=settings.AIRTABLE_TOKEN, base_id=settings.AIRTABLE_BASE_ID),
        settings.AIRTABLE_TABLE_NAME,
        base_url=settings.AIRTABLE_BASE_URL,
        timeout_s=settings.AIRTABLE_TIMEOUT_S,
        min_request_interval_s=settings.AIRTABLE_MIN_REQUEST_INTERVAL_S,
        max_retries=settings.AIRTABLE_MAX_RETRIES,
    )

    logger.info(
        f"Origen: {describe_dsn(settings.DATABASE_URL)} | Destino: Airtable "
        f"{settings.AIRTABLE_BASE_ID}/{settings.AIRTABLE_TABLE_NAME} | "
        f"page_size={settings.PAGE_SIZE} lookup_batch={settings.LOOKUP_BATCH_SIZE} "
        f"write_batch={settings.WRITE_BATCH_SIZE}"
    )

    return ReconcileHeartbeatsUseCase(
        repository=repository,
        lookup=airtable,
        writer=DryRunWriter() if dry_run else airtable,
        page_size=settings.PAGE_SIZE,
        lookup_batch_size=settings.LOOKUP_BATCH_SIZE,
        write_batch_size=settings.WRITE_BATCH_SIZE,
        id_field=settings.AIRTABLE_ID_FIELD,
        email_field=settings.AIRTABLE_EMAIL_FIELD,
    )
