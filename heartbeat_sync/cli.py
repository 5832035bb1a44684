"""
CLI: Postgres (heartbeats) -> Airtable (reconciliacion one-way).

Uso recomendado:
  - Ejecutar como job (cron/systemd timer).

Variables de entorno requeridas:
  - DATABASE_URL (postgresql://... o postgres://...)
  - AIRTABLE_TOKEN
  - AIRTABLE_BASE_ID
  - AIRTABLE_TABLE_NAME

Ejecucion:
  heartbeat-airtable-sync
  heartbeat-airtable-sync --dry-run --verbose
  heartbeat-airtable-sync --page-size 2500

Exit codes:
  0: corrida completa sin fallos
  1: corrida degradada (al menos un lookup o escritura fallo)
  2: error fatal (query origen o configuracion)
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Optional, Sequence

from dotenv import load_dotenv
from loguru import logger
from pydantic import ValidationError

from heartbeat_sync.application.use_cases.reconcile_use_cases import EXIT_FATAL, build_from_settings
from heartbeat_sync.core.config import get_settings
from heartbeat_sync.core.logging import configure_logging
from heartbeat_sync.shared.exceptions import SourceQueryError, SyncConfigError


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="heartbeat-airtable-sync",
        description="Reconcilia agregados de heartbeats por usuario hacia Airtable.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Resuelve todo pero solo registra los payloads (no escribe en Airtable).",
    )
    parser.add_argument(
        "--page-size",
        type=int,
        default=None,
        help="Override de PAGE_SIZE (filas por pagina de agregados).",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Mostrar mensajes de debug",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    # Cargar variables desde .env si existe (no pisa el entorno).
    load_dotenv(Path.cwd() / ".env", override=False)

    overrides = {}
    if args.page_size is not None:
        overrides["PAGE_SIZE"] = args.page_size

    try:
        settings = get_settings(**overrides)
    except ValidationError as e:
        configure_logging()
        logger.error(f"Configuracion invalida: {e}")
        return EXIT_FATAL

    configure_logging("DEBUG" if args.verbose else settings.LOG_LEVEL, settings.LOG_FILE)
    logger.info(f"Modo: {'DRY-RUN' if args.dry_run else 'EJECUTAR'}")

    try:
        use_case = build_from_settings(settings, dry_run=args.dry_run)
        report = use_case.run()
    except SyncConfigError as e:
        logger.error(e.message)
        return EXIT_FATAL
    except SourceQueryError as e:
        logger.exception(f"Corrida abortada: {e.message}")
        return EXIT_FATAL

    return report.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
