"""
Cliente mínimo de Airtable REST API (sin SDKs externos).

Requisitos cubiertos:
- requests
- lookup por fórmula disyuntiva (filterByFormula + maxRecords)
- escritura en lote (PATCH, máx 10 records por request)
- pacing entre requests (Airtable limita a 5 req/s por base)
- backoff opcional para 429/5xx (desactivado por defecto)
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence

import requests
from loguru import logger

from heartbeat_sync.shared.exceptions import AirtableApiError

from .types import AirtableRecord

MAX_RECORDS_PER_WRITE = 10


@dataclass(frozen=True)
class AirtableCredentials:
    token: str
    base_id: str


def escape_formula_value(value: Any) -> str:
    """
    Escapa un valor para insertarlo entre comillas simples en una fórmula.

    Las comillas se duplican para que un valor como "o'brien@x.com" no
    corte el literal ni inyecte fórmula.
    """
    return str(value).replace("'", "''")


def build_lookup_formula(
    id_field: str,
    email_field: str,
    ids: Iterable[str],
    emails: Iterable[str],
) -> str:
    """
    Construye una fórmula Airtable OR(...) sobre ambos niveles de clave:

        OR({User ID}='1', {User ID}='2', LOWER(TRIM({Email}))='a@x.com')

    El email se compara sin espacios y en minúsculas (las claves ya vienen
    normalizadas).
    """
    id_ref = "{" + id_field + "}"
    email_ref = "{" + email_field + "}"

    clauses = [f"{id_ref}&''='{escape_formula_value(v)}'" for v in ids]
    clauses += [f"LOWER(TRIM({email_ref}))='{escape_formula_value(v)}'" for v in emails]
    if not clauses:
        raise ValueError("La fórmula de lookup requiere al menos una clave")
    return "OR(" + ", ".join(clauses) + ")"


class AirtableClient:
    """
    Cliente HTTP de Airtable para una tabla.

    Importante:
    - No hace cast de tipos: el payload ya viene mapeado por FieldMapping.
    - Envía typecast=true en escrituras para que Airtable acepte strings en
      campos de fecha / select.
    """

    def __init__(
        self,
        credentials: AirtableCredentials,
        table_name: str,
        *,
        session: Optional[requests.Session] = None,
        base_url: str = "https://api.airtable.com/v0",
        timeout_s: int = 30,
        min_request_interval_s: float = 0.2,
        max_retries: int = 0,
        min_backoff_s: float = 0.8,
        max_backoff_s: float = 20.0,
    ) -> None:
        self._creds = credentials
        self._table_name = table_name
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._min_request_interval_s = min_request_interval_s
        self._max_retries = max_retries
        self._min_backoff_s = min_backoff_s
        self._max_backoff_s = max_backoff_s
        self._session = session or requests.Session()
        self._last_request_at: Optional[float] = None

    @property
    def table_url(self) -> str:
        return f"{self._base_url}/{self._creds.base_id}/{self._table_name}"

    def find_records(
        self,
        *,
        filter_formula: str,
        fields: Optional[Sequence[str]] = None,
        max_records: Optional[int] = None,
    ) -> list[AirtableRecord]:
        """
        Ejecuta un lookup con filterByFormula y retorna los records encontrados.

        Una sola llamada por fórmula: con maxRecords <= 100 Airtable no pagina.
        """
        query: list[tuple[str, Any]] = [("filterByFormula", filter_formula)]
        if max_records is not None:
            query.append(("maxRecords", max_records))
            query.append(("pageSize", min(max_records, 100)))
        if fields:
            # Airtable permite repetir "fields[]" en querystring.
            for f in fields:
                query.append(("fields[]", f))

        payload = self._request_json("GET", self.table_url, query=query)

        records: list[AirtableRecord] = []
        for rec in payload.get("records") or []:
            rec_id = rec.get("id")
            if not rec_id:
                raise AirtableApiError("Airtable devolvió un record sin 'id'")
            records.append(AirtableRecord(record_id=rec_id, fields=rec.get("fields") or {}))
        return records

    def update_records(self, updates: Sequence[tuple[str, dict[str, Any]]]) -> list[str]:
        """
        PATCH en lote: [(record_id, fields), ...] -> ids actualizados.

        Airtable no reporta fallos por item: el lote entero falla o se aplica.
        """
        if not updates:
            return []
        if len(updates) > MAX_RECORDS_PER_WRITE:
            raise ValueError(
                f"Airtable acepta máximo {MAX_RECORDS_PER_WRITE} records por PATCH (recibidos {len(updates)})"
            )

        body = {
            "records": [{"id": record_id, "fields": fields} for record_id, fields in updates],
            "typecast": True,
        }
        payload = self._request_json("PATCH", self.table_url, json_body=body)
        return [rec.get("id") for rec in payload.get("records") or []]

    def _pace(self) -> None:
        if self._last_request_at is None or self._min_request_interval_s <= 0:
            return
        elapsed = time.monotonic() - self._last_request_at
        if elapsed < self._min_request_interval_s:
            time.sleep(self._min_request_interval_s - elapsed)

    def _request_json(
        self,
        method: str,
        url: str,
        *,
        query: Optional[list[tuple[str, Any]]] = None,
        json_body: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """
        Request HTTP con pacing y backoff opcional para 429/5xx.

        Estrategia:
        - 429: respeta Retry-After si existe, si no exponencial con jitter simple.
        - 5xx: exponencial con jitter.
        - 4xx (no 429): error inmediato (config/auth mal).
        - Errores de red: se envuelven en AirtableApiError.
        """
        headers = {
            "Authorization": f"Bearer {self._creds.token}",
            "Content-Type": "application/json",
        }

        for attempt in range(self._max_retries + 1):
            self._pace()
            try:
                resp = self._session.request(
                    method=method,
                    url=url,
                    params=query,
                    json=json_body,
                    headers=headers,
                    timeout=self._timeout_s,
                )
            except requests.RequestException as e:
                raise AirtableApiError(f"Airtable request {method} falló: {e}") from e
            finally:
                self._last_request_at = time.monotonic()

            if 200 <= resp.status_code < 300:
                return resp.json()

            # Errores recuperables
            if resp.status_code == 429 or 500 <= resp.status_code < 600:
                if attempt >= self._max_retries:
                    raise AirtableApiError(
                        f"Airtable error {resp.status_code} tras {attempt} reintentos: {resp.text}",
                        status_code=resp.status_code,
                        body=resp.text,
                    )

                retry_after = resp.headers.get("Retry-After")
                if retry_after:
                    try:
                        sleep_s = float(retry_after)
                    except ValueError:
                        sleep_s = self._min_backoff_s
                else:
                    base = min(self._max_backoff_s, self._min_backoff_s * (2**attempt))
                    sleep_s = base + (0.15 * base)

                logger.warning(f"Airtable {resp.status_code}; reintento {attempt + 1} en {sleep_s:.1f}s")
                time.sleep(sleep_s)
                continue

            # Errores no recuperables
            raise AirtableApiError(
                f"Airtable request falló {resp.status_code}: {resp.text}",
                status_code=resp.status_code,
                body=resp.text,
            )

        raise AirtableApiError("Airtable request agotó los reintentos")
