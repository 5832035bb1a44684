"""
Paginador de agregados (LIMIT/OFFSET).

Politica de agotamiento:
- pagina vacia: se detiene sin procesar nada
- pagina corta (len < limit): se procesa y se detiene
- pagina completa: se procesa y el offset avanza `limit`
"""
from __future__ import annotations

from typing import Callable, Iterator, List

from loguru import logger

from heartbeat_sync.domain.entities import AggregateRow

PageFetcher = Callable[[int, int], List[AggregateRow]]


class AggregatePaginator:
    """
    Recorre la query de agregados en paginas de tamaño fijo.

    Uso:
        paginator = AggregatePaginator(repo.page_fetcher(conn), page_size=1000)
        for page in paginator.iter_pages():
            ...
    """

    def __init__(self, fetch_page: PageFetcher, page_size: int = 1000) -> None:
        if page_size <= 0:
            raise ValueError("page_size debe ser > 0")
        self._fetch_page = fetch_page
        self._page_size = page_size
        self.fetch_count = 0

    @property
    def page_size(self) -> int:
        return self._page_size

    def next_page(self, offset: int, limit: int) -> List[AggregateRow]:
        self.fetch_count += 1
        return list(self._fetch_page(offset, limit))

    def iter_pages(self) -> Iterator[List[AggregateRow]]:
        """Genera paginas no vacias hasta agotar la fuente."""
        offset = 0
        limit = self._page_size

        while True:
            rows = self.next_page(offset, limit)
            if not rows:
                logger.debug(f"Pagina vacia en offset={offset}; fin del stream")
                return

            yield rows

            if len(rows) < limit:
                logger.debug(f"Pagina corta ({len(rows)} < {limit}) en offset={offset}; fin del stream")
                return
            offset += limit
