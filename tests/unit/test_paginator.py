from __future__ import annotations

import math

import pytest

from heartbeat_sync.application.services.paginator import AggregatePaginator


def _source(rows):
    calls = []

    def fetch(offset, limit):
        calls.append((offset, limit))
        return rows[offset:offset + limit]

    return fetch, calls


@pytest.mark.parametrize(
    "total, page_size",
    [(0, 1000), (1, 1000), (999, 1000), (1000, 1000), (1001, 1000), (2500, 2500), (5000, 2500), (7, 3)],
)
def test_fetch_count_is_ceil_or_ceil_plus_one(row_factory, total, page_size) -> None:
    rows = [row_factory(str(i)) for i in range(total)]
    fetch, calls = _source(rows)
    paginator = AggregatePaginator(fetch, page_size=page_size)

    seen = [row for page in paginator.iter_pages() for row in page]

    assert [r.entity_id for r in seen] == [r.entity_id for r in rows]
    expected = math.ceil(total / page_size)
    if total % page_size == 0:
        expected += 1
    assert paginator.fetch_count == expected == len(calls)


def test_offsets_advance_by_limit(row_factory) -> None:
    rows = [row_factory(str(i)) for i in range(5)]
    fetch, calls = _source(rows)

    list(AggregatePaginator(fetch, page_size=2).iter_pages())

    assert calls == [(0, 2), (2, 2), (4, 2)]


def test_short_final_page_is_processed_then_stops(row_factory) -> None:
    rows = [row_factory(str(i)) for i in range(3)]
    fetch, calls = _source(rows)

    pages = list(AggregatePaginator(fetch, page_size=2).iter_pages())

    assert [len(p) for p in pages] == [2, 1]
    assert len(calls) == 2


def test_empty_page_mid_stream_stops_without_error(row_factory) -> None:
    responses = [[row_factory("1"), row_factory("2")], []]

    def fetch(offset, limit):
        return responses.pop(0)

    paginator = AggregatePaginator(fetch, page_size=2)
    pages = list(paginator.iter_pages())

    assert len(pages) == 1
    assert paginator.fetch_count == 2


def test_empty_source_yields_nothing() -> None:
    paginator = AggregatePaginator(lambda offset, limit: [], page_size=1000)
    assert list(paginator.iter_pages()) == []
    assert paginator.fetch_count == 1


def test_page_size_must_be_positive() -> None:
    with pytest.raises(ValueError):
        AggregatePaginator(lambda offset, limit: [], page_size=0)
