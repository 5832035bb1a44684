from __future__ import annotations

from unittest.mock import patch

import pytest
from loguru import logger

from heartbeat_sync import cli
from heartbeat_sync.core.logging import configure_logging
from heartbeat_sync.application.use_cases.reconcile_use_cases import RunReport
from heartbeat_sync.shared.exceptions import SourceQueryError


class _StubUseCase:
    def __init__(self, report=None, error=None) -> None:
        self._report = report
        self._error = error

    def run(self):
        if self._error is not None:
            raise self._error
        return self._report


@pytest.fixture
def stub_build(monkeypatch):
    calls = []

    def install(use_case):
        def fake_build(settings, *, dry_run=False):
            calls.append({"settings": settings, "dry_run": dry_run})
            return use_case

        monkeypatch.setattr(cli, "build_from_settings", fake_build)
        return calls

    return install


def test_missing_configuration_exits_two(clean_env) -> None:
    assert cli.main([]) == 2


def test_invalid_page_size_exits_two(clean_env) -> None:
    assert cli.main(["--page-size", "0"]) == 2


def test_clean_run_exits_zero(clean_env, stub_build) -> None:
    calls = stub_build(_StubUseCase(report=RunReport(records_written=3)))

    assert cli.main(["--dry-run", "--page-size", "2500"]) == 0
    assert calls[0]["dry_run"] is True
    assert calls[0]["settings"].PAGE_SIZE == 2500


def test_degraded_run_exits_one(clean_env, stub_build) -> None:
    stub_build(_StubUseCase(report=RunReport(write_failures=1)))
    assert cli.main([]) == 1


def test_source_failure_exits_two(clean_env, stub_build) -> None:
    stub_build(_StubUseCase(error=SourceQueryError("connection refused", offset=0, limit=1000)))
    assert cli.main(["-v"]) == 2


def test_verbose_flag_lowers_log_level(clean_env, stub_build) -> None:
    stub_build(_StubUseCase(report=RunReport()))

    with patch.object(cli, "configure_logging") as configure:
        assert cli.main(["--verbose"]) == 0

    configure.assert_called_with("DEBUG", None)


def test_configure_logging_writes_file_sink(tmp_path) -> None:
    log_file = tmp_path / "sync.log"

    configure_logging("INFO", str(log_file))
    logger.debug("no deberia aparecer")
    logger.info("lote escrito")
    logger.remove()

    content = log_file.read_text(encoding="utf-8")
    assert "lote escrito" in content
    assert "no deberia aparecer" not in content
