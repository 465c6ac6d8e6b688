"""
Tests for the CLI rendering and logging setup.
"""

from loguru import logger
from rich.console import Console

from dealerstructure import cli
from dealerstructure.layers.aggregation import StructureAggregator
from dealerstructure.models import OptionsStatus, StructureLevels, StructureResult
from dealerstructure.utils.logging import setup_logging

from tests.conftest import contract


def _capture(monkeypatch):
    console = Console(record=True, width=120)
    monkeypatch.setattr(cli, "console", console)
    return console


class TestPrintStructure:
    """Tests for print_structure()."""

    def test_renders_levels_and_ladder(self, monkeypatch):
        console = _capture(monkeypatch)
        result = StructureResult(
            ticker="SPY",
            expiration="2026-03-06",
            underlying_price=105.0,
            options_status=OptionsStatus.OK,
            strikes=[90.0, 100.0, 110.0],
            calls_oi=[0, None, 1000.0],
            puts_oi=[300.0, 0, 0],
            max_pain=90.0,
            levels=StructureLevels(call_wall=110.0, put_floor=90.0, pin_zone=90.0),
        )
        cli.print_structure(result)
        text = console.export_text()

        assert "SPY" in text
        assert "Max Pain: $90.00" in text
        assert "Open Interest Ladder" in text
        assert "null" in text

    def test_pending_without_strikes(self, monkeypatch):
        console = _capture(monkeypatch)
        cli.print_structure(StructureResult(ticker="QQQ", expiration="2026-03-06"))
        text = console.export_text()

        assert "PENDING" in text
        assert "Open Interest Ladder" not in text


class TestStatusCommand:
    def test_status_prints_configuration(self, monkeypatch):
        console = _capture(monkeypatch)
        monkeypatch.setenv("MASSIVE_API_KEY", "test-key")
        monkeypatch.setattr("sys.argv", ["dealerstructure", "status"])

        cli.main()

        assert "Cache TTL: 60s" in console.export_text()


class TestSetupLogging:
    def test_writes_log_file(self, settings, tmp_path):
        log_file = tmp_path / "logs" / "engine.log"
        setup_logging(settings.model_copy(update={"log_file": str(log_file)}))
        logger.info("structure ready")
        logger.remove()

        assert "structure ready" in log_file.read_text()

    def test_no_log_file_skips_file_sink(self, settings, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        setup_logging(settings.model_copy(update={"log_file": None}), console=False)
        logger.info("structure ready")
        logger.remove()

        assert list(tmp_path.iterdir()) == []

    def test_enables_package_records(self, settings, tmp_path):
        log_file = tmp_path / "engine.log"
        logger.disable("dealerstructure")
        setup_logging(
            settings.model_copy(update={"log_file": str(log_file), "log_level": "DEBUG"}),
            console=False,
        )
        StructureAggregator().aggregate([contract(100, "call", 10)])
        logger.remove()

        assert "Aggregated 1 contracts" in log_file.read_text()

    def test_package_silent_until_enabled(self):
        records = []
        logger.remove()
        logger.disable("dealerstructure")
        sink = logger.add(records.append, level="DEBUG")
        try:
            StructureAggregator().aggregate([contract(100, "call", 10)])
            assert records == []

            logger.enable("dealerstructure")
            StructureAggregator().aggregate([contract(100, "call", 10)])
            assert any("Aggregated" in str(r) for r in records)
        finally:
            logger.remove(sink)
