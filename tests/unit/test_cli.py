"""Unit tests for the simulation command line."""

import logging

import pytest

from config import get_settings
from pairvault.cli import build_parser, main, render_summary
from pairvault.persistence import LedgerStorage
from pairvault.sandbox import SimulationResult


@pytest.fixture
def isolated_settings(tmp_path, monkeypatch):
    """Point cached settings at a temporary storage directory."""
    monkeypatch.setenv("PAIRVAULT_STORAGE_DIR", str(tmp_path / "store"))
    get_settings.cache_clear()
    engine_logger = logging.getLogger("pairvault")
    previous = engine_logger.level
    yield tmp_path / "store"
    engine_logger.setLevel(previous)
    get_settings.cache_clear()


class TestParser:
    """Tests for argument parsing."""

    def test_defaults(self):
        args = build_parser().parse_args([])

        assert args.strategy_id == "sandbox"
        assert args.deposit == 10_000
        assert args.steps == 100
        assert args.save is False
        assert args.log_level is None

    def test_rejects_unknown_log_level(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--log-level", "CHATTY"])


class TestMain:
    """Tests for running simulations from the command line."""

    def test_run_and_save(self, isolated_settings, capsys):
        code = main(["--steps", "5", "--seed", "1", "--deposit", "1000", "--save", "--log-level", "WARNING"])

        assert code == 0
        assert logging.getLogger("pairvault").level == logging.WARNING
        assert "Simulation: sandbox" in capsys.readouterr().out

        storage = LedgerStorage(isolated_settings)
        assert len(storage.list_results("sandbox")) == 1
        assert storage.load_entries("sandbox") is not None

    def test_log_level_from_settings(self, isolated_settings, monkeypatch):
        monkeypatch.setenv("PAIRVAULT_LOG_LEVEL", "debug")
        get_settings.cache_clear()

        main(["--steps", "2", "--seed", "1", "--deposit", "100"])

        assert logging.getLogger("pairvault").level == logging.DEBUG


class TestSummary:
    def test_failed_result(self):
        result = SimulationResult(strategy_id="x", initial_deposit=100, success=False, error_message="boom")
        table = render_summary(result)

        assert table.row_count == 3
