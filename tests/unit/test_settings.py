"""Unit tests for engine settings."""

import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from config import Settings, configure_logging
from pairvault.sandbox import SandboxStrategy


class TestSettings:
    """Tests for settings loading and validation."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("PAIRVAULT_STORAGE_DIR", raising=False)
        settings = Settings(_env_file=None)

        assert settings.storage_dir == Path(".pairvault")
        assert settings.withdraw_liquidity_margin_pct == 101
        assert settings.max_withdraw_iterations == 5
        assert settings.use_pool_proportions is True
        assert settings.target_prop_b is None
        assert settings.log_level == "INFO"

    def test_environment_prefix(self, monkeypatch):
        monkeypatch.setenv("PAIRVAULT_MAX_WITHDRAW_ITERATIONS", "9")
        monkeypatch.setenv("PAIRVAULT_STORAGE_DIR", "/tmp/pairvault-test")

        settings = Settings(_env_file=None)

        assert settings.max_withdraw_iterations == 9
        assert settings.storage_dir == Path("/tmp/pairvault-test")

    def test_margin_bounds(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, withdraw_liquidity_margin_pct=99)

    def test_target_proportion_bounds(self):
        assert Settings(_env_file=None, target_prop_b=0).target_prop_b == 0
        with pytest.raises(ValidationError):
            Settings(_env_file=None, target_prop_b=10**18 + 1)

    def test_log_level_normalized(self):
        assert Settings(_env_file=None, log_level=" debug ").log_level == "DEBUG"

    def test_unknown_log_level(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_level="chatty")

    def test_ensure_storage_dir(self, tmp_path):
        settings = Settings(_env_file=None, storage_dir=tmp_path / "a" / "b")
        assert settings.ensure_storage_dir().is_dir()


class TestSettingsUsage:
    """Tests for settings consumed by the engine."""

    def test_configure_logging(self):
        engine_logger = logging.getLogger("pairvault")
        previous = engine_logger.level
        try:
            configure_logging(Settings(_env_file=None, log_level="DEBUG"))
            assert engine_logger.level == logging.DEBUG
        finally:
            engine_logger.setLevel(previous)

    def test_default_liquidation_threshold(self, tmp_path):
        settings = Settings(_env_file=None, storage_dir=tmp_path, default_liquidation_threshold=7)
        strategy = SandboxStrategy.create(settings=settings)

        assert strategy.machine.liquidation_thresholds == (7, 7)

    def test_drift_tolerance_reaches_ledger(self, tmp_path):
        settings = Settings(_env_file=None, storage_dir=tmp_path, ledger_drift_tolerance=3)
        strategy = SandboxStrategy.create(settings=settings)

        assert strategy.ledger.drift_tolerance == 3
