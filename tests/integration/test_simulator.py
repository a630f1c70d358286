"""
Integration tests for full strategy lifecycles in the sandbox.

Drives deposit, hardwork, rebalance and withdrawal flows end to end and
checks the ledger against the wallet after every top-level call.
"""

import pytest

from pairvault.core.constants import WAD
from pairvault.persistence import LedgerStorage
from pairvault.sandbox import PairVaultSimulator, SandboxStrategy

from tests.conftest import USDC, ledger_matches_wallet


class TestPricePath:
    """Tests for generated price paths."""

    def test_reproducible_with_seed(self):
        first = PairVaultSimulator.price_path(WAD, 50, 0.02, seed=42)
        second = PairVaultSimulator.price_path(WAD, 50, 0.02, seed=42)

        assert first == second
        assert len(first) == 50
        assert all(p > 0 for p in first)

    def test_zero_volatility_is_flat(self):
        assert PairVaultSimulator.price_path(WAD, 5, 0.0, seed=1) == [WAD] * 5


class TestSimulation:
    """Tests for simulation runs."""

    def test_run_keeps_ledger_clean(self, flat_strategy):
        simulator = PairVaultSimulator(flat_strategy)
        result = simulator.run(
            1000 * USDC,
            steps=30,
            volatility=0.01,
            seed=7,
            fee_rate=WAD // 1000,
        )

        assert result.success is True
        assert len(result.points) == 30
        assert all(p.ledger_clean for p in result.points)
        assert result.metrics.drift_count == 0
        assert result.metrics.data_points == 30
        assert flat_strategy.lending.get_debt_amount_current("USDC", "USDT")[0] == 0
        assert result.amount_withdrawn == flat_strategy.wallet.sent_to("vault", "USDC")
        assert result.amount_withdrawn > 0

    def test_large_moves_trigger_rebalances(self, flat_strategy):
        result = PairVaultSimulator(flat_strategy).run(1000 * USDC, steps=20, volatility=0.05, seed=3)

        assert result.success is True
        assert result.metrics.rebalance_count > 0
        assert all(p.ledger_clean for p in result.points)

    def test_failed_deposit(self, flat_strategy, monkeypatch):
        """Opening failure is reported in the result, not raised."""
        monkeypatch.setattr(flat_strategy, "fund", lambda amount: None)

        result = PairVaultSimulator(flat_strategy).run(1000 * USDC, steps=5)

        assert result.success is False
        assert "Failed to open position" in result.error_message
        assert result.points == []

    def test_result_persisted(self, flat_strategy, tmp_path):
        result = PairVaultSimulator(flat_strategy).run(500 * USDC, steps=10, seed=11)
        storage = LedgerStorage(tmp_path / "store")

        result_id = storage.save_result(result)
        listed = storage.list_results(result.strategy_id)

        assert listed[0]["id"] == result_id
        assert listed[0]["success"] is True


class TestLifecycle:
    """Tests for sequences of top-level operations."""

    @pytest.mark.parametrize("prices,decimals", [
        ((WAD, WAD), (6, 6)),
        ((WAD, 2000 * WAD), (6, 18)),
    ])
    def test_ledger_equals_wallet_after_every_call(self, settings, prices, decimals):
        s = SandboxStrategy.create(
            strategy_id="lifecycle",
            assets=("USDC", "WETH"),
            decimals=decimals,
            prices=prices,
            settings=settings,
        )
        price_b = prices[1]

        s.fund(10_000 * USDC)
        s.accountant.deposit(10_000 * USDC)
        assert ledger_matches_wallet(s)

        s.pool.accrue_fees(10 * USDC, 0)
        s.lending.add_rewards("CRV", 10**18)
        s.accountant.hardwork()
        assert ledger_matches_wallet(s)

        s.set_price(WAD, price_b * 12 // 10)
        s.accountant.hardwork()
        assert ledger_matches_wallet(s)

        s.accountant.withdraw_amount(2_000 * USDC)
        assert ledger_matches_wallet(s)

        s.lending.accrue_interest(WAD // 200)
        s.accountant.withdraw_all()
        assert ledger_matches_wallet(s)
        assert s.lending.get_debt_amount_current("USDC", "WETH")[0] == 0

    def test_snapshot_restores_into_new_instance(self, funded_strategy, tmp_path):
        storage = LedgerStorage(tmp_path / "store")
        storage.save_ledger(funded_strategy.ledger, funded_strategy.machine.refresh_debt())

        restored = SandboxStrategy.create(
            strategy_id="usdc-usdt",
            assets=("USDC", "USDT"),
            decimals=(6, 6),
            prices=(WAD, WAD),
            settings=funded_strategy.accountant.settings,
        )
        assert storage.restore_ledger(restored.ledger) is True
        assert restored.ledger.entries == funded_strategy.ledger.entries
        assert storage.load_debt("usdc-usdt").total_debt_amount > 0
