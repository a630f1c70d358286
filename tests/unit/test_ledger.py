"""Unit tests for the base-amount ledger."""

import logging

import pytest

from pairvault.core.exceptions import LedgerUnderflowError
from pairvault.engine.ledger import BaseAmountLedger, merge_reward_amounts, render_drift_report


@pytest.fixture
def ledger():
    return BaseAmountLedger("test-strategy", ("USDC", "WETH"))


class TestLedgerUpdates:
    """Tests for deposit, withdraw and swap records."""

    def test_starts_empty(self, ledger):
        assert ledger.entries == {"USDC": 0, "WETH": 0}
        assert ledger.base_amount("CRV") == 0

    def test_record_deposit(self, ledger):
        """Borrowed minus consumed for B, collateral spent for A."""
        ledger.receive("USDC", 1000)
        ledger.record_deposit([300, 200], [0, 250], 700)

        assert ledger.base_amount("USDC") == 300
        assert ledger.base_amount("WETH") == 50

    def test_record_withdraw(self, ledger):
        """Withdrawn minus repaid for B, collateral plus withdrawn for A."""
        ledger.receive("USDC", 300)
        ledger.record_withdraw([300, 200], [0, 100], 0, 700)

        assert ledger.base_amount("USDC") == 1000
        assert ledger.base_amount("WETH") == 100

    def test_record_swap(self, ledger):
        ledger.receive("USDC", 1000)
        ledger.record_swap("USDC", 400, "WETH", 2)

        assert ledger.entries == {"USDC": 600, "WETH": 2}

    def test_spend(self, ledger):
        ledger.receive("USDC", 1000)
        ledger.spend("USDC", 1000)
        assert ledger.base_amount("USDC") == 0

    def test_array_length_checked(self, ledger):
        with pytest.raises(ValueError):
            ledger.record_deposit([1, 2, 3], [0, 0], 0)

    def test_duplicate_assets_rejected(self):
        with pytest.raises(ValueError):
            BaseAmountLedger("dup", ("USDC", "USDC"))


class TestUnderflow:
    """Rejected updates leave the ledger unchanged."""

    def test_spend_more_than_held(self, ledger):
        ledger.receive("USDC", 100)

        with pytest.raises(LedgerUnderflowError) as exc_info:
            ledger.spend("USDC", 101)

        assert exc_info.value.asset == "USDC"
        assert ledger.base_amount("USDC") == 100

    def test_partial_update_not_applied(self, ledger):
        """One valid and one invalid delta: neither is applied."""
        ledger.receive("USDC", 1000)

        with pytest.raises(LedgerUnderflowError):
            ledger.record_deposit([0, 10], [0, 0], 500)

        assert ledger.entries == {"USDC": 1000, "WETH": 0}

    def test_batch_rolls_back(self, ledger):
        ledger.receive("USDC", 1000)

        with pytest.raises(LedgerUnderflowError):
            with ledger.batch():
                ledger.spend("USDC", 400)
                ledger.spend("WETH", 1)

        assert ledger.base_amount("USDC") == 1000

    def test_batch_commits(self, ledger):
        with ledger.batch():
            ledger.receive("USDC", 10)
            ledger.receive("WETH", 5)

        assert ledger.entries == {"USDC": 10, "WETH": 5}


class TestRewards:
    """Tests for reward claim records."""

    def test_merge_sums_and_drops_zero(self):
        merged = merge_reward_amounts([("A", 5), ("CRV", 10)], [("CRV", 3), ("B", 0)])
        assert merged == [("A", 5), ("CRV", 13)]

    def test_merge_empty(self):
        assert merge_reward_amounts([], []) == []

    def test_record_rewards_claim(self, ledger):
        """Claimed rewards create entries for new assets."""
        rewards = ledger.record_rewards_claim([("USDC", 5), ("CRV", 10)], [("CRV", 3)])

        assert rewards == [("USDC", 5), ("CRV", 13)]
        assert ledger.base_amount("USDC") == 5
        assert ledger.base_amount("CRV") == 13


class TestReconcile:
    """Tests for ledger/wallet reconciliation."""

    def test_clean(self, ledger):
        ledger.receive("USDC", 100)
        report = ledger.reconcile({"USDC": 100, "WETH": 0})

        assert report.is_clean
        assert len(report.entries) == 2

    def test_drift_flagged_and_logged(self, ledger, caplog):
        ledger.receive("USDC", 100)

        with caplog.at_level(logging.WARNING):
            report = ledger.reconcile({"USDC": 90, "WETH": 0})

        assert not report.is_clean
        assert [e.asset for e in report.flagged] == ["USDC"]
        assert report.flagged[0].drift == -10
        assert "Ledger drift" in caplog.text

    def test_threshold_absorbs_dust(self, ledger):
        ledger.receive("USDC", 100)
        report = ledger.reconcile({"USDC": 103, "WETH": 0}, thresholds={"USDC": 5})
        assert report.is_clean

    def test_unknown_wallet_asset_reported(self, ledger):
        report = ledger.reconcile({"USDC": 0, "WETH": 0, "CRV": 7})
        assert [e.asset for e in report.flagged] == ["CRV"]

    def test_render_drift_report(self, ledger):
        report = ledger.reconcile({"USDC": 1, "WETH": 0})
        table = render_drift_report(report)

        assert table.row_count == 2
        assert len(table.columns) == 5


class TestSnapshot:
    """Tests for serialization and loading."""

    def test_to_dict(self, ledger):
        ledger.receive("WETH", 10**18)
        data = ledger.to_dict()

        assert data["strategy_id"] == "test-strategy"
        assert data["entries"]["WETH"] == str(10**18)

    def test_load(self, ledger):
        ledger.load({"USDC": 5, "CRV": 1})
        assert ledger.entries == {"USDC": 5, "WETH": 0, "CRV": 1}

    def test_load_rejects_negative(self, ledger):
        with pytest.raises(ValueError):
            ledger.load({"USDC": -1})
