"""Unit tests for the reward and withdrawal accountant."""

import logging

import pytest

from pairvault.core.constants import WAD
from pairvault.core.exceptions import InsufficientBalanceError
from pairvault.core.models import PlanKind, PositionState

from tests.conftest import USDC, ledger_matches_wallet


class TestDeposit:
    """Tests for deposits."""

    def test_deposit_borrows_and_enters_pool(self, funded_strategy):
        s = funded_strategy
        debt, collateral = s.lending.get_debt_amount_current("USDC", "USDT")

        # Pool ratio at tick 0 is about 47.7% B, borrowing at a 50% collateral factor
        assert 640 * USDC < collateral < 650 * USDC
        assert 320 * USDC < debt < 325 * USDC
        assert s.machine.position.liquidity > 0
        assert s.machine.position.liquidity == s.pool.liquidity
        assert ledger_matches_wallet(s)

    def test_invested_assets_after_deposit(self, funded_strategy):
        invested = funded_strategy.accountant.invested_assets()
        assert abs(invested - 1000 * USDC) <= 10

    def test_deposit_result(self, flat_strategy):
        flat_strategy.fund(500 * USDC)
        result = flat_strategy.accountant.deposit(500 * USDC)

        assert result.operation == "deposit"
        assert result.debt_before == 0
        assert result.debt_after > 0
        assert result.liquidity_delta > 0

    def test_deposit_requires_unaccounted_funds(self, flat_strategy):
        """Depositing more than the vault sent is rejected and rolled back."""
        flat_strategy.fund(100 * USDC)

        with pytest.raises(InsufficientBalanceError):
            flat_strategy.accountant.deposit(200 * USDC)

        assert flat_strategy.ledger.base_amount("USDC") == 0
        assert flat_strategy.chain.reverts == 1
        assert flat_strategy.machine.state == PositionState.IN_RANGE

    def test_funds_cannot_be_deposited_twice(self, funded_strategy):
        with pytest.raises(InsufficientBalanceError):
            funded_strategy.accountant.deposit(1 * USDC)


class TestLiquidityRatio:
    """Tests for the share of liquidity exited on withdraw."""

    def test_wallet_covers_amount(self, flat_strategy):
        assert flat_strategy.accountant.liquidity_ratio(100, 200, 1000) == 0

    def test_with_margin(self, flat_strategy):
        """300 of 1000 with the default 1% margin."""
        assert flat_strategy.accountant.liquidity_ratio(300, 0, 1000) == 303 * 10**15

    def test_capped_at_one(self, flat_strategy):
        assert flat_strategy.accountant.liquidity_ratio(1000, 0, 1000) == WAD

    def test_nothing_invested(self, flat_strategy):
        assert flat_strategy.accountant.liquidity_ratio(500, 100, 100) == WAD


class TestWithdraw:
    """Tests for partial and full withdrawals."""

    def test_withdraw_amount(self, funded_strategy):
        s = funded_strategy
        debt_before, _ = s.lending.get_debt_amount_current("USDC", "USDT")
        liquidity_before = s.machine.position.liquidity

        result = s.accountant.withdraw_amount(300 * USDC)

        assert s.wallet.sent_to("vault", "USDC") == 300 * USDC
        assert result.amounts_out == (300 * USDC, 0)
        assert result.debt_after < debt_before
        assert result.liquidity_delta < 0
        assert s.machine.position.liquidity < liquidity_before
        assert ledger_matches_wallet(s)

    def test_withdraw_keeps_health(self, funded_strategy):
        s = funded_strategy
        s.accountant.withdraw_amount(300 * USDC)
        assert s.machine.refresh_debt().health_factor >= 2 * WAD

    def test_withdraw_all_closes_debt(self, funded_strategy):
        s = funded_strategy
        result = s.accountant.withdraw_all()

        assert s.lending.get_debt_amount_current("USDC", "USDT") == (0, 0)
        assert result.debt_after == 0
        assert s.machine.position.liquidity == 0
        assert abs(s.wallet.sent_to("vault", "USDC") - 1000 * USDC) <= 10
        assert s.wallet.balance_of("USDC") == 0
        assert ledger_matches_wallet(s)

    def test_withdraw_all_after_interest(self, funded_strategy):
        """Debt above the B released by the pool is closed by swapping A."""
        s = funded_strategy
        s.lending.accrue_interest(WAD // 100)

        result = s.accountant.withdraw_all()

        assert result.debt_after == 0
        assert len(result.executions) == 1
        assert result.executions[0].plan_kind == PlanKind.REPAY_SWAP_REPAY
        assert any(e.swapped_in > 0 and e.asset_in == "USDC" for e in result.executions)
        assert ledger_matches_wallet(s)

    def test_withdraw_all_reports_stuck_debt(self, funded_strategy, caplog):
        """Unpriceable pair: debt stays and a warning is logged."""
        s = funded_strategy
        s.lending.accrue_interest(WAD // 100)
        s.oracle.set_price("USDT", 0)

        with caplog.at_level(logging.WARNING):
            result = s.accountant.withdraw_all()

        assert result.debt_after > 0
        assert "debt left" in caplog.text
        assert "after 0 iterations" in caplog.text
        assert ledger_matches_wallet(s)


class TestRewards:
    """Tests for reward claims and hardwork."""

    def test_claim_merges_sources(self, funded_strategy):
        s = funded_strategy
        s.pool.accrue_fees(5 * USDC, 3 * USDC)
        s.lending.add_rewards("USDC", 2 * USDC)
        s.lending.add_rewards("CRV", 7)

        result = s.accountant.claim_rewards()

        assert result.rewards == [("USDC", 7 * USDC), ("USDT", 3 * USDC), ("CRV", 7)]
        assert s.ledger.base_amount("CRV") == 7
        assert ledger_matches_wallet(s)

    def test_claim_nothing(self, funded_strategy):
        assert funded_strategy.accountant.claim_rewards().rewards == []

    def test_hardwork_compounds_in_range(self, funded_strategy):
        s = funded_strategy
        s.pool.accrue_fees(10 * USDC, 10 * USDC)
        liquidity_before = s.machine.position.liquidity

        result = s.accountant.hardwork()

        assert result.rebalanced is False
        assert result.rewards == [("USDC", 10 * USDC), ("USDT", 10 * USDC)]
        assert s.machine.position.liquidity > liquidity_before
        assert ledger_matches_wallet(s)

    def test_hardwork_rebalances_out_of_range(self, funded_strategy):
        s = funded_strategy
        s.set_price(12 * WAD // 10)

        result = s.accountant.hardwork()

        assert result.rebalanced is True
        assert result.operation == "hardwork"
        assert result.executions[0].plan_kind == PlanKind.SWAP_ONLY
        assert s.machine.state == PositionState.IN_RANGE
        assert ledger_matches_wallet(s)


class TestReconcile:
    """Tests for drift reporting."""

    def test_clean_after_operations(self, funded_strategy):
        s = funded_strategy
        s.accountant.withdraw_amount(100 * USDC)
        assert s.accountant.reconcile().is_clean

    def test_untracked_inflow_is_flagged(self, funded_strategy):
        funded_strategy.fund(5 * USDC)
        report = funded_strategy.accountant.reconcile()

        assert [e.asset for e in report.flagged] == ["USDC"]
        assert report.flagged[0].drift == 5 * USDC
