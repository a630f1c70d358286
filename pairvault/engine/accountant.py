"""Reward and withdrawal accountant.

Top-level deposit, withdraw, reward claim and hardwork flows of one pair
strategy. Each flow runs as a single exclusive, atomic operation of the
position state machine and drives the planner until debt and proportions
are where the flow needs them.
"""

import logging
from typing import List, Optional

from config import Settings, get_settings
from pairvault.core.constants import INDEX_ASSET_A, INDEX_ASSET_B, PERCENT_DENOMINATOR, PROP_ALL_A, WAD
from pairvault.core.exceptions import InsufficientBalanceError
from pairvault.core.models import DriftReport, ExecutionResult, OperationResult
from pairvault.engine.ledger import merge_reward_amounts
from pairvault.engine.prices import PriceResolver
from pairvault.engine.state_machine import PositionStateMachine

logger = logging.getLogger(__name__)


class StrategyAccountant:
    """
    Deposit/withdraw/claim flows on top of a PositionStateMachine.

    Funds are always measured from the strategy wallet around each external
    call; planned amounts are only upper bounds.
    """

    def __init__(
        self,
        machine: PositionStateMachine,
        vault: str = "vault",
        settings: Optional[Settings] = None,
    ):
        """
        Initialize accountant.

        Args:
            machine: State machine owning the position
            vault: Recipient of withdrawn funds
            settings: Engine settings (default: cached settings)
        """
        self.machine = machine
        self.vault = vault
        self.settings = settings or get_settings()

    @property
    def asset_a(self) -> str:
        return self.machine.position.asset_a

    @property
    def asset_b(self) -> str:
        return self.machine.position.asset_b

    # Valuation

    def invested_assets(self) -> int:
        """
        Total strategy value in units of asset A.

        wallet A + pool A + collateral, plus the value of (wallet B + pool B
        - debt) converted to A. Floored at zero.
        """
        position = self.machine.position
        wallet = self.machine.wallet
        pool_amounts = self.machine.pool.quote_exit(position.liquidity) if position.liquidity > 0 else [0, 0]
        debt, collateral = self.machine.lending.get_debt_amount_current(self.asset_a, self.asset_b)

        amount_a = wallet.balance_of(self.asset_a) + pool_amounts[INDEX_ASSET_A] + collateral
        net_b = wallet.balance_of(self.asset_b) + pool_amounts[INDEX_ASSET_B] - debt

        price_a = self.machine.oracle.price(self.asset_a)
        price_b = self.machine.oracle.price(self.asset_b)
        net_b_value = PriceResolver.token_value(abs(net_b), price_b, position.decimals_b)
        net_b_in_a = PriceResolver.amount_for_value(net_b_value, price_a, position.decimals_a)

        total = amount_a + net_b_in_a if net_b >= 0 else amount_a - net_b_in_a
        return max(0, total)

    def liquidity_ratio(self, amount_a: int, available_a: int, invested: int) -> int:
        """
        Share of pool liquidity (18 decimals) to exit for a withdrawal.

        Zero when the wallet already holds amount_a. Otherwise the missing
        part over the invested funds not on hand, increased by the
        configured margin and capped at 1.
        """
        if amount_a <= available_a:
            return 0
        if invested <= available_a:
            return WAD

        need = amount_a - available_a
        ratio = (
            self.settings.withdraw_liquidity_margin_pct * need * WAD
            // (PERCENT_DENOMINATOR * (invested - available_a))
        )
        return min(ratio, WAD)

    # Flows

    def deposit(self, amount_a: int) -> OperationResult:
        """
        Invest amount_a of A that the vault has sent to the strategy wallet.

        Part of it is pledged to borrow B so the wallet matches the pool
        proportion, then everything is put into the pool.
        """
        machine = self.machine
        with machine.operation("deposit"):
            wallet_a = machine.wallet.balance_of(self.asset_a)
            unaccounted = wallet_a - machine.ledger.base_amount(self.asset_a)
            if amount_a <= 0 or unaccounted < amount_a:
                raise InsufficientBalanceError(self.asset_a, max(0, unaccounted), amount_a)
            machine.defer_ledger_update(machine.ledger.receive, self.asset_a, amount_a)

            debt_before = machine.refresh_debt().total_debt_amount
            liquidity_before = machine.position.liquidity

            self._borrow_for_pool(amount_a)
            machine.enter_pool()
            debt_after = machine.refresh_debt().total_debt_amount

        logger.info(f"Deposited {amount_a} {self.asset_a} into {machine.strategy_id}")
        return OperationResult(
            operation="deposit",
            strategy_id=machine.strategy_id,
            liquidity_delta=machine.position.liquidity - liquidity_before,
            debt_before=debt_before,
            debt_after=debt_after,
        )

    def _borrow_for_pool(self, amount_a: int) -> None:
        """
        Pledge part of amount_a and borrow B to reach the pool proportion.

        With y the pool share of B and k the borrowable value per unit of
        collateral value, the collateral value is y*V / (k*(1-y) + y).
        """
        machine = self.machine
        prop_b = min(max(machine.pool.current_tick_ratio(), 0), WAD)
        price_a = machine.oracle.price(self.asset_a)
        price_b = machine.oracle.price(self.asset_b)
        if prop_b == 0:
            return
        if price_a <= 0 or price_b <= 0:
            logger.warning(f"Unpriceable pair on {machine.strategy_id}, depositing without borrow")
            return

        decimals_a, decimals_b = machine.position.decimals
        total_value = PriceResolver.token_value(amount_a, price_a, decimals_a)
        max_borrow = machine.lending.quote_borrow(self.asset_a, amount_a, self.asset_b)
        borrow_value = PriceResolver.token_value(max_borrow, price_b, decimals_b)
        if total_value <= 0 or borrow_value <= 0:
            return

        k = borrow_value * WAD // total_value
        denominator = k * (WAD - prop_b) // WAD + prop_b
        collateral_value = prop_b * total_value // denominator
        collateral = min(PriceResolver.amount_for_value(collateral_value, price_a, decimals_a), amount_a)
        amount_to_borrow = machine.lending.quote_borrow(self.asset_a, collateral, self.asset_b)
        if collateral <= 0 or amount_to_borrow <= 0:
            return

        a_before = machine.wallet.balance_of(self.asset_a)
        b_before = machine.wallet.balance_of(self.asset_b)
        machine.lending.borrow(self.asset_a, collateral, self.asset_b, amount_to_borrow)
        pledged = a_before - machine.wallet.balance_of(self.asset_a)
        borrowed = machine.wallet.balance_of(self.asset_b) - b_before

        machine.defer_ledger_update(
            machine.ledger.record_deposit, [0, 0], [0, borrowed], pledged, INDEX_ASSET_A,
        )
        logger.debug(f"Pledged {pledged} {self.asset_a}, borrowed {borrowed} {self.asset_b}")

    def withdraw_amount(self, amount_a: int) -> OperationResult:
        """
        Send amount_a of A to the vault, exiting only the liquidity needed.

        The debt share matching the exited liquidity is repaid and the
        remaining B converted to A through the planner (target all-A).
        Sends less than amount_a if the position cannot cover it.
        """
        machine = self.machine
        with machine.operation("withdraw"):
            debt_before = machine.refresh_debt().total_debt_amount
            liquidity_before = machine.position.liquidity

            available = machine.wallet.balance_of(self.asset_a)
            ratio = self.liquidity_ratio(amount_a, available, self.invested_assets())
            executions: List[ExecutionResult] = []

            if ratio > 0:
                machine.exit_pool(machine.position.liquidity * ratio // WAD)
                # Repaid from released B only; A stays available for the vault
                debt_share = min(debt_before * ratio // WAD, machine.wallet.balance_of(self.asset_b))
                plan = machine.plan_iteration(machine.build_plan_input(PROP_ALL_A), debt_share)
                executions.append(machine.execute_plan(plan))

            amount_out = min(amount_a, machine.wallet.balance_of(self.asset_a))
            self._send_to_vault(amount_out)
            debt_after = machine.refresh_debt().total_debt_amount

        if amount_out < amount_a:
            logger.warning(f"Withdraw from {machine.strategy_id}: requested {amount_a}, sent {amount_out}")
        logger.info(f"Withdrew {amount_out} {self.asset_a} from {machine.strategy_id}")
        return OperationResult(
            operation="withdraw",
            strategy_id=machine.strategy_id,
            executions=executions,
            amounts_out=(amount_out, 0),
            liquidity_delta=machine.position.liquidity - liquidity_before,
            debt_before=debt_before,
            debt_after=debt_after,
        )

    def withdraw_all(self) -> OperationResult:
        """
        Exit the position, close the debt and send all A to the vault.

        Planner iterations are repeated until the debt is closed, an
        iteration makes no progress, or max_withdraw_iterations is reached.
        Leftover B is swapped to A only once no debt remains.
        """
        machine = self.machine
        with machine.operation("withdraw_all"):
            debt_before = machine.refresh_debt().total_debt_amount
            liquidity_before = machine.position.liquidity
            machine.exit_pool(machine.position.liquidity)

            executions = self._close_debt()
            debt_after = machine.refresh_debt().total_debt_amount

            if debt_after == 0:
                plan = machine.plan_iteration(machine.build_plan_input(PROP_ALL_A))
                if not plan.is_noop:
                    executions.append(machine.execute_plan(plan))
            else:
                logger.warning(
                    f"{machine.strategy_id}: {debt_after} {self.asset_b} debt left after "
                    f"{len(executions)} iterations"
                )

            amount_out = machine.wallet.balance_of(self.asset_a)
            self._send_to_vault(amount_out)

        logger.info(f"Withdrew all ({amount_out} {self.asset_a}) from {machine.strategy_id}")
        return OperationResult(
            operation="withdraw_all",
            strategy_id=machine.strategy_id,
            executions=executions,
            amounts_out=(amount_out, 0),
            liquidity_delta=machine.position.liquidity - liquidity_before,
            debt_before=debt_before,
            debt_after=debt_after,
        )

    def _close_debt(self) -> List[ExecutionResult]:
        machine = self.machine
        executions = []
        for i in range(self.settings.max_withdraw_iterations):
            debt, _ = machine.lending.get_debt_amount_current(self.asset_a, self.asset_b)
            if debt == 0:
                break

            plan = machine.plan_iteration(machine.build_plan_input(PROP_ALL_A), debt)
            if plan.is_noop:
                break
            execution = machine.execute_plan(plan)
            executions.append(execution)
            if execution.repaid_b == 0 and execution.swapped_in == 0:
                logger.warning(f"{machine.strategy_id}: no progress closing debt at iteration {i + 1}")
                break
        return executions

    def _send_to_vault(self, amount: int) -> None:
        if amount <= 0:
            return
        self.machine.wallet.transfer_out(self.asset_a, amount, self.vault)
        self.machine.defer_ledger_update(self.machine.ledger.spend, self.asset_a, amount)

    def claim_rewards(self) -> OperationResult:
        """Claim pool and lending rewards into the wallet."""
        machine = self.machine
        with machine.operation("claim_rewards"):
            rewards = self._claim()

        if rewards:
            logger.info(f"Claimed rewards on {machine.strategy_id}: {rewards}")
        return OperationResult(
            operation="claim_rewards",
            strategy_id=machine.strategy_id,
            rewards=rewards,
        )

    def _claim(self):
        machine = self.machine
        by_pool = machine.pool.claim_rewards()
        by_lending = machine.lending.claim_rewards()
        machine.defer_ledger_update(machine.ledger.record_rewards_claim, by_pool, by_lending)
        return merge_reward_amounts(by_pool, by_lending)

    def hardwork(self) -> OperationResult:
        """
        Claim rewards, then rebalance if the price left the range.

        When no rebalance is needed, pair assets on hand (including claimed
        rewards in A or B) are compounded back into the pool.
        """
        machine = self.machine
        with machine.operation("hardwork"):
            rewards = self._claim()
            if machine.position.liquidity > 0 and not machine.position.in_range(machine.pool.current_tick()):
                result = machine.perform_rebalance(operation="hardwork")
            else:
                debt_before = machine.refresh_debt().total_debt_amount
                liquidity_before = machine.position.liquidity
                if machine.position.liquidity > 0:
                    machine.enter_pool()
                result = OperationResult(
                    operation="hardwork",
                    strategy_id=machine.strategy_id,
                    liquidity_delta=machine.position.liquidity - liquidity_before,
                    debt_before=debt_before,
                    debt_after=debt_before,
                )
            result.rewards = rewards

        logger.info(f"Hardwork on {machine.strategy_id}: rebalanced={result.rebalanced}")
        return result

    # Monitoring

    def reconcile(self) -> DriftReport:
        """Compare ledger base amounts with wallet balances."""
        ledger = self.machine.ledger
        balances = {asset: self.machine.wallet.balance_of(asset) for asset in ledger.entries}
        thresholds = dict(zip(self.machine.position.assets, self.machine.liquidation_thresholds))
        return ledger.reconcile(balances, thresholds)
