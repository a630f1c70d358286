"""Rebalance trigger and position state machine.

Owns one strategy's AssetPosition and DebtStatus, decides when the pool
price has left the position range and sequences planner output against the
pool, lending and swap collaborators.

Every top-level operation runs through operation(), which provides
exclusive entry (a re-entrant or concurrent call fails with
PositionLockedError), the collaborators' atomic scope, and staged ledger
updates that are applied only after every external call has succeeded.
"""

import dataclasses
import logging
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional, Tuple

from pairvault.core.constants import INDEX_ASSET_A, WAD
from pairvault.core.exceptions import PositionLockedError
from pairvault.core.models import (
    AssetPosition,
    DebtStatus,
    ExecutionResult,
    IterationPlanInput,
    OperationResult,
    PositionState,
    RebalancePlan,
    RepayInstruction,
    RepaySwapRepayPlan,
    SwapInstruction,
    SwapRepayPlan,
)
from pairvault.engine.ledger import BaseAmountLedger
from pairvault.engine.planner import IterationPlanner
from pairvault.engine.prices import PriceResolver
from pairvault.protocols.base import (
    LendingAdapter,
    PairPool,
    PriceOracle,
    SwapRouter,
    TokenWallet,
    TransactionScope,
)

logger = logging.getLogger(__name__)


class PositionStateMachine:
    """
    State machine of one pair position.

    IN_RANGE -> NEEDS_REBALANCE -> REBALANCING -> IN_RANGE | NEEDS_REBALANCE

    A rebalance may finish in NEEDS_REBALANCE when the price kept moving
    while it was in flight; the next call handles that.
    """

    def __init__(
        self,
        strategy_id: str,
        position: AssetPosition,
        pool: PairPool,
        lending: LendingAdapter,
        router: SwapRouter,
        oracle: PriceOracle,
        wallet: TokenWallet,
        ledger: BaseAmountLedger,
        scope: TransactionScope,
        planner: Optional[IterationPlanner] = None,
        liquidation_thresholds: Tuple[int, int] = (0, 0),
        use_pool_proportions: bool = True,
        target_prop_b: Optional[int] = None,
    ):
        if ledger.assets[:2] != position.assets:
            raise ValueError(
                f"Ledger assets {ledger.assets} do not match position {position.assets}"
            )
        if target_prop_b is not None and not 0 <= target_prop_b <= WAD:
            raise ValueError(f"Invalid target proportion: {target_prop_b}")

        self.strategy_id = strategy_id
        self.position = position
        self.pool = pool
        self.lending = lending
        self.router = router
        self.oracle = oracle
        self.wallet = wallet
        self.ledger = ledger
        self.scope = scope
        self.planner = planner or IterationPlanner()
        self.liquidation_thresholds = liquidation_thresholds
        self.use_pool_proportions = use_pool_proportions
        self.target_prop_b = target_prop_b

        self.state = PositionState.IN_RANGE
        self.debt = DebtStatus()

        self._lock = threading.Lock()
        self._active: Optional[str] = None
        self._pending: List[Callable[[], None]] = []

    # Operation scope

    @property
    def active_operation(self) -> Optional[str]:
        return self._active

    @contextmanager
    def operation(self, name: str) -> Iterator[None]:
        """
        Run a top-level operation exclusively and atomically.

        Raises:
            PositionLockedError: another operation is in flight
        """
        if not self._lock.acquire(blocking=False):
            raise PositionLockedError(self.strategy_id, name, self._active or "unknown")
        if self.state == PositionState.REBALANCING:
            self._lock.release()
            raise PositionLockedError(self.strategy_id, name, self._active or "unknown")

        previous_state = self.state
        position_snapshot = dataclasses.replace(self.position)
        debt_snapshot = dataclasses.replace(self.debt)

        self._active = name
        self._pending = []
        self.state = PositionState.REBALANCING
        next_state = previous_state
        try:
            with self.scope.atomic():
                yield
                # Observed before the ledger commits; a failed read reverts the operation
                observed = self._observed_state()
                with self.ledger.batch():
                    for update in self._pending:
                        update()
                self.refresh_balances()
            next_state = observed
        except Exception as e:
            logger.error(f"{name} aborted on {self.strategy_id}: {e}")
            self.position = position_snapshot
            self.debt = debt_snapshot
            raise
        finally:
            try:
                self._pending = []
                self._active = None
                self.state = next_state
            finally:
                self._lock.release()

    def defer_ledger_update(self, update: Callable, *args, **kwargs) -> None:
        """Stage a ledger update to apply once the operation's external calls succeed."""
        if self._active is None:
            raise RuntimeError("Ledger updates can only be staged inside an operation")
        self._pending.append(lambda: update(*args, **kwargs))

    # Observation

    def needs_rebalance(self) -> bool:
        """
        Re-read the pool tick and check it against the position range.

        Outside an operation the state is updated to match.
        """
        if self.position.liquidity <= 0:
            return False
        tick = self.pool.current_tick()
        out_of_range = not self.position.in_range(tick)
        if self._active is None:
            self.state = PositionState.NEEDS_REBALANCE if out_of_range else PositionState.IN_RANGE
        if out_of_range:
            logger.info(
                f"{self.strategy_id}: tick {tick} outside "
                f"[{self.position.lower_tick}, {self.position.upper_tick})"
            )
        return out_of_range

    def _observed_state(self) -> PositionState:
        if self.position.liquidity > 0 and not self.position.in_range(self.pool.current_tick()):
            return PositionState.NEEDS_REBALANCE
        return PositionState.IN_RANGE

    def refresh_debt(self) -> DebtStatus:
        """Rebuild the DebtStatus snapshot from the lending collaborator."""
        asset_a, asset_b = self.position.assets
        debt, collateral = self.lending.get_debt_amount_current(asset_a, asset_b)
        self.debt = DebtStatus(
            total_debt_amount=debt,
            total_collateral_amount=collateral,
            health_factor=PriceResolver.health_factor(
                collateral,
                self.oracle.price(asset_a),
                self.position.decimals_a,
                debt,
                self.oracle.price(asset_b),
                self.position.decimals_b,
            ),
        )
        return self.debt

    def refresh_balances(self) -> Tuple[int, int]:
        self.position.balance_a = self.wallet.balance_of(self.position.asset_a)
        self.position.balance_b = self.wallet.balance_of(self.position.asset_b)
        return self.position.balances

    def build_plan_input(self, prop_b: Optional[int] = None) -> IterationPlanInput:
        """
        Planner input at current oracle prices.

        Without an explicit prop_b the configured target_prop_b is used,
        replaced by the pool tick ratio when use_pool_proportions is set or
        no target is configured.

        Args:
            prop_b: Explicit target share of B, used as is
        """
        asset_a, asset_b = self.position.assets
        pool_prop_b = None
        use_pool_proportions = False
        if prop_b is None:
            pool_prop_b = min(max(self.pool.current_tick_ratio(), 0), WAD)
            if self.target_prop_b is None:
                prop_b = pool_prop_b
                use_pool_proportions = True
            else:
                prop_b = self.target_prop_b
                use_pool_proportions = self.use_pool_proportions
        return IterationPlanInput(
            assets=self.position.assets,
            prices=(self.oracle.price(asset_a), self.oracle.price(asset_b)),
            decimals=self.position.decimals,
            prop_b=prop_b,
            liquidation_thresholds=self.liquidation_thresholds,
            use_pool_proportions=use_pool_proportions,
            pool_prop_b=pool_prop_b,
        )

    # Pool legs

    def exit_pool(self, liquidity: int, emergency: bool = False) -> List[int]:
        """Exit liquidity and stage the ledger update; returns amounts received."""
        liquidity = min(liquidity, self.position.liquidity)
        if liquidity <= 0:
            return [0, 0]

        before = self.refresh_balances()
        self.pool.exit(liquidity, emergency)
        after = self.refresh_balances()
        withdrawn = [max(0, after[i] - before[i]) for i in range(2)]
        self.position.liquidity -= liquidity

        self.defer_ledger_update(
            self.ledger.record_withdraw,
            withdrawn,
            [0, 0],
            INDEX_ASSET_A,
            withdrawn[INDEX_ASSET_A],
        )
        logger.debug(f"{self.strategy_id}: exited {liquidity} liquidity, received {withdrawn}")
        return withdrawn

    def enter_pool(self, amounts_desired: Optional[List[int]] = None) -> Tuple[List[int], int]:
        """Enter the pool with the given amounts (default: whole wallet)."""
        before = self.refresh_balances()
        if amounts_desired is None:
            amounts_desired = list(before)
        if not any(amounts_desired):
            return [0, 0], 0

        _, liquidity = self.pool.enter(amounts_desired)
        after = self.refresh_balances()
        consumed = [max(0, before[i] - after[i]) for i in range(2)]
        self.position.liquidity += liquidity

        self.defer_ledger_update(
            self.ledger.record_deposit,
            consumed,
            [0, 0],
            consumed[INDEX_ASSET_A],
            INDEX_ASSET_A,
        )
        logger.debug(f"{self.strategy_id}: entered pool with {consumed}, liquidity +{liquidity}")
        return consumed, liquidity

    # Planning and execution

    def plan_iteration(self, plan_input: IterationPlanInput, amount_to_repay_b: int = 0) -> RebalancePlan:
        """Plan one iteration against freshly read balances and debt."""
        asset_a, asset_b = self.position.assets
        balance_a, balance_b = self.refresh_balances()
        debt, collateral = self.lending.get_debt_amount_current(asset_a, asset_b)

        collateral_a = 0
        if amount_to_repay_b > 0 and debt > 0:
            collateral_a = self.lending.quote_repay(asset_a, asset_b, min(amount_to_repay_b, debt))

        plan = self.planner.plan(
            plan_input,
            balance_a=balance_a,
            balance_b=balance_b,
            amount_to_repay_b=amount_to_repay_b,
            collateral_a=collateral_a,
            total_collateral_a=collateral,
            total_borrow_b=debt,
        )
        logger.info(
            f"{self.strategy_id}: {plan.kind.name} swap={plan.swap_amount_in} "
            f"repays={[r.amount for r in plan.repays]}"
        )
        return plan

    def execute_plan(self, plan: RebalancePlan) -> ExecutionResult:
        """
        Execute plan legs in order.

        Amounts are re-checked against the wallet before every leg and each
        repay is limited to min(planned, balance on hand, current debt).
        The result reports what the wallet actually observed.
        Ledger updates are staged per leg, in execution order.
        """
        if isinstance(plan, RepaySwapRepayPlan):
            legs = [plan.first_repay, plan.swap, plan.second_repay]
        elif isinstance(plan, SwapRepayPlan):
            legs = [plan.swap, plan.repay]
        else:
            legs = [plan.swap]

        result = ExecutionResult(plan_kind=plan.kind)
        for leg in legs:
            if isinstance(leg, SwapInstruction):
                self._swap(leg, result)
            elif isinstance(leg, RepayInstruction):
                self._repay(leg, result)

        return result

    def _swap(self, swap: SwapInstruction, result: ExecutionResult) -> None:
        amount = min(swap.amount_in, self.wallet.balance_of(swap.asset_in))
        if amount <= 0:
            return

        in_before = self.wallet.balance_of(swap.asset_in)
        out_before = self.wallet.balance_of(swap.asset_out)
        self.router.swap(swap.asset_in, swap.asset_out, amount)
        in_after = self.wallet.balance_of(swap.asset_in)
        out_after = self.wallet.balance_of(swap.asset_out)

        swapped_in = in_before - in_after
        swapped_out = out_after - out_before

        result.asset_in = swap.asset_in
        result.asset_out = swap.asset_out
        result.swapped_in += swapped_in
        result.swapped_out += swapped_out
        self.defer_ledger_update(self.ledger.record_swap, swap.asset_in, swapped_in, swap.asset_out, swapped_out)

    def _repay(self, repay: RepayInstruction, result: ExecutionResult) -> None:
        asset_a, asset_b = self.position.assets
        debt, _ = self.lending.get_debt_amount_current(asset_a, asset_b)
        amount = min(repay.amount, self.wallet.balance_of(asset_b), debt)
        if amount <= 0:
            return

        a_before = self.wallet.balance_of(asset_a)
        b_before = self.wallet.balance_of(asset_b)
        self.lending.repay(asset_a, asset_b, amount)
        repaid = b_before - self.wallet.balance_of(asset_b)
        returned = self.wallet.balance_of(asset_a) - a_before

        result.repaid_b += repaid
        result.collateral_returned_a += returned
        self.defer_ledger_update(self.ledger.record_withdraw, [0, 0], [0, repaid], INDEX_ASSET_A, returned)

    # Top-level operations

    def rebalance(self, amount_to_repay_b: int = 0) -> OperationResult:
        """
        Move the position to a fresh range around the current tick.

        Exits all liquidity, selects the new range, plans towards the
        target proportion (optionally repaying amount_to_repay_b in
        the same cycle), executes and re-enters the pool.
        """
        with self.operation("rebalance"):
            result = self.perform_rebalance(amount_to_repay_b)
        return result

    def perform_rebalance(self, amount_to_repay_b: int = 0, operation: str = "rebalance") -> OperationResult:
        """Rebalance steps; must run inside operation()."""
        if self._active is None:
            raise RuntimeError("perform_rebalance must run inside an operation")

        debt_before = self.refresh_debt().total_debt_amount
        liquidity_before = self.position.liquidity

        self.exit_pool(self.position.liquidity)

        lower_tick, upper_tick = self.pool.select_range()
        self.position.lower_tick = lower_tick
        self.position.upper_tick = upper_tick

        self.refresh_debt()
        plan = self.plan_iteration(self.build_plan_input(), amount_to_repay_b)
        execution = self.execute_plan(plan)

        self.enter_pool()
        debt_after = self.refresh_debt().total_debt_amount

        logger.info(
            f"Rebalanced {self.strategy_id} to [{lower_tick}, {upper_tick}), "
            f"debt {debt_before} -> {debt_after}"
        )
        return OperationResult(
            operation=operation,
            strategy_id=self.strategy_id,
            executions=[execution],
            liquidity_delta=self.position.liquidity - liquidity_before,
            debt_before=debt_before,
            debt_after=debt_after,
            rebalanced=True,
        )
