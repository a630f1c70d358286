"""Pair-vault simulation over generated price paths."""

import logging
from typing import List, Optional

import numpy as np

from pairvault.core.constants import WAD
from pairvault.core.exceptions import PairVaultError
from pairvault.sandbox.models import SimulationPoint, SimulationResult
from pairvault.sandbox.strategy import SandboxStrategy

logger = logging.getLogger(__name__)


class PairVaultSimulator:
    """
    Drives a sandbox strategy through a price path.

    Every step moves oracle and pool to the next price, accrues lending
    interest and pool fees, runs hardwork (claim, compound or rebalance) and
    reconciles the ledger against the wallet.
    """

    def __init__(self, strategy: SandboxStrategy):
        """
        Initialize simulator.

        Args:
            strategy: Sandbox strategy to drive
        """
        self.strategy = strategy

    @staticmethod
    def price_path(
        start_price: int,
        steps: int,
        volatility: float,
        drift: float = 0.0,
        seed: Optional[int] = None,
    ) -> List[int]:
        """
        Geometric random-walk price path.

        Args:
            start_price: 18-decimal starting price
            steps: Number of prices to generate
            volatility: Standard deviation of per-step log returns
            drift: Mean per-step log return
            seed: Random seed for reproducible paths

        Returns:
            18-decimal prices, one per step
        """
        rng = np.random.default_rng(seed)
        log_returns = rng.normal(drift, volatility, steps)
        factors = np.exp(np.cumsum(log_returns))
        return [max(1, int(start_price * float(f))) for f in factors]

    def run(
        self,
        initial_deposit: int,
        steps: int = 100,
        volatility: float = 0.01,
        drift: float = 0.0,
        seed: Optional[int] = None,
        interest_rate: int = 0,
        fee_rate: int = 0,
        withdraw_at_end: bool = True,
    ) -> SimulationResult:
        """
        Run a simulation.

        Args:
            initial_deposit: Amount of A deposited before the first step
            steps: Number of price steps
            volatility: Per-step log-return volatility
            drift: Per-step log-return drift
            seed: Random seed
            interest_rate: Per-step debt growth (18 decimals)
            fee_rate: Per-step pool fees as a share of the position (18 decimals)
            withdraw_at_end: Close the position after the last step

        Returns:
            SimulationResult with step series and metrics
        """
        strategy = self.strategy
        machine = strategy.machine
        accountant = strategy.accountant
        asset_a = machine.position.asset_a

        result = SimulationResult(
            strategy_id=machine.strategy_id,
            initial_deposit=initial_deposit,
            parameters={
                "steps": steps,
                "volatility": volatility,
                "drift": drift,
                "seed": seed,
                "interest_rate": str(interest_rate),
                "fee_rate": str(fee_rate),
            },
        )

        logger.info(f"Starting simulation: {machine.strategy_id}, {steps} steps, vol={volatility}")

        strategy.fund(initial_deposit)
        try:
            accountant.deposit(initial_deposit)
        except PairVaultError as e:
            logger.error(f"Failed to open position: {e}")
            result.success = False
            result.error_message = f"Failed to open position: {e}"
            return result

        path = self.price_path(strategy.oracle.price(asset_a), steps, volatility, drift, seed)

        for step, price in enumerate(path):
            strategy.set_price(price)
            if interest_rate:
                strategy.lending.accrue_interest(interest_rate)
            if fee_rate and machine.position.liquidity > 0:
                pool_a, pool_b = strategy.pool.quote_exit(machine.position.liquidity)
                strategy.pool.accrue_fees(pool_a * fee_rate // WAD, pool_b * fee_rate // WAD)

            rebalanced = False
            action = ""
            try:
                operation = accountant.hardwork()
                rebalanced = operation.rebalanced
                action = "rebalance" if rebalanced else "compound"
            except PairVaultError as e:
                logger.warning(f"Hardwork failed at step {step}: {e}")
                action = f"failed: {e}"

            report = accountant.reconcile()
            debt = machine.refresh_debt()
            result.points.append(
                SimulationPoint(
                    step=step,
                    price_a=price,
                    tick=strategy.pool.current_tick(),
                    invested_a=accountant.invested_assets(),
                    liquidity=machine.position.liquidity,
                    debt_b=debt.total_debt_amount,
                    health_factor=debt.health_factor,
                    ledger_clean=report.is_clean,
                    rebalanced=rebalanced,
                    action=action,
                )
            )

        if withdraw_at_end:
            try:
                closing = accountant.withdraw_all()
                result.amount_withdrawn = closing.amounts_out[0]
            except PairVaultError as e:
                logger.error(f"Failed to close position: {e}")
                result.success = False
                result.error_message = f"Failed to close position: {e}"

        metrics = result.calculate_metrics()
        logger.info(
            f"Simulation complete: {len(result.points)} points, "
            f"return={float(metrics.total_return_percent):.2f}%, rebalances={metrics.rebalance_count}"
        )
        return result
