"""Pytest configuration and fixtures."""

from typing import Dict

import pytest

from config import Settings
from pairvault.core.constants import WAD
from pairvault.core.models import IterationPlanInput
from pairvault.sandbox import SandboxStrategy

UNIT = 10**18       # One whole token with 18 decimals
USDC = 10**6        # One whole token with 6 decimals


def make_plan_input(
    prop_b: int = WAD // 2,
    prices=(WAD, WAD),
    decimals=(18, 18),
    thresholds=(0, 0),
    assets=("A", "B"),
    use_pool_proportions: bool = False,
    pool_prop_b=None,
) -> IterationPlanInput:
    """Create planner input with sensible defaults."""
    return IterationPlanInput(
        assets=assets,
        prices=prices,
        decimals=decimals,
        prop_b=prop_b,
        liquidation_thresholds=thresholds,
        use_pool_proportions=use_pool_proportions,
        pool_prop_b=pool_prop_b,
    )


def ledger_matches_wallet(strategy: SandboxStrategy) -> bool:
    """Check base amounts equal wallet balances for every tracked asset."""
    balances: Dict[str, int] = strategy.wallet_balances()
    return all(strategy.ledger.base_amount(asset) == balance for asset, balance in balances.items())


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Engine settings isolated from the environment."""
    return Settings(
        storage_dir=tmp_path / "store",
        default_liquidation_threshold=0,
        use_pool_proportions=True,
        withdraw_liquidity_margin_pct=101,
        max_withdraw_iterations=5,
        ledger_drift_tolerance=0,
    )


@pytest.fixture
def flat_strategy(settings) -> SandboxStrategy:
    """USDC/USDT strategy at equal prices, 6 decimals on both sides."""
    return SandboxStrategy.create(
        strategy_id="usdc-usdt",
        assets=("USDC", "USDT"),
        decimals=(6, 6),
        prices=(WAD, WAD),
        settings=settings,
    )


@pytest.fixture
def funded_strategy(flat_strategy) -> SandboxStrategy:
    """Flat strategy with 1000 USDC deposited."""
    flat_strategy.fund(1000 * USDC)
    flat_strategy.accountant.deposit(1000 * USDC)
    return flat_strategy
