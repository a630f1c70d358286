"""Sandbox strategy assembly."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Tuple

from config import Settings, get_settings
from pairvault.core.constants import WAD
from pairvault.core.models import AssetPosition
from pairvault.engine.accountant import StrategyAccountant
from pairvault.engine.ledger import BaseAmountLedger
from pairvault.engine.state_machine import PositionStateMachine
from pairvault.sandbox.chain import SandboxChain
from pairvault.sandbox.lending import SimulatedLending
from pairvault.sandbox.oracle import StaticPriceOracle
from pairvault.sandbox.pool import SimulatedPairPool
from pairvault.sandbox.router import SimulatedRouter
from pairvault.sandbox.wallet import SandboxWallet


@dataclass
class SandboxStrategy:
    """A pair strategy wired to in-memory collaborators."""

    wallet: SandboxWallet
    oracle: StaticPriceOracle
    router: SimulatedRouter
    lending: SimulatedLending
    pool: SimulatedPairPool
    chain: SandboxChain
    ledger: BaseAmountLedger
    machine: PositionStateMachine
    accountant: StrategyAccountant

    @classmethod
    def create(
        cls,
        strategy_id: str = "sandbox",
        assets: Tuple[str, str] = ("USDC", "WETH"),
        decimals: Tuple[int, int] = (6, 18),
        prices: Tuple[int, int] = (WAD, 2000 * WAD),
        collateral_factor: int = WAD // 2,
        swap_fee_bps: int = 0,
        tick_spacing: int = 60,
        range_width: int = 10,
        liquidation_thresholds: Optional[Tuple[int, int]] = None,
        settings: Optional[Settings] = None,
    ) -> "SandboxStrategy":
        """
        Build a strategy with fresh collaborators.

        Args:
            strategy_id: Strategy instance id
            assets: (accounting asset, paired asset)
            decimals: Decimals of both assets
            prices: 18-decimal USD prices of both assets
            collateral_factor: Borrowable share of collateral value (18 decimals)
            swap_fee_bps: Router fee
            tick_spacing: Pool tick spacing
            range_width: Pool range half-width in tick spacings
            liquidation_thresholds: Dust thresholds of both assets
                (default: settings.default_liquidation_threshold for both)
            settings: Engine settings (default: cached settings)
        """
        settings = settings or get_settings()
        if liquidation_thresholds is None:
            liquidation_thresholds = (settings.default_liquidation_threshold,) * 2
        asset_a, asset_b = assets
        decimals_map = dict(zip(assets, decimals))

        wallet = SandboxWallet(owner=strategy_id)
        oracle = StaticPriceOracle(dict(zip(assets, prices)))
        router = SimulatedRouter(wallet, oracle, decimals_map, fee_bps=swap_fee_bps)
        lending = SimulatedLending(wallet, oracle, decimals_map, collateral_factor=collateral_factor)
        pool = SimulatedPairPool(
            wallet,
            asset_a,
            asset_b,
            decimals[0],
            decimals[1],
            price=Decimal(prices[0]) / Decimal(prices[1]),
            tick_spacing=tick_spacing,
            range_width=range_width,
        )
        chain = SandboxChain(wallet, oracle, router, lending, pool)

        position = AssetPosition(
            asset_a=asset_a,
            asset_b=asset_b,
            decimals_a=decimals[0],
            decimals_b=decimals[1],
            lower_tick=pool.lower_tick,
            upper_tick=pool.upper_tick,
        )
        ledger = BaseAmountLedger(strategy_id, assets, drift_tolerance=settings.ledger_drift_tolerance)
        machine = PositionStateMachine(
            strategy_id=strategy_id,
            position=position,
            pool=pool,
            lending=lending,
            router=router,
            oracle=oracle,
            wallet=wallet,
            ledger=ledger,
            scope=chain,
            liquidation_thresholds=liquidation_thresholds,
            use_pool_proportions=settings.use_pool_proportions,
            target_prop_b=settings.target_prop_b,
        )
        accountant = StrategyAccountant(machine, vault="vault", settings=settings)

        return cls(
            wallet=wallet,
            oracle=oracle,
            router=router,
            lending=lending,
            pool=pool,
            chain=chain,
            ledger=ledger,
            machine=machine,
            accountant=accountant,
        )

    def set_price(self, price_a: int, price_b: Optional[int] = None) -> None:
        """Move oracle and pool together."""
        asset_a, asset_b = self.machine.position.assets
        if price_b is None:
            price_b = self.oracle.price(asset_b)
        self.oracle.set_price(asset_a, price_a)
        self.oracle.set_price(asset_b, price_b)
        self.pool.set_price(Decimal(price_a) / Decimal(price_b))

    def fund(self, amount_a: int) -> None:
        """Vault transfer of amount_a into the strategy wallet."""
        self.wallet.mint(self.machine.position.asset_a, amount_a)

    def wallet_balances(self) -> dict:
        return {asset: self.wallet.balance_of(asset) for asset in self.ledger.entries}
