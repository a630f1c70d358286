"""Simulated concentrated-liquidity pool.

Holds a single position of the strategy and uses the standard sqrt-price
liquidity formulas with ticks at base 1.0001:

    below range:  A = L * (sb - sa) / (sa * sb),  B = 0
    in range:     A = L * (sb - sp) / (sp * sb),  B = L * (sp - sa)
    above range:  A = 0,                          B = L * (sb - sa)

Asset A plays token0 and asset B token1, so the pool price is raw B per
raw A.
"""

import logging
import math
from decimal import ROUND_CEILING, ROUND_FLOOR, Decimal, localcontext
from typing import Dict, List, Sequence, Tuple

from pairvault.core.constants import WAD
from pairvault.protocols.base import PairPool, RewardAmounts
from pairvault.sandbox.chain import SandboxComponent
from pairvault.sandbox.wallet import SandboxWallet

logger = logging.getLogger(__name__)

TICK_BASE = Decimal("1.0001")
PRECISION = 60


def _floor(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def _ceil(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_CEILING))


class SimulatedPairPool(PairPool, SandboxComponent):
    """
    In-memory pair pool.

    Args:
        wallet: Strategy wallet the pool pulls from and pays into
        asset_a: Accounting asset (token0)
        asset_b: Paired asset (token1)
        decimals_a: Decimals of asset_a
        decimals_b: Decimals of asset_b
        price: Human price of one A in B
        tick_spacing: Tick alignment of range bounds
        range_width: Range half-width, in tick spacings
    """

    def __init__(
        self,
        wallet: SandboxWallet,
        asset_a: str,
        asset_b: str,
        decimals_a: int,
        decimals_b: int,
        price: Decimal,
        tick_spacing: int = 60,
        range_width: int = 10,
    ):
        if tick_spacing <= 0 or range_width <= 0:
            raise ValueError("tick_spacing and range_width must be positive")

        self.wallet = wallet
        self.asset_a = asset_a
        self.asset_b = asset_b
        self.decimals_a = decimals_a
        self.decimals_b = decimals_b
        self.tick_spacing = tick_spacing
        self.range_width = range_width

        self.sqrt_price = Decimal(0)
        self.set_price(price)
        self.liquidity = 0
        self.lower_tick, self.upper_tick = self._range_around(self.current_tick())
        self._pending_fees: Dict[str, int] = {}

    # Price

    def set_price(self, price: Decimal) -> None:
        """Move the pool to a human price (B per A)."""
        price = Decimal(price)
        if price <= 0:
            raise ValueError(f"Pool price must be positive: {price}")
        with localcontext() as ctx:
            ctx.prec = PRECISION
            raw = price * Decimal(10) ** (self.decimals_b - self.decimals_a)
            self.sqrt_price = raw.sqrt()

    @property
    def price(self) -> Decimal:
        """Human price of one A in B."""
        with localcontext() as ctx:
            ctx.prec = PRECISION
            raw = self.sqrt_price * self.sqrt_price
            return raw / Decimal(10) ** (self.decimals_b - self.decimals_a)

    @staticmethod
    def tick_to_sqrt_price(tick: int) -> Decimal:
        with localcontext() as ctx:
            ctx.prec = PRECISION
            return TICK_BASE ** (Decimal(tick) / 2)

    def current_tick(self) -> int:
        with localcontext() as ctx:
            ctx.prec = PRECISION
            return math.floor((self.sqrt_price * self.sqrt_price).ln() / TICK_BASE.ln())

    def _range_around(self, tick: int) -> Tuple[int, int]:
        aligned = tick // self.tick_spacing * self.tick_spacing
        lower = aligned - self.range_width * self.tick_spacing
        upper = aligned + (self.range_width + 1) * self.tick_spacing
        return lower, upper

    # Liquidity math

    def _bounds(self) -> Tuple[Decimal, Decimal]:
        return self.tick_to_sqrt_price(self.lower_tick), self.tick_to_sqrt_price(self.upper_tick)

    def _amounts_for_liquidity(self, liquidity: Decimal) -> Tuple[Decimal, Decimal]:
        sa, sb = self._bounds()
        sp = self.sqrt_price
        with localcontext() as ctx:
            ctx.prec = PRECISION
            if sp <= sa:
                return liquidity * (sb - sa) / (sa * sb), Decimal(0)
            if sp >= sb:
                return Decimal(0), liquidity * (sb - sa)
            return liquidity * (sb - sp) / (sp * sb), liquidity * (sp - sa)

    def _liquidity_for_amounts(self, amount_a: int, amount_b: int) -> Decimal:
        sa, sb = self._bounds()
        sp = self.sqrt_price
        a, b = Decimal(amount_a), Decimal(amount_b)
        with localcontext() as ctx:
            ctx.prec = PRECISION
            if sp <= sa:
                return a * sa * sb / (sb - sa)
            if sp >= sb:
                return b / (sb - sa)
            return min(a * sp * sb / (sb - sp), b / (sp - sa))

    # PairPool

    def enter(self, amounts_desired: Sequence[int]) -> Tuple[List[int], int]:
        if self.lower_tick >= self.upper_tick:
            raise RuntimeError("Pool range is not set")

        desired_a = min(amounts_desired[0], self.wallet.balance_of(self.asset_a))
        desired_b = min(amounts_desired[1], self.wallet.balance_of(self.asset_b))
        liquidity = _floor(self._liquidity_for_amounts(desired_a, desired_b))
        if liquidity <= 0:
            return [0, 0], 0

        exact_a, exact_b = self._amounts_for_liquidity(Decimal(liquidity))
        consumed = [min(_ceil(exact_a), desired_a), min(_ceil(exact_b), desired_b)]

        self.wallet.take(self.asset_a, consumed[0])
        self.wallet.take(self.asset_b, consumed[1])
        self.liquidity += liquidity

        logger.debug(f"Pool enter: {consumed} -> liquidity {liquidity}")
        return consumed, liquidity

    def quote_exit(self, liquidity: int) -> List[int]:
        liquidity = min(liquidity, self.liquidity)
        if liquidity <= 0:
            return [0, 0]
        exact_a, exact_b = self._amounts_for_liquidity(Decimal(liquidity))
        return [_floor(exact_a), _floor(exact_b)]

    def exit(self, liquidity: int, emergency: bool = False) -> List[int]:
        amounts = self.quote_exit(liquidity)
        self.liquidity -= min(liquidity, self.liquidity)
        self.wallet.mint(self.asset_a, amounts[0])
        self.wallet.mint(self.asset_b, amounts[1])
        if emergency:
            self._pending_fees = {}
        return amounts

    def current_tick_ratio(self) -> int:
        sa, sb = self._bounds()
        if self.sqrt_price <= sa:
            return 0
        if self.sqrt_price >= sb:
            return WAD

        amount_a, amount_b = self._amounts_for_liquidity(Decimal(WAD))
        with localcontext() as ctx:
            ctx.prec = PRECISION
            value_a_in_b = amount_a * self.sqrt_price * self.sqrt_price
            return _floor(amount_b * WAD / (value_a_in_b + amount_b))

    def select_range(self) -> Tuple[int, int]:
        if self.liquidity > 0:
            raise RuntimeError("Cannot move the range while holding liquidity")
        self.lower_tick, self.upper_tick = self._range_around(self.current_tick())
        logger.debug(f"Pool range set to [{self.lower_tick}, {self.upper_tick})")
        return self.lower_tick, self.upper_tick

    # Fees

    def accrue_fees(self, amount_a: int, amount_b: int) -> None:
        """Add trading fees earned by the position, paid on claim."""
        for asset, amount in ((self.asset_a, amount_a), (self.asset_b, amount_b)):
            if amount > 0:
                self._pending_fees[asset] = self._pending_fees.get(asset, 0) + amount

    def claim_rewards(self) -> RewardAmounts:
        claimed = []
        for asset, amount in self._pending_fees.items():
            if amount > 0:
                self.wallet.mint(asset, amount)
                claimed.append((asset, amount))
        self._pending_fees = {}
        return claimed

    def snapshot(self):
        return (
            self.sqrt_price,
            self.liquidity,
            self.lower_tick,
            self.upper_tick,
            dict(self._pending_fees),
        )

    def restore(self, state) -> None:
        self.sqrt_price, self.liquidity, self.lower_tick, self.upper_tick, fees = state
        self._pending_fees = dict(fees)
