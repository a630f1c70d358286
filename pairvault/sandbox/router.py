"""Simulated swap router."""

import logging
from typing import Callable, Dict, Optional

from pairvault.core.constants import WAD
from pairvault.engine.prices import PriceResolver
from pairvault.protocols.base import SwapRouter
from pairvault.sandbox.chain import SandboxComponent
from pairvault.sandbox.oracle import StaticPriceOracle
from pairvault.sandbox.wallet import SandboxWallet

logger = logging.getLogger(__name__)

BPS_DENOMINATOR = 10_000

# on_swap(asset_in, asset_out, amount_in, amount_out)
SwapCallback = Callable[[str, str, int, int], None]


class SimulatedRouter(SwapRouter, SandboxComponent):
    """
    Router filling swaps at oracle prices.

    fee_bps is taken from the output. fill_ratio (18 decimals) limits how
    much of each request is filled. on_swap is called after the wallet has
    been settled, which lets tests call back into the strategy.
    """

    def __init__(
        self,
        wallet: SandboxWallet,
        oracle: StaticPriceOracle,
        decimals: Dict[str, int],
        fee_bps: int = 0,
        fill_ratio: int = WAD,
        on_swap: Optional[SwapCallback] = None,
    ):
        if not 0 <= fee_bps < BPS_DENOMINATOR:
            raise ValueError(f"Invalid fee: {fee_bps} bps")
        if not 0 <= fill_ratio <= WAD:
            raise ValueError(f"Invalid fill ratio: {fill_ratio}")

        self.wallet = wallet
        self.oracle = oracle
        self.decimals = dict(decimals)
        self.fee_bps = fee_bps
        self.fill_ratio = fill_ratio
        self.on_swap = on_swap
        self.swap_count = 0
        self.fees_paid: Dict[str, int] = {}

    def _gross_out(self, asset_in: str, asset_out: str, amount_in: int) -> int:
        value = PriceResolver.token_value(amount_in, self.oracle.price(asset_in), self.decimals[asset_in])
        return PriceResolver.amount_for_value(value, self.oracle.price(asset_out), self.decimals[asset_out])

    def quote(self, asset_in: str, asset_out: str, amount_in: int) -> int:
        """Output for amount_in after the fee, before fill limits."""
        gross = self._gross_out(asset_in, asset_out, amount_in)
        return gross * (BPS_DENOMINATOR - self.fee_bps) // BPS_DENOMINATOR

    def swap(self, asset_in: str, asset_out: str, amount_in: int) -> int:
        if asset_in == asset_out:
            raise ValueError(f"Cannot swap {asset_in} into itself")
        if self.oracle.price(asset_in) <= 0 or self.oracle.price(asset_out) <= 0:
            raise RuntimeError(f"No route for {asset_in} -> {asset_out}: missing price")

        filled = amount_in * self.fill_ratio // WAD
        if filled <= 0:
            return 0

        gross = self._gross_out(asset_in, asset_out, filled)
        amount_out = gross * (BPS_DENOMINATOR - self.fee_bps) // BPS_DENOMINATOR
        self.wallet.take(asset_in, filled)
        self.wallet.mint(asset_out, amount_out)
        self.swap_count += 1

        self.fees_paid[asset_out] = self.fees_paid.get(asset_out, 0) + gross - amount_out

        logger.debug(f"Swapped {filled} {asset_in} -> {amount_out} {asset_out}")
        if self.on_swap is not None:
            self.on_swap(asset_in, asset_out, filled, amount_out)
        return amount_out

    def snapshot(self):
        return self.swap_count, dict(self.fees_paid)

    def restore(self, state) -> None:
        self.swap_count, fees_paid = state
        self.fees_paid = dict(fees_paid)
