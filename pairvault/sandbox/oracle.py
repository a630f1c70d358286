"""Static price oracle."""

from typing import Dict, Optional

from pairvault.protocols.base import PriceOracle
from pairvault.sandbox.chain import SandboxComponent


class StaticPriceOracle(PriceOracle, SandboxComponent):
    """Oracle returning configured 18-decimal prices; unknown assets price at 0."""

    def __init__(self, prices: Optional[Dict[str, int]] = None):
        self._prices: Dict[str, int] = dict(prices or {})

    def price(self, asset: str) -> int:
        return self._prices.get(asset, 0)

    def set_price(self, asset: str, price: int) -> None:
        if price < 0:
            raise ValueError(f"Negative price for {asset}: {price}")
        self._prices[asset] = price

    def snapshot(self):
        return dict(self._prices)

    def restore(self, state) -> None:
        self._prices = dict(state)
