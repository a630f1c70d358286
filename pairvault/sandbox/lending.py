"""Simulated lending market."""

import logging
from dataclasses import dataclass
from typing import Dict, List, Tuple

from pairvault.core.constants import WAD
from pairvault.engine.prices import PriceResolver
from pairvault.protocols.base import LendingAdapter, RewardAmounts
from pairvault.sandbox.chain import SandboxComponent
from pairvault.sandbox.oracle import StaticPriceOracle
from pairvault.sandbox.wallet import SandboxWallet

logger = logging.getLogger(__name__)


@dataclass
class BorrowPosition:
    """Debt and collateral of one (collateral, borrow) pair."""
    collateral: int = 0
    debt: int = 0


class SimulatedLending(LendingAdapter, SandboxComponent):
    """
    Lending market with a fixed collateral factor.

    Borrowing is limited to collateral value * collateral_factor at oracle
    prices. Repaying releases collateral pro rata to the debt repaid, and
    repaying the whole debt releases all collateral.
    """

    def __init__(
        self,
        wallet: SandboxWallet,
        oracle: StaticPriceOracle,
        decimals: Dict[str, int],
        collateral_factor: int = WAD // 2,
    ):
        if not 0 < collateral_factor < WAD:
            raise ValueError(f"Collateral factor must be in (0, 1): {collateral_factor}")

        self.wallet = wallet
        self.oracle = oracle
        self.decimals = dict(decimals)
        self.collateral_factor = collateral_factor
        self._positions: Dict[Tuple[str, str], BorrowPosition] = {}
        self._pending_rewards: Dict[str, int] = {}

    def _position(self, collateral_asset: str, borrow_asset: str) -> BorrowPosition:
        key = (collateral_asset, borrow_asset)
        if key not in self._positions:
            self._positions[key] = BorrowPosition()
        return self._positions[key]

    def quote_borrow(self, collateral_asset: str, collateral_amount: int, borrow_asset: str) -> int:
        value = PriceResolver.token_value(
            collateral_amount, self.oracle.price(collateral_asset), self.decimals[collateral_asset]
        )
        return PriceResolver.amount_for_value(
            value * self.collateral_factor // WAD,
            self.oracle.price(borrow_asset),
            self.decimals[borrow_asset],
        )

    def borrow(
        self,
        collateral_asset: str,
        collateral_amount: int,
        borrow_asset: str,
        amount_to_borrow: int,
    ) -> int:
        amount = min(amount_to_borrow, self.quote_borrow(collateral_asset, collateral_amount, borrow_asset))
        if collateral_amount <= 0 or amount <= 0:
            return 0

        self.wallet.take(collateral_asset, collateral_amount)
        position = self._position(collateral_asset, borrow_asset)
        position.collateral += collateral_amount
        position.debt += amount
        self.wallet.mint(borrow_asset, amount)

        logger.debug(f"Borrowed {amount} {borrow_asset} against {collateral_amount} {collateral_asset}")
        return amount

    def quote_repay(self, collateral_asset: str, borrow_asset: str, amount_repay: int) -> int:
        position = self._position(collateral_asset, borrow_asset)
        if position.debt <= 0:
            return 0
        repaid = min(amount_repay, position.debt)
        if repaid == position.debt:
            return position.collateral
        return position.collateral * repaid // position.debt

    def repay(self, collateral_asset: str, borrow_asset: str, amount_repay: int) -> Tuple[int, int]:
        position = self._position(collateral_asset, borrow_asset)
        repaid = min(amount_repay, position.debt)
        if repaid <= 0:
            return 0, amount_repay

        returned = self.quote_repay(collateral_asset, borrow_asset, repaid)
        self.wallet.take(borrow_asset, repaid)
        position.debt -= repaid
        position.collateral -= returned
        self.wallet.mint(collateral_asset, returned)

        logger.debug(f"Repaid {repaid} {borrow_asset}, released {returned} {collateral_asset}")
        return returned, amount_repay - repaid

    def get_debt_amount_current(self, collateral_asset: str, borrow_asset: str) -> Tuple[int, int]:
        position = self._positions.get((collateral_asset, borrow_asset))
        if position is None:
            return 0, 0
        return position.debt, position.collateral

    def accrue_interest(self, rate: int) -> None:
        """Grow every debt by rate (18 decimals) for one period."""
        for position in self._positions.values():
            position.debt += position.debt * rate // WAD

    def add_rewards(self, asset: str, amount: int) -> None:
        self._pending_rewards[asset] = self._pending_rewards.get(asset, 0) + amount

    def claim_rewards(self) -> RewardAmounts:
        claimed: List[Tuple[str, int]] = []
        for asset, amount in self._pending_rewards.items():
            if amount > 0:
                self.wallet.mint(asset, amount)
                claimed.append((asset, amount))
        self._pending_rewards = {}
        return claimed

    def snapshot(self):
        positions = {key: BorrowPosition(p.collateral, p.debt) for key, p in self._positions.items()}
        return positions, dict(self._pending_rewards)

    def restore(self, state) -> None:
        positions, rewards = state
        self._positions = {key: BorrowPosition(p.collateral, p.debt) for key, p in positions.items()}
        self._pending_rewards = dict(rewards)
