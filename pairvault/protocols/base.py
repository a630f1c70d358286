"""Collaborator interfaces consumed by the engine.

The pool, lending abstraction, swap router, price oracle and the strategy
wallet are external systems. The engine only talks to them through these
narrow request/response contracts and re-reads their state before use,
since other actors may change it between calls.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator, List, Sequence, Tuple

# (asset, amount) pairs returned by reward claims
RewardAmounts = List[Tuple[str, int]]


class PriceOracle(ABC):
    """USD price source."""

    @abstractmethod
    def price(self, asset: str) -> int:
        """Return the 18-decimal USD price of asset, or 0 when unavailable."""
        ...


class TokenWallet(ABC):
    """Token balances held by one strategy instance."""

    @abstractmethod
    def balance_of(self, asset: str) -> int:
        """Return the raw balance of asset."""
        ...

    @abstractmethod
    def transfer_out(self, asset: str, amount: int, recipient: str) -> None:
        """Send amount of asset to recipient (vault, forwarder)."""
        ...


class PairPool(ABC):
    """Concentrated-liquidity pool holding the pair position.

    Amount arrays are always ordered (asset A, asset B).
    """

    @abstractmethod
    def enter(self, amounts_desired: Sequence[int]) -> Tuple[List[int], int]:
        """Add liquidity.

        Args:
            amounts_desired: Maximum amounts of A and B to provide

        Returns:
            Tuple of (amounts consumed, liquidity units minted)
        """
        ...

    @abstractmethod
    def exit(self, liquidity: int, emergency: bool = False) -> List[int]:
        """Remove liquidity and return the amounts received."""
        ...

    @abstractmethod
    def quote_exit(self, liquidity: int) -> List[int]:
        """Amounts that exit(liquidity) would return, without side effects."""
        ...

    @abstractmethod
    def current_tick_ratio(self) -> int:
        """Share of B in the value of new liquidity at the current tick (18 decimals)."""
        ...

    @abstractmethod
    def current_tick(self) -> int:
        """Current pool tick."""
        ...

    @abstractmethod
    def select_range(self) -> Tuple[int, int]:
        """Choose and apply a new (lower_tick, upper_tick) around the current tick.

        Only valid while the strategy holds no liquidity.
        """
        ...

    def claim_rewards(self) -> RewardAmounts:
        """Claim accrued fees/rewards into the strategy wallet.

        Override this method if the pool pays rewards.
        """
        return []


class LendingAdapter(ABC):
    """Lending abstraction used to borrow B against A collateral."""

    @abstractmethod
    def borrow(
        self,
        collateral_asset: str,
        collateral_amount: int,
        borrow_asset: str,
        amount_to_borrow: int,
    ) -> int:
        """Pledge collateral and borrow; returns the amount actually borrowed."""
        ...

    @abstractmethod
    def repay(
        self,
        collateral_asset: str,
        borrow_asset: str,
        amount_repay: int,
    ) -> Tuple[int, int]:
        """Repay debt.

        Returns:
            Tuple of (collateral returned, borrowed asset left over and returned)
        """
        ...

    @abstractmethod
    def get_debt_amount_current(self, collateral_asset: str, borrow_asset: str) -> Tuple[int, int]:
        """Return (debt amount, collateral amount) for the pair."""
        ...

    @abstractmethod
    def quote_repay(self, collateral_asset: str, borrow_asset: str, amount_repay: int) -> int:
        """Estimate the collateral returned by repaying amount_repay."""
        ...

    @abstractmethod
    def quote_borrow(self, collateral_asset: str, collateral_amount: int, borrow_asset: str) -> int:
        """Maximum amount of borrow_asset obtainable for collateral_amount."""
        ...

    def claim_rewards(self) -> RewardAmounts:
        """Claim lending incentives into the strategy wallet.

        Override this method if the lending platform pays rewards.
        """
        return []


class SwapRouter(ABC):
    """Swap/liquidation router."""

    @abstractmethod
    def swap(self, asset_in: str, asset_out: str, amount_in: int) -> int:
        """Swap amount_in of asset_in.

        May fill partially; callers re-check the resulting wallet balance
        instead of trusting the returned amount.
        """
        ...


class TransactionScope(ABC):
    """All-or-nothing execution boundary of the host environment."""

    @abstractmethod
    @contextmanager
    def atomic(self) -> Iterator[None]:
        """Run the enclosed calls atomically; on exception every effect is undone."""
        ...
