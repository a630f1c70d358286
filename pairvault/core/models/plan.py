"""Iteration plan models.

A rebalance plan is one of three shapes, each carrying only the legs it needs:

    SwapOnlyPlan        swap
    SwapRepayPlan       swap -> repay
    RepaySwapRepayPlan  repay -> swap -> repay

Plans are built fresh for every call and consumed once.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

from pairvault.core.constants import INDEX_ASSET_A, INDEX_ASSET_B, WAD


class PlanKind(Enum):
    """Shape of a rebalance instruction set."""
    SWAP_REPAY = 0
    REPAY_SWAP_REPAY = 1
    SWAP_ONLY = 2


@dataclass(frozen=True)
class IterationPlanInput:
    """
    Immutable per-call planner parameters.

    assets are the pair identifiers, prices are 18-decimal USD prices,
    decimals are token decimal digits,
    prop_b is the target share of asset B in the position value
    (0 = all A, WAD = all B). Arrays follow pair order: A first, B second.
    """

    assets: Tuple[str, str]
    prices: Tuple[int, int]
    decimals: Tuple[int, int]
    prop_b: int
    liquidation_thresholds: Tuple[int, int] = (0, 0)
    use_pool_proportions: bool = False
    pool_prop_b: Optional[int] = None   # Supplied by the caller from the pool tick ratio

    def __post_init__(self):
        if len(self.assets) != 2 or len(self.prices) != 2 or len(self.decimals) != 2 or len(self.liquidation_thresholds) != 2:
            raise ValueError("Plan input arrays must hold exactly two entries (A, B)")
        if not 0 <= self.prop_b <= WAD:
            raise ValueError(f"prop_b out of range: {self.prop_b}")
        if self.pool_prop_b is not None and not 0 <= self.pool_prop_b <= WAD:
            raise ValueError(f"pool_prop_b out of range: {self.pool_prop_b}")
        if any(p < 0 for p in self.prices):
            raise ValueError(f"Negative price: {self.prices}")

    @property
    def asset_a(self) -> str:
        return self.assets[INDEX_ASSET_A]

    @property
    def asset_b(self) -> str:
        return self.assets[INDEX_ASSET_B]

    @property
    def price_a(self) -> int:
        return self.prices[INDEX_ASSET_A]

    @property
    def price_b(self) -> int:
        return self.prices[INDEX_ASSET_B]

    @property
    def decimals_a(self) -> int:
        return self.decimals[INDEX_ASSET_A]

    @property
    def decimals_b(self) -> int:
        return self.decimals[INDEX_ASSET_B]

    @property
    def threshold_a(self) -> int:
        return self.liquidation_thresholds[INDEX_ASSET_A]

    @property
    def threshold_b(self) -> int:
        return self.liquidation_thresholds[INDEX_ASSET_B]


@dataclass(frozen=True)
class SwapInstruction:
    """Swap amount_in of asset_in into asset_out."""
    asset_in: str
    asset_out: str
    amount_in: int

    def to_dict(self) -> dict:
        return {
            "asset_in": self.asset_in,
            "asset_out": self.asset_out,
            "amount_in": str(self.amount_in),
        }


@dataclass(frozen=True)
class RepayInstruction:
    """Repay amount of the borrowed asset."""
    asset: str
    amount: int

    def to_dict(self) -> dict:
        return {"asset": self.asset, "amount": str(self.amount)}


class _PlanLegs:
    """Accessors shared by all plan shapes."""

    swap: Optional[SwapInstruction]

    @property
    def swap_amount_in(self) -> int:
        return self.swap.amount_in if self.swap else 0

    @property
    def asset_in(self) -> Optional[str]:
        return self.swap.asset_in if self.swap else None

    @property
    def asset_out(self) -> Optional[str]:
        return self.swap.asset_out if self.swap else None

    @property
    def repays(self) -> Tuple[RepayInstruction, ...]:
        return ()

    @property
    def is_noop(self) -> bool:
        return self.swap is None and not self.repays

    def to_dict(self) -> dict:
        return {
            "plan_kind": self.kind.name,
            "swap": self.swap.to_dict() if self.swap else None,
            "repays": [r.to_dict() for r in self.repays],
        }


@dataclass(frozen=True)
class SwapOnlyPlan(_PlanLegs):
    """Swap to reach the target proportion, no debt change."""
    swap: Optional[SwapInstruction] = None

    @property
    def kind(self) -> PlanKind:
        return PlanKind.SWAP_ONLY


@dataclass(frozen=True)
class SwapRepayPlan(_PlanLegs):
    """Swap first, then repay the forced amount."""
    repay: RepayInstruction
    swap: Optional[SwapInstruction] = None

    @property
    def kind(self) -> PlanKind:
        return PlanKind.SWAP_REPAY

    @property
    def repays(self) -> Tuple[RepayInstruction, ...]:
        return (self.repay,)


@dataclass(frozen=True)
class RepaySwapRepayPlan(_PlanLegs):
    """
    Repay with the B on hand, swap A into B, repay again.

    second_repay covers the part of the forced amount the on-hand B could not
    repay; after a full swap it may also close the estimated remainder.
    Debt beyond that is left for a later iteration.
    """
    first_repay: RepayInstruction
    swap: Optional[SwapInstruction] = None
    second_repay: Optional[RepayInstruction] = None

    @property
    def kind(self) -> PlanKind:
        return PlanKind.REPAY_SWAP_REPAY

    @property
    def repays(self) -> Tuple[RepayInstruction, ...]:
        if self.second_repay is None:
            return (self.first_repay,)
        return (self.first_repay, self.second_repay)


RebalancePlan = Union[SwapOnlyPlan, SwapRepayPlan, RepaySwapRepayPlan]


@dataclass(frozen=True)
class SwapEstimate:
    """Closed-form swap estimate for the repay-swap-repay shape."""
    swap_amount_a: int
    full_swap: bool
    second_repay_b: int = 0
