"""Pair position and debt models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple

from pairvault.core.constants import HEALTH_FACTOR_NO_DEBT, INDEX_ASSET_A, INDEX_ASSET_B


class PositionState(Enum):
    """Rebalance lifecycle of a pair position."""
    IN_RANGE = "in_range"
    NEEDS_REBALANCE = "needs_rebalance"  # Pool tick left [lower_tick, upper_tick)
    REBALANCING = "rebalancing"          # Swap/repay/pool re-entry in flight


@dataclass
class AssetPosition:
    """
    One strategy's view of a pair position.

    asset_a is the accounting asset and is always index 0 in amount arrays;
    asset_b is the paired asset that is borrowed against asset_a collateral.
    Ordering is fixed at construction and never inferred from token identity.
    """

    asset_a: str
    asset_b: str
    decimals_a: int
    decimals_b: int

    # On-hand wallet balances (raw units), refreshed before use
    balance_a: int = 0
    balance_b: int = 0

    # Pool liquidity units held and the current range
    liquidity: int = 0
    lower_tick: int = 0
    upper_tick: int = 0

    def __post_init__(self):
        if self.asset_a == self.asset_b:
            raise ValueError(f"Pair assets must differ: {self.asset_a}")
        if self.lower_tick > self.upper_tick:
            raise ValueError(f"Invalid tick range: {self.lower_tick} > {self.upper_tick}")

    @property
    def assets(self) -> Tuple[str, str]:
        """Assets in amount-array order."""
        return (self.asset_a, self.asset_b)

    @property
    def decimals(self) -> Tuple[int, int]:
        return (self.decimals_a, self.decimals_b)

    @property
    def balances(self) -> Tuple[int, int]:
        return (self.balance_a, self.balance_b)

    def index_of(self, asset: str) -> int:
        """Index of asset in amount arrays."""
        if asset == self.asset_a:
            return INDEX_ASSET_A
        if asset == self.asset_b:
            return INDEX_ASSET_B
        raise ValueError(f"Asset {asset} is not part of pair {self.asset_a}/{self.asset_b}")

    def in_range(self, tick: int) -> bool:
        """Check if tick lies inside the position range."""
        return self.lower_tick <= tick < self.upper_tick

    def to_dict(self) -> dict:
        return {
            "asset_a": self.asset_a,
            "asset_b": self.asset_b,
            "decimals_a": self.decimals_a,
            "decimals_b": self.decimals_b,
            "balance_a": str(self.balance_a),
            "balance_b": str(self.balance_b),
            "liquidity": str(self.liquidity),
            "lower_tick": self.lower_tick,
            "upper_tick": self.upper_tick,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AssetPosition":
        return cls(
            asset_a=data["asset_a"],
            asset_b=data["asset_b"],
            decimals_a=int(data["decimals_a"]),
            decimals_b=int(data["decimals_b"]),
            balance_a=int(data.get("balance_a", "0")),
            balance_b=int(data.get("balance_b", "0")),
            liquidity=int(data.get("liquidity", "0")),
            lower_tick=int(data.get("lower_tick", 0)),
            upper_tick=int(data.get("upper_tick", 0)),
        )


@dataclass
class DebtStatus:
    """
    Debt of asset_b backed by asset_a collateral.

    Debt is opened by borrowing and reduced only by explicit repay; it is never
    netted against wallet balances.
    """

    total_debt_amount: int = 0          # asset_b owed
    total_collateral_amount: int = 0    # asset_a pledged
    health_factor: int = HEALTH_FACTOR_NO_DEBT  # 18-decimal collateral/debt value ratio
    updated_at: Optional[datetime] = field(default=None)

    def __post_init__(self):
        if self.updated_at is None:
            self.updated_at = datetime.now(timezone.utc)

    @property
    def has_debt(self) -> bool:
        return self.total_debt_amount > 0

    def to_dict(self) -> dict:
        return {
            "total_debt_amount": str(self.total_debt_amount),
            "total_collateral_amount": str(self.total_collateral_amount),
            "health_factor": str(self.health_factor),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DebtStatus":
        return cls(
            total_debt_amount=int(data.get("total_debt_amount", "0")),
            total_collateral_amount=int(data.get("total_collateral_amount", "0")),
            health_factor=int(data.get("health_factor", str(HEALTH_FACTOR_NO_DEBT))),
            updated_at=datetime.fromisoformat(data["updated_at"]) if data.get("updated_at") else None,
        )
