"""Base-amount ledger reporting models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional


@dataclass(frozen=True)
class AssetDrift:
    """Difference between the ledger and the wallet for one asset."""
    asset: str
    base_amount: int
    wallet_balance: int
    tolerance: int

    @property
    def drift(self) -> int:
        """Positive when the wallet holds more than the ledger attributes."""
        return self.wallet_balance - self.base_amount

    @property
    def exceeds_tolerance(self) -> bool:
        return abs(self.drift) > self.tolerance

    def to_dict(self) -> dict:
        return {
            "asset": self.asset,
            "base_amount": str(self.base_amount),
            "wallet_balance": str(self.wallet_balance),
            "drift": str(self.drift),
            "tolerance": str(self.tolerance),
            "exceeds_tolerance": self.exceeds_tolerance,
        }


@dataclass
class DriftReport:
    """Reconciliation of base amounts against wallet balances."""
    strategy_id: str
    entries: List[AssetDrift] = field(default_factory=list)
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if self.created_at is None:
            self.created_at = datetime.now(timezone.utc)

    @property
    def flagged(self) -> List[AssetDrift]:
        """Entries whose drift exceeds their tolerance."""
        return [e for e in self.entries if e.exceeds_tolerance]

    @property
    def is_clean(self) -> bool:
        return not self.flagged

    def to_dict(self) -> dict:
        return {
            "strategy_id": self.strategy_id,
            "entries": [e.to_dict() for e in self.entries],
            "is_clean": self.is_clean,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
