"""Results of executing plans and top-level operations."""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .plan import PlanKind


@dataclass
class ExecutionResult:
    """
    Observed effect of one executed plan.

    All amounts are measured from wallet balances around each external call,
    never taken from the planned values.
    """
    plan_kind: PlanKind
    swapped_in: int = 0
    swapped_out: int = 0
    asset_in: Optional[str] = None
    asset_out: Optional[str] = None
    repaid_b: int = 0
    collateral_returned_a: int = 0

    def to_dict(self) -> dict:
        return {
            "plan_kind": self.plan_kind.name,
            "swapped_in": str(self.swapped_in),
            "swapped_out": str(self.swapped_out),
            "asset_in": self.asset_in,
            "asset_out": self.asset_out,
            "repaid_b": str(self.repaid_b),
            "collateral_returned_a": str(self.collateral_returned_a),
        }


@dataclass
class OperationResult:
    """Summary of a top-level deposit/withdraw/rebalance/hardwork call."""
    operation: str
    strategy_id: str
    executions: List[ExecutionResult] = field(default_factory=list)
    amounts_out: Tuple[int, int] = (0, 0)     # Sent to the vault (A, B)
    liquidity_delta: int = 0
    debt_before: int = 0
    debt_after: int = 0
    rewards: List[Tuple[str, int]] = field(default_factory=list)
    rebalanced: bool = False

    @property
    def debt_repaid(self) -> int:
        return max(0, self.debt_before - self.debt_after)

    def to_dict(self) -> dict:
        return {
            "operation": self.operation,
            "strategy_id": self.strategy_id,
            "executions": [e.to_dict() for e in self.executions],
            "amounts_out": [str(a) for a in self.amounts_out],
            "liquidity_delta": str(self.liquidity_delta),
            "debt_before": str(self.debt_before),
            "debt_after": str(self.debt_after),
            "rewards": [[asset, str(amount)] for asset, amount in self.rewards],
            "rebalanced": self.rebalanced,
        }
