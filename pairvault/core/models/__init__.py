"""Core data models for the pair-vault engine."""

from .position import AssetPosition, DebtStatus, PositionState
from .plan import (
    IterationPlanInput,
    PlanKind,
    RebalancePlan,
    RepayInstruction,
    RepaySwapRepayPlan,
    SwapEstimate,
    SwapInstruction,
    SwapOnlyPlan,
    SwapRepayPlan,
)
from .ledger import AssetDrift, DriftReport
from .execution import ExecutionResult, OperationResult

__all__ = [
    "AssetPosition",
    "DebtStatus",
    "PositionState",
    "IterationPlanInput",
    "PlanKind",
    "RebalancePlan",
    "RepayInstruction",
    "RepaySwapRepayPlan",
    "SwapEstimate",
    "SwapInstruction",
    "SwapOnlyPlan",
    "SwapRepayPlan",
    "AssetDrift",
    "DriftReport",
    "ExecutionResult",
    "OperationResult",
]
