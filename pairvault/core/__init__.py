"""Core module - models, constants and exceptions."""

from .models import (
    AssetPosition,
    DebtStatus,
    PositionState,
    IterationPlanInput,
    PlanKind,
    RebalancePlan,
    RepayInstruction,
    RepaySwapRepayPlan,
    SwapEstimate,
    SwapInstruction,
    SwapOnlyPlan,
    SwapRepayPlan,
    DriftReport,
    ExecutionResult,
    OperationResult,
)
from .constants import WAD, HEALTH_FACTOR_NO_DEBT
from .exceptions import (
    PairVaultError,
    PositionLockedError,
    LedgerUnderflowError,
    InsufficientBalanceError,
)

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
    "DriftReport",
    "ExecutionResult",
    "OperationResult",
    "WAD",
    "HEALTH_FACTOR_NO_DEBT",
    "PairVaultError",
    "PositionLockedError",
    "LedgerUnderflowError",
    "InsufficientBalanceError",
]
