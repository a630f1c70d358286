"""Rebalancing engine components."""

from .prices import PriceResolver
from .planner import IterationPlanner, estimate_swap_amount_for_repay_swap_repay
from .ledger import BaseAmountLedger, merge_reward_amounts, render_drift_report
from .state_machine import PositionStateMachine
from .accountant import StrategyAccountant

__all__ = [
    "PriceResolver",
    "IterationPlanner",
    "estimate_swap_amount_for_repay_swap_repay",
    "BaseAmountLedger",
    "merge_reward_amounts",
    "render_drift_report",
    "PositionStateMachine",
    "StrategyAccountant",
]
