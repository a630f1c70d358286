"""Simulation result models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

import numpy as np

from pairvault.core.constants import WAD


@dataclass
class SimulationPoint:
    """
    State of the strategy after one simulation step.

    Amounts are raw token units; price_a is the 18-decimal USD price.
    """

    step: int
    price_a: int
    tick: int

    # Position state
    invested_a: int
    liquidity: int
    debt_b: int
    health_factor: int

    # Monitoring
    ledger_clean: bool = True
    rebalanced: bool = False
    action: str = ""

    def to_dict(self) -> dict:
        return {
            "step": self.step,
            "price_a": str(self.price_a),
            "tick": self.tick,
            "invested_a": str(self.invested_a),
            "liquidity": str(self.liquidity),
            "debt_b": str(self.debt_b),
            "health_factor": str(self.health_factor),
            "ledger_clean": self.ledger_clean,
            "rebalanced": self.rebalanced,
            "action": self.action,
        }


@dataclass
class SimulationMetrics:
    """Aggregated metrics from a simulation run."""

    # Returns
    total_return: int               # Final minus initial invested A
    total_return_percent: Decimal
    max_drawdown: Decimal           # Maximum drawdown of invested A, in %

    # Debt
    max_debt: int
    min_health_factor: Decimal      # As a plain ratio

    # Events
    rebalance_count: int
    drift_count: int                # Steps whose reconciliation flagged drift
    data_points: int

    def to_dict(self) -> dict:
        return {
            "total_return": str(self.total_return),
            "total_return_percent": str(self.total_return_percent),
            "max_drawdown": str(self.max_drawdown),
            "max_debt": str(self.max_debt),
            "min_health_factor": str(self.min_health_factor),
            "rebalance_count": self.rebalance_count,
            "drift_count": self.drift_count,
            "data_points": self.data_points,
        }


@dataclass
class SimulationResult:
    """
    Complete result of a pair-vault simulation.

    Contains the step series and aggregated metrics.
    """

    strategy_id: str
    initial_deposit: int

    points: List[SimulationPoint] = field(default_factory=list)
    metrics: Optional[SimulationMetrics] = None
    amount_withdrawn: int = 0

    # Status
    success: bool = True
    error_message: str = ""

    # Metadata
    created_at: Optional[datetime] = None
    parameters: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.created_at is None:
            self.created_at = datetime.now(timezone.utc)

    @property
    def invested_series(self) -> List[int]:
        return [p.invested_a for p in self.points]

    @property
    def price_series(self) -> List[float]:
        """Extract USD price series of asset A for charting."""
        return [p.price_a / WAD for p in self.points]

    def calculate_metrics(self) -> SimulationMetrics:
        """Calculate aggregated metrics from points."""
        if not self.points:
            self.metrics = SimulationMetrics(
                total_return=0,
                total_return_percent=Decimal("0"),
                max_drawdown=Decimal("0"),
                max_debt=0,
                min_health_factor=Decimal("0"),
                rebalance_count=0,
                drift_count=0,
                data_points=0,
            )
            return self.metrics

        invested = np.array([float(v) for v in self.invested_series])
        peaks = np.maximum.accumulate(invested)
        with np.errstate(divide="ignore", invalid="ignore"):
            drawdowns = np.where(peaks > 0, (peaks - invested) / peaks, 0.0)

        final = self.points[-1].invested_a
        total_return = final - self.initial_deposit
        return_pct = (
            Decimal(total_return) * 100 / Decimal(self.initial_deposit)
            if self.initial_deposit else Decimal("0")
        )

        self.metrics = SimulationMetrics(
            total_return=total_return,
            total_return_percent=return_pct,
            max_drawdown=Decimal(str(round(float(np.max(drawdowns)) * 100, 6))),
            max_debt=max(p.debt_b for p in self.points),
            min_health_factor=Decimal(min(p.health_factor for p in self.points)) / WAD,
            rebalance_count=sum(1 for p in self.points if p.rebalanced),
            drift_count=sum(1 for p in self.points if not p.ledger_clean),
            data_points=len(self.points),
        )
        return self.metrics

    def to_dict(self) -> dict:
        return {
            "strategy_id": self.strategy_id,
            "initial_deposit": str(self.initial_deposit),
            "points": [p.to_dict() for p in self.points],
            "metrics": self.metrics.to_dict() if self.metrics else None,
            "amount_withdrawn": str(self.amount_withdrawn),
            "success": self.success,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "parameters": self.parameters,
        }
