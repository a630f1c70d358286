"""Base-amount ledger.

Tracks, per asset, the quantity the strategy considers its own. Wallet
balances can transiently hold borrowed-but-unused or freshly received funds
mid-operation; the ledger only moves when an operation records what
actually happened.
"""

import logging
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, Mapping, Optional, Sequence, Tuple

from rich.table import Table
from rich.text import Text

from pairvault.core.exceptions import LedgerUnderflowError
from pairvault.core.models import AssetDrift, DriftReport
from pairvault.protocols.base import RewardAmounts

logger = logging.getLogger(__name__)


class BaseAmountLedger:
    """
    Per-asset base amounts of one strategy instance.

    Every update is validated as a whole before it is applied, so a rejected
    update changes nothing. Use batch() to make several updates commit
    together.
    """

    def __init__(
        self,
        strategy_id: str,
        assets: Sequence[str],
        drift_tolerance: int = 0,
    ):
        """
        Initialize ledger.

        Args:
            strategy_id: Owning strategy instance
            assets: Assets in amount-array order (accounting asset first)
            drift_tolerance: Minimum drift flagged by reconcile()
        """
        if not assets:
            raise ValueError("Ledger needs at least one asset")
        if len(set(assets)) != len(assets):
            raise ValueError(f"Duplicate ledger assets: {list(assets)}")

        self.strategy_id = strategy_id
        self.assets: Tuple[str, ...] = tuple(assets)
        self.drift_tolerance = max(0, drift_tolerance)
        self._amounts: Dict[str, int] = {asset: 0 for asset in self.assets}

    # Accessors

    def base_amount(self, asset: str) -> int:
        return self._amounts.get(asset, 0)

    @property
    def entries(self) -> Dict[str, int]:
        """Copy of all base amounts, including reward assets."""
        return dict(self._amounts)

    def load(self, entries: Mapping[str, int]) -> None:
        """Replace all base amounts, e.g. from a stored snapshot."""
        if any(amount < 0 for amount in entries.values()):
            raise ValueError(f"Negative base amount in snapshot: {dict(entries)}")
        amounts = {asset: 0 for asset in self.assets}
        amounts.update({asset: int(amount) for asset, amount in entries.items()})
        self._amounts = amounts

    # Updates

    def receive(self, asset: str, amount: int) -> None:
        """Funds that entered the wallet from outside (vault deposit, inflow)."""
        self._apply({asset: amount}, "receive")

    def spend(self, asset: str, amount: int) -> None:
        """Funds that left the wallet to the vault or a forwarder."""
        self._apply({asset: -amount}, "spend")

    def record_swap(self, asset_in: str, amount_in: int, asset_out: str, amount_out: int) -> None:
        """Amounts actually given and received by a swap."""
        self._apply(self._merge([(asset_in, -amount_in), (asset_out, amount_out)]), "swap")

    def record_deposit(
        self,
        assets_consumed: Sequence[int],
        amounts_borrowed: Sequence[int],
        collateral_spent: int,
        accounting_index: int = 0,
    ) -> None:
        """
        Record a deposit into the pair position.

        Non-accounting assets gain what was borrowed and lose what the pool
        consumed. The accounting asset loses collateral_spent, i.e. the
        collateral pledged plus the part consumed by the pool.

        Args:
            assets_consumed: Amounts taken by the pool, in asset order
            amounts_borrowed: Amounts borrowed, in asset order
            collateral_spent: Accounting asset that left the wallet
            accounting_index: Index of the accounting asset
        """
        self._check_arrays(assets_consumed, amounts_borrowed)
        deltas = {}
        for i, asset in enumerate(self.assets):
            if i == accounting_index:
                deltas[asset] = -collateral_spent
            else:
                deltas[asset] = amounts_borrowed[i] - assets_consumed[i]
        self._apply(deltas, "deposit")

    def record_withdraw(
        self,
        withdrawn_amounts: Sequence[int],
        repaid_amounts: Sequence[int],
        accounting_index: int = 0,
        collateral_received_plus_withdrawn: int = 0,
    ) -> None:
        """
        Record a withdrawal from the pair position.

        Mirror of record_deposit: non-accounting assets gain what the pool
        returned and lose what was repaid; the accounting asset gains the
        returned collateral plus its own withdrawn amount.
        """
        self._check_arrays(withdrawn_amounts, repaid_amounts)
        deltas = {}
        for i, asset in enumerate(self.assets):
            if i == accounting_index:
                deltas[asset] = collateral_received_plus_withdrawn
            else:
                deltas[asset] = withdrawn_amounts[i] - repaid_amounts[i]
        self._apply(deltas, "withdraw")

    def record_rewards_claim(
        self,
        claimed_by_pool: Iterable[Tuple[str, int]],
        claimed_by_lending: Iterable[Tuple[str, int]],
    ) -> RewardAmounts:
        """
        Add claimed rewards to base amounts.

        Duplicate assets from both sources are summed and zero amounts are
        dropped.

        Returns:
            Merged (asset, amount) list in first-seen order
        """
        rewards = merge_reward_amounts(claimed_by_pool, claimed_by_lending)
        if rewards:
            self._apply(dict(rewards), "rewards")
        return rewards

    @contextmanager
    def batch(self) -> Iterator["BaseAmountLedger"]:
        """
        Group updates so they commit together.

        On any exception inside the block the ledger is restored to its
        state at entry and the exception propagates.
        """
        snapshot = dict(self._amounts)
        try:
            yield self
        except BaseException:
            self._amounts = snapshot
            raise

    # Reconciliation

    def reconcile(
        self,
        balances: Mapping[str, int],
        thresholds: Optional[Mapping[str, int]] = None,
    ) -> DriftReport:
        """
        Compare base amounts with wallet balances.

        Drift beyond max(threshold, drift_tolerance) is flagged and logged.
        The ledger itself is never rewritten here.
        """
        thresholds = thresholds or {}
        assets = list(self._amounts)
        assets += [asset for asset in balances if asset not in self._amounts]

        entries = [
            AssetDrift(
                asset=asset,
                base_amount=self.base_amount(asset),
                wallet_balance=int(balances.get(asset, 0)),
                tolerance=max(int(thresholds.get(asset, 0)), self.drift_tolerance),
            )
            for asset in assets
        ]
        report = DriftReport(strategy_id=self.strategy_id, entries=entries)

        for entry in report.flagged:
            logger.warning(
                f"Ledger drift on {self.strategy_id}/{entry.asset}: "
                f"base={entry.base_amount} wallet={entry.wallet_balance} drift={entry.drift:+d}"
            )
        return report

    def to_dict(self) -> dict:
        return {
            "strategy_id": self.strategy_id,
            "assets": list(self.assets),
            "entries": {asset: str(amount) for asset, amount in self._amounts.items()},
        }

    # Internals

    def _check_arrays(self, *arrays: Sequence[int]) -> None:
        for array in arrays:
            if len(array) != len(self.assets):
                raise ValueError(f"Expected {len(self.assets)} amounts, got {len(array)}")

    @staticmethod
    def _merge(pairs: Iterable[Tuple[str, int]]) -> Dict[str, int]:
        merged: Dict[str, int] = {}
        for asset, amount in pairs:
            merged[asset] = merged.get(asset, 0) + amount
        return merged

    def _apply(self, deltas: Mapping[str, int], reason: str) -> None:
        for asset, delta in deltas.items():
            current = self._amounts.get(asset, 0)
            if current + delta < 0:
                raise LedgerUnderflowError(asset, current, delta)

        for asset, delta in deltas.items():
            if delta:
                self._amounts[asset] = self._amounts.get(asset, 0) + delta

        logger.debug(f"Ledger {self.strategy_id} {reason}: {dict(deltas)}")


def merge_reward_amounts(*sources: Iterable[Tuple[str, int]]) -> RewardAmounts:
    """Sum duplicate assets across reward sources and drop zero amounts."""
    merged: Dict[str, int] = {}
    for source in sources:
        for asset, amount in source:
            merged[asset] = merged.get(asset, 0) + amount
    return [(asset, amount) for asset, amount in merged.items() if amount != 0]


def render_drift_report(report: DriftReport) -> Table:
    """Build a rich table of a drift report for operators."""
    table = Table(
        title=f"Ledger drift: {report.strategy_id}",
        show_header=True,
        header_style="bold orange1",
        border_style="dim",
        padding=(0, 1),
    )
    table.add_column("Asset", style="cyan")
    table.add_column("Base", justify="right")
    table.add_column("Wallet", justify="right")
    table.add_column("Drift", justify="right")
    table.add_column("Status", justify="center")

    for entry in report.entries:
        if entry.exceeds_tolerance:
            status = Text("DRIFT", style="red bold")
        elif entry.drift:
            status = Text("dust", style="yellow")
        else:
            status = Text("ok", style="green")
        table.add_row(
            entry.asset,
            str(entry.base_amount),
            str(entry.wallet_balance),
            f"{entry.drift:+d}",
            status,
        )
    return table
