"""Command-line entry point for sandbox simulations."""

import argparse
import logging
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from config import configure_logging, get_settings
from pairvault.core.constants import WAD
from pairvault.engine.ledger import render_drift_report
from pairvault.persistence import LedgerStorage
from pairvault.sandbox import PairVaultSimulator, SandboxStrategy, SimulationResult

logger = logging.getLogger(__name__)

BPS = 10_000


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="pairvault-sim",
        description="Run a pair-vault strategy through a simulated price path",
    )
    parser.add_argument("--strategy-id", default="sandbox", help="Strategy id (default: sandbox)")
    parser.add_argument(
        "--deposit", type=int, default=10_000, help="Initial deposit in whole A tokens (default: 10000)"
    )
    parser.add_argument("--steps", type=int, default=100, help="Number of price steps (default: 100)")
    parser.add_argument(
        "--volatility", type=float, default=0.01, help="Per-step log-return volatility (default: 0.01)"
    )
    parser.add_argument("--drift", type=float, default=0.0, help="Per-step log-return drift")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--interest-bps", type=int, default=0, help="Per-step debt growth, in bps")
    parser.add_argument("--fee-bps", type=int, default=0, help="Per-step pool fees, in bps of the position")
    parser.add_argument("--swap-fee-bps", type=int, default=0, help="Router fee, in bps")
    parser.add_argument("--save", action="store_true", help="Save the result and ledger snapshot")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: settings.log_level)",
    )
    return parser


def render_summary(result: SimulationResult) -> Table:
    """Build a rich table of simulation metrics."""
    table = Table(
        title=f"Simulation: {result.strategy_id}",
        show_header=True,
        header_style="bold orange1",
        border_style="dim",
        padding=(0, 1),
    )
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Initial deposit", str(result.initial_deposit))
    table.add_row("Withdrawn", str(result.amount_withdrawn))
    if result.metrics:
        m = result.metrics
        table.add_row("Return", f"{float(m.total_return_percent):.4f}%")
        table.add_row("Max drawdown", f"{m.max_drawdown}%")
        table.add_row("Max debt", str(m.max_debt))
        table.add_row("Min health factor", f"{float(m.min_health_factor):.4f}")
        table.add_row("Rebalances", str(m.rebalance_count))
        table.add_row("Drift steps", str(m.drift_count))
    table.add_row("Status", "ok" if result.success else result.error_message)
    return table


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point."""
    args = build_parser().parse_args(argv)

    settings = get_settings()
    if args.log_level:
        settings = settings.model_copy(update={"log_level": args.log_level})
    configure_logging(settings)

    strategy = SandboxStrategy.create(
        strategy_id=args.strategy_id,
        swap_fee_bps=args.swap_fee_bps,
        settings=settings,
    )
    deposit = args.deposit * 10**strategy.machine.position.decimals_a

    result = PairVaultSimulator(strategy).run(
        deposit,
        steps=args.steps,
        volatility=args.volatility,
        drift=args.drift,
        seed=args.seed,
        interest_rate=args.interest_bps * WAD // BPS,
        fee_rate=args.fee_bps * WAD // BPS,
    )

    if args.save:
        storage = LedgerStorage(settings.ensure_storage_dir())
        storage.save_ledger(strategy.ledger, strategy.machine.refresh_debt())
        result_id = storage.save_result(result)
        logger.info(f"Saved result {result_id} for {args.strategy_id}")

    console = Console()
    console.print(render_summary(result))
    console.print(render_drift_report(strategy.accountant.reconcile()))
    return 0 if result.success else 1
