"""Ledger snapshot and simulation result storage."""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

from pairvault.core.models import DebtStatus
from pairvault.engine.ledger import BaseAmountLedger
from pairvault.sandbox.models import SimulationResult

logger = logging.getLogger(__name__)


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal and datetime types."""

    def default(self, obj):
        if isinstance(obj, Decimal):
            return str(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        return super().default(obj)


class LedgerStorage:
    """
    Persistent storage for base-amount entries and debt snapshots.

    Entries are keyed by (strategy_id, asset). Uses JSON files so operators
    can read them directly.
    Directory structure:
        storage_dir/
            ledgers/
                {strategy_id}.json
            results/
                {strategy_id}/
                    {timestamp}.json
    """

    def __init__(self, storage_dir: Optional[Path] = None):
        """
        Initialize storage.

        Args:
            storage_dir: Base directory for storage (default: settings.storage_dir)
        """
        if storage_dir is None:
            from config import get_settings
            storage_dir = get_settings().ensure_storage_dir()

        self.storage_dir = Path(storage_dir)
        self.ledgers_dir = self.storage_dir / "ledgers"
        self.results_dir = self.storage_dir / "results"

        self.ledgers_dir.mkdir(parents=True, exist_ok=True)
        self.results_dir.mkdir(parents=True, exist_ok=True)

    # Ledger snapshots

    def save_ledger(self, ledger: BaseAmountLedger, debt: Optional[DebtStatus] = None) -> Path:
        """
        Save base amounts of a ledger, with an optional debt snapshot.

        Args:
            ledger: Ledger to save
            debt: Debt status at the time of the snapshot

        Returns:
            Path of the written file
        """
        file_path = self.ledgers_dir / f"{ledger.strategy_id}.json"

        data = ledger.to_dict()
        data["debt"] = debt.to_dict() if debt else None
        data["_id"] = ledger.strategy_id
        data["_saved_at"] = datetime.now(timezone.utc).isoformat()

        with open(file_path, "w") as f:
            json.dump(data, f, cls=DecimalEncoder, indent=2)

        logger.info(f"Saved ledger: {ledger.strategy_id}")
        return file_path

    def _read_ledger(self, strategy_id: str) -> Optional[Dict[str, Any]]:
        file_path = self.ledgers_dir / f"{strategy_id}.json"
        if not file_path.exists():
            logger.warning(f"Ledger not found: {strategy_id}")
            return None
        with open(file_path, "r") as f:
            return json.load(f)

    def load_entries(self, strategy_id: str) -> Optional[Dict[str, int]]:
        """Base amounts of a strategy, or None if never saved."""
        data = self._read_ledger(strategy_id)
        if data is None:
            return None
        return {asset: int(amount) for asset, amount in data.get("entries", {}).items()}

    def load_base_amount(self, strategy_id: str, asset: str) -> int:
        """Base amount stored under (strategy_id, asset); 0 if absent."""
        entries = self.load_entries(strategy_id) or {}
        return entries.get(asset, 0)

    def load_debt(self, strategy_id: str) -> Optional[DebtStatus]:
        data = self._read_ledger(strategy_id)
        if data is None or not data.get("debt"):
            return None
        return DebtStatus.from_dict(data["debt"])

    def restore_ledger(self, ledger: BaseAmountLedger) -> bool:
        """
        Load stored base amounts into ledger.

        Returns:
            True if a snapshot was found and applied
        """
        entries = self.load_entries(ledger.strategy_id)
        if entries is None:
            return False
        ledger.load(entries)
        logger.info(f"Restored ledger: {ledger.strategy_id} ({len(entries)} assets)")
        return True

    def list_ledgers(self) -> List[Dict[str, Any]]:
        """
        List all saved ledgers.

        Returns:
            List of summaries (id, assets, saved_at), newest first
        """
        ledgers = []
        for file_path in self.ledgers_dir.glob("*.json"):
            with open(file_path, "r") as f:
                data = json.load(f)
            ledgers.append({
                "id": data.get("_id", file_path.stem),
                "assets": data.get("assets", []),
                "saved_at": data.get("_saved_at"),
            })

        ledgers.sort(key=lambda x: x.get("saved_at") or "", reverse=True)
        return ledgers

    def delete_ledger(self, strategy_id: str) -> bool:
        """
        Delete a stored ledger.

        Returns:
            True if deleted, False if not found
        """
        file_path = self.ledgers_dir / f"{strategy_id}.json"
        if file_path.exists():
            file_path.unlink()
            logger.info(f"Deleted ledger: {strategy_id}")
            return True
        return False

    # Simulation results

    def save_result(self, result: SimulationResult, result_id: Optional[str] = None) -> str:
        """
        Save a simulation result.

        Args:
            result: Simulation result to save
            result_id: Optional custom result ID

        Returns:
            Result ID
        """
        if result_id is None:
            result_id = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")

        result_dir = self.results_dir / result.strategy_id
        result_dir.mkdir(parents=True, exist_ok=True)

        data = result.to_dict()
        data["_id"] = result_id

        with open(result_dir / f"{result_id}.json", "w") as f:
            json.dump(data, f, cls=DecimalEncoder, indent=2)

        logger.info(f"Saved result: {result.strategy_id}/{result_id}")
        return result_id

    def list_results(self, strategy_id: str) -> List[Dict[str, Any]]:
        """Summaries of stored results for a strategy, newest first."""
        result_dir = self.results_dir / strategy_id
        if not result_dir.exists():
            return []

        results = []
        for file_path in result_dir.glob("*.json"):
            with open(file_path, "r") as f:
                data = json.load(f)
            metrics = data.get("metrics") or {}
            results.append({
                "id": data.get("_id", file_path.stem),
                "strategy_id": strategy_id,
                "created_at": data.get("created_at"),
                "success": data.get("success"),
                "total_return_percent": metrics.get("total_return_percent"),
                "rebalance_count": metrics.get("rebalance_count"),
            })

        results.sort(key=lambda x: x.get("created_at") or "", reverse=True)
        return results
