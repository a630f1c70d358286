"""Unit tests for ledger and result storage."""

import json
from decimal import Decimal

import pytest

from pairvault.core.constants import WAD
from pairvault.core.models import DebtStatus
from pairvault.engine.ledger import BaseAmountLedger
from pairvault.persistence import DecimalEncoder, LedgerStorage
from pairvault.sandbox import SimulationPoint, SimulationResult


@pytest.fixture
def storage(tmp_path):
    return LedgerStorage(tmp_path / "store")


@pytest.fixture
def ledger():
    ledger = BaseAmountLedger("usdc-weth", ("USDC", "WETH"))
    ledger.receive("USDC", 1_000_000)
    ledger.receive("WETH", 5 * 10**17)
    return ledger


class TestLedgerSnapshots:
    """Tests for saving and restoring base amounts."""

    def test_save_and_load_entries(self, storage, ledger):
        path = storage.save_ledger(ledger)

        assert path.exists()
        assert storage.load_entries("usdc-weth") == {"USDC": 1_000_000, "WETH": 5 * 10**17}

    def test_keyed_by_strategy_and_asset(self, storage, ledger):
        storage.save_ledger(ledger)

        assert storage.load_base_amount("usdc-weth", "WETH") == 5 * 10**17
        assert storage.load_base_amount("usdc-weth", "CRV") == 0
        assert storage.load_base_amount("missing", "USDC") == 0

    def test_amounts_stored_as_strings(self, storage, ledger):
        """Large integers survive JSON without float rounding."""
        path = storage.save_ledger(ledger)
        data = json.loads(path.read_text())

        assert data["entries"]["WETH"] == "500000000000000000"
        assert data["_id"] == "usdc-weth"

    def test_debt_snapshot(self, storage, ledger):
        debt = DebtStatus(total_debt_amount=100, total_collateral_amount=250, health_factor=25 * WAD // 10)
        storage.save_ledger(ledger, debt)

        loaded = storage.load_debt("usdc-weth")
        assert loaded.total_debt_amount == 100
        assert loaded.total_collateral_amount == 250
        assert loaded.health_factor == 25 * WAD // 10
        assert loaded.updated_at == debt.updated_at

    def test_no_debt_snapshot(self, storage, ledger):
        storage.save_ledger(ledger)
        assert storage.load_debt("usdc-weth") is None

    def test_restore_ledger(self, storage, ledger):
        storage.save_ledger(ledger)
        fresh = BaseAmountLedger("usdc-weth", ("USDC", "WETH"))

        assert storage.restore_ledger(fresh) is True
        assert fresh.entries == ledger.entries

    def test_restore_missing(self, storage):
        assert storage.restore_ledger(BaseAmountLedger("nope", ("A", "B"))) is False

    def test_list_and_delete(self, storage, ledger):
        storage.save_ledger(ledger)

        listed = storage.list_ledgers()
        assert [entry["id"] for entry in listed] == ["usdc-weth"]
        assert listed[0]["assets"] == ["USDC", "WETH"]

        assert storage.delete_ledger("usdc-weth") is True
        assert storage.delete_ledger("usdc-weth") is False
        assert storage.list_ledgers() == []


class TestResults:
    """Tests for simulation result storage."""

    def test_save_and_list(self, storage):
        result = SimulationResult(
            strategy_id="sim",
            initial_deposit=1000,
            points=[SimulationPoint(step=0, price_a=WAD, tick=0, invested_a=1010, liquidity=5,
                                    debt_b=1, health_factor=2 * WAD)],
        )
        result.calculate_metrics()

        result_id = storage.save_result(result, result_id="run-1")
        listed = storage.list_results("sim")

        assert result_id == "run-1"
        assert listed[0]["id"] == "run-1"
        assert listed[0]["total_return_percent"] == "1"
        assert storage.list_results("other") == []


class TestDecimalEncoder:
    def test_decimal(self):
        assert json.dumps({"x": Decimal("1.5")}, cls=DecimalEncoder) == '{"x": "1.5"}'
