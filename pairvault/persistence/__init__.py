"""Persistence of ledger snapshots and simulation results."""

from .storage import DecimalEncoder, LedgerStorage

__all__ = ["DecimalEncoder", "LedgerStorage"]
