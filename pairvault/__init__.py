"""Leveraged pair-position rebalancing engine."""

__version__ = "0.1.0"
