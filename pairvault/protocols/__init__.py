"""Collaborator contracts."""

from .base import (
    LendingAdapter,
    PairPool,
    PriceOracle,
    RewardAmounts,
    SwapRouter,
    TokenWallet,
    TransactionScope,
)

__all__ = [
    "LendingAdapter",
    "PairPool",
    "PriceOracle",
    "RewardAmounts",
    "SwapRouter",
    "TokenWallet",
    "TransactionScope",
]
