"""In-memory strategy wallet."""

from typing import Dict, List, Optional, Tuple

from pairvault.core.exceptions import InsufficientBalanceError
from pairvault.protocols.base import TokenWallet
from pairvault.sandbox.chain import SandboxComponent


class SandboxWallet(TokenWallet, SandboxComponent):
    """
    Token balances of one strategy.

    Collaborators move funds with mint() (credit) and take() (debit);
    transfer_out() records what left the strategy.
    """

    def __init__(self, owner: str = "strategy", balances: Optional[Dict[str, int]] = None):
        self.owner = owner
        self._balances: Dict[str, int] = dict(balances or {})
        self.transfers: List[Tuple[str, int, str]] = []

    def balance_of(self, asset: str) -> int:
        return self._balances.get(asset, 0)

    def mint(self, asset: str, amount: int) -> None:
        """Credit amount of asset to the wallet."""
        if amount < 0:
            raise ValueError(f"Negative credit of {asset}: {amount}")
        self._balances[asset] = self.balance_of(asset) + amount

    def take(self, asset: str, amount: int) -> None:
        """Debit amount of asset from the wallet."""
        if amount < 0:
            raise ValueError(f"Negative debit of {asset}: {amount}")
        available = self.balance_of(asset)
        if amount > available:
            raise InsufficientBalanceError(asset, available, amount)
        self._balances[asset] = available - amount

    def transfer_out(self, asset: str, amount: int, recipient: str) -> None:
        self.take(asset, amount)
        self.transfers.append((asset, amount, recipient))

    def sent_to(self, recipient: str, asset: str) -> int:
        """Total amount of asset transferred to recipient."""
        return sum(amount for a, amount, r in self.transfers if a == asset and r == recipient)

    @property
    def balances(self) -> Dict[str, int]:
        return dict(self._balances)

    def snapshot(self):
        return dict(self._balances), list(self.transfers)

    def restore(self, state) -> None:
        balances, transfers = state
        self._balances = dict(balances)
        self.transfers = list(transfers)
