"""Engine exceptions."""


class PairVaultError(Exception):
    """Base class for engine errors."""


class PositionLockedError(PairVaultError):
    """Raised when an operation is attempted while another one is in flight."""

    def __init__(self, strategy_id: str, operation: str, active: str):
        self.strategy_id = strategy_id
        self.operation = operation
        self.active = active
        super().__init__(
            f"Strategy {strategy_id} is locked by '{active}', cannot start '{operation}'"
        )


class LedgerUnderflowError(PairVaultError):
    """Raised when a ledger update would take a base amount below zero."""

    def __init__(self, asset: str, current: int, delta: int):
        self.asset = asset
        self.current = current
        self.delta = delta
        super().__init__(f"Base amount of {asset} would underflow: {current} {delta:+d}")


class InsufficientBalanceError(PairVaultError):
    """Raised when a wallet transfer exceeds the available balance."""

    def __init__(self, asset: str, available: int, requested: int):
        self.asset = asset
        self.available = available
        self.requested = requested
        super().__init__(f"Insufficient {asset}: available {available}, requested {requested}")
