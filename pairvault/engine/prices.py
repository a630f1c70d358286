"""Price and proportion resolver.

Normalizes raw token amounts and prices into comparable 18-decimal values.
Every function is pure and floors on division.
"""

from pairvault.core.constants import HEALTH_FACTOR_NO_DEBT, WAD
from pairvault.core.models import IterationPlanInput


class PriceResolver:
    """
    Fixed-point helpers for pair valuation.

    A zero price always yields a zero value. Callers must read zero as
    "unpriceable", never as "free".
    """

    @staticmethod
    def normalize(amount: int, decimals: int) -> int:
        """
        Convert a raw token amount to 18 decimals.

        Args:
            amount: Raw token amount
            decimals: Token decimal digits

        Returns:
            Amount with 18 decimals
        """
        return amount * WAD // 10**decimals

    @staticmethod
    def denormalize(amount18: int, decimals: int) -> int:
        """Convert an 18-decimal amount back to raw token units."""
        return amount18 * 10**decimals // WAD

    @staticmethod
    def value_of(amount18: int, price: int) -> int:
        """
        USD value of a normalized amount.

        value = amount18 * price / 1e18
        """
        if price <= 0:
            return 0
        return amount18 * price // WAD

    @staticmethod
    def token_value(amount: int, price: int, decimals: int) -> int:
        """USD value (18 decimals) of a raw token amount."""
        return PriceResolver.value_of(PriceResolver.normalize(amount, decimals), price)

    @staticmethod
    def amount_for_value(value18: int, price: int, decimals: int) -> int:
        """
        Raw token amount worth value18 at price.

        Inverse of token_value, rounded down. Returns 0 for a zero price.
        """
        if price <= 0 or value18 <= 0:
            return 0
        return PriceResolver.denormalize(value18 * WAD // price, decimals)

    @staticmethod
    def amount_for_value_up(value18: int, price: int, decimals: int) -> int:
        """Raw token amount worth at least value18 at price (rounded up)."""
        if price <= 0 or value18 <= 0:
            return 0
        amount18 = -(-value18 * WAD // price)
        return -(-amount18 * 10**decimals // WAD)

    @staticmethod
    def prop_b_of(value_a: int, value_b: int) -> int:
        """
        Share of B in a pair of values.

        Returns 0 when both values are zero.
        """
        total = value_a + value_b
        if total <= 0:
            return 0
        return value_b * WAD // total

    @staticmethod
    def health_factor(
        collateral_amount: int,
        collateral_price: int,
        collateral_decimals: int,
        debt_amount: int,
        debt_price: int,
        debt_decimals: int,
    ) -> int:
        """
        Collateral/debt value ratio with 18 decimals.

        HF = collateral value / debt value

        Returns:
            HEALTH_FACTOR_NO_DEBT if there is no debt, 0 if the debt is
            priced but the collateral is not
        """
        if debt_amount == 0:
            return HEALTH_FACTOR_NO_DEBT

        debt_value = PriceResolver.token_value(debt_amount, debt_price, debt_decimals)
        if debt_value == 0:
            return HEALTH_FACTOR_NO_DEBT

        collateral_value = PriceResolver.token_value(collateral_amount, collateral_price, collateral_decimals)
        return collateral_value * WAD // debt_value

    @staticmethod
    def target_prop_b(plan_input: IterationPlanInput) -> int:
        """Target share of B, preferring the pool-implied value when requested."""
        if plan_input.use_pool_proportions and plan_input.pool_prop_b is not None:
            return plan_input.pool_prop_b
        return plan_input.prop_b
