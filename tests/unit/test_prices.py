"""Unit tests for the price and proportion resolver."""

from pairvault.core.constants import HEALTH_FACTOR_NO_DEBT, WAD
from pairvault.engine.prices import PriceResolver

from tests.conftest import make_plan_input


class TestNormalization:
    """Tests for decimal normalization."""

    def test_normalize_six_decimals(self):
        assert PriceResolver.normalize(1_500_000, 6) == 15 * 10**17

    def test_normalize_eighteen_decimals_is_identity(self):
        assert PriceResolver.normalize(123 * 10**18, 18) == 123 * 10**18

    def test_denormalize_floors(self):
        """Sub-unit remainders are dropped."""
        assert PriceResolver.denormalize(1_999_999_999_999, 6) == 1

    def test_token_value(self):
        """2.5 tokens with 6 decimals at 2000 USD."""
        assert PriceResolver.token_value(2_500_000, 2000 * WAD, 6) == 5000 * WAD


class TestZeroPrice:
    """A zero price means unpriceable, never free."""

    def test_value_is_zero(self):
        assert PriceResolver.value_of(10 * WAD, 0) == 0

    def test_amount_is_zero(self):
        assert PriceResolver.amount_for_value(10 * WAD, 0, 18) == 0
        assert PriceResolver.amount_for_value_up(10 * WAD, 0, 18) == 0


class TestAmountForValue:
    """Tests for value to amount conversion."""

    def test_inverse_of_token_value(self):
        value = PriceResolver.token_value(3 * 10**6, 2 * WAD, 6)
        assert PriceResolver.amount_for_value(value, 2 * WAD, 6) == 3 * 10**6

    def test_rounding_directions(self):
        """One unit of value at price 3.0: floor gives 0, ceiling gives 1."""
        value = 10**12
        assert PriceResolver.amount_for_value(value, 3 * WAD, 6) == 0
        assert PriceResolver.amount_for_value_up(value, 3 * WAD, 6) == 1

    def test_round_up_exact_is_unchanged(self):
        assert PriceResolver.amount_for_value_up(6 * WAD, 3 * WAD, 6) == 2 * 10**6


class TestProportions:
    """Tests for proportion helpers."""

    def test_prop_b_of(self):
        assert PriceResolver.prop_b_of(3 * WAD, WAD) == WAD // 4

    def test_prop_b_of_empty(self):
        assert PriceResolver.prop_b_of(0, 0) == 0

    def test_target_prefers_pool_when_requested(self):
        plan_input = make_plan_input(prop_b=WAD // 4, use_pool_proportions=True, pool_prop_b=WAD // 2)
        assert PriceResolver.target_prop_b(plan_input) == WAD // 2

    def test_target_falls_back_without_pool_value(self):
        plan_input = make_plan_input(prop_b=WAD // 4, use_pool_proportions=True)
        assert PriceResolver.target_prop_b(plan_input) == WAD // 4


class TestHealthFactor:
    """Tests for health factor calculation."""

    def test_no_debt(self):
        assert PriceResolver.health_factor(100, WAD, 6, 0, WAD, 6) == HEALTH_FACTOR_NO_DEBT

    def test_ratio(self):
        """200 USDC collateral against 0.05 WETH at 2000."""
        hf = PriceResolver.health_factor(200 * 10**6, WAD, 6, 5 * 10**16, 2000 * WAD, 18)
        assert hf == 2 * WAD

    def test_unpriced_collateral(self):
        assert PriceResolver.health_factor(100, 0, 6, 100, WAD, 6) == 0
