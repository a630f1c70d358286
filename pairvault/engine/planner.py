"""Iteration planner.

Chooses a plan shape and computes the swap and repay amounts that bring a
pair position back to its target proportion while optionally closing debt.

All arithmetic happens on 18-decimal values and is converted back to raw
token units only when an instruction is built.
"""

import logging
from typing import Optional

from pairvault.core.constants import WAD
from pairvault.core.models import (
    IterationPlanInput,
    RebalancePlan,
    RepayInstruction,
    RepaySwapRepayPlan,
    SwapEstimate,
    SwapInstruction,
    SwapOnlyPlan,
    SwapRepayPlan,
)
from pairvault.engine.prices import PriceResolver

logger = logging.getLogger(__name__)


def estimate_swap_amount_for_repay_swap_repay(
    plan_input: IterationPlanInput,
    balance_a: int,
    balance_b: int,
    prop_b: int,
    total_collateral_a: int,
    total_borrow_b: int,
    collateral_a: int,
    amount_to_repay_b: int,
) -> SwapEstimate:
    """
    Estimate how much A to swap between the two repay legs.

    The first leg repays amount_to_repay_b and releases collateral_a. Every
    further unit of B repaid releases collateral at the ratio
    alpha = value(total_collateral_a) / value(total_borrow_b), so the second
    repay that leaves the position at prop_b is

        r = (x * vA1 - y * vB1) / (x + y * alpha)

    with x = 1 - prop_b, y = prop_b, vA1 = value(balance_a + collateral_a)
    and vB1 = value(balance_b - amount_to_repay_b).

    If r fits in the debt left after the first leg, all A is swapped
    (full swap). Otherwise only the amount that restores the target split
    without a second repay is swapped (partial swap).

    Args:
        plan_input: Prices and decimals of the pair
        balance_a: A on hand before the first repay
        balance_b: B on hand before the first repay
        prop_b: Target share of B (18 decimals)
        total_collateral_a: Collateral pledged for the whole debt
        total_borrow_b: Whole debt
        collateral_a: Collateral released by the first repay
        amount_to_repay_b: First repay leg

    Returns:
        SwapEstimate with the A amount to swap
    """
    price_a, price_b = plan_input.price_a, plan_input.price_b
    decimals_a, decimals_b = plan_input.decimals_a, plan_input.decimals_b
    if price_a <= 0 or price_b <= 0:
        return SwapEstimate(swap_amount_a=0, full_swap=False)

    x = WAD - prop_b
    y = prop_b

    balance_a1 = balance_a + collateral_a
    value_a1 = PriceResolver.token_value(balance_a1, price_a, decimals_a)
    value_b1 = PriceResolver.token_value(max(0, balance_b - amount_to_repay_b), price_b, decimals_b)

    debt_left = max(0, total_borrow_b - amount_to_repay_b)
    collateral_value = PriceResolver.token_value(total_collateral_a, price_a, decimals_a)
    borrow_value = PriceResolver.token_value(total_borrow_b, price_b, decimals_b)

    if borrow_value > 0 and debt_left > 0:
        alpha = collateral_value * WAD // borrow_value
        numerator = x * value_a1 - y * value_b1
        denominator = x * WAD + y * alpha
        if numerator > 0 and denominator > 0:
            second_repay_value = numerator * WAD // denominator
            second_repay_b = PriceResolver.amount_for_value(second_repay_value, price_b, decimals_b)
            if second_repay_b <= debt_left:
                return SwapEstimate(swap_amount_a=balance_a1, full_swap=True, second_repay_b=second_repay_b)

    swap_value = (y * value_a1 - x * value_b1) // WAD
    swap_amount_a = min(PriceResolver.amount_for_value(swap_value, price_a, decimals_a), balance_a1)
    return SwapEstimate(swap_amount_a=max(0, swap_amount_a), full_swap=False)


class IterationPlanner:
    """
    Builds one rebalance iteration.

    The planner never raises on adverse numbers: unpriceable or inconsistent
    input degrades to the smallest safe plan, so callers may plan
    speculatively before committing.
    """

    def plan(
        self,
        plan_input: IterationPlanInput,
        balance_a: int,
        balance_b: int,
        amount_to_repay_b: int,
        collateral_a: int,
        total_collateral_a: int,
        total_borrow_b: int,
    ) -> RebalancePlan:
        """
        Plan one iteration.

        Args:
            plan_input: Prices, decimals, target proportion, thresholds
            balance_a: A on hand
            balance_b: B on hand
            amount_to_repay_b: Debt that must be repaid in this iteration
            collateral_a: Collateral released by repaying amount_to_repay_b
            total_collateral_a: Collateral pledged for the whole debt
            total_borrow_b: Whole debt

        Returns:
            SwapOnlyPlan, SwapRepayPlan or RepaySwapRepayPlan
        """
        if plan_input.price_a <= 0 or plan_input.price_b <= 0:
            logger.warning(f"Unpriceable pair {plan_input.assets}: prices={plan_input.prices}, skipping")
            return SwapOnlyPlan()

        prop_b = PriceResolver.target_prop_b(plan_input)

        if amount_to_repay_b > 0 and total_borrow_b <= 0:
            logger.warning(
                f"Repay of {amount_to_repay_b} {plan_input.asset_b} requested without debt, "
                f"returning an empty plan"
            )
            return SwapOnlyPlan()

        amount_to_repay_b = min(max(0, amount_to_repay_b), max(0, total_borrow_b))

        if amount_to_repay_b == 0:
            return self._plan_swap_only(plan_input, balance_a, balance_b, prop_b)

        if amount_to_repay_b <= balance_b or balance_b <= 0:
            return self._plan_swap_repay(
                plan_input, balance_a, balance_b, amount_to_repay_b, collateral_a, prop_b,
            )

        return self._plan_repay_swap_repay(
            plan_input,
            balance_a,
            balance_b,
            amount_to_repay_b,
            collateral_a,
            total_collateral_a,
            total_borrow_b,
            prop_b,
        )

    def _plan_swap_only(
        self,
        plan_input: IterationPlanInput,
        balance_a: int,
        balance_b: int,
        prop_b: int,
    ) -> SwapOnlyPlan:
        value_a = PriceResolver.token_value(balance_a, plan_input.price_a, plan_input.decimals_a)
        value_b = PriceResolver.token_value(balance_b, plan_input.price_b, plan_input.decimals_b)
        target_b = (value_a + value_b) * prop_b // WAD

        swap = self._swap_towards(plan_input, target_b - value_b, balance_a, balance_b)
        return SwapOnlyPlan(swap=swap)

    def _plan_swap_repay(
        self,
        plan_input: IterationPlanInput,
        balance_a: int,
        balance_b: int,
        amount_to_repay_b: int,
        collateral_a: int,
        prop_b: int,
    ) -> SwapRepayPlan:
        value_a = PriceResolver.token_value(balance_a, plan_input.price_a, plan_input.decimals_a)
        value_b = PriceResolver.token_value(balance_b, plan_input.price_b, plan_input.decimals_b)
        value_repay = PriceResolver.token_value(amount_to_repay_b, plan_input.price_b, plan_input.decimals_b)
        value_collateral = PriceResolver.token_value(collateral_a, plan_input.price_a, plan_input.decimals_a)

        # Value left once the repay is done and collateral is back
        total = max(0, value_a + value_b - value_repay + value_collateral)
        target_b = total * prop_b // WAD
        delta_b = target_b - (value_b - value_repay)

        # B reserved for the repay is never swapped away; A is rounded up so
        # the swap covers the repay shortfall
        swap = self._swap_towards(
            plan_input, delta_b, balance_a, max(0, balance_b - amount_to_repay_b), round_up=True,
        )
        return SwapRepayPlan(
            repay=RepayInstruction(asset=plan_input.asset_b, amount=amount_to_repay_b),
            swap=swap,
        )

    def _plan_repay_swap_repay(
        self,
        plan_input: IterationPlanInput,
        balance_a: int,
        balance_b: int,
        amount_to_repay_b: int,
        collateral_a: int,
        total_collateral_a: int,
        total_borrow_b: int,
        prop_b: int,
    ) -> RepaySwapRepayPlan:
        first_repay = RepayInstruction(asset=plan_input.asset_b, amount=balance_b)
        collateral_first = collateral_a * balance_b // amount_to_repay_b

        estimate = estimate_swap_amount_for_repay_swap_repay(
            plan_input,
            balance_a=balance_a,
            balance_b=balance_b,
            prop_b=prop_b,
            total_collateral_a=total_collateral_a,
            total_borrow_b=total_borrow_b,
            collateral_a=collateral_first,
            amount_to_repay_b=balance_b,
        )

        shortfall = amount_to_repay_b - balance_b
        swap_amount_a = estimate.swap_amount_a
        if not estimate.full_swap:
            # Swap at least enough A to fund the forced repay
            shortfall_value = PriceResolver.token_value(shortfall, plan_input.price_b, plan_input.decimals_b)
            cover_a = PriceResolver.amount_for_value_up(shortfall_value, plan_input.price_a, plan_input.decimals_a)
            swap_amount_a = min(max(swap_amount_a, cover_a), balance_a + collateral_first)

        if swap_amount_a <= plan_input.threshold_a:
            logger.debug(
                f"Swap of {swap_amount_a} {plan_input.asset_a} below threshold "
                f"{plan_input.threshold_a}, repaying on-hand B only"
            )
            return RepaySwapRepayPlan(first_repay=first_repay)

        second_amount = max(shortfall, estimate.second_repay_b) if estimate.full_swap else shortfall
        second_amount = min(second_amount, total_borrow_b - balance_b)

        return RepaySwapRepayPlan(
            first_repay=first_repay,
            swap=SwapInstruction(
                asset_in=plan_input.asset_a,
                asset_out=plan_input.asset_b,
                amount_in=swap_amount_a,
            ),
            second_repay=RepayInstruction(asset=plan_input.asset_b, amount=second_amount)
            if second_amount > 0 else None,
        )

    @staticmethod
    def _swap_towards(
        plan_input: IterationPlanInput,
        delta_value_b: int,
        available_a: int,
        available_b: int,
        round_up: bool = False,
    ) -> Optional[SwapInstruction]:
        """
        Swap that moves delta_value_b of value into (positive) or out of
        (negative) asset B, limited by what is available.
        """
        if delta_value_b > 0:
            to_amount = PriceResolver.amount_for_value_up if round_up else PriceResolver.amount_for_value
            amount = to_amount(delta_value_b, plan_input.price_a, plan_input.decimals_a)
            amount = min(amount, available_a)
            asset_in, asset_out, threshold = plan_input.asset_a, plan_input.asset_b, plan_input.threshold_a
        elif delta_value_b < 0:
            amount = PriceResolver.amount_for_value(-delta_value_b, plan_input.price_b, plan_input.decimals_b)
            amount = min(amount, available_b)
            asset_in, asset_out, threshold = plan_input.asset_b, plan_input.asset_a, plan_input.threshold_b
        else:
            return None

        if amount <= threshold:
            if amount > 0:
                logger.debug(f"Swap of {amount} {asset_in} within threshold {threshold}, left as dust")
            return None

        return SwapInstruction(asset_in=asset_in, asset_out=asset_out, amount_in=amount)
