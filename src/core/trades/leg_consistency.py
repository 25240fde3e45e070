from decimal import Decimal
from typing import Optional, Sequence

from src.core.trades.models import LegType, TradeLegSubmission, TradeSubmission
from src.core.trades.validation import ValidationResult

_LEG_LABELS = ("A", "B")


class LegConsistencyValidator:
    """Cross-leg structural rules for a two-legged trade."""

    def validate_trade_leg_consistency(
        self,
        legs: Optional[Sequence[TradeLegSubmission]],
        submission: TradeSubmission,
    ) -> ValidationResult:
        result = ValidationResult.ok()
        # Indexed access below is only safe with exactly two legs.
        if legs is None or len(legs) != 2:
            result.add_error("Trade must have exactly 2 legs")
            return result

        leg_a, leg_b = legs

        if submission.trade_maturity_date is None:
            result.add_error("Trade maturity date must be defined")

        if leg_a.pay_receive_flag is None or leg_b.pay_receive_flag is None:
            result.add_error("Both legs must have pay/receive flags")
        elif leg_a.pay_receive_flag == leg_b.pay_receive_flag:
            result.add_error("Legs must have opposite pay/receive flags")

        for label, leg in zip(_LEG_LABELS, legs):
            if leg.leg_type is None:
                result.add_error(f"Leg {label} must have a leg type")
            if leg.notional is None:
                result.add_error(f"Leg {label} must have a notional")
        for label, leg in zip(_LEG_LABELS, legs):
            if leg.leg_type == LegType.FLOATING and leg.index_name is None:
                result.add_error(f"Floating leg {label} must have an index specified")
        for label, leg in zip(_LEG_LABELS, legs):
            if leg.leg_type == LegType.FIXED and leg.rate is None:
                result.add_error(f"Fixed leg {label} must have a valid rate")
        for label, leg in zip(_LEG_LABELS, legs):
            if leg.notional is not None and leg.notional < Decimal("0"):
                result.add_error(f"Leg {label} notional cannot be negative")

        return result
