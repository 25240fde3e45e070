"""
Periodic cashflow schedule for a trade leg.

Amounts use flat simple-interest accrual: notional * rate * (step_months / 12).
Only period dates strictly between start and maturity are emitted.
"""

import calendar
import logging
from datetime import date
from decimal import ROUND_HALF_EVEN, Decimal
from typing import List

from src.core.trades.models import CashflowRecord, TradeLegRecord
from src.core.trades.repository import TradeRepository

logger = logging.getLogger(__name__)

_AMOUNT_QUANTUM = Decimal("0.01")
_MONTHS_PER_YEAR = Decimal("12")


def months_between(start: date, end: date) -> int:
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if months > 0 and end.day < start.day:
        months -= 1
    elif months < 0 and end.day > start.day:
        months += 1
    return months


def add_months(value: date, months: int) -> date:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def accrual_amount(notional: Decimal, rate: Decimal, step_months: int) -> Decimal:
    amount = notional * rate * Decimal(step_months) / _MONTHS_PER_YEAR
    return amount.quantize(_AMOUNT_QUANTUM, rounding=ROUND_HALF_EVEN)


class CashflowScheduleGenerator:
    def __init__(self, *, trade_repository: TradeRepository) -> None:
        self._trade_repository = trade_repository

    def build_schedule(
        self, leg: TradeLegRecord, start_date: date, maturity_date: date
    ) -> List[CashflowRecord]:
        """Derive the leg's cashflows without persisting them."""
        if leg.leg_id is None:
            raise ValueError("leg must be persisted before generating cashflows")
        if leg.calculation_schedule is None or maturity_date <= start_date:
            return []

        step_months = leg.calculation_schedule.step_months
        period_count = months_between(start_date, maturity_date) // step_months
        rate = leg.rate if leg.rate is not None else Decimal("0")
        amount = accrual_amount(leg.notional, rate, step_months)

        schedule: List[CashflowRecord] = []
        for step in range(1, period_count + 1):
            value_date = add_months(start_date, step * step_months)
            if value_date >= maturity_date:
                break
            schedule.append(
                CashflowRecord(
                    leg_id=leg.leg_id,
                    value_date=value_date,
                    amount=amount,
                    pay_receive_flag=leg.pay_receive_flag,
                    rate=rate,
                )
            )
        return schedule

    def generate(
        self, leg: TradeLegRecord, start_date: date, maturity_date: date
    ) -> List[CashflowRecord]:
        schedule = self.build_schedule(leg, start_date, maturity_date)
        if not schedule:
            logger.info(
                "cashflow.schedule_empty",
                extra={
                    "extra_fields": {
                        "leg_id": leg.leg_id,
                        "calculation_schedule": (
                            leg.calculation_schedule.value if leg.calculation_schedule else None
                        ),
                        "start_date": start_date.isoformat(),
                        "maturity_date": maturity_date.isoformat(),
                    }
                },
            )
            return []

        saved = [self._trade_repository.save_cashflow(cashflow) for cashflow in schedule]
        logger.info(
            "cashflow.schedule_generated",
            extra={
                "extra_fields": {
                    "leg_id": leg.leg_id,
                    "calculation_schedule": leg.calculation_schedule.value,
                    "cashflow_count": len(saved),
                }
            },
        )
        return saved
