"""
Trade-level business rules: date ordering, staleness and reference data status.
"""

from typing import Optional

from src.core.common.clock import Clock
from src.core.trades.models import TradeSubmission
from src.core.trades.repository import ReferenceDataRepository
from src.core.trades.validation import ValidationResult

DEFAULT_MAX_TRADE_DATE_AGE_DAYS = 30


class BusinessRuleValidator:
    def __init__(
        self,
        *,
        reference_data: ReferenceDataRepository,
        clock: Clock,
        max_trade_date_age_days: int = DEFAULT_MAX_TRADE_DATE_AGE_DAYS,
    ) -> None:
        self._reference_data = reference_data
        self._clock = clock
        self._max_trade_date_age_days = max_trade_date_age_days

    def validate_trade_business_rules(self, submission: TradeSubmission) -> ValidationResult:
        result = ValidationResult.ok()
        self._check_dates(submission, result)
        self._check_book(submission, result)
        self._check_counterparty(submission, result)
        return result

    def _check_dates(self, submission: TradeSubmission, result: ValidationResult) -> None:
        trade_date = submission.trade_date
        start_date = submission.trade_start_date
        maturity = submission.trade_maturity_date

        if trade_date is None:
            result.add_error("Trade date must be defined")
        if start_date is None:
            result.add_error("Trade start date must be defined")
        if maturity is not None and start_date is not None and maturity < start_date:
            result.add_error("Maturity date cannot be before start date")
        if maturity is not None and trade_date is not None and maturity < trade_date:
            result.add_error("Maturity date cannot be before trade date")
        if start_date is not None and trade_date is not None and start_date < trade_date:
            result.add_error("Start date cannot be before trade date")
        if trade_date is not None:
            age_days = (self._clock.today() - trade_date).days
            if age_days > self._max_trade_date_age_days:
                result.add_error(
                    f"Trade date cannot be more than {self._max_trade_date_age_days} "
                    "days in the past"
                )

    def _check_book(self, submission: TradeSubmission, result: ValidationResult) -> None:
        if submission.book_id is not None:
            book = self._reference_data.find_book_by_id(submission.book_id)
        elif submission.book_name is not None:
            book = self._reference_data.find_book_by_name(submission.book_name)
        else:
            return
        _check_active(book, label="Book", result=result)

    def _check_counterparty(self, submission: TradeSubmission, result: ValidationResult) -> None:
        if submission.counterparty_id is not None:
            counterparty = self._reference_data.find_counterparty_by_id(
                submission.counterparty_id
            )
        elif submission.counterparty_name is not None:
            counterparty = self._reference_data.find_counterparty_by_name(
                submission.counterparty_name
            )
        else:
            return
        _check_active(counterparty, label="Counterparty", result=result)


def _check_active(record: Optional[object], *, label: str, result: ValidationResult) -> None:
    if record is None:
        result.add_error(f"{label} does not exist")
    elif not getattr(record, "active", True):
        result.add_error(f"{label} is not active")
