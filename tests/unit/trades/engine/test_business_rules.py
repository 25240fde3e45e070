from datetime import date

import pytest

from src.core.trades.business_rules import BusinessRuleValidator
from tests.factories import fixed_clock, reference_data, submission


def _validator(**kwargs) -> BusinessRuleValidator:
    return BusinessRuleValidator(reference_data=reference_data(), clock=fixed_clock(), **kwargs)


def test_valid_submission_passes():
    result = _validator().validate_trade_business_rules(submission())

    assert result.is_valid(), result.errors()


@pytest.mark.parametrize(
    "trade_date,start_date",
    [
        (date(2025, 1, 15), date(2025, 1, 14)),
        (date(2025, 1, 19), date(2025, 1, 1)),
    ],
)
def test_start_before_trade_date_is_rejected(trade_date, start_date):
    result = _validator().validate_trade_business_rules(
        submission(trade_date=trade_date, trade_start_date=start_date)
    )

    assert "Start date cannot be before trade date" in result.errors()


def test_maturity_ordering_errors_accumulate():
    result = _validator().validate_trade_business_rules(
        submission(
            trade_date=date(2025, 1, 15),
            trade_start_date=date(2025, 1, 17),
            trade_maturity_date=date(2025, 1, 10),
        )
    )

    assert result.errors() == [
        "Maturity date cannot be before start date",
        "Maturity date cannot be before trade date",
    ]


def test_missing_trade_and_start_dates_are_reported():
    result = _validator().validate_trade_business_rules(
        submission(trade_date=None, trade_start_date=None)
    )

    assert result.errors() == [
        "Trade date must be defined",
        "Trade start date must be defined",
    ]


def test_stale_trade_date_uses_injected_clock():
    thirty_days_old = submission(
        trade_date=date(2024, 12, 21), trade_start_date=date(2024, 12, 23)
    )
    thirty_one_days_old = submission(
        trade_date=date(2024, 12, 20), trade_start_date=date(2024, 12, 23)
    )

    assert _validator().validate_trade_business_rules(thirty_days_old).is_valid()
    assert _validator().validate_trade_business_rules(thirty_one_days_old).errors() == [
        "Trade date cannot be more than 30 days in the past"
    ]


def test_staleness_window_is_configurable():
    result = _validator(max_trade_date_age_days=3).validate_trade_business_rules(submission())

    assert result.errors() == ["Trade date cannot be more than 3 days in the past"]


def test_book_and_counterparty_must_exist():
    result = _validator().validate_trade_business_rules(
        submission(book_name="NoSuchBook", counterparty_name="NoSuchCounterparty")
    )

    assert result.errors() == ["Book does not exist", "Counterparty does not exist"]


def test_inactive_book_and_counterparty_are_rejected():
    result = _validator().validate_trade_business_rules(
        submission(book_name="ClosedBook", counterparty_name="DormantCounterparty")
    )

    assert result.errors() == ["Book is not active", "Counterparty is not active"]


def test_reference_ids_take_precedence_over_names():
    result = _validator().validate_trade_business_rules(
        submission(book_id=2, book_name="Book1", counterparty_id=1, counterparty_name="Nope")
    )

    assert result.errors() == ["Book is not active"]


def test_reference_checks_skipped_without_id_or_name():
    result = _validator().validate_trade_business_rules(
        submission(book_name=None, counterparty_name=None)
    )

    assert result.is_valid()


def test_date_and_reference_errors_do_not_short_circuit():
    result = _validator().validate_trade_business_rules(
        submission(
            trade_date=date(2024, 11, 1),
            trade_start_date=date(2024, 10, 1),
            book_name="ClosedBook",
            counterparty_name="NoSuchCounterparty",
        )
    )

    assert result.errors() == [
        "Start date cannot be before trade date",
        "Trade date cannot be more than 30 days in the past",
        "Book is not active",
        "Counterparty does not exist",
    ]
