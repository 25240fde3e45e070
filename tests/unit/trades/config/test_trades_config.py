from datetime import date

import pytest

from src.core.trades import CashflowRetentionPolicy, TradeStatus, TradeValidationError
from src.infrastructure.trades import (
    EnvJsonReferenceDataRepository,
    InMemoryTradeRepository,
    SqliteTradeRepository,
)
from src.runtime import trades_config
from tests.factories import fixed_clock, reference_data, submission


def test_store_backend_aliases_and_defaults(monkeypatch):
    assert trades_config.trade_store_backend_name() == "IN_MEMORY"

    monkeypatch.setenv("TRADE_STORE_BACKEND", "sql")
    assert trades_config.trade_store_backend_name() == "SQLITE"

    monkeypatch.setenv("TRADE_STORE_BACKEND", "SQLITE")
    assert trades_config.trade_store_backend_name() == "SQLITE"

    monkeypatch.setenv("TRADE_STORE_BACKEND", "postgres")
    with pytest.warns(RuntimeWarning):
        assert trades_config.trade_store_backend_name() == "IN_MEMORY"


def test_env_parsers(monkeypatch):
    monkeypatch.setenv("TRADE_TEST_FLAG", "yes")
    assert trades_config.env_flag("TRADE_TEST_FLAG", False) is True
    monkeypatch.setenv("TRADE_TEST_FLAG", "off")
    assert trades_config.env_flag("TRADE_TEST_FLAG", True) is False
    assert trades_config.env_flag("TRADE_TEST_MISSING", True) is True

    monkeypatch.setenv("TRADE_TEST_INT", "0")
    assert trades_config.env_non_negative_int("TRADE_TEST_INT", 5) == 0
    monkeypatch.setenv("TRADE_TEST_INT", "-1")
    assert trades_config.env_non_negative_int("TRADE_TEST_INT", 5) == 5
    monkeypatch.setenv("TRADE_TEST_INT", "ten")
    assert trades_config.env_non_negative_int("TRADE_TEST_INT", 5) == 5


def test_rule_and_policy_settings(monkeypatch):
    assert trades_config.max_trade_date_age_days() == 30
    assert trades_config.cancellation_cashflow_policy() == CashflowRetentionPolicy.RETAIN
    assert trades_config.enforce_privileges() is False
    assert trades_config.trade_sqlite_path() == ".data/trades.db"

    monkeypatch.setenv("TRADE_MAX_TRADE_DATE_AGE_DAYS", "7")
    monkeypatch.setenv("TRADE_CANCELLATION_CASHFLOW_POLICY", "zero")
    monkeypatch.setenv("TRADE_ENFORCE_PRIVILEGES", "true")
    monkeypatch.setenv("TRADE_SQLITE_PATH", "custom.db")

    assert trades_config.max_trade_date_age_days() == 7
    assert trades_config.cancellation_cashflow_policy() == CashflowRetentionPolicy.ZERO
    assert trades_config.enforce_privileges() is True
    assert trades_config.trade_sqlite_path() == "custom.db"


def test_unknown_cancellation_policy_warns_and_retains(monkeypatch):
    monkeypatch.setenv("TRADE_CANCELLATION_CASHFLOW_POLICY", "delete")

    with pytest.warns(RuntimeWarning, match="TRADE_CANCELLATION_CASHFLOW_POLICY"):
        policy = trades_config.cancellation_cashflow_policy()

    assert policy == CashflowRetentionPolicy.RETAIN


def test_build_repositories_follow_backend(monkeypatch, tmp_path):
    assert isinstance(trades_config.build_trade_repository(), InMemoryTradeRepository)

    monkeypatch.setenv("TRADE_STORE_BACKEND", "SQLITE")
    monkeypatch.setenv("TRADE_SQLITE_PATH", str(tmp_path / "store" / "trades.db"))
    assert isinstance(trades_config.build_trade_repository(), SqliteTradeRepository)
    assert (tmp_path / "store" / "trades.db").exists()


def test_reference_data_comes_from_env_json(monkeypatch):
    monkeypatch.setenv(
        "TRADE_REFERENCE_DATA_JSON",
        '{"books": [{"book_id": 1, "book_name": "Book1"}]}',
    )

    repo = trades_config.build_reference_data_repository()

    assert isinstance(repo, EnvJsonReferenceDataRepository)
    assert repo.find_book_by_name("Book1").book_id == 1


def test_service_picks_up_staleness_window(monkeypatch):
    monkeypatch.setenv("TRADE_MAX_TRADE_DATE_AGE_DAYS", "2")
    service = trades_config.build_trade_lifecycle_service(
        reference_data=reference_data(), clock=fixed_clock()
    )

    with pytest.raises(TradeValidationError) as exc:
        service.create_trade(submission=submission())

    assert exc.value.errors == ["Trade date cannot be more than 2 days in the past"]


def test_service_picks_up_cancellation_policy(monkeypatch):
    monkeypatch.setenv("TRADE_CANCELLATION_CASHFLOW_POLICY", "ZERO")
    service = trades_config.build_trade_lifecycle_service(
        reference_data=reference_data(), clock=fixed_clock(date(2025, 1, 15))
    )
    service.create_trade(submission=submission())

    service.cancel_trade(trade_id=100001)

    detail = service.get_trade_detail(trade_id=100001)
    assert detail.trade.trade_status == TradeStatus.CANCELLED
    assert detail.cashflows == []
