from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path
from tempfile import TemporaryDirectory

import pytest

from src.core.trades import (
    CashflowRetentionPolicy,
    TradeConcurrencyError,
    TradeLifecycleService,
    TradeStatus,
)
from src.core.trades.models import TradeRecord
from src.infrastructure.trades import InMemoryTradeRepository, SqliteTradeRepository
from tests.factories import fixed_clock, fixed_leg, floating_leg, reference_data, submission


@pytest.fixture(params=["IN_MEMORY", "SQLITE"])
def repository(request):
    if request.param == "IN_MEMORY":
        yield InMemoryTradeRepository()
        return
    with TemporaryDirectory() as tmp_dir:
        yield SqliteTradeRepository(database_path=str(Path(tmp_dir) / "trades.sqlite"))


@pytest.fixture
def lifecycle(repository):
    return TradeLifecycleService(
        trade_repository=repository,
        reference_data=reference_data(),
        clock=fixed_clock(),
    )


def _trade(trade_id=100001, version=1):
    return TradeRecord(
        trade_id=trade_id,
        version=version,
        active=True,
        trade_date=date(2025, 1, 15),
        trade_start_date=date(2025, 1, 17),
        trade_maturity_date=date(2026, 1, 17),
        trade_status=TradeStatus.NEW,
        trade_status_id=1,
        book_id=1,
        counterparty_id=1,
        created_at=datetime(2025, 1, 20, 9, 30, tzinfo=timezone.utc),
    )


def test_trade_rows_round_trip_through_store(repository):
    stored = repository.save_trade(_trade())

    found = repository.find_active_trade_by_trade_id(100001)

    assert found == stored
    assert found.created_at == datetime(2025, 1, 20, 9, 30, tzinfo=timezone.utc)
    assert repository.find_active_trade_by_trade_id(100002) is None


def test_store_allows_single_active_version(repository):
    repository.save_trade(_trade())

    with pytest.raises(TradeConcurrencyError):
        repository.save_trade(_trade(version=2))


def test_stale_supersede_is_rejected(repository):
    stored = repository.save_trade(_trade())
    repository.save_trade(stored.model_copy(update={"active": False}))

    with pytest.raises(TradeConcurrencyError):
        repository.save_trade(stored.model_copy(update={"active": False}))


def test_failed_transaction_leaves_no_rows(repository):
    with pytest.raises(RuntimeError):
        with repository.transaction():
            repository.save_trade(_trade())
            raise RuntimeError("abort")

    assert repository.list_trade_versions(100001) == []


def test_next_trade_id_is_monotonic(repository):
    first = repository.next_trade_id()
    repository.save_trade(_trade(trade_id=first))

    assert first == 100001
    assert repository.next_trade_id() == 100002


def test_full_lifecycle_against_store(lifecycle):
    lifecycle.create_trade(submission=submission())
    lifecycle.amend_trade(
        trade_id=100001,
        submission=submission(
            trade_status="AMENDED",
            trade_legs=[fixed_leg("Pay", rate="0.06", schedule="Quarterly"), floating_leg()],
        ),
    )
    detail = lifecycle.get_trade_detail(trade_id=100001)
    lifecycle.cancel_trade(trade_id=100001, cashflow_retention=CashflowRetentionPolicy.ZERO)

    history = lifecycle.get_trade_history(trade_id=100001)

    assert [(row.version, row.active, row.trade_status) for row in history] == [
        (1, False, TradeStatus.SUPERSEDED),
        (2, False, TradeStatus.SUPERSEDED),
        (3, True, TradeStatus.CANCELLED),
    ]
    fixed_leg_id = detail.legs[0].leg_id
    assert [row.amount for row in detail.cashflows if row.leg_id == fixed_leg_id] == [
        Decimal("15000.00")
    ] * 3
    assert lifecycle.get_trade_detail(trade_id=100001).cashflows == []
    assert [row.trade_id for row in lifecycle.list_active_trades()] == [100001]


def test_lifecycle_rolls_back_partial_amendment(lifecycle, repository, monkeypatch):
    lifecycle.create_trade(submission=submission())

    def _fail(_leg):
        raise RuntimeError("leg store unavailable")

    monkeypatch.setattr(repository, "save_trade_leg", _fail)

    with pytest.raises(RuntimeError):
        lifecycle.amend_trade(trade_id=100001, submission=submission(trade_status="AMENDED"))

    current = lifecycle.get_trade_by_id(trade_id=100001)
    assert current.version == 1
    assert current.trade_status == TradeStatus.NEW
    assert len(lifecycle.get_trade_history(trade_id=100001)) == 1
