from contextlib import contextmanager
from copy import deepcopy
from threading import RLock
from typing import Any, Iterator, Optional

from src.core.trades.errors import TradeConcurrencyError
from src.core.trades.models import (
    BookRecord,
    CashflowRecord,
    CounterpartyRecord,
    TradeLegRecord,
    TradeRecord,
    TradeStatus,
    TradeStatusRecord,
)
from src.core.trades.repository import ReferenceDataRepository, TradeRepository

_ABSENT = object()


class InMemoryTradeRepository(TradeRepository):
    def __init__(self, *, first_trade_id: int = 100001) -> None:
        self._lock = RLock()
        self._trades: dict[int, TradeRecord] = {}
        self._legs: dict[int, TradeLegRecord] = {}
        self._cashflows: dict[int, CashflowRecord] = {}
        self._sequences = {"trade_row": 0, "leg": 0, "cashflow": 0, "trade_id": first_trade_id - 1}
        self._journal: Optional[list[tuple[dict, int, Any]]] = None

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            if self._journal is not None:
                yield
                return
            sequences = dict(self._sequences)
            self._journal = []
            try:
                yield
            except BaseException:
                # Undo newest first.
                for table, key, previous in reversed(self._journal):
                    if previous is _ABSENT:
                        del table[key]
                    else:
                        table[key] = previous
                self._sequences = sequences
                raise
            finally:
                self._journal = None

    def next_trade_id(self) -> int:
        with self._lock:
            known_ids = [row.trade_id for row in self._trades.values()]
            self._sequences["trade_id"] = max([self._sequences["trade_id"], *known_ids]) + 1
            return self._sequences["trade_id"]

    def save_trade(self, trade: TradeRecord) -> TradeRecord:
        with self._lock:
            if trade.id is None:
                if trade.active and self._find_active(trade.trade_id) is not None:
                    raise TradeConcurrencyError(
                        f"Active version already exists for trade {trade.trade_id}"
                    )
                stored = trade.model_copy(update={"id": self._next("trade_row")})
            else:
                existing = self._trades.get(trade.id)
                # Compare-and-swap on (id, version, active).
                if (
                    existing is None
                    or not existing.active
                    or existing.version != trade.version
                    or existing.trade_id != trade.trade_id
                ):
                    raise TradeConcurrencyError(
                        f"Trade {trade.trade_id} version {trade.version} is no longer active"
                    )
                stored = trade
            self._put(self._trades, stored.id, deepcopy(stored))
            return deepcopy(stored)

    def find_active_trade_by_trade_id(self, trade_id: int) -> Optional[TradeRecord]:
        with self._lock:
            trade = self._find_active(trade_id)
            return deepcopy(trade) if trade is not None else None

    def list_trade_versions(self, trade_id: int) -> list[TradeRecord]:
        with self._lock:
            rows = [row for row in self._trades.values() if row.trade_id == trade_id]
        return [deepcopy(row) for row in sorted(rows, key=lambda x: x.version)]

    def list_active_trades(self) -> list[TradeRecord]:
        with self._lock:
            rows = [row for row in self._trades.values() if row.active]
        return [deepcopy(row) for row in sorted(rows, key=lambda x: x.trade_id)]

    def save_trade_leg(self, leg: TradeLegRecord) -> TradeLegRecord:
        with self._lock:
            stored = leg if leg.leg_id is not None else leg.model_copy(
                update={"leg_id": self._next("leg")}
            )
            self._put(self._legs, stored.leg_id, deepcopy(stored))
            return deepcopy(stored)

    def list_trade_legs(self, trade_row_id: int) -> list[TradeLegRecord]:
        with self._lock:
            rows = [row for row in self._legs.values() if row.trade_row_id == trade_row_id]
        return [deepcopy(row) for row in sorted(rows, key=lambda x: x.leg_no)]

    def save_cashflow(self, cashflow: CashflowRecord) -> CashflowRecord:
        with self._lock:
            stored = cashflow if cashflow.cashflow_id is not None else cashflow.model_copy(
                update={"cashflow_id": self._next("cashflow")}
            )
            self._put(self._cashflows, stored.cashflow_id, deepcopy(stored))
            return deepcopy(stored)

    def list_cashflows(self, leg_id: int) -> list[CashflowRecord]:
        with self._lock:
            rows = [row for row in self._cashflows.values() if row.leg_id == leg_id]
        return [deepcopy(row) for row in sorted(rows, key=lambda x: x.value_date)]

    def _find_active(self, trade_id: int) -> Optional[TradeRecord]:
        return next(
            (row for row in self._trades.values() if row.trade_id == trade_id and row.active),
            None,
        )

    def _put(self, table: dict, key: int, value: Any) -> None:
        if self._journal is not None:
            self._journal.append((table, key, table.get(key, _ABSENT)))
        table[key] = value

    def _next(self, sequence: str) -> int:
        self._sequences[sequence] += 1
        return self._sequences[sequence]


class InMemoryReferenceDataRepository(ReferenceDataRepository):
    def __init__(
        self,
        *,
        books: Optional[list[BookRecord]] = None,
        counterparties: Optional[list[CounterpartyRecord]] = None,
        trade_statuses: Optional[list[TradeStatusRecord]] = None,
    ) -> None:
        self._lock = RLock()
        self._books: dict[int, BookRecord] = {}
        self._counterparties: dict[int, CounterpartyRecord] = {}
        self._trade_statuses: dict[TradeStatus, TradeStatusRecord] = {}
        for book in books or []:
            self.upsert_book(book)
        for counterparty in counterparties or []:
            self.upsert_counterparty(counterparty)
        if trade_statuses is None:
            trade_statuses = default_trade_statuses()
        for trade_status in trade_statuses:
            self.upsert_trade_status(trade_status)

    def upsert_book(self, book: BookRecord) -> None:
        with self._lock:
            self._books[book.book_id] = deepcopy(book)

    def upsert_counterparty(self, counterparty: CounterpartyRecord) -> None:
        with self._lock:
            self._counterparties[counterparty.counterparty_id] = deepcopy(counterparty)

    def upsert_trade_status(self, trade_status: TradeStatusRecord) -> None:
        with self._lock:
            self._trade_statuses[trade_status.trade_status] = deepcopy(trade_status)

    def find_book_by_id(self, book_id: int) -> Optional[BookRecord]:
        with self._lock:
            book = self._books.get(book_id)
            return deepcopy(book) if book is not None else None

    def find_book_by_name(self, book_name: str) -> Optional[BookRecord]:
        with self._lock:
            book = next((row for row in self._books.values() if row.book_name == book_name), None)
            return deepcopy(book) if book is not None else None

    def find_counterparty_by_id(self, counterparty_id: int) -> Optional[CounterpartyRecord]:
        with self._lock:
            counterparty = self._counterparties.get(counterparty_id)
            return deepcopy(counterparty) if counterparty is not None else None

    def find_counterparty_by_name(self, name: str) -> Optional[CounterpartyRecord]:
        with self._lock:
            counterparty = next(
                (row for row in self._counterparties.values() if row.name == name), None
            )
            return deepcopy(counterparty) if counterparty is not None else None

    def find_trade_status_by_name(self, trade_status: str) -> Optional[TradeStatusRecord]:
        try:
            key = TradeStatus(trade_status)
        except ValueError:
            return None
        with self._lock:
            record = self._trade_statuses.get(key)
            return deepcopy(record) if record is not None else None


def default_trade_statuses() -> list[TradeStatusRecord]:
    return [
        TradeStatusRecord(trade_status_id=index, trade_status=status)
        for index, status in enumerate(TradeStatus, start=1)
    ]
