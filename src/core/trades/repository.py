from typing import ContextManager, Optional, Protocol

from src.core.trades.models import (
    BookRecord,
    CashflowRecord,
    CounterpartyRecord,
    TradeLegRecord,
    TradeRecord,
    TradeStatusRecord,
)


class ReferenceDataRepository(Protocol):
    def find_book_by_id(self, book_id: int) -> Optional[BookRecord]: ...

    def find_book_by_name(self, book_name: str) -> Optional[BookRecord]: ...

    def find_counterparty_by_id(self, counterparty_id: int) -> Optional[CounterpartyRecord]: ...

    def find_counterparty_by_name(self, name: str) -> Optional[CounterpartyRecord]: ...

    def find_trade_status_by_name(self, trade_status: str) -> Optional[TradeStatusRecord]: ...


class TradeRepository(Protocol):
    def transaction(self) -> ContextManager[None]: ...

    def next_trade_id(self) -> int: ...

    def save_trade(self, trade: TradeRecord) -> TradeRecord: ...

    def find_active_trade_by_trade_id(self, trade_id: int) -> Optional[TradeRecord]: ...

    def list_trade_versions(self, trade_id: int) -> list[TradeRecord]: ...

    def list_active_trades(self) -> list[TradeRecord]: ...

    def save_trade_leg(self, leg: TradeLegRecord) -> TradeLegRecord: ...

    def list_trade_legs(self, trade_row_id: int) -> list[TradeLegRecord]: ...

    def save_cashflow(self, cashflow: CashflowRecord) -> CashflowRecord: ...

    def list_cashflows(self, leg_id: int) -> list[CashflowRecord]: ...
