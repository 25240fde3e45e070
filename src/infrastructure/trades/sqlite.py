import sqlite3
import threading
from contextlib import closing, contextmanager
from pathlib import Path
from typing import Iterator, Optional

from src.core.trades.errors import TradeConcurrencyError
from src.core.trades.models import CashflowRecord, TradeLegRecord, TradeRecord
from src.core.trades.repository import TradeRepository


class SqliteTradeRepository(TradeRepository):
    def __init__(self, *, database_path: str, first_trade_id: int = 100001) -> None:
        self._database_path = database_path
        self._first_trade_id = first_trade_id
        self._local = threading.local()
        self._init_db()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if getattr(self._local, "connection", None) is not None:
            yield
            return
        with closing(self._connect()) as connection:
            connection.execute("BEGIN IMMEDIATE")
            self._local.connection = connection
            try:
                yield
            except BaseException:
                connection.execute("ROLLBACK")
                raise
            else:
                connection.execute("COMMIT")
            finally:
                self._local.connection = None

    def next_trade_id(self) -> int:
        query = """
            INSERT INTO trade_id_sequence (name, value)
            VALUES ('trade_id', MAX(?, COALESCE((SELECT MAX(trade_id) FROM trades), 0) + 1))
            ON CONFLICT(name) DO UPDATE SET
                value = MAX(
                    trade_id_sequence.value + 1,
                    COALESCE((SELECT MAX(trade_id) FROM trades), 0) + 1
                )
        """
        with self._connection() as connection:
            connection.execute(query, (self._first_trade_id,))
            row = connection.execute(
                "SELECT value FROM trade_id_sequence WHERE name = 'trade_id'"
            ).fetchone()
        return int(row["value"])

    def save_trade(self, trade: TradeRecord) -> TradeRecord:
        if trade.id is None:
            return self._insert_trade(trade)
        query = """
            UPDATE trades SET
                active = ?,
                trade_status = ?,
                trade_status_id = ?,
                deactivated_at = ?
            WHERE id = ? AND trade_id = ? AND version = ? AND active = 1
        """
        with self._connection() as connection:
            cursor = connection.execute(
                query,
                (
                    int(trade.active),
                    trade.trade_status.value,
                    trade.trade_status_id,
                    trade.deactivated_at.isoformat() if trade.deactivated_at else None,
                    trade.id,
                    trade.trade_id,
                    trade.version,
                ),
            )
        if cursor.rowcount != 1:
            raise TradeConcurrencyError(
                f"Trade {trade.trade_id} version {trade.version} is no longer active"
            )
        return trade.model_copy()

    def find_active_trade_by_trade_id(self, trade_id: int) -> Optional[TradeRecord]:
        query = f"SELECT {_TRADE_COLUMNS} FROM trades WHERE trade_id = ? AND active = 1"
        with self._connection() as connection:
            row = connection.execute(query, (trade_id,)).fetchone()
        return TradeRecord.model_validate(dict(row)) if row is not None else None

    def list_trade_versions(self, trade_id: int) -> list[TradeRecord]:
        query = f"SELECT {_TRADE_COLUMNS} FROM trades WHERE trade_id = ? ORDER BY version ASC"
        with self._connection() as connection:
            rows = connection.execute(query, (trade_id,)).fetchall()
        return [TradeRecord.model_validate(dict(row)) for row in rows]

    def list_active_trades(self) -> list[TradeRecord]:
        query = f"SELECT {_TRADE_COLUMNS} FROM trades WHERE active = 1 ORDER BY trade_id ASC"
        with self._connection() as connection:
            rows = connection.execute(query).fetchall()
        return [TradeRecord.model_validate(dict(row)) for row in rows]

    def save_trade_leg(self, leg: TradeLegRecord) -> TradeLegRecord:
        query = """
            INSERT INTO trade_legs (
                trade_row_id,
                leg_no,
                notional,
                rate,
                leg_type,
                pay_receive_flag,
                index_name,
                calculation_schedule
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """
        with self._connection() as connection:
            cursor = connection.execute(
                query,
                (
                    leg.trade_row_id,
                    leg.leg_no,
                    str(leg.notional),
                    str(leg.rate) if leg.rate is not None else None,
                    leg.leg_type.value,
                    leg.pay_receive_flag.value,
                    leg.index_name,
                    leg.calculation_schedule.value if leg.calculation_schedule else None,
                ),
            )
        return leg.model_copy(update={"leg_id": cursor.lastrowid})

    def list_trade_legs(self, trade_row_id: int) -> list[TradeLegRecord]:
        query = """
            SELECT
                leg_id,
                trade_row_id,
                leg_no,
                notional,
                rate,
                leg_type,
                pay_receive_flag,
                index_name,
                calculation_schedule
            FROM trade_legs
            WHERE trade_row_id = ?
            ORDER BY leg_no ASC
        """
        with self._connection() as connection:
            rows = connection.execute(query, (trade_row_id,)).fetchall()
        return [TradeLegRecord.model_validate(dict(row)) for row in rows]

    def save_cashflow(self, cashflow: CashflowRecord) -> CashflowRecord:
        query = """
            INSERT INTO cashflows (
                leg_id,
                value_date,
                amount,
                pay_receive_flag,
                rate
            ) VALUES (?, ?, ?, ?, ?)
        """
        with self._connection() as connection:
            cursor = connection.execute(
                query,
                (
                    cashflow.leg_id,
                    cashflow.value_date.isoformat(),
                    str(cashflow.amount),
                    cashflow.pay_receive_flag.value,
                    str(cashflow.rate),
                ),
            )
        return cashflow.model_copy(update={"cashflow_id": cursor.lastrowid})

    def list_cashflows(self, leg_id: int) -> list[CashflowRecord]:
        query = """
            SELECT cashflow_id, leg_id, value_date, amount, pay_receive_flag, rate
            FROM cashflows
            WHERE leg_id = ?
            ORDER BY value_date ASC, cashflow_id ASC
        """
        with self._connection() as connection:
            rows = connection.execute(query, (leg_id,)).fetchall()
        return [CashflowRecord.model_validate(dict(row)) for row in rows]

    def _insert_trade(self, trade: TradeRecord) -> TradeRecord:
        query = """
            INSERT INTO trades (
                trade_id,
                version,
                active,
                trade_date,
                trade_start_date,
                trade_maturity_date,
                trade_status,
                trade_status_id,
                book_id,
                counterparty_id,
                created_at,
                deactivated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """
        try:
            with self._connection() as connection:
                cursor = connection.execute(
                    query,
                    (
                        trade.trade_id,
                        trade.version,
                        int(trade.active),
                        trade.trade_date.isoformat(),
                        trade.trade_start_date.isoformat(),
                        trade.trade_maturity_date.isoformat(),
                        trade.trade_status.value,
                        trade.trade_status_id,
                        trade.book_id,
                        trade.counterparty_id,
                        trade.created_at.isoformat(),
                        trade.deactivated_at.isoformat() if trade.deactivated_at else None,
                    ),
                )
        except sqlite3.IntegrityError as exc:
            raise TradeConcurrencyError(
                f"Trade {trade.trade_id} version {trade.version} conflicts with a stored version"
            ) from exc
        return trade.model_copy(update={"id": cursor.lastrowid})

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        connection = getattr(self._local, "connection", None)
        if connection is not None:
            yield connection
            return
        with closing(self._connect()) as connection:
            yield connection

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._database_path, isolation_level=None)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON")
        return connection

    def _init_db(self) -> None:
        Path(self._database_path).parent.mkdir(parents=True, exist_ok=True)
        with closing(self._connect()) as connection:
            connection.executescript(
                """
                CREATE TABLE IF NOT EXISTS trades (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    trade_id INTEGER NOT NULL,
                    version INTEGER NOT NULL,
                    active INTEGER NOT NULL,
                    trade_date TEXT NOT NULL,
                    trade_start_date TEXT NOT NULL,
                    trade_maturity_date TEXT NOT NULL,
                    trade_status TEXT NOT NULL,
                    trade_status_id INTEGER NULL,
                    book_id INTEGER NOT NULL,
                    counterparty_id INTEGER NOT NULL,
                    created_at TEXT NOT NULL,
                    deactivated_at TEXT NULL,
                    UNIQUE (trade_id, version)
                );

                CREATE UNIQUE INDEX IF NOT EXISTS ux_trades_single_active
                    ON trades (trade_id) WHERE active = 1;

                CREATE TABLE IF NOT EXISTS trade_legs (
                    leg_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    trade_row_id INTEGER NOT NULL REFERENCES trades (id),
                    leg_no INTEGER NOT NULL,
                    notional TEXT NOT NULL,
                    rate TEXT NULL,
                    leg_type TEXT NOT NULL,
                    pay_receive_flag TEXT NOT NULL,
                    index_name TEXT NULL,
                    calculation_schedule TEXT NULL
                );

                CREATE TABLE IF NOT EXISTS cashflows (
                    cashflow_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    leg_id INTEGER NOT NULL REFERENCES trade_legs (leg_id),
                    value_date TEXT NOT NULL,
                    amount TEXT NOT NULL,
                    pay_receive_flag TEXT NOT NULL,
                    rate TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS trade_id_sequence (
                    name TEXT PRIMARY KEY,
                    value INTEGER NOT NULL
                );
                """
            )


_TRADE_COLUMNS = """
    id,
    trade_id,
    version,
    active,
    trade_date,
    trade_start_date,
    trade_maturity_date,
    trade_status,
    trade_status_id,
    book_id,
    counterparty_id,
    created_at,
    deactivated_at
"""
