import os
import warnings
from typing import Optional, cast

from src.core.common.clock import Clock, SystemClock
from src.core.trades.business_rules import (
    DEFAULT_MAX_TRADE_DATE_AGE_DAYS,
    BusinessRuleValidator,
)
from src.core.trades.models import CashflowRetentionPolicy
from src.core.trades.repository import ReferenceDataRepository, TradeRepository
from src.core.trades.service import TradeLifecycleService
from src.infrastructure.trades import (
    EnvJsonReferenceDataRepository,
    InMemoryTradeRepository,
    SqliteTradeRepository,
)


def env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def env_non_negative_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    return parsed if parsed >= 0 else default


def trade_store_backend_name() -> str:
    backend = os.getenv("TRADE_STORE_BACKEND", "IN_MEMORY").strip().upper()
    if backend in {"SQL", "SQLITE"}:
        return "SQLITE"
    if backend != "IN_MEMORY":
        warnings.warn(
            f"TRADE_STORE_BACKEND value {backend!r} is not recognised; using IN_MEMORY.",
            RuntimeWarning,
            stacklevel=2,
        )
    return "IN_MEMORY"


def trade_sqlite_path() -> str:
    return os.getenv("TRADE_SQLITE_PATH", ".data/trades.db")


def max_trade_date_age_days() -> int:
    return env_non_negative_int("TRADE_MAX_TRADE_DATE_AGE_DAYS", DEFAULT_MAX_TRADE_DATE_AGE_DAYS)


def cancellation_cashflow_policy() -> CashflowRetentionPolicy:
    value = os.getenv("TRADE_CANCELLATION_CASHFLOW_POLICY", "RETAIN").strip().upper()
    if value == "ZERO":
        return CashflowRetentionPolicy.ZERO
    if value != "RETAIN":
        warnings.warn(
            f"TRADE_CANCELLATION_CASHFLOW_POLICY value {value!r} is not recognised; using RETAIN.",
            RuntimeWarning,
            stacklevel=2,
        )
    return CashflowRetentionPolicy.RETAIN


def enforce_privileges() -> bool:
    return env_flag("TRADE_ENFORCE_PRIVILEGES", False)


def build_trade_repository() -> TradeRepository:
    if trade_store_backend_name() == "SQLITE":
        return cast(TradeRepository, SqliteTradeRepository(database_path=trade_sqlite_path()))
    return cast(TradeRepository, InMemoryTradeRepository())


def build_reference_data_repository() -> ReferenceDataRepository:
    return cast(
        ReferenceDataRepository,
        EnvJsonReferenceDataRepository(catalog_json=os.getenv("TRADE_REFERENCE_DATA_JSON")),
    )


def build_trade_lifecycle_service(
    *,
    trade_repository: Optional[TradeRepository] = None,
    reference_data: Optional[ReferenceDataRepository] = None,
    clock: Optional[Clock] = None,
) -> TradeLifecycleService:
    trade_repository = trade_repository or build_trade_repository()
    reference_data = reference_data or build_reference_data_repository()
    clock = clock or SystemClock()
    return TradeLifecycleService(
        trade_repository=trade_repository,
        reference_data=reference_data,
        clock=clock,
        business_rule_validator=BusinessRuleValidator(
            reference_data=reference_data,
            clock=clock,
            max_trade_date_age_days=max_trade_date_age_days(),
        ),
        default_cashflow_retention=cancellation_cashflow_policy(),
        enforce_privileges=enforce_privileges(),
    )
