from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class _CaseInsensitiveEnum(str, Enum):
    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            normalized = value.strip().replace("_", "").replace("-", "").lower()
            for member in cls:
                if member.value.replace("_", "").lower() == normalized:
                    return member
        return None


class LegType(_CaseInsensitiveEnum):
    FIXED = "Fixed"
    FLOATING = "Floating"


class PayReceiveFlag(_CaseInsensitiveEnum):
    PAY = "Pay"
    RECEIVE = "Receive"


class Periodicity(_CaseInsensitiveEnum):
    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"
    SEMI_ANNUAL = "SemiAnnual"
    ANNUAL = "Annual"

    @property
    def step_months(self) -> int:
        return _STEP_MONTHS[self]


_STEP_MONTHS = {
    Periodicity.MONTHLY: 1,
    Periodicity.QUARTERLY: 3,
    Periodicity.SEMI_ANNUAL: 6,
    Periodicity.ANNUAL: 12,
}


class TradeStatus(_CaseInsensitiveEnum):
    NEW = "NEW"
    AMENDED = "AMENDED"
    SUPERSEDED = "SUPERSEDED"
    CANCELLED = "CANCELLED"
    TERMINATED = "TERMINATED"


TERMINAL_STATUSES = {TradeStatus.SUPERSEDED, TradeStatus.CANCELLED, TradeStatus.TERMINATED}


class UserRole(_CaseInsensitiveEnum):
    TRADER = "TRADER"
    SALES = "SALES"
    MIDDLE_OFFICE = "MIDDLE_OFFICE"
    SUPPORT = "SUPPORT"


class TradeOperation(_CaseInsensitiveEnum):
    CREATE = "CREATE"
    AMEND = "AMEND"
    TERMINATE = "TERMINATE"
    CANCEL = "CANCEL"
    VIEW = "VIEW"


class CashflowRetentionPolicy(_CaseInsensitiveEnum):
    RETAIN = "RETAIN"
    ZERO = "ZERO"


class TradeLegSubmission(BaseModel):
    notional: Optional[Decimal] = Field(
        default=None,
        description="Leg principal used for cashflow accrual.",
        examples=["1000000"],
    )
    rate: Optional[Decimal] = Field(
        default=None,
        description="Flat annual rate. Required for fixed legs, indicative for floating legs.",
        examples=["0.05"],
    )
    leg_type: Optional[LegType] = Field(
        default=None, description="Fixed or Floating.", examples=["Fixed"]
    )
    pay_receive_flag: Optional[PayReceiveFlag] = Field(
        default=None, description="Pay or Receive.", examples=["Pay"]
    )
    index_name: Optional[str] = Field(
        default=None,
        description="Floating rate index. Required for floating legs.",
        examples=["SOFR"],
    )
    calculation_schedule: Optional[Periodicity] = Field(
        default=None,
        description="Cashflow periodicity.",
        examples=["Quarterly"],
    )


class TradeSubmission(BaseModel):
    trade_id: Optional[int] = Field(
        default=None,
        description="Business trade identifier. Assigned by the engine when omitted on create.",
        examples=[100001],
    )
    trade_date: Optional[date] = Field(default=None, examples=["2025-01-15"])
    trade_start_date: Optional[date] = Field(default=None, examples=["2025-01-17"])
    trade_maturity_date: Optional[date] = Field(default=None, examples=["2026-01-17"])
    book_id: Optional[int] = Field(default=None, examples=[1])
    book_name: Optional[str] = Field(default=None, examples=["Book1"])
    counterparty_id: Optional[int] = Field(default=None, examples=[1])
    counterparty_name: Optional[str] = Field(default=None, examples=["Counterparty1"])
    trade_status: Optional[str] = Field(
        default=None,
        description="Requested lifecycle status name.",
        examples=["NEW"],
    )
    trade_legs: List[TradeLegSubmission] = Field(
        default_factory=list,
        description="Trade legs in submission order. Exactly two are required to book.",
    )


class BookRecord(BaseModel):
    book_id: int
    book_name: str
    active: bool = True


class CounterpartyRecord(BaseModel):
    counterparty_id: int
    name: str
    active: bool = True


class TradeStatusRecord(BaseModel):
    trade_status_id: int
    trade_status: TradeStatus


class TradeRecord(BaseModel):
    id: Optional[int] = Field(default=None, description="Internal row id for this version.")
    trade_id: int = Field(description="Business trade identifier, stable across versions.")
    version: int = Field(ge=1, description="Monotonic version number.")
    active: bool = Field(description="True only for the currently effective version.")
    trade_date: date
    trade_start_date: date
    trade_maturity_date: date
    trade_status: TradeStatus
    trade_status_id: Optional[int] = None
    book_id: int
    counterparty_id: int
    created_at: datetime
    deactivated_at: Optional[datetime] = None


class TradeLegRecord(BaseModel):
    leg_id: Optional[int] = None
    trade_row_id: int = Field(description="Row id of the owning trade version.")
    leg_no: int = Field(ge=1, le=2)
    notional: Decimal = Field(ge=0)
    rate: Optional[Decimal] = None
    leg_type: LegType
    pay_receive_flag: PayReceiveFlag
    index_name: Optional[str] = None
    calculation_schedule: Optional[Periodicity] = None


class CashflowRecord(BaseModel):
    cashflow_id: Optional[int] = None
    leg_id: int
    value_date: date
    amount: Decimal
    pay_receive_flag: PayReceiveFlag
    rate: Decimal


class TradeDetail(BaseModel):
    trade: TradeRecord
    legs: List[TradeLegRecord] = Field(default_factory=list)
    cashflows: List[CashflowRecord] = Field(default_factory=list)
