import argparse
import json
from datetime import date, timedelta
from typing import Any

from src.core.trades import (
    CashflowRetentionPolicy,
    TradeLifecycleService,
    TradeStatus,
    TradeSubmission,
)
from src.core.trades.models import BookRecord, CounterpartyRecord
from src.infrastructure.observability import correlation_scope, setup_logging
from src.infrastructure.trades import InMemoryReferenceDataRepository
from src.runtime.trades_config import build_trade_lifecycle_service


def demo_reference_data() -> InMemoryReferenceDataRepository:
    return InMemoryReferenceDataRepository(
        books=[BookRecord(book_id=1, book_name="Book1")],
        counterparties=[CounterpartyRecord(counterparty_id=1, name="Counterparty1")],
    )


class DemoRunError(RuntimeError):
    pass


def _assert(condition: bool, message: str) -> None:
    if not condition:
        raise DemoRunError(message)


def _submission(trade_date: date, *, fixed_rate: str, schedule: str) -> TradeSubmission:
    return TradeSubmission.model_validate(
        {
            "trade_date": trade_date.isoformat(),
            "trade_start_date": (trade_date + timedelta(days=2)).isoformat(),
            "trade_maturity_date": (trade_date + timedelta(days=367)).isoformat(),
            "book_name": "Book1",
            "counterparty_name": "Counterparty1",
            "trade_status": "NEW",
            "trade_legs": [
                {
                    "notional": "1000000",
                    "rate": fixed_rate,
                    "leg_type": "Fixed",
                    "pay_receive_flag": "Pay",
                    "calculation_schedule": schedule,
                },
                {
                    "notional": "1000000",
                    "rate": "0",
                    "leg_type": "Floating",
                    "pay_receive_flag": "Receive",
                    "index_name": "SOFR",
                    "calculation_schedule": schedule,
                },
            ],
        }
    )


def run_demo(
    service: TradeLifecycleService,
    *,
    trade_date: date,
    schedule: str,
    cashflow_retention: CashflowRetentionPolicy,
) -> dict[str, Any]:
    created = service.create_trade(
        submission=_submission(trade_date, fixed_rate="0.05", schedule=schedule)
    )
    _assert(created.version == 1 and created.active, "create: expected active version 1")

    amended = service.amend_trade(
        trade_id=created.trade_id,
        submission=_submission(trade_date, fixed_rate="0.055", schedule=schedule),
    )
    _assert(amended.version == 2, "amend: expected version 2")
    _assert(amended.trade_status == TradeStatus.AMENDED, "amend: expected AMENDED status")

    detail = service.get_trade_detail(trade_id=created.trade_id)

    cancelled = service.cancel_trade(
        trade_id=created.trade_id, cashflow_retention=cashflow_retention
    )
    _assert(cancelled.trade_status == TradeStatus.CANCELLED, "cancel: expected CANCELLED")

    history = service.get_trade_history(trade_id=created.trade_id)
    return {
        "trade_id": created.trade_id,
        "versions": [
            {"version": row.version, "status": row.trade_status.value, "active": row.active}
            for row in history
        ],
        "amended_cashflows": [
            {
                "leg_id": row.leg_id,
                "value_date": row.value_date.isoformat(),
                "amount": str(row.amount),
                "pay_receive_flag": row.pay_receive_flag.value,
            }
            for row in detail.cashflows
        ],
        "cancelled_cashflow_count": len(
            service.get_trade_detail(trade_id=created.trade_id).cashflows
        ),
    }


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Book, amend and cancel a demo swap against the configured trade store."
    )
    parser.add_argument(
        "--schedule",
        default="Quarterly",
        help="Calculation schedule for both legs (Monthly, Quarterly, SemiAnnual, Annual).",
    )
    parser.add_argument(
        "--cashflow-retention",
        default="RETAIN",
        choices=[policy.value for policy in CashflowRetentionPolicy],
        help="Cashflow policy applied to the cancelled version.",
    )
    args = parser.parse_args(argv)

    setup_logging()
    service = build_trade_lifecycle_service(reference_data=demo_reference_data())
    with correlation_scope():
        summary = run_demo(
            service,
            trade_date=date.today(),
            schedule=args.schedule,
            cashflow_retention=CashflowRetentionPolicy(args.cashflow_retention),
        )
    print(json.dumps(summary, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
