import logging
from typing import Optional, Sequence

from src.core.common.clock import Clock
from src.core.trades.business_rules import BusinessRuleValidator
from src.core.trades.cashflows import CashflowScheduleGenerator
from src.core.trades.errors import (
    TradeNotFoundError,
    TradePermissionError,
    TradeReferenceNotFoundError,
    TradeStateConflictError,
    TradeValidationError,
)
from src.core.trades.leg_consistency import LegConsistencyValidator
from src.core.trades.models import (
    TERMINAL_STATUSES,
    BookRecord,
    CashflowRecord,
    CashflowRetentionPolicy,
    CounterpartyRecord,
    TradeDetail,
    TradeLegRecord,
    TradeLegSubmission,
    TradeOperation,
    TradeRecord,
    TradeStatus,
    TradeStatusRecord,
    TradeSubmission,
    UserRole,
)
from src.core.trades.privileges import validate_user_privileges
from src.core.trades.repository import ReferenceDataRepository, TradeRepository

logger = logging.getLogger(__name__)


class TradeLifecycleService:
    """
    Books, amends, cancels and terminates trades.

    Every write goes through the trade repository inside a single transaction per
    operation. Amendments are append-only: the active version is deactivated and
    stamped SUPERSEDED, and a new version with version + 1 becomes active.
    """

    def __init__(
        self,
        *,
        trade_repository: TradeRepository,
        reference_data: ReferenceDataRepository,
        clock: Clock,
        business_rule_validator: Optional[BusinessRuleValidator] = None,
        leg_consistency_validator: Optional[LegConsistencyValidator] = None,
        cashflow_generator: Optional[CashflowScheduleGenerator] = None,
        default_cashflow_retention: CashflowRetentionPolicy = CashflowRetentionPolicy.RETAIN,
        enforce_privileges: bool = False,
    ) -> None:
        self._trade_repository = trade_repository
        self._reference_data = reference_data
        self._clock = clock
        self._business_rule_validator = business_rule_validator or BusinessRuleValidator(
            reference_data=reference_data, clock=clock
        )
        self._leg_consistency_validator = leg_consistency_validator or LegConsistencyValidator()
        self._cashflow_generator = cashflow_generator or CashflowScheduleGenerator(
            trade_repository=trade_repository
        )
        self._default_cashflow_retention = default_cashflow_retention
        self._enforce_privileges = enforce_privileges

    def create_trade(
        self, *, submission: TradeSubmission, actor_role: Optional[UserRole] = None
    ) -> TradeRecord:
        self._check_privilege(actor_role, TradeOperation.CREATE)
        self._validate(submission, trade_id=submission.trade_id)

        book = self._resolve_book(submission)
        counterparty = self._resolve_counterparty(submission)
        status = self._resolve_requested_status(submission.trade_status or TradeStatus.NEW.value)
        if status.trade_status != TradeStatus.NEW:
            raise TradeValidationError(
                [f"New trades must be booked with status NEW, not {status.trade_status.value}"]
            )

        with self._trade_repository.transaction():
            trade_id = submission.trade_id
            if trade_id is None:
                trade_id = self._trade_repository.next_trade_id()
            elif self._trade_repository.find_active_trade_by_trade_id(trade_id) is not None:
                raise TradeStateConflictError(f"Trade already exists: {trade_id}")

            trade = self._trade_repository.save_trade(
                TradeRecord(
                    trade_id=trade_id,
                    version=1,
                    active=True,
                    trade_date=submission.trade_date,
                    trade_start_date=submission.trade_start_date,
                    trade_maturity_date=submission.trade_maturity_date,
                    trade_status=status.trade_status,
                    trade_status_id=status.trade_status_id,
                    book_id=book.book_id,
                    counterparty_id=counterparty.counterparty_id,
                    created_at=self._clock.now(),
                )
            )
            legs = self._save_submitted_legs(trade, submission.trade_legs)
            cashflow_count = self._generate_cashflows(trade, legs)

        logger.info(
            "trade.created",
            extra={
                "extra_fields": {
                    "trade_id": trade.trade_id,
                    "version": trade.version,
                    "trade_status": trade.trade_status.value,
                    "cashflow_count": cashflow_count,
                }
            },
        )
        return trade

    def amend_trade(
        self,
        *,
        trade_id: int,
        submission: TradeSubmission,
        actor_role: Optional[UserRole] = None,
    ) -> TradeRecord:
        self._check_privilege(actor_role, TradeOperation.AMEND)
        current = self._require_amendable(trade_id)
        self._validate(submission, trade_id=trade_id)

        book = self._resolve_book(submission)
        counterparty = self._resolve_counterparty(submission)
        status = self._resolve_requested_status(
            submission.trade_status or TradeStatus.AMENDED.value
        )
        if status.trade_status == TradeStatus.NEW:
            status = self._resolve_status(TradeStatus.AMENDED.value)
        elif status.trade_status in TERMINAL_STATUSES:
            # Terminal statuses are reachable only through _close_out.
            raise TradeValidationError(
                [
                    f"Trade status {status.trade_status.value} cannot be set by amendment; "
                    "use cancel_trade or terminate_trade"
                ]
            )
        superseded = self._resolve_status(TradeStatus.SUPERSEDED.value)

        with self._trade_repository.transaction():
            self._supersede(current, superseded)
            trade = self._trade_repository.save_trade(
                TradeRecord(
                    trade_id=trade_id,
                    version=current.version + 1,
                    active=True,
                    trade_date=submission.trade_date,
                    trade_start_date=submission.trade_start_date,
                    trade_maturity_date=submission.trade_maturity_date,
                    trade_status=status.trade_status,
                    trade_status_id=status.trade_status_id,
                    book_id=book.book_id,
                    counterparty_id=counterparty.counterparty_id,
                    created_at=self._clock.now(),
                )
            )
            legs = self._save_submitted_legs(trade, submission.trade_legs)
            cashflow_count = self._generate_cashflows(trade, legs)

        logger.info(
            "trade.amended",
            extra={
                "extra_fields": {
                    "trade_id": trade.trade_id,
                    "from_version": current.version,
                    "to_version": trade.version,
                    "trade_status": trade.trade_status.value,
                    "cashflow_count": cashflow_count,
                }
            },
        )
        return trade

    def cancel_trade(
        self,
        *,
        trade_id: int,
        cashflow_retention: Optional[CashflowRetentionPolicy] = None,
        actor_role: Optional[UserRole] = None,
    ) -> TradeRecord:
        self._check_privilege(actor_role, TradeOperation.CANCEL)
        return self._close_out(
            trade_id=trade_id,
            terminal_status=TradeStatus.CANCELLED,
            cashflow_retention=cashflow_retention,
        )

    def terminate_trade(
        self,
        *,
        trade_id: int,
        cashflow_retention: Optional[CashflowRetentionPolicy] = None,
        actor_role: Optional[UserRole] = None,
    ) -> TradeRecord:
        self._check_privilege(actor_role, TradeOperation.TERMINATE)
        return self._close_out(
            trade_id=trade_id,
            terminal_status=TradeStatus.TERMINATED,
            cashflow_retention=cashflow_retention,
        )

    def get_trade_by_id(
        self, *, trade_id: int, actor_role: Optional[UserRole] = None
    ) -> Optional[TradeRecord]:
        self._check_privilege(actor_role, TradeOperation.VIEW)
        return self._trade_repository.find_active_trade_by_trade_id(trade_id)

    def get_trade_detail(
        self, *, trade_id: int, actor_role: Optional[UserRole] = None
    ) -> TradeDetail:
        self._check_privilege(actor_role, TradeOperation.VIEW)
        trade = self._trade_repository.find_active_trade_by_trade_id(trade_id)
        if trade is None:
            raise TradeNotFoundError(f"Trade not found: {trade_id}")
        legs = self._trade_repository.list_trade_legs(trade.id)
        cashflows: list[CashflowRecord] = []
        for leg in legs:
            cashflows.extend(self._trade_repository.list_cashflows(leg.leg_id))
        cashflows.sort(key=lambda row: (row.value_date, row.leg_id))
        return TradeDetail(trade=trade, legs=legs, cashflows=cashflows)

    def get_trade_history(
        self, *, trade_id: int, actor_role: Optional[UserRole] = None
    ) -> list[TradeRecord]:
        self._check_privilege(actor_role, TradeOperation.VIEW)
        versions = self._trade_repository.list_trade_versions(trade_id)
        if not versions:
            raise TradeNotFoundError(f"Trade not found: {trade_id}")
        return sorted(versions, key=lambda row: row.version)

    def list_active_trades(self, *, actor_role: Optional[UserRole] = None) -> list[TradeRecord]:
        self._check_privilege(actor_role, TradeOperation.VIEW)
        return sorted(self._trade_repository.list_active_trades(), key=lambda row: row.trade_id)

    def _close_out(
        self,
        *,
        trade_id: int,
        terminal_status: TradeStatus,
        cashflow_retention: Optional[CashflowRetentionPolicy],
    ) -> TradeRecord:
        current = self._require_amendable(trade_id)
        retention = cashflow_retention or self._default_cashflow_retention
        status = self._resolve_status(terminal_status.value)
        superseded = self._resolve_status(TradeStatus.SUPERSEDED.value)
        current_legs = self._trade_repository.list_trade_legs(current.id)

        with self._trade_repository.transaction():
            self._supersede(current, superseded)
            trade = self._trade_repository.save_trade(
                current.model_copy(
                    update={
                        "id": None,
                        "version": current.version + 1,
                        "active": True,
                        "trade_status": status.trade_status,
                        "trade_status_id": status.trade_status_id,
                        "created_at": self._clock.now(),
                        "deactivated_at": None,
                    }
                )
            )
            legs = [
                self._trade_repository.save_trade_leg(
                    leg.model_copy(update={"leg_id": None, "trade_row_id": trade.id})
                )
                for leg in current_legs
            ]
            cashflow_count = 0
            if retention == CashflowRetentionPolicy.RETAIN:
                cashflow_count = self._generate_cashflows(trade, legs)

        logger.info(
            "trade.closed_out",
            extra={
                "extra_fields": {
                    "trade_id": trade.trade_id,
                    "from_version": current.version,
                    "to_version": trade.version,
                    "trade_status": trade.trade_status.value,
                    "cashflow_retention": retention.value,
                    "cashflow_count": cashflow_count,
                }
            },
        )
        return trade

    def _supersede(self, current: TradeRecord, superseded: TradeStatusRecord) -> TradeRecord:
        return self._trade_repository.save_trade(
            current.model_copy(
                update={
                    "active": False,
                    "trade_status": superseded.trade_status,
                    "trade_status_id": superseded.trade_status_id,
                    "deactivated_at": self._clock.now(),
                }
            )
        )

    def _require_amendable(self, trade_id: int) -> TradeRecord:
        current = self._trade_repository.find_active_trade_by_trade_id(trade_id)
        if current is None:
            raise TradeNotFoundError(f"Trade not found: {trade_id}")
        if current.trade_status in TERMINAL_STATUSES:
            raise TradeStateConflictError(
                f"Trade {trade_id} is {current.trade_status.value} and cannot be amended"
            )
        return current

    def _validate(self, submission: TradeSubmission, *, trade_id: Optional[int]) -> None:
        result = self._business_rule_validator.validate_trade_business_rules(submission)
        result.merge(
            self._leg_consistency_validator.validate_trade_leg_consistency(
                submission.trade_legs, submission
            )
        )
        if not result.is_valid():
            logger.info(
                "trade.validation_failed",
                extra={"extra_fields": {"trade_id": trade_id, "errors": result.errors()}},
            )
            raise TradeValidationError(result.errors())

    def _check_privilege(self, role: Optional[UserRole], operation: TradeOperation) -> None:
        if role is None and not self._enforce_privileges:
            return
        if not validate_user_privileges(role, operation):
            role_name = role.value if role is not None else "ANONYMOUS"
            raise TradePermissionError(f"{role_name} is not permitted to {operation.value} trades")

    def _resolve_book(self, submission: TradeSubmission) -> BookRecord:
        if submission.book_id is not None:
            key: object = submission.book_id
            book = self._reference_data.find_book_by_id(submission.book_id)
        elif submission.book_name is not None:
            key = submission.book_name
            book = self._reference_data.find_book_by_name(submission.book_name)
        else:
            raise TradeValidationError(["Book must be specified"])
        if book is None:
            raise TradeReferenceNotFoundError([f"Book not found: {key}"])
        return book

    def _resolve_counterparty(self, submission: TradeSubmission) -> CounterpartyRecord:
        if submission.counterparty_id is not None:
            key: object = submission.counterparty_id
            counterparty = self._reference_data.find_counterparty_by_id(
                submission.counterparty_id
            )
        elif submission.counterparty_name is not None:
            key = submission.counterparty_name
            counterparty = self._reference_data.find_counterparty_by_name(
                submission.counterparty_name
            )
        else:
            raise TradeValidationError(["Counterparty must be specified"])
        if counterparty is None:
            raise TradeReferenceNotFoundError([f"Counterparty not found: {key}"])
        return counterparty

    def _resolve_status(self, trade_status: str) -> TradeStatusRecord:
        status = self._reference_data.find_trade_status_by_name(trade_status)
        if status is None:
            raise TradeReferenceNotFoundError([f"Trade status not found: {trade_status}"])
        return status

    def _resolve_requested_status(self, trade_status: str) -> TradeStatusRecord:
        status = self._resolve_status(trade_status)
        if status.trade_status == TradeStatus.SUPERSEDED:
            raise TradeValidationError(
                [f"Trade status {TradeStatus.SUPERSEDED.value} cannot be requested"]
            )
        return status

    def _save_submitted_legs(
        self, trade: TradeRecord, submitted: Sequence[TradeLegSubmission]
    ) -> list[TradeLegRecord]:
        return [
            self._trade_repository.save_trade_leg(
                TradeLegRecord(
                    trade_row_id=trade.id,
                    leg_no=leg_no,
                    notional=leg.notional,
                    rate=leg.rate,
                    leg_type=leg.leg_type,
                    pay_receive_flag=leg.pay_receive_flag,
                    index_name=leg.index_name,
                    calculation_schedule=leg.calculation_schedule,
                )
            )
            for leg_no, leg in enumerate(submitted, start=1)
        ]

    def _generate_cashflows(self, trade: TradeRecord, legs: Sequence[TradeLegRecord]) -> int:
        count = 0
        for leg in legs:
            count += len(
                self._cashflow_generator.generate(
                    leg, trade.trade_start_date, trade.trade_maturity_date
                )
            )
        return count
