from src.core.trades.business_rules import BusinessRuleValidator
from src.core.trades.cashflows import CashflowScheduleGenerator
from src.core.trades.errors import (
    TradeConcurrencyError,
    TradeLifecycleError,
    TradeNotFoundError,
    TradePermissionError,
    TradeReferenceNotFoundError,
    TradeStateConflictError,
    TradeValidationError,
)
from src.core.trades.leg_consistency import LegConsistencyValidator
from src.core.trades.models import (
    CashflowRecord,
    CashflowRetentionPolicy,
    LegType,
    PayReceiveFlag,
    Periodicity,
    TradeDetail,
    TradeLegRecord,
    TradeLegSubmission,
    TradeOperation,
    TradeRecord,
    TradeStatus,
    TradeSubmission,
    UserRole,
)
from src.core.trades.privileges import validate_user_privileges
from src.core.trades.repository import ReferenceDataRepository, TradeRepository
from src.core.trades.service import TradeLifecycleService
from src.core.trades.validation import ValidationResult

__all__ = [
    "BusinessRuleValidator",
    "CashflowRecord",
    "CashflowRetentionPolicy",
    "CashflowScheduleGenerator",
    "LegConsistencyValidator",
    "LegType",
    "PayReceiveFlag",
    "Periodicity",
    "ReferenceDataRepository",
    "TradeConcurrencyError",
    "TradeDetail",
    "TradeLegRecord",
    "TradeLegSubmission",
    "TradeLifecycleError",
    "TradeLifecycleService",
    "TradeNotFoundError",
    "TradeOperation",
    "TradePermissionError",
    "TradeRecord",
    "TradeReferenceNotFoundError",
    "TradeRepository",
    "TradeStateConflictError",
    "TradeStatus",
    "TradeSubmission",
    "TradeValidationError",
    "UserRole",
    "ValidationResult",
    "validate_user_privileges",
]
