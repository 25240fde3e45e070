from typing import Optional

from src.core.trades.models import TradeOperation, UserRole

ROLE_PRIVILEGES: dict[UserRole, frozenset[TradeOperation]] = {
    UserRole.TRADER: frozenset(TradeOperation),
    UserRole.SALES: frozenset({TradeOperation.CREATE, TradeOperation.AMEND, TradeOperation.VIEW}),
    UserRole.MIDDLE_OFFICE: frozenset({TradeOperation.AMEND, TradeOperation.VIEW}),
    UserRole.SUPPORT: frozenset({TradeOperation.VIEW}),
}


def validate_user_privileges(
    role: Optional[UserRole], operation: Optional[TradeOperation]
) -> bool:
    if role is None or operation is None:
        return False
    return operation in ROLE_PRIVILEGES.get(role, frozenset())
