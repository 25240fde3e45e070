from typing import Iterable


class TradeLifecycleError(Exception):
    pass


class TradeValidationError(TradeLifecycleError):
    def __init__(self, errors: Iterable[str]) -> None:
        self.errors = [error for error in errors if error]
        super().__init__("; ".join(self.errors))


class TradeReferenceNotFoundError(TradeValidationError):
    pass


class TradeNotFoundError(TradeLifecycleError):
    pass


class TradePermissionError(TradeLifecycleError):
    pass


class TradeStateConflictError(TradeLifecycleError):
    pass


class TradeConcurrencyError(TradeStateConflictError):
    pass
