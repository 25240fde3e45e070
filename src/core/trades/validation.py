from typing import List, Optional


class ValidationResult:
    """
    Accumulates business-rule error messages across validation steps.
    A result is valid while it holds no errors.
    """

    def __init__(self) -> None:
        self._errors: List[str] = []

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls()

    @classmethod
    def error(cls, message: str) -> "ValidationResult":
        result = cls()
        result.add_error(message)
        return result

    def add_error(self, message: Optional[str]) -> None:
        if message is not None and message.strip():
            self._errors.append(message)

    def merge(self, other: Optional["ValidationResult"]) -> "ValidationResult":
        if other is not None and not other.is_valid():
            self._errors.extend(other.errors())
        return self

    def is_valid(self) -> bool:
        return not self._errors

    def errors(self) -> List[str]:
        return list(self._errors)

    def message(self) -> str:
        return "; ".join(self._errors)

    def __str__(self) -> str:
        if self.is_valid():
            return "ValidationResult: OK"
        return f"ValidationResult: {self.message()}"
