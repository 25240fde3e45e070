from src.infrastructure.trades.env_json import EnvJsonReferenceDataRepository
from src.infrastructure.trades.in_memory import (
    InMemoryReferenceDataRepository,
    InMemoryTradeRepository,
)
from src.infrastructure.trades.sqlite import SqliteTradeRepository

__all__ = [
    "EnvJsonReferenceDataRepository",
    "InMemoryReferenceDataRepository",
    "InMemoryTradeRepository",
    "SqliteTradeRepository",
]
