"""
FILE: tests/conftest.py
Shared fixtures for trade lifecycle tests.
"""

from pathlib import Path

import pytest

from src.core.trades import TradeLifecycleService
from tests.factories import RecordingTradeRepository, fixed_clock, reference_data


def _has_marker(item: pytest.Item, name: str) -> bool:
    return item.get_closest_marker(name) is not None


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        if _has_marker(item, "unit") or _has_marker(item, "integration"):
            continue

        path = Path(str(item.fspath)).as_posix().lower()
        if "/tests/integration/" in path or "_integration.py" in path:
            item.add_marker(pytest.mark.integration)
            continue
        item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True)
def trade_runtime_env(monkeypatch: pytest.MonkeyPatch):
    """Keep runtime config deterministic regardless of the developer shell."""

    for name in (
        "TRADE_STORE_BACKEND",
        "TRADE_SQLITE_PATH",
        "TRADE_MAX_TRADE_DATE_AGE_DAYS",
        "TRADE_CANCELLATION_CASHFLOW_POLICY",
        "TRADE_ENFORCE_PRIVILEGES",
        "TRADE_REFERENCE_DATA_JSON",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def clock():
    return fixed_clock()


@pytest.fixture
def reference_repo():
    return reference_data()


@pytest.fixture
def trade_repo():
    return RecordingTradeRepository()


@pytest.fixture
def service(trade_repo, reference_repo, clock):
    return TradeLifecycleService(
        trade_repository=trade_repo,
        reference_data=reference_repo,
        clock=clock,
    )
