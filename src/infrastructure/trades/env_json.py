import json
from typing import Any, Optional

from pydantic import BaseModel, ValidationError

from src.core.trades.models import BookRecord, CounterpartyRecord, TradeStatusRecord
from src.infrastructure.trades.in_memory import InMemoryReferenceDataRepository


def parse_reference_data_catalog(catalog_json: Optional[str]) -> dict[str, list[Any]]:
    """
    Parse a reference data catalog of the form
    {"books": [...], "counterparties": [...], "trade_statuses": [...]}.

    Malformed sections and entries are skipped. A missing trade_statuses section
    yields None so the default status set is used.
    """
    catalog: dict[str, Any] = {"books": [], "counterparties": [], "trade_statuses": None}
    normalized_json = (catalog_json or "").strip()
    if not normalized_json:
        return catalog
    try:
        raw = json.loads(normalized_json)
    except json.JSONDecodeError:
        return catalog
    if not isinstance(raw, dict):
        return catalog

    catalog["books"] = _parse_section(raw.get("books"), BookRecord)
    catalog["counterparties"] = _parse_section(raw.get("counterparties"), CounterpartyRecord)
    if "trade_statuses" in raw:
        catalog["trade_statuses"] = _parse_section(raw.get("trade_statuses"), TradeStatusRecord)
    return catalog


def _parse_section(entries: Any, model: type[BaseModel]) -> list[Any]:
    if not isinstance(entries, list):
        return []
    parsed = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        try:
            parsed.append(model.model_validate(entry))
        except ValidationError:
            continue
    return parsed


class EnvJsonReferenceDataRepository(InMemoryReferenceDataRepository):
    def __init__(self, *, catalog_json: Optional[str]) -> None:
        catalog = parse_reference_data_catalog(catalog_json)
        super().__init__(
            books=catalog["books"],
            counterparties=catalog["counterparties"],
            trade_statuses=catalog["trade_statuses"],
        )
