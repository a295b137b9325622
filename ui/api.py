"""Request parsing and payload helpers for SignalBoard API routes."""

from __future__ import annotations

from typing import Any, Iterable

import pandas as pd

from core.dashboard import DashboardController
from core.directory_scanner import DirectoryNode
from core.table_engine import TableView


class BadRequest(ValueError):
    """Client sent a payload the route cannot use."""


def parse_float(raw_value: Any, field_name: str) -> float:
    """Parse a required finite float from a JSON field."""
    try:
        value = float(raw_value)
    except (TypeError, ValueError):
        raise BadRequest(f"{field_name} must be a number") from None
    if pd.isna(value) or value in (float("inf"), float("-inf")):
        raise BadRequest(f"{field_name} must be a finite number")
    return value


def parse_int(raw_value: Any, default: int, min_value: int, max_value: int) -> int:
    """Parse bounded int from request args."""
    try:
        value = int(raw_value) if raw_value is not None else default
    except (TypeError, ValueError):
        value = default
    return max(min_value, min(max_value, value))


def require_text(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str):
        raise BadRequest(f"{key} is required")
    return value


def parse_price_range(raw_value: Any) -> tuple[float, float]:
    if not isinstance(raw_value, (list, tuple)) or len(raw_value) != 2:
        raise BadRequest("priceRange must be a [low, high] pair")
    low = parse_float(raw_value[0], "priceRange[0]")
    high = parse_float(raw_value[1], "priceRange[1]")
    if low > high:
        raise BadRequest("priceRange low must not exceed high")
    return (low, high)


def parse_dates(raw_value: Any) -> list[str]:
    if not isinstance(raw_value, list) or not all(isinstance(item, str) for item in raw_value):
        raise BadRequest("dates must be a list of strings")
    return raw_value


def serialize_tree(nodes: Iterable[DirectoryNode]) -> dict[str, Any]:
    return {"directories": [node.to_dict() for node in nodes]}


def serialize_view(view: TableView) -> dict[str, Any]:
    """Convert one table page to the API payload."""
    rows = []
    for record, picked in zip(view.rows, view.picked):
        row = record.to_dict()
        row["isPicked"] = picked
        rows.append(row)
    return {
        "rows": rows,
        "total": view.total,
        "totalPages": view.total_pages,
        "page": view.page,
        "pageSize": view.page_size,
        "pageWindow": list(view.page_window),
        "start": view.start,
        "end": view.end,
        "signalTypes": list(view.signal_types),
        "dates": list(view.dates),
        "priceBounds": list(view.price_bounds),
    }


def serialize_table_state(controller: DashboardController) -> dict[str, Any]:
    state = controller.state
    return {
        "signalType": state.signal_type,
        "search": state.search,
        "dates": sorted(state.dates),
        "priceRange": list(state.price_range),
        "sortField": state.sort_field,
        "sortDirection": state.sort_direction,
    }


def table_payload(controller: DashboardController) -> dict[str, Any]:
    selection = controller.selection
    return {
        "viewing": controller.describe_selection(),
        "selection": {"directory": selection.directory, "file": selection.file} if selection else None,
        "loading": controller.loading,
        "state": serialize_table_state(controller),
        "view": serialize_view(controller.view()),
    }
