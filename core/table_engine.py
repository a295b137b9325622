"""Filter, sort and paginate signal records for the data table."""

from __future__ import annotations

from dataclasses import dataclass, field
import math
from typing import Callable, Iterable, Sequence

import numpy as np
import pandas as pd

from config.settings import PAGE_SIZE
from core.models import StockRecord

ALL_SIGNALS = "All"
ELLIPSIS = "..."
SORT_ASC = "asc"
SORT_DESC = "desc"

# Column label -> StockRecord attribute
SORT_FIELDS = {
    "tickerName": "ticker_name",
    "signalType": "signal_type",
    "stockPrice": "stock_price",
    "date": "date",
}

# Page counts up to this size are shown without ellipsis collapsing
FULL_WINDOW_PAGES = 7

_EPOCH = pd.Timestamp("1970-01-01", tz="UTC")


def _column(records: Sequence[StockRecord], attribute: str, index: Sequence[int] | None = None) -> pd.Series:
    values = [getattr(record, attribute) for record in records]
    return pd.Series(values, index=index, dtype=object)


def _parse_prices(values: pd.Series) -> pd.Series:
    """Numeric prices; unparsable and non-finite values become NaN."""
    prices = pd.to_numeric(values, errors="coerce").astype(float)
    return prices.where(np.isfinite(prices))


def _parse_dates(values: pd.Series) -> pd.Series:
    """Seconds since epoch per date string; unparsable values become NaN."""
    parsed = pd.to_datetime(values, errors="coerce", format="mixed", utc=True)
    return (parsed - _EPOCH).dt.total_seconds()


def _sort_keys(field_name: str, values: pd.Series) -> pd.Series:
    if field_name == "stockPrice":
        return _parse_prices(values)
    if field_name == "date":
        return _parse_dates(values)
    return values.map(lambda value: value.casefold() if isinstance(value, str) else value)


def price_bounds(records: Sequence[StockRecord]) -> tuple[float, float]:
    """Floor of the lowest and ceiling of the highest parsable price."""
    if not records:
        return (0.0, 0.0)
    prices = _parse_prices(_column(records, "stock_price")).dropna()
    if prices.empty:
        return (0.0, 0.0)
    return (float(math.floor(prices.min())), float(math.ceil(prices.max())))


def signal_type_options(records: Iterable[StockRecord]) -> list[str]:
    return [ALL_SIGNALS, *sorted({record.signal_type for record in records})]


def date_options(records: Sequence[StockRecord]) -> list[str]:
    """Distinct dates in chronological order, unparsable dates last."""
    unique_dates = list(dict.fromkeys(record.date for record in records))
    if len(unique_dates) < 2:
        return unique_dates
    keys = _parse_dates(pd.Series(unique_dates, dtype=object))
    ordered = keys.sort_values(kind="mergesort", na_position="last")
    return [unique_dates[position] for position in ordered.index]


def total_pages(count: int, page_size: int = PAGE_SIZE) -> int:
    return max(1, math.ceil(count / page_size))


def page_window(current: int, total: int) -> list[int | str]:
    """
    Page links for the navigation bar.

    Every page is listed when there are at most seven. Otherwise the first
    page, the last page and the pages adjacent to `current` are kept and each
    gap between them is collapsed into a single ELLIPSIS marker.
    """
    if total <= FULL_WINDOW_PAGES:
        return list(range(1, total + 1))

    keep = {1, total}
    keep.update(page for page in (current - 1, current, current + 1) if 1 <= page <= total)

    window: list[int | str] = []
    previous = None
    for page in sorted(keep):
        if previous is not None and page != previous + 1:
            window.append(ELLIPSIS)
        window.append(page)
        previous = page
    return window


@dataclass
class TableState:
    """Filter, sort and page selections for one table view."""

    signal_type: str = ALL_SIGNALS
    search: str = ""
    dates: frozenset[str] = field(default_factory=frozenset)
    price_bounds: tuple[float, float] = (0.0, 0.0)
    price_range: tuple[float, float] = (0.0, 0.0)
    sort_field: str | None = None
    sort_direction: str | None = None
    page: int = 1

    @property
    def price_filter_active(self) -> bool:
        return self.price_range != self.price_bounds

    def set_signal_type(self, signal_type: str) -> None:
        self.signal_type = signal_type or ALL_SIGNALS
        self.page = 1

    def set_search(self, search: str) -> None:
        self.search = search or ""
        self.page = 1

    def set_dates(self, dates: Iterable[str]) -> None:
        self.dates = frozenset(dates)
        self.page = 1

    def set_price_range(self, low: float, high: float) -> None:
        low, high = float(low), float(high)
        if math.isnan(low) or math.isnan(high) or low > high:
            raise ValueError(f"Invalid price range: [{low}, {high}]")
        self.price_range = (low, high)
        self.page = 1

    def toggle_sort(self, field_name: str) -> None:
        """Cycle ascending -> descending -> unsorted on repeated clicks of one column."""
        if field_name not in SORT_FIELDS:
            raise ValueError(f"Unknown sort field: {field_name}")

        if self.sort_field == field_name:
            if self.sort_direction == SORT_ASC:
                self.sort_direction = SORT_DESC
            elif self.sort_direction == SORT_DESC:
                self.sort_field = None
                self.sort_direction = None
            else:
                self.sort_direction = SORT_ASC
        else:
            self.sort_field = field_name
            self.sort_direction = SORT_ASC
        self.page = 1

    def go_to_page(self, page: int) -> None:
        self.page = max(1, int(page))

    def reset_for_data(self, records: Sequence[StockRecord]) -> None:
        """Recompute price bounds for freshly loaded data and lift stale range/date filters."""
        bounds = price_bounds(records)
        self.price_bounds = bounds
        self.price_range = bounds
        self.dates = frozenset()
        self.page = 1


def filter_positions(records: Sequence[StockRecord], state: TableState) -> list[int]:
    """Positions of the records passing every active filter, in input order."""
    if not records:
        return []

    frame = pd.DataFrame(
        {
            "tickerName": _column(records, "ticker_name"),
            "signalType": _column(records, "signal_type"),
            "stockPrice": _column(records, "stock_price"),
            "date": _column(records, "date"),
        }
    )
    mask = pd.Series(True, index=frame.index)

    if state.signal_type != ALL_SIGNALS:
        mask &= frame["signalType"] == state.signal_type

    if state.search.strip():
        needle = state.search.lower()
        mask &= frame["tickerName"].str.lower().str.contains(needle, regex=False, na=False)

    if state.dates:
        mask &= frame["date"].isin(list(state.dates))

    if state.price_filter_active:
        low, high = state.price_range
        mask &= _parse_prices(frame["stockPrice"]).between(low, high)

    return frame.index[mask.to_numpy(dtype=bool)].tolist()


def sort_positions(
    records: Sequence[StockRecord],
    positions: Sequence[int],
    field_name: str | None,
    direction: str | None,
) -> list[int]:
    """
    Stable sort of `positions` by one column.

    Prices compare numerically and dates by timestamp; text compares
    case-insensitively. Values that cannot be parsed sort last in both
    directions. With no field or direction the order is left untouched.
    """
    if field_name is None or direction is None or len(positions) < 2:
        return list(positions)
    if field_name not in SORT_FIELDS:
        raise ValueError(f"Unknown sort field: {field_name}")

    subset = [records[position] for position in positions]
    values = _column(subset, SORT_FIELDS[field_name], index=list(positions))
    keys = _sort_keys(field_name, values)
    ordered = keys.sort_values(ascending=direction == SORT_ASC, kind="mergesort", na_position="last")
    return ordered.index.tolist()


@dataclass(frozen=True)
class TableView:
    """One rendered page of the table plus navigation metadata."""

    rows: tuple[StockRecord, ...]
    picked: tuple[bool, ...]
    total: int
    total_pages: int
    page: int
    page_size: int
    page_window: tuple[int | str, ...]
    start: int
    end: int
    signal_types: tuple[str, ...]
    dates: tuple[str, ...]
    price_bounds: tuple[float, float]


def build_view(
    records: Sequence[StockRecord],
    state: TableState,
    is_picked: Callable[[StockRecord], bool] | None = None,
) -> TableView:
    positions = filter_positions(records, state)
    positions = sort_positions(records, positions, state.sort_field, state.sort_direction)

    pages = total_pages(len(positions))
    page = min(max(1, state.page), pages)
    offset = (page - 1) * PAGE_SIZE
    rows = tuple(records[position] for position in positions[offset : offset + PAGE_SIZE])
    picked = tuple(is_picked(row) for row in rows) if is_picked is not None else tuple(False for _ in rows)

    total = len(positions)
    return TableView(
        rows=rows,
        picked=picked,
        total=total,
        total_pages=pages,
        page=page,
        page_size=PAGE_SIZE,
        page_window=tuple(page_window(page, pages)),
        start=offset + 1 if total else 0,
        end=min(page * PAGE_SIZE, total),
        signal_types=tuple(signal_type_options(records)),
        dates=tuple(date_options(records)),
        price_bounds=state.price_bounds,
    )
