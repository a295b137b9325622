"""Favorited ("picked") stocks mirrored from the shared store."""

from __future__ import annotations

import logging
import threading
from typing import Sequence

from core.models import PickedStock, StockRecord
from core.store import PICKED_STOCKS, ChangeEvent, Store, StoreError, Subscription

LOGGER = logging.getLogger("signalboard.picks")

PRIORITIES = ("high", "moderate", "low")
DEFAULT_PRIORITY = "moderate"


class PicksRegistry:
    """
    Local cache of the `picked_stocks` collection.

    A record counts as picked when a pick shares its (ticker, signal type,
    date) key. Writes go to the store first; the cache is only rebuilt after
    the store accepts them, so a failed write leaves local state unchanged.
    While mounted, every change notification triggers a full reload.
    """

    def __init__(self, store: Store) -> None:
        self._store = store
        self._lock = threading.RLock()
        self._picks: tuple[PickedStock, ...] = ()
        self._by_key: dict[tuple[str, str, str], PickedStock] = {}
        self._subscription: Subscription | None = None

    @property
    def picks(self) -> tuple[PickedStock, ...]:
        """Picks, newest first."""
        with self._lock:
            return self._picks

    def __len__(self) -> int:
        return len(self.picks)

    def mount(self) -> None:
        with self._lock:
            if self._subscription is None:
                self._subscription = self._store.subscribe(PICKED_STOCKS, self._on_change)
        self.reload()

    def unmount(self) -> None:
        with self._lock:
            subscription, self._subscription = self._subscription, None
        if subscription is not None:
            self._store.unsubscribe(subscription)

    def _on_change(self, event: ChangeEvent) -> None:
        self.reload()

    def reload(self) -> bool:
        try:
            rows = self._store.select(PICKED_STOCKS, order_by="created_at", descending=True)
        except StoreError as exc:
            LOGGER.warning("Error loading picked stocks: %s", exc)
            return False

        picks = tuple(PickedStock.from_row(row) for row in rows)
        by_key: dict[tuple[str, str, str], PickedStock] = {}
        for pick in picks:
            by_key.setdefault(pick.natural_key, pick)
        with self._lock:
            self._picks = picks
            self._by_key = by_key
        return True

    def find(self, record: StockRecord) -> PickedStock | None:
        with self._lock:
            return self._by_key.get(record.natural_key)

    def is_picked(self, record: StockRecord) -> bool:
        return self.find(record) is not None

    def picked_flags(self, records: Sequence[StockRecord]) -> list[bool]:
        with self._lock:
            index = self._by_key
        return [record.natural_key in index for record in records]

    def get(self, pick_id: str) -> PickedStock | None:
        return next((pick for pick in self.picks if pick.id == pick_id), None)

    def toggle(self, record: StockRecord) -> bool:
        """
        Remove the matching pick if there is one, otherwise add a new pick.

        The lookup, the store write and the reload run under one lock so two
        concurrent toggles of the same record cannot both insert.
        """
        with self._lock:
            existing = self.find(record)
            if existing is not None:
                return self.remove(existing.id)

            try:
                self._store.insert(
                    PICKED_STOCKS,
                    {
                        "ticker_name": record.ticker_name,
                        "signal_type": record.signal_type,
                        "stock_price": record.stock_price,
                        "date": record.date,
                        "source_file": record.source_file,
                        "priority": DEFAULT_PRIORITY,
                    },
                )
            except StoreError as exc:
                LOGGER.warning("Error adding picked stock %s: %s", record.ticker_name, exc)
                return False
            return self.reload()

    def set_priority(self, pick_id: str, level: str) -> bool:
        if level not in PRIORITIES:
            raise ValueError(f"Invalid priority {level!r}; expected one of {', '.join(PRIORITIES)}")
        try:
            self._store.update(PICKED_STOCKS, pick_id, {"priority": level})
        except StoreError as exc:
            LOGGER.warning("Error updating priority for pick %s: %s", pick_id, exc)
            return False
        return self.reload()

    def remove(self, pick_id: str) -> bool:
        try:
            self._store.delete(PICKED_STOCKS, {"id": pick_id})
        except StoreError as exc:
            LOGGER.warning("Error removing picked stock %s: %s", pick_id, exc)
            return False
        return self.reload()
