"""Shared record store for picks, chat and suggestions with change notifications."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import json
import logging
import os
import sqlite3
import threading
from typing import Any, Callable, Iterable
import uuid

from config.settings import STORE_BACKEND, STORE_PATH

LOGGER = logging.getLogger("signalboard.store")

PICKED_STOCKS = "picked_stocks"
CHAT_MESSAGES = "chat_messages"
SUGGESTIONS = "suggestions"
SUGGESTION_REPLIES = "suggestion_replies"

EVENT_INSERT = "INSERT"
EVENT_UPDATE = "UPDATE"
EVENT_DELETE = "DELETE"
EVENT_KINDS = (EVENT_INSERT, EVENT_UPDATE, EVENT_DELETE)


class StoreError(RuntimeError):
    """Any failed store operation."""


class RecordNotFound(StoreError):
    """An update targeted an id that does not exist."""


@dataclass(frozen=True)
class ChangeEvent:
    """
    Notification for one committed change.

    Clearing a whole collection produces a single DELETE event whose
    `record` is empty and whose `records` holds every removed row.
    """

    collection: str
    kind: str
    record: dict[str, Any]
    records: tuple[dict[str, Any], ...] = ()


class Subscription:
    """Handle returned by Store.subscribe; pass it back to unsubscribe."""

    def __init__(self, collection: str, callback: Callable[[ChangeEvent], None], events: frozenset[str]) -> None:
        self.collection = collection
        self.callback = callback
        self.events = events
        self.active = True


def _matches(row: dict[str, Any], where: dict[str, Any] | None) -> bool:
    if not where:
        return True
    return all(row.get(key) == value for key, value in where.items())


def _ordered(rows: list[dict[str, Any]], order_by: str, descending: bool) -> list[dict[str, Any]]:
    """Stable ordering by one field; rows missing the field go last."""
    present = [row for row in rows if row.get(order_by) is not None]
    missing = [row for row in rows if row.get(order_by) is None]
    present.sort(key=lambda row: row[order_by], reverse=descending)
    return present + missing


class Store:
    """
    Generic CRUD-plus-subscribe over named collections.

    Subclasses provide raw row access; filtering, ordering, id/timestamp
    assignment and change notification live here. Notifications are
    delivered synchronously after each write commits, outside the store
    lock, so callbacks may read the store again.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._subscriptions: dict[str, list[Subscription]] = defaultdict(list)
        self._last_timestamp: datetime | None = None

    # Backend hooks -------------------------------------------------------

    def _rows(self, collection: str) -> list[dict[str, Any]]:
        raise NotImplementedError

    def _write_insert(self, collection: str, row: dict[str, Any]) -> None:
        raise NotImplementedError

    def _write_update(self, collection: str, record_id: str, row: dict[str, Any]) -> None:
        raise NotImplementedError

    def _write_delete(self, collection: str, record_ids: list[str]) -> None:
        raise NotImplementedError

    # Helpers -------------------------------------------------------------

    def _call(self, operation: Callable[..., Any], *args: Any) -> Any:
        try:
            return operation(*args)
        except StoreError:
            raise
        except Exception as exc:
            raise StoreError(f"{operation.__name__} failed: {exc}") from exc

    def _next_timestamp(self) -> str:
        """UTC ISO timestamp, strictly increasing within this store."""
        now = datetime.now(timezone.utc)
        if self._last_timestamp is not None and now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return now.isoformat()

    def _publish(self, events: Iterable[ChangeEvent]) -> None:
        for event in events:
            with self._lock:
                listeners = list(self._subscriptions.get(event.collection, ()))
            for subscription in listeners:
                if not subscription.active or event.kind not in subscription.events:
                    continue
                try:
                    subscription.callback(event)
                except Exception as exc:
                    LOGGER.warning("Subscriber callback failed for %s %s: %s", event.collection, event.kind, exc)

    # Public API ----------------------------------------------------------

    def select(
        self,
        collection: str,
        where: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        with self._lock:
            rows = [dict(row) for row in self._call(self._rows, collection) if _matches(row, where)]
        if order_by:
            rows = _ordered(rows, order_by, descending)
        if limit is not None:
            rows = rows[: max(0, limit)]
        return rows

    def insert(self, collection: str, record: dict[str, Any]) -> dict[str, Any]:
        """Insert one row; `id` and `created_at` are assigned when absent."""
        row = dict(record)
        with self._lock:
            row.setdefault("id", uuid.uuid4().hex)
            row.setdefault("created_at", self._next_timestamp())
            self._call(self._write_insert, collection, row)
        self._publish([ChangeEvent(collection, EVENT_INSERT, dict(row))])
        return dict(row)

    def update(self, collection: str, record_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            current = next(
                (row for row in self._call(self._rows, collection) if row.get("id") == record_id),
                None,
            )
            if current is None:
                raise RecordNotFound(f"No {collection} record with id {record_id}")
            updated = {**current, **changes, "id": current["id"]}
            self._call(self._write_update, collection, record_id, updated)
        self._publish([ChangeEvent(collection, EVENT_UPDATE, dict(updated))])
        return dict(updated)

    def delete(self, collection: str, where: dict[str, Any] | None = None) -> int:
        """Delete rows matching every `where` pair; None deletes the whole collection."""
        with self._lock:
            doomed = [dict(row) for row in self._call(self._rows, collection) if _matches(row, where)]
            if doomed:
                self._call(self._write_delete, collection, [row["id"] for row in doomed])
        if not doomed:
            return 0
        if where is None:
            self._publish([ChangeEvent(collection, EVENT_DELETE, {}, tuple(doomed))])
        else:
            self._publish(ChangeEvent(collection, EVENT_DELETE, row) for row in doomed)
        return len(doomed)

    def subscribe(
        self,
        collection: str,
        callback: Callable[[ChangeEvent], None],
        events: Iterable[str] = EVENT_KINDS,
    ) -> Subscription:
        kinds = frozenset(events)
        unknown = kinds.difference(EVENT_KINDS)
        if unknown:
            raise ValueError(f"Unknown event kinds: {', '.join(sorted(unknown))}")
        subscription = Subscription(collection, callback, kinds)
        with self._lock:
            self._subscriptions[collection].append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.active = False
        with self._lock:
            listeners = self._subscriptions.get(subscription.collection, [])
            if subscription in listeners:
                listeners.remove(subscription)

    def subscription_count(self, collection: str | None = None) -> int:
        with self._lock:
            if collection is not None:
                return len(self._subscriptions.get(collection, ()))
            return sum(len(listeners) for listeners in self._subscriptions.values())


class MemoryStore(Store):
    """Process-local store used for tests and throwaway sessions."""

    def __init__(self) -> None:
        super().__init__()
        self._collections: dict[str, list[dict[str, Any]]] = defaultdict(list)

    def _rows(self, collection: str) -> list[dict[str, Any]]:
        return [dict(row) for row in self._collections.get(collection, ())]

    def _write_insert(self, collection: str, row: dict[str, Any]) -> None:
        self._collections[collection].append(dict(row))

    def _write_update(self, collection: str, record_id: str, row: dict[str, Any]) -> None:
        rows = self._collections[collection]
        for index, existing in enumerate(rows):
            if existing.get("id") == record_id:
                rows[index] = dict(row)
                return

    def _write_delete(self, collection: str, record_ids: list[str]) -> None:
        doomed = set(record_ids)
        self._collections[collection] = [row for row in self._collections[collection] if row.get("id") not in doomed]


class SQLiteStore(Store):
    """File-backed store; each thread keeps its own connection."""

    def __init__(self, db_path: str) -> None:
        super().__init__()
        self.db_path = db_path
        self._local = threading.local()
        self._init_database(self._connection())

    def _connection(self) -> sqlite3.Connection:
        if not hasattr(self._local, "connection"):
            self._local.connection = sqlite3.connect(self.db_path, check_same_thread=False)
            self._local.connection.row_factory = sqlite3.Row
        return self._local.connection

    def _init_database(self, conn: sqlite3.Connection) -> None:
        cursor = conn.cursor()
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS records (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                collection TEXT NOT NULL,
                id TEXT NOT NULL,
                created_at TEXT,
                payload TEXT NOT NULL,
                UNIQUE (collection, id)
            )
            """
        )
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_records_collection ON records(collection, seq)")
        conn.commit()

    def _rows(self, collection: str) -> list[dict[str, Any]]:
        cursor = self._connection().cursor()
        cursor.execute("SELECT payload FROM records WHERE collection = ? ORDER BY seq", (collection,))
        return [json.loads(row["payload"]) for row in cursor.fetchall()]

    def _write_insert(self, collection: str, row: dict[str, Any]) -> None:
        conn = self._connection()
        conn.execute(
            "INSERT INTO records (collection, id, created_at, payload) VALUES (?, ?, ?, ?)",
            (collection, row["id"], row.get("created_at"), json.dumps(row)),
        )
        conn.commit()

    def _write_update(self, collection: str, record_id: str, row: dict[str, Any]) -> None:
        conn = self._connection()
        conn.execute(
            "UPDATE records SET payload = ? WHERE collection = ? AND id = ?",
            (json.dumps(row), collection, record_id),
        )
        conn.commit()

    def _write_delete(self, collection: str, record_ids: list[str]) -> None:
        conn = self._connection()
        conn.executemany(
            "DELETE FROM records WHERE collection = ? AND id = ?",
            [(collection, record_id) for record_id in record_ids],
        )
        conn.commit()


def create_store(backend: str = STORE_BACKEND, db_path: str = STORE_PATH) -> Store:
    """Build the configured store backend."""
    if backend == "memory":
        LOGGER.info("Using in-memory store")
        return MemoryStore()
    if backend == "sqlite":
        os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)
        LOGGER.info("Using SQLite store at %s", db_path)
        return SQLiteStore(db_path)
    raise ValueError(f"Unknown store backend: {backend}")
