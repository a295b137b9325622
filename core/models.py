"""Record types shared by the loader, table engine, picks registry and views."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


def _as_text(value: Any) -> str:
    """Carry JSON scalars as text; missing values become empty strings."""
    if value is None:
        return ""
    return str(value)


@dataclass(frozen=True)
class StockRecord:
    """One signal row loaded from a data file."""

    ticker_name: str
    signal_type: str
    stock_price: str
    date: str
    source_file: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "StockRecord":
        source = payload.get("sourceFile")
        return cls(
            ticker_name=_as_text(payload.get("tickerName")),
            signal_type=_as_text(payload.get("signalType")),
            stock_price=_as_text(payload.get("stockPrice")),
            date=_as_text(payload.get("date")),
            source_file=_as_text(source) if source is not None else None,
        )

    @property
    def natural_key(self) -> tuple[str, str, str]:
        return (self.ticker_name, self.signal_type, self.date)

    def with_source(self, source_file: str) -> "StockRecord":
        return StockRecord(self.ticker_name, self.signal_type, self.stock_price, self.date, source_file)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "tickerName": self.ticker_name,
            "signalType": self.signal_type,
            "stockPrice": self.stock_price,
            "date": self.date,
        }
        if self.source_file is not None:
            payload["sourceFile"] = self.source_file
        return payload


@dataclass(frozen=True)
class PickedStock:
    """A favorited record as stored in the `picked_stocks` collection."""

    id: str
    ticker_name: str
    signal_type: str
    stock_price: str
    date: str
    priority: str
    created_at: str
    source_file: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "PickedStock":
        return cls(
            id=str(row["id"]),
            ticker_name=_as_text(row.get("ticker_name")),
            signal_type=_as_text(row.get("signal_type")),
            stock_price=_as_text(row.get("stock_price")),
            date=_as_text(row.get("date")),
            priority=_as_text(row.get("priority")) or "moderate",
            created_at=_as_text(row.get("created_at")),
            source_file=row.get("source_file"),
        )

    @property
    def natural_key(self) -> tuple[str, str, str]:
        return (self.ticker_name, self.signal_type, self.date)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "ticker_name": self.ticker_name,
            "signal_type": self.signal_type,
            "stock_price": self.stock_price,
            "date": self.date,
            "source_file": self.source_file,
            "priority": self.priority,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class ChatMessage:
    id: str
    user_name: str
    message: str
    created_at: str

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ChatMessage":
        return cls(
            id=str(row["id"]),
            user_name=_as_text(row.get("user_name")),
            message=_as_text(row.get("message")),
            created_at=_as_text(row.get("created_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_name": self.user_name,
            "message": self.message,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class SuggestionReply:
    id: str
    suggestion_id: str
    user_name: str
    content: str
    created_at: str

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "SuggestionReply":
        return cls(
            id=str(row["id"]),
            suggestion_id=_as_text(row.get("suggestion_id")),
            user_name=_as_text(row.get("user_name")),
            content=_as_text(row.get("content")),
            created_at=_as_text(row.get("created_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "suggestion_id": self.suggestion_id,
            "user_name": self.user_name,
            "content": self.content,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class Suggestion:
    """A suggestion thread; replies are attached when the board reloads."""

    id: str
    user_name: str
    content: str
    created_at: str
    replies: tuple[SuggestionReply, ...] = field(default_factory=tuple)

    @classmethod
    def from_row(cls, row: dict[str, Any], replies: tuple[SuggestionReply, ...] = ()) -> "Suggestion":
        return cls(
            id=str(row["id"]),
            user_name=_as_text(row.get("user_name")),
            content=_as_text(row.get("content")),
            created_at=_as_text(row.get("created_at")),
            replies=replies,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_name": self.user_name,
            "content": self.content,
            "created_at": self.created_at,
            "replies": [reply.to_dict() for reply in self.replies],
        }
