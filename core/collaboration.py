"""Chat room and threaded suggestions board backed by the shared store."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Union

from config.settings import CHAT_HISTORY_LIMIT
from core.models import ChatMessage, Suggestion, SuggestionReply
from core.session import Session
from core.store import (
    CHAT_MESSAGES,
    SUGGESTION_REPLIES,
    SUGGESTIONS,
    ChangeEvent,
    Store,
    StoreError,
    Subscription,
)

LOGGER = logging.getLogger("signalboard.collaboration")

Confirmation = Union[bool, Callable[[], bool]]


def _confirmed(confirm: Confirmation) -> bool:
    """Resolve an explicit yes/no or ask the callable for one."""
    if callable(confirm):
        return bool(confirm())
    return confirm is True


class _LiveView:
    """Store subscriptions that trigger a full reload, tied to mount/unmount."""

    collections: tuple[str, ...] = ()

    def __init__(self, store: Store) -> None:
        self._store = store
        self._lock = threading.RLock()
        self._subscriptions: list[Subscription] = []

    @property
    def mounted(self) -> bool:
        with self._lock:
            return bool(self._subscriptions)

    def mount(self) -> None:
        with self._lock:
            if not self._subscriptions:
                self._subscriptions = [
                    self._store.subscribe(collection, self._on_change) for collection in self.collections
                ]
        self.reload()

    def unmount(self) -> None:
        with self._lock:
            subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            self._store.unsubscribe(subscription)

    def _on_change(self, event: ChangeEvent) -> None:
        self.reload()

    def reload(self) -> bool:
        raise NotImplementedError


class ChatRoom(_LiveView):
    """Append-only chat; history is the most recent messages, oldest first."""

    collections = (CHAT_MESSAGES,)

    def __init__(self, store: Store, session: Session, history_limit: int = CHAT_HISTORY_LIMIT) -> None:
        super().__init__(store)
        self.session = session
        self.history_limit = history_limit
        self._messages: tuple[ChatMessage, ...] = ()

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        with self._lock:
            return self._messages

    def reload(self) -> bool:
        try:
            rows = self._store.select(
                CHAT_MESSAGES,
                order_by="created_at",
                descending=True,
                limit=self.history_limit,
            )
        except StoreError as exc:
            LOGGER.warning("Error loading messages: %s", exc)
            return False
        messages = tuple(ChatMessage.from_row(row) for row in reversed(rows))
        with self._lock:
            self._messages = messages
        return True

    def send(self, message: str, user_name: str | None = None) -> bool:
        """Post a message; blank names or messages are ignored."""
        name = (user_name if user_name is not None else self.session.user_name).strip()
        if not name or not message.strip():
            return False

        self.session.remember(name)
        try:
            self._store.insert(CHAT_MESSAGES, {"user_name": name, "message": message})
        except StoreError as exc:
            LOGGER.warning("Error sending message: %s", exc)
            return False
        return self.reload()

    def clear_history(self, confirm: Confirmation) -> bool:
        """Delete every chat message, but only after an affirmative confirmation."""
        if not _confirmed(confirm):
            LOGGER.info("Chat history clear cancelled")
            return False
        try:
            removed = self._store.delete(CHAT_MESSAGES)
        except StoreError as exc:
            LOGGER.warning("Error deleting chat history: %s", exc)
            return False
        LOGGER.info("Deleted %d chat messages", removed)
        with self._lock:
            self._messages = ()
        return True


class SuggestionBoard(_LiveView):
    """Suggestions newest first, each carrying its replies oldest first."""

    collections = (SUGGESTIONS, SUGGESTION_REPLIES)

    def __init__(self, store: Store, session: Session) -> None:
        super().__init__(store)
        self.session = session
        self._suggestions: tuple[Suggestion, ...] = ()
        self._expanded: set[str] = set()

    @property
    def suggestions(self) -> tuple[Suggestion, ...]:
        with self._lock:
            return self._suggestions

    def get(self, suggestion_id: str) -> Suggestion | None:
        return next((item for item in self.suggestions if item.id == suggestion_id), None)

    def reload(self) -> bool:
        try:
            suggestion_rows = self._store.select(SUGGESTIONS, order_by="created_at", descending=True)
            reply_rows = self._store.select(SUGGESTION_REPLIES, order_by="created_at")
        except StoreError as exc:
            LOGGER.warning("Error loading suggestions: %s", exc)
            return False

        replies: dict[str, list[SuggestionReply]] = {}
        for row in reply_rows:
            reply = SuggestionReply.from_row(row)
            replies.setdefault(reply.suggestion_id, []).append(reply)

        suggestions = tuple(
            Suggestion.from_row(row, tuple(replies.get(str(row["id"]), ()))) for row in suggestion_rows
        )
        with self._lock:
            self._suggestions = suggestions
        return True

    def _author(self, user_name: str | None) -> str:
        return (user_name if user_name is not None else self.session.user_name).strip()

    def add_suggestion(self, content: str, user_name: str | None = None) -> bool:
        name = self._author(user_name)
        if not name or not content.strip():
            return False

        self.session.remember(name)
        try:
            self._store.insert(SUGGESTIONS, {"user_name": name, "content": content})
        except StoreError as exc:
            LOGGER.warning("Error adding suggestion: %s", exc)
            return False
        return self.reload()

    def add_reply(self, suggestion_id: str, content: str, user_name: str | None = None) -> bool:
        name = self._author(user_name)
        if not name or not content.strip():
            return False

        self.session.remember(name)
        try:
            self._store.insert(
                SUGGESTION_REPLIES,
                {"suggestion_id": suggestion_id, "user_name": name, "content": content},
            )
        except StoreError as exc:
            LOGGER.warning("Error adding reply to %s: %s", suggestion_id, exc)
            return False
        return self.reload()

    def delete_suggestion(self, suggestion_id: str, confirm: Confirmation) -> bool:
        """Delete a suggestion and then its replies, after confirmation."""
        if not _confirmed(confirm):
            return False
        try:
            self._store.delete(SUGGESTIONS, {"id": suggestion_id})
            self._store.delete(SUGGESTION_REPLIES, {"suggestion_id": suggestion_id})
        except StoreError as exc:
            LOGGER.warning("Error deleting suggestion %s: %s", suggestion_id, exc)
            return False
        with self._lock:
            self._expanded.discard(suggestion_id)
        return self.reload()

    def toggle_expanded(self, suggestion_id: str) -> bool:
        """Flip the reply thread open/closed; returns the new state."""
        with self._lock:
            if suggestion_id in self._expanded:
                self._expanded.remove(suggestion_id)
                return False
            self._expanded.add(suggestion_id)
            return True

    def is_expanded(self, suggestion_id: str) -> bool:
        with self._lock:
            return suggestion_id in self._expanded
