"""In-memory implementations of the storage interfaces."""

from __future__ import annotations

import dataclasses
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from . import store as base
from .store import (
    Message,
    NotFoundError,
    Session,
    Subscription,
    WillMessage,
    copy_message,
    copy_subscription,
)
from .topics import topic_match

__all__ = [
    "MessageStore",
    "RetainedStore",
    "SessionStore",
    "SubscriptionStore",
    "WillStore",
    "MemoryStore",
]


class MessageStore(base.MessageStore):
    """Thread-safe in-memory message store keyed by string."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._data: dict[str, Message] = {}

    def store(self, key: str, msg: Message) -> None:
        with self._lock:
            self._data[key] = copy_message(msg)

    def get(self, key: str) -> Message:
        with self._lock:
            try:
                msg = self._data[key]
            except KeyError:
                raise NotFoundError(key) from None
            return copy_message(msg)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def list(self, prefix: str) -> list[Message]:
        with self._lock:
            return [
                copy_message(msg)
                for key, msg in self._data.items()
                if key.startswith(prefix)
            ]

    def delete_by_prefix(self, prefix: str) -> None:
        with self._lock:
            for key in [k for k in self._data if k.startswith(prefix)]:
                del self._data[key]


class RetainedStore(base.RetainedStore):
    """Thread-safe in-memory retained message store keyed by topic."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._data: dict[str, Message] = {}

    def set(self, topic: str, msg: Optional[Message]) -> None:
        with self._lock:
            if msg is None or not msg.payload:
                self._data.pop(topic, None)
                return
            self._data[topic] = copy_message(msg)

    def get(self, topic: str) -> Message:
        with self._lock:
            try:
                msg = self._data[topic]
            except KeyError:
                raise NotFoundError(topic) from None
            return copy_message(msg)

    def delete(self, topic: str) -> None:
        with self._lock:
            self._data.pop(topic, None)

    def match(self, filter: str) -> list[Message]:
        with self._lock:
            if filter == "#":
                return [
                    copy_message(msg)
                    for topic, msg in self._data.items()
                    if not topic.startswith("$")
                ]
            return [
                copy_message(msg)
                for topic, msg in self._data.items()
                if topic_match(filter, topic)
            ]


class SessionStore(base.SessionStore):
    """Thread-safe in-memory session store keyed by client ID."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._data: dict[str, Session] = {}

    def get(self, client_id: str) -> Session:
        with self._lock:
            try:
                session = self._data[client_id]
            except KeyError:
                raise NotFoundError(client_id) from None
            return dataclasses.replace(session)

    def save(self, session: Session) -> None:
        with self._lock:
            self._data[session.client_id] = dataclasses.replace(session)

    def delete(self, client_id: str) -> None:
        with self._lock:
            self._data.pop(client_id, None)

    def get_expired(self, before: datetime) -> list[str]:
        with self._lock:
            expired = []
            for client_id, session in self._data.items():
                if session.connected or session.expiry_interval <= 0:
                    continue
                if session.disconnected_at is None:
                    # An unset disconnect time lies far in the past.
                    expired.append(client_id)
                    continue
                expiry_time = session.disconnected_at + timedelta(
                    seconds=session.expiry_interval
                )
                if expiry_time < before:
                    expired.append(client_id)
            return expired

    def list(self) -> list[Session]:
        with self._lock:
            return [dataclasses.replace(s) for s in self._data.values()]


@dataclass
class _TrieNode:
    children: dict[str, "_TrieNode"] = field(default_factory=dict)
    subs: dict[str, Subscription] = field(default_factory=dict)


class SubscriptionStore(base.SubscriptionStore):
    """Thread-safe in-memory subscription store backed by a topic trie."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._root = _TrieNode()
        self._count = 0
        self._by_client: dict[str, dict[str, Subscription]] = {}

    def _find_node(self, filter: str) -> _TrieNode:
        node = self._root
        for level in filter.split("/"):
            child = node.children.get(level)
            if child is None:
                break
            node = child
        return node

    def add(self, sub: Subscription) -> None:
        with self._lock:
            is_new = sub.filter not in self._by_client.get(sub.client_id, {})

            node = self._root
            for level in sub.filter.split("/"):
                node = node.children.setdefault(level, _TrieNode())

            sub_copy = copy_subscription(sub)
            node.subs[sub.client_id] = sub_copy
            self._by_client.setdefault(sub.client_id, {})[sub.filter] = sub_copy

            if is_new:
                self._count += 1

    def remove(self, client_id: str, filter: str) -> None:
        with self._lock:
            client_subs = self._by_client.get(client_id)
            if client_subs is None or filter not in client_subs:
                return

            self._find_node(filter).subs.pop(client_id, None)

            del client_subs[filter]
            if not client_subs:
                del self._by_client[client_id]
            self._count -= 1

    def remove_all(self, client_id: str) -> None:
        with self._lock:
            client_subs = self._by_client.pop(client_id, None)
            if client_subs is None:
                return
            for filter in client_subs:
                self._find_node(filter).subs.pop(client_id, None)
                self._count -= 1

    def get_for_client(self, client_id: str) -> list[Subscription]:
        with self._lock:
            client_subs = self._by_client.get(client_id, {})
            return [copy_subscription(sub) for sub in client_subs.values()]

    def match(self, topic: str) -> list[Subscription]:
        with self._lock:
            matched: list[Subscription] = []
            self._match_level(self._root, topic.split("/"), 0, matched)
            return self._deduplicate(matched)

    def _match_level(
        self,
        node: _TrieNode,
        levels: list[str],
        index: int,
        matched: list[Subscription],
    ) -> None:
        if index == len(levels):
            matched.extend(copy_subscription(s) for s in node.subs.values())
            wild = node.children.get("#")
            if wild is not None:
                matched.extend(copy_subscription(s) for s in wild.subs.values())
            return

        child = node.children.get(levels[index])
        if child is not None:
            self._match_level(child, levels, index + 1, matched)

        child = node.children.get("+")
        if child is not None:
            self._match_level(child, levels, index + 1, matched)

        child = node.children.get("#")
        if child is not None:
            matched.extend(copy_subscription(s) for s in child.subs.values())

    @staticmethod
    def _deduplicate(subs: list[Subscription]) -> list[Subscription]:
        seen: dict[str, Subscription] = {}
        for sub in subs:
            existing = seen.get(sub.client_id)
            if existing is None or sub.qos > existing.qos:
                seen[sub.client_id] = sub
        return list(seen.values())

    def count(self) -> int:
        with self._lock:
            return self._count


@dataclass
class _WillEntry:
    will: WillMessage
    disconnected_at: Optional[datetime]


def _copy_will(will: WillMessage) -> WillMessage:
    return dataclasses.replace(
        will, payload=bytes(will.payload), properties=dict(will.properties)
    )


class WillStore(base.WillStore):
    """Thread-safe in-memory will message store keyed by client ID."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._data: dict[str, _WillEntry] = {}

    def set(self, client_id: str, will: WillMessage) -> None:
        with self._lock:
            self._data[client_id] = _WillEntry(_copy_will(will), datetime.now())

    def get(self, client_id: str) -> WillMessage:
        with self._lock:
            try:
                entry = self._data[client_id]
            except KeyError:
                raise NotFoundError(client_id) from None
            return _copy_will(entry.will)

    def delete(self, client_id: str) -> None:
        with self._lock:
            self._data.pop(client_id, None)

    def mark_disconnected(self, client_id: str) -> None:
        """Record that the client disconnected now; raise NotFoundError if unknown."""
        with self._lock:
            try:
                entry = self._data[client_id]
            except KeyError:
                raise NotFoundError(client_id) from None
            entry.disconnected_at = datetime.now()

    def get_pending(self, before: datetime) -> list[WillMessage]:
        with self._lock:
            pending = []
            for entry in self._data.values():
                if entry.disconnected_at is None:
                    continue
                trigger = entry.disconnected_at + timedelta(seconds=entry.will.delay)
                if trigger <= before:
                    pending.append(_copy_will(entry.will))
            return pending


class MemoryStore(base.Store):
    """Composite in-memory store."""

    def __init__(self) -> None:
        self._messages = MessageStore()
        self._sessions = SessionStore()
        self._subscriptions = SubscriptionStore()
        self._retained = RetainedStore()
        self._wills = WillStore()

    def messages(self) -> MessageStore:
        return self._messages

    def sessions(self) -> SessionStore:
        return self._sessions

    def subscriptions(self) -> SubscriptionStore:
        return self._subscriptions

    def retained(self) -> RetainedStore:
        return self._retained

    def wills(self) -> WillStore:
        return self._wills

    def close(self) -> None:
        """Nothing to release for in-memory storage."""