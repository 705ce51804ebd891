"""Storage data types and the interfaces that storage backends implement."""

from __future__ import annotations

import dataclasses
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

__all__ = [
    "StoreError",
    "NotFoundError",
    "AlreadyExistsError",
    "LockedError",
    "Message",
    "Session",
    "SubscribeOptions",
    "Subscription",
    "WillMessage",
    "MessageStore",
    "SessionStore",
    "SubscriptionStore",
    "RetainedStore",
    "WillStore",
    "Store",
    "copy_message",
    "copy_subscription",
]


class StoreError(Exception):
    """Base class for storage errors."""


class NotFoundError(StoreError, KeyError):
    """The requested item does not exist."""

    def __str__(self) -> str:
        return "not found" if not self.args else f"not found: {self.args[0]}"


class AlreadyExistsError(StoreError):
    """The item already exists."""

    def __init__(self, *args: object) -> None:
        super().__init__(*(args or ("already exists",)))


class LockedError(StoreError):
    """The resource is locked."""

    def __init__(self, *args: object) -> None:
        super().__init__(*(args or ("resource is locked",)))


@dataclass
class Message:
    """A stored MQTT message."""

    topic: str = ""
    payload: bytes = b""
    qos: int = 0
    retain: bool = False
    packet_id: int = 0
    expiry: Optional[datetime] = None  # None means no expiry
    properties: dict[str, str] = field(default_factory=dict)
    message_expiry: Optional[int] = None
    payload_format: Optional[int] = None
    content_type: str = ""
    response_topic: str = ""
    correlation_data: bytes = b""
    user_properties: dict[str, str] = field(default_factory=dict)
    subscription_ids: list[int] = field(default_factory=list)
    publish_time: Optional[datetime] = None


def copy_message(msg: Optional[Message]) -> Optional[Message]:
    """Return a deep copy of ``msg`` (None stays None)."""
    if msg is None:
        return None
    return dataclasses.replace(
        msg,
        payload=bytes(msg.payload),
        correlation_data=bytes(msg.correlation_data),
        properties=dict(msg.properties),
        user_properties=dict(msg.user_properties),
        subscription_ids=list(msg.subscription_ids),
    )


@dataclass
class Session:
    """Persisted session state."""

    client_id: str = ""
    version: int = 0  # MQTT protocol level (3, 4 or 5)
    clean_start: bool = False
    expiry_interval: int = 0  # seconds; 0 = no expiry when disconnected
    connected_at: Optional[datetime] = None
    disconnected_at: Optional[datetime] = None
    connected: bool = False
    receive_maximum: int = 0
    max_packet_size: int = 0
    topic_alias_max: int = 0
    request_response: bool = False
    request_problem: bool = False


@dataclass
class SubscribeOptions:
    """MQTT 5.0 subscription options."""

    no_local: bool = False
    retain_as_published: bool = False
    retain_handling: int = 0  # 0 = send, 1 = new only, 2 = none


@dataclass
class Subscription:
    """A stored subscription."""

    client_id: str = ""
    filter: str = ""
    qos: int = 0
    options: SubscribeOptions = field(default_factory=SubscribeOptions)
    subscription_id: Optional[int] = None


def copy_subscription(sub: Optional[Subscription]) -> Optional[Subscription]:
    """Return a copy of ``sub`` (None stays None)."""
    if sub is None:
        return None
    return dataclasses.replace(sub, options=dataclasses.replace(sub.options))


@dataclass
class WillMessage:
    """A stored will message."""

    client_id: str = ""
    topic: str = ""
    payload: bytes = b""
    qos: int = 0
    retain: bool = False
    delay: int = 0  # will delay interval in seconds
    expiry: int = 0  # message expiry interval
    properties: dict[str, str] = field(default_factory=dict)


class MessageStore(ABC):
    """Message persistence for the QoS offline queue."""

    @abstractmethod
    def store(self, key: str, msg: Message) -> None:
        """Store a message under ``key``."""

    @abstractmethod
    def get(self, key: str) -> Message:
        """Return the message under ``key``; raise NotFoundError if missing."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove the message under ``key``."""

    @abstractmethod
    def list(self, prefix: str) -> list[Message]:
        """Return all messages whose key starts with ``prefix``."""

    @abstractmethod
    def delete_by_prefix(self, prefix: str) -> None:
        """Remove all messages whose key starts with ``prefix``."""


class SessionStore(ABC):
    """Session persistence."""

    @abstractmethod
    def get(self, client_id: str) -> Session:
        """Return the session for ``client_id``; raise NotFoundError if missing."""

    @abstractmethod
    def save(self, session: Session) -> None:
        """Persist ``session``."""

    @abstractmethod
    def delete(self, client_id: str) -> None:
        """Remove the session for ``client_id``."""

    @abstractmethod
    def get_expired(self, before: datetime) -> list[str]:
        """Return client IDs of sessions that expired before ``before``."""

    @abstractmethod
    def list(self) -> list[Session]:
        """Return all sessions."""


class SubscriptionStore(ABC):
    """Subscription persistence and routing."""

    @abstractmethod
    def add(self, sub: Subscription) -> None:
        """Add or update a subscription."""

    @abstractmethod
    def remove(self, client_id: str, filter: str) -> None:
        """Remove one subscription."""

    @abstractmethod
    def remove_all(self, client_id: str) -> None:
        """Remove all subscriptions of a client."""

    @abstractmethod
    def get_for_client(self, client_id: str) -> list[Subscription]:
        """Return all subscriptions of a client."""

    @abstractmethod
    def match(self, topic: str) -> list[Subscription]:
        """Return all subscriptions matching ``topic``."""

    @abstractmethod
    def count(self) -> int:
        """Return the total number of subscriptions."""


class RetainedStore(ABC):
    """Retained message persistence."""

    @abstractmethod
    def set(self, topic: str, msg: Optional[Message]) -> None:
        """Store a retained message; an empty payload deletes it."""

    @abstractmethod
    def get(self, topic: str) -> Message:
        """Return the retained message for ``topic``; raise NotFoundError if missing."""

    @abstractmethod
    def delete(self, topic: str) -> None:
        """Remove the retained message for ``topic``."""

    @abstractmethod
    def match(self, filter: str) -> list[Message]:
        """Return all retained messages matching ``filter``."""


class WillStore(ABC):
    """Will message persistence."""

    @abstractmethod
    def set(self, client_id: str, will: WillMessage) -> None:
        """Store the will message of a client."""

    @abstractmethod
    def get(self, client_id: str) -> WillMessage:
        """Return the will of a client; raise NotFoundError if missing."""

    @abstractmethod
    def delete(self, client_id: str) -> None:
        """Remove the will of a client."""

    @abstractmethod
    def get_pending(self, before: datetime) -> list[WillMessage]:
        """Return wills whose delay has elapsed by ``before``."""


class Store(ABC):
    """Composite storage giving access to all storage backends."""

    @abstractmethod
    def messages(self) -> MessageStore:
        """Return the message store."""

    @abstractmethod
    def sessions(self) -> SessionStore:
        """Return the session store."""

    @abstractmethod
    def subscriptions(self) -> SubscriptionStore:
        """Return the subscription store."""

    @abstractmethod
    def retained(self) -> RetainedStore:
        """Return the retained message store."""

    @abstractmethod
    def wills(self) -> WillStore:
        """Return the will message store."""

    @abstractmethod
    def close(self) -> None:
        """Close all storage backends."""

    def __enter__(self) -> "Store":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()