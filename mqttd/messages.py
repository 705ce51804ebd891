"""Inflight message tracking and the offline message queue."""

from __future__ import annotations

import dataclasses
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import IntEnum
from typing import Optional

from .store import Message, copy_message

__all__ = [
    "InflightFullError",
    "QueueFullError",
    "PacketNotFoundError",
    "InflightState",
    "Direction",
    "InflightMessage",
    "InflightTracker",
    "MessageQueue",
]

DEFAULT_INFLIGHT_SIZE = 65535
DEFAULT_QUEUE_SIZE = 1000


class InflightFullError(Exception):
    """The inflight tracker is at capacity."""

    def __init__(self, *args: object) -> None:
        super().__init__(*(args or ("inflight queue full",)))


class QueueFullError(Exception):
    """The offline queue is at capacity."""

    def __init__(self, *args: object) -> None:
        super().__init__(*(args or ("offline queue full",)))


class PacketNotFoundError(LookupError):
    """No inflight message has the given packet ID."""

    def __init__(self, operation: str, packet_id: int) -> None:
        super().__init__(
            f"{operation} packet ID {packet_id}: packet not found in inflight"
        )
        self.packet_id = packet_id


class InflightState(IntEnum):
    """Acknowledgement state of an inflight message."""

    PUBLISH_SENT = 0  # waiting for PUBACK (QoS 1) or PUBREC (QoS 2)
    PUBREC_RECEIVED = 1  # PUBREL sent, waiting for PUBCOMP (QoS 2)


class Direction(IntEnum):
    """Direction of a message relative to the broker."""

    OUTBOUND = 0  # sent by broker to client
    INBOUND = 1  # received from client


@dataclass
class InflightMessage:
    """A message waiting for acknowledgement."""

    packet_id: int
    message: Optional[Message]
    state: InflightState = InflightState.PUBLISH_SENT
    sent_at: datetime = dataclasses.field(default_factory=datetime.now)
    retries: int = 0
    direction: Direction = Direction.OUTBOUND


class InflightTracker:
    """Thread-safe tracker of QoS 1 and QoS 2 messages in flight."""

    def __init__(self, max_size: int = DEFAULT_INFLIGHT_SIZE) -> None:
        self._lock = threading.Lock()
        self._messages: dict[int, InflightMessage] = {}
        self._max_size = max_size if max_size > 0 else DEFAULT_INFLIGHT_SIZE
        # QoS 2 inbound: packet IDs already received, for duplicate detection.
        self._received: dict[int, datetime] = {}

    @property
    def max_size(self) -> int:
        return self._max_size

    def add(
        self,
        packet_id: int,
        msg: Optional[Message],
        direction: Direction = Direction.OUTBOUND,
    ) -> None:
        """Track a message; raise InflightFullError at capacity."""
        with self._lock:
            if len(self._messages) >= self._max_size:
                raise InflightFullError()
            self._messages[packet_id] = InflightMessage(
                packet_id=packet_id,
                message=msg,
                state=InflightState.PUBLISH_SENT,
                sent_at=datetime.now(),
                retries=0,
                direction=direction,
            )

    def get(self, packet_id: int) -> Optional[InflightMessage]:
        """Return a copy of the inflight entry, or None if not tracked."""
        with self._lock:
            entry = self._messages.get(packet_id)
            return None if entry is None else dataclasses.replace(entry)

    def has(self, packet_id: int) -> bool:
        with self._lock:
            return packet_id in self._messages

    def __contains__(self, packet_id: object) -> bool:
        with self._lock:
            return packet_id in self._messages

    def update_state(self, packet_id: int, state: InflightState) -> None:
        """Set the state of an entry; raise PacketNotFoundError if missing."""
        with self._lock:
            entry = self._messages.get(packet_id)
            if entry is None:
                raise PacketNotFoundError("update state for", packet_id)
            entry.state = state

    def ack(self, packet_id: int) -> Optional[Message]:
        """Remove an entry and return its message; raise PacketNotFoundError if missing."""
        with self._lock:
            entry = self._messages.pop(packet_id, None)
            if entry is None:
                raise PacketNotFoundError("ack", packet_id)
            return entry.message

    def remove(self, packet_id: int) -> None:
        with self._lock:
            self._messages.pop(packet_id, None)

    def get_expired(self, timeout: timedelta) -> list[InflightMessage]:
        """Return copies of entries sent at least ``timeout`` ago."""
        with self._lock:
            now = datetime.now()
            return [
                dataclasses.replace(entry)
                for entry in self._messages.values()
                if now - entry.sent_at >= timeout
            ]

    def mark_retry(self, packet_id: int) -> None:
        """Count a retry and reset the send time; raise PacketNotFoundError if missing."""
        with self._lock:
            entry = self._messages.get(packet_id)
            if entry is None:
                raise PacketNotFoundError("mark retry for", packet_id)
            entry.sent_at = datetime.now()
            entry.retries += 1

    def count(self) -> int:
        with self._lock:
            return len(self._messages)

    def __len__(self) -> int:
        return self.count()

    def is_full(self) -> bool:
        with self._lock:
            return len(self._messages) >= self._max_size

    def get_all(self) -> list[InflightMessage]:
        with self._lock:
            return [dataclasses.replace(entry) for entry in self._messages.values()]

    def clear(self) -> None:
        """Forget all inflight entries and received IDs."""
        with self._lock:
            self._messages = {}
            self._received = {}

    def mark_received(self, packet_id: int) -> None:
        """Record an inbound QoS 2 packet ID as received."""
        with self._lock:
            self._received[packet_id] = datetime.now()

    def was_received(self, packet_id: int) -> bool:
        with self._lock:
            return packet_id in self._received

    def clear_received(self, packet_id: int) -> None:
        with self._lock:
            self._received.pop(packet_id, None)

    def cleanup_expired_received(self, older_than: timedelta) -> None:
        """Drop received IDs recorded more than ``older_than`` ago."""
        with self._lock:
            cutoff = datetime.now() - older_than
            self._received = {
                pid: when for pid, when in self._received.items() if not when < cutoff
            }


class MessageQueue:
    """Thread-safe bounded FIFO of offline messages."""

    def __init__(self, max_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self._lock = threading.Lock()
        self._messages: deque[Message] = deque()
        self._max_size = max_size if max_size > 0 else DEFAULT_QUEUE_SIZE

    @property
    def max_size(self) -> int:
        return self._max_size

    def enqueue(self, msg: Message) -> None:
        """Append a copy of ``msg``; raise QueueFullError at capacity."""
        with self._lock:
            if len(self._messages) >= self._max_size:
                raise QueueFullError(
                    f"enqueue message for topic {msg.topic} "
                    f"(current: {len(self._messages)}, max: {self._max_size}): "
                    "offline queue full"
                )
            self._messages.append(copy_message(msg))

    def dequeue(self) -> Optional[Message]:
        """Remove and return the oldest message, or None if empty."""
        with self._lock:
            return self._messages.popleft() if self._messages else None

    def peek(self) -> Optional[Message]:
        """Return the oldest message without removing it, or None if empty."""
        with self._lock:
            return self._messages[0] if self._messages else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)

    def is_empty(self) -> bool:
        with self._lock:
            return not self._messages

    def is_full(self) -> bool:
        with self._lock:
            return len(self._messages) >= self._max_size

    def drain(self) -> list[Message]:
        """Remove and return all messages in order."""
        with self._lock:
            drained = list(self._messages)
            self._messages = deque()
            return drained