# mqttd

Building blocks for an MQTT broker, in pure Python with no third-party
dependencies:

- `mqttd.topics`: MQTT topic-filter matching (`+`, `#`, `$`-topics) and
  topic-name validation.
- `mqttd.store`: the storage data types (`Message`, `Session`,
  `SubscribeOptions`, `Subscription`, `WillMessage`), the copy helpers
  `copy_message` and `copy_subscription`, the storage errors and the abstract
  store interfaces (`MessageStore`, `SessionStore`, `SubscriptionStore`,
  `RetainedStore`, `WillStore`, `Store`).
- `mqttd.memory`: thread-safe in-memory implementations of those interfaces,
  including a trie-based subscription store, and the composite `MemoryStore`.
- `mqttd.messages`: `InflightTracker` for QoS 1/2 messages awaiting
  acknowledgement and `MessageQueue`, a bounded offline message queue.

## Installation

```
pip install .
```

## Topic matching and validation

```python
from mqttd.topics import topic_match, validate_topic_name, InvalidTopicNameError

topic_match("home/+/temp", "home/kitchen/temp")   # True
topic_match("foo/#", "foo")                       # True: '#' also matches the parent level
topic_match("#", "$SYS/broker/clients")           # False: wildcards never match $ topics
topic_match("$SYS/#", "$SYS/broker/clients")      # True

validate_topic_name("home/kitchen/temp")          # returns None
try:
    validate_topic_name("home/#")
except InvalidTopicNameError:
    ...
```

`topic_match` returns `False` when either argument is empty.
`validate_topic_name` accepts `str` or `bytes` and raises
`InvalidTopicNameError` (a `ValueError`) for an empty name, a name containing
`+`, `#` or a NUL character, or bytes that are not valid UTF-8.

## In-memory storage

```python
from mqttd.memory import MemoryStore
from mqttd.store import Message, Subscription, NotFoundError

with MemoryStore() as store:
    subs = store.subscriptions()
    subs.add(Subscription(client_id="client1", filter="home/#", qos=1))
    subs.add(Subscription(client_id="client1", filter="home/+/temp", qos=2))
    matched = subs.match("home/bedroom/temp")   # one entry per client, highest QoS kept
    subs.count()                                # 2

    retained = store.retained()
    retained.set("sensors/temp", Message(topic="sensors/temp", payload=b"23.5", retain=True))
    retained.match("sensors/+")
    retained.set("sensors/temp", Message(payload=b""))   # an empty payload deletes

    try:
        retained.get("sensors/temp")
    except NotFoundError:
        ...
```

Notes on behaviour:

- Stored values are copied on the way in and on the way out, so changing a
  message after storing it does not change what the store holds.
- `get` on any store raises `NotFoundError` (a `KeyError`) when the key is
  missing; `delete` of a missing key does nothing.
- `MessageStore.list(prefix)` and `delete_by_prefix(prefix)` work on key
  prefixes such as `"client1/"`.
- `RetainedStore.match("#")` returns every retained message except those on
  topics starting with `$`.
- `SessionStore.get_expired(before)` returns the client IDs of disconnected
  sessions with a non-zero `expiry_interval` whose `disconnected_at` plus that
  interval lies before `before`; a session with no `disconnected_at` counts
  as expired.
- `WillStore.set` records the current time as the disconnect time;
  `mark_disconnected(client_id)` resets it to now (or raises `NotFoundError`).
  `get_pending(before)` returns the wills whose disconnect time plus `delay`
  seconds is at or before `before`.
- Results are returned in no guaranteed order.
- `MemoryStore.close()` releases nothing; it exists to satisfy `Store`, which
  can also be used as a context manager.

## Inflight tracking and offline queue

```python
from datetime import timedelta

from mqttd.messages import (
    Direction, InflightState, InflightTracker, MessageQueue,
    PacketNotFoundError, QueueFullError,
)
from mqttd.store import Message

inflight = InflightTracker(max_size=100)
inflight.add(1, Message(topic="a/b", payload=b"x", qos=2), Direction.OUTBOUND)
inflight.update_state(1, InflightState.PUBREC_RECEIVED)
for entry in inflight.get_expired(timedelta(seconds=20)):
    inflight.mark_retry(entry.packet_id)
inflight.ack(1)            # returns the message
inflight.get(1)            # None once acknowledged

queue = MessageQueue(max_size=1000)
queue.enqueue(Message(topic="a/b", payload=b"queued", qos=1))
len(queue)                 # 1
pending = queue.drain()    # oldest first
```

- `InflightTracker.add` raises `InflightFullError` at capacity;
  `ack`, `update_state` and `mark_retry` raise `PacketNotFoundError` for an
  unknown packet ID. `get`, `get_all` and `get_expired` return copies.
- `mark_received`, `was_received`, `clear_received` and
  `cleanup_expired_received` track inbound QoS 2 packet IDs for duplicate
  detection.
- `MessageQueue.enqueue` stores a copy and raises `QueueFullError` at
  capacity; `dequeue` and `peek` return `None` when the queue is empty.
- A `max_size` of zero or less falls back to 65535 for the tracker and 1000
  for the queue.

## What this package does not do

It is a library of parts, not a running broker. It has no network server, no
MQTT packet encoding or decoding, no client, no configuration loading and no
command-line program. Storage is in memory only; nothing is written to disk.

## Running the tests

```
pip install .[test]
pytest
```