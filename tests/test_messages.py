from datetime import timedelta

import pytest

from mqttd.messages import (
    Direction,
    InflightFullError,
    InflightState,
    InflightTracker,
    MessageQueue,
    PacketNotFoundError,
    QueueFullError,
)
from mqttd.store import Message


def _msg(topic="a/b", payload=b"data"):
    return Message(topic=topic, payload=payload, qos=1)


def test_inflight_add_get_has():
    tracker = InflightTracker(10)
    msg = _msg()
    tracker.add(7, msg, Direction.OUTBOUND)
    assert tracker.has(7)
    assert not tracker.has(8)
    entry = tracker.get(7)
    assert entry.packet_id == 7
    assert entry.message is msg
    assert entry.state == InflightState.PUBLISH_SENT
    assert entry.retries == 0
    assert entry.direction == Direction.OUTBOUND
    assert tracker.get(8) is None


def test_inflight_get_returns_copy():
    tracker = InflightTracker(10)
    tracker.add(1, _msg(), Direction.INBOUND)
    entry = tracker.get(1)
    entry.retries = 99
    assert tracker.get(1).retries == 0


def test_inflight_full():
    tracker = InflightTracker(2)
    tracker.add(1, _msg(), Direction.OUTBOUND)
    tracker.add(2, _msg(), Direction.OUTBOUND)
    assert tracker.is_full()
    with pytest.raises(InflightFullError):
        tracker.add(3, _msg(), Direction.OUTBOUND)
    assert tracker.count() == 2


def test_inflight_default_size_when_non_positive():
    assert InflightTracker(0).max_size == 65535
    assert InflightTracker(-5).max_size == 65535


def test_inflight_ack_removes_and_returns_message():
    tracker = InflightTracker(10)
    msg = _msg()
    tracker.add(5, msg, Direction.OUTBOUND)
    assert tracker.ack(5) is msg
    assert not tracker.has(5)
    with pytest.raises(PacketNotFoundError):
        tracker.ack(5)


def test_inflight_update_state():
    tracker = InflightTracker(10)
    tracker.add(4, _msg(), Direction.OUTBOUND)
    tracker.update_state(4, InflightState.PUBREC_RECEIVED)
    assert tracker.get(4).state == InflightState.PUBREC_RECEIVED
    with pytest.raises(PacketNotFoundError):
        tracker.update_state(9, InflightState.PUBREC_RECEIVED)


def test_inflight_mark_retry():
    tracker = InflightTracker(10)
    tracker.add(3, _msg(), Direction.OUTBOUND)
    before = tracker.get(3).sent_at
    tracker.mark_retry(3)
    tracker.mark_retry(3)
    entry = tracker.get(3)
    assert entry.retries == 2
    assert entry.sent_at >= before
    with pytest.raises(PacketNotFoundError):
        tracker.mark_retry(42)


def test_inflight_get_expired():
    tracker = InflightTracker(10)
    tracker.add(1, _msg(), Direction.OUTBOUND)
    tracker.add(2, _msg(), Direction.OUTBOUND)
    assert tracker.get_expired(timedelta(hours=1)) == []
    expired = tracker.get_expired(timedelta(0))
    assert sorted(e.packet_id for e in expired) == [1, 2]


def test_inflight_remove_get_all_clear():
    tracker = InflightTracker(10)
    for pid in (1, 2, 3):
        tracker.add(pid, _msg(), Direction.OUTBOUND)
    tracker.remove(2)
    tracker.remove(2)
    assert sorted(e.packet_id for e in tracker.get_all()) == [1, 3]
    assert len(tracker) == 2
    tracker.mark_received(10)
    tracker.clear()
    assert tracker.count() == 0
    assert not tracker.was_received(10)


def test_inflight_received_tracking():
    tracker = InflightTracker(10)
    assert not tracker.was_received(11)
    tracker.mark_received(11)
    assert tracker.was_received(11)
    tracker.clear_received(11)
    assert not tracker.was_received(11)


def test_inflight_cleanup_expired_received():
    tracker = InflightTracker(10)
    tracker.mark_received(1)
    tracker.cleanup_expired_received(timedelta(hours=1))
    assert tracker.was_received(1)
    tracker.cleanup_expired_received(timedelta(seconds=-1))
    assert not tracker.was_received(1)


def test_packet_not_found_message():
    tracker = InflightTracker(10)
    with pytest.raises(PacketNotFoundError) as info:
        tracker.ack(12345)
    assert "packet not found in inflight" in str(info.value)
    assert info.value.packet_id == 12345


def test_queue_fifo_order():
    queue = MessageQueue(10)
    for topic in ("t1", "t2", "t3"):
        queue.enqueue(_msg(topic))
    assert len(queue) == 3
    assert queue.peek().topic == "t1"
    assert queue.dequeue().topic == "t1"
    assert queue.dequeue().topic == "t2"
    assert len(queue) == 1


def test_queue_empty_returns_none():
    queue = MessageQueue(10)
    assert queue.is_empty()
    assert queue.dequeue() is None
    assert queue.peek() is None


def test_queue_stores_copy():
    queue = MessageQueue(10)
    msg = _msg(payload=b"hello")
    queue.enqueue(msg)
    msg.payload = b"xello"
    msg.topic = "changed"
    got = queue.dequeue()
    assert got.payload == b"hello"
    assert got.topic == "a/b"


def test_queue_full():
    queue = MessageQueue(2)
    queue.enqueue(_msg("x"))
    queue.enqueue(_msg("y"))
    assert queue.is_full()
    with pytest.raises(QueueFullError) as info:
        queue.enqueue(_msg("z"))
    assert "z" in str(info.value)
    assert "offline queue full" in str(info.value)
    assert len(queue) == 2


def test_queue_default_size_when_non_positive():
    assert MessageQueue(0).max_size == 1000


def test_queue_drain():
    queue = MessageQueue(10)
    for topic in ("a", "b"):
        queue.enqueue(_msg(topic))
    drained = queue.drain()
    assert [m.topic for m in drained] == ["a", "b"]
    assert queue.is_empty()
    assert queue.drain() == []