from datetime import datetime, timezone

import pytest

from mqttd.store import (
    AlreadyExistsError,
    LockedError,
    Message,
    MessageStore,
    NotFoundError,
    Store,
    StoreError,
    SubscribeOptions,
    Subscription,
    copy_message,
    copy_subscription,
)


def _full_message():
    return Message(
        topic="test/topic",
        payload=bytearray(b"hello"),
        qos=1,
        retain=True,
        packet_id=123,
        expiry=datetime(2030, 1, 1, tzinfo=timezone.utc),
        properties={"a": "b"},
        message_expiry=60,
        payload_format=1,
        content_type="application/json",
        response_topic="response/topic",
        correlation_data=bytearray(b"correlation-123"),
        user_properties={"custom": "header"},
        subscription_ids=[1, 2],
        publish_time=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


def test_copy_message_none():
    assert copy_message(None) is None


def test_copy_message_equal_fields():
    msg = _full_message()
    cp = copy_message(msg)
    assert cp == msg
    assert cp is not msg


def test_copy_message_isolated_from_mutation():
    msg = _full_message()
    cp = copy_message(msg)
    msg.payload[0] = ord("x")
    msg.correlation_data[0] = ord("x")
    msg.properties["a"] = "changed"
    msg.user_properties["new"] = "v"
    msg.subscription_ids.append(3)
    assert cp.payload == b"hello"
    assert cp.correlation_data == b"correlation-123"
    assert cp.properties == {"a": "b"}
    assert cp.user_properties == {"custom": "header"}
    assert cp.subscription_ids == [1, 2]


def test_copy_subscription_none():
    assert copy_subscription(None) is None


def test_copy_subscription_isolated():
    sub = Subscription(
        client_id="client1",
        filter="home/+/temp",
        qos=2,
        options=SubscribeOptions(no_local=True, retain_handling=1),
        subscription_id=7,
    )
    cp = copy_subscription(sub)
    assert cp == sub
    sub.options.no_local = False
    sub.subscription_id = 9
    assert cp.options.no_local is True
    assert cp.subscription_id == 7


def test_error_hierarchy():
    with pytest.raises(StoreError):
        raise NotFoundError("key")
    assert str(AlreadyExistsError()) == "already exists"
    assert str(LockedError()) == "resource is locked"


def test_abstract_interfaces_cannot_be_instantiated():
    with pytest.raises(TypeError):
        MessageStore()
    with pytest.raises(TypeError):
        Store()


def test_store_context_manager_calls_close():
    closed = []

    class _Store(Store):
        def messages(self):
            return None

        def sessions(self):
            return None

        def subscriptions(self):
            return None

        def retained(self):
            return None

        def wills(self):
            return None

        def close(self):
            closed.append(True)

    inst = _Store()
    assert Store.__enter__(inst) is inst
    assert closed == []
    Store.__exit__(inst, None, None, None)
    assert closed == [True]

    with _Store() as s:
        assert closed == [True]
        assert isinstance(s, _Store)
    assert closed == [True, True]