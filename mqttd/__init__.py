"""MQTT broker building blocks: topic matching, storage types, in-memory stores,
inflight tracking and offline queues."""

__version__ = "0.1.0"

__all__ = ["topics", "store", "memory", "messages"]