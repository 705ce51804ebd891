"""MQTT topic filter matching and topic name validation."""

from __future__ import annotations

__all__ = ["InvalidTopicNameError", "topic_match", "validate_topic_name"]


class InvalidTopicNameError(ValueError):
    """Raised when a topic name is not valid for PUBLISH."""

    def __init__(self, topic: object = None) -> None:
        super().__init__("invalid topic name: contains wildcards or illegal characters")
        self.topic = topic


def topic_match(filter: str, topic: str) -> bool:
    """Return True if ``topic`` matches ``filter`` under MQTT wildcard rules.

    ``+`` matches a single level and ``#`` matches the remaining levels.
    Topics starting with ``$`` are only matched by filters that also start
    with ``$`` (never by a leading wildcard).
    """
    if not filter or not topic:
        return False
    if filter == topic:
        return True

    filter_levels = filter.split("/")
    topic_levels = topic.split("/")

    if topic.startswith("$"):
        if not filter.startswith("$"):
            return False
        if filter_levels[0] in ("+", "#"):
            return False

    for position, f_level in enumerate(filter_levels):
        if f_level == "#":
            return True
        if position >= len(topic_levels):
            return False
        if f_level == "+":
            continue
        if f_level != topic_levels[position]:
            return False

    return len(filter_levels) == len(topic_levels)


def validate_topic_name(topic: str | bytes) -> None:
    """Check that ``topic`` is a valid PUBLISH topic name.

    Raises InvalidTopicNameError if it is empty, contains a wildcard or a
    NUL character, or is not valid UTF-8.
    """
    if isinstance(topic, (bytes, bytearray)):
        try:
            text = bytes(topic).decode("utf-8")
        except UnicodeDecodeError:
            raise InvalidTopicNameError(topic) from None
    else:
        text = topic
        try:
            text.encode("utf-8")
        except UnicodeEncodeError:
            raise InvalidTopicNameError(topic) from None

    if not text:
        raise InvalidTopicNameError(topic)
    if "+" in text or "#" in text:
        raise InvalidTopicNameError(topic)
    if "\x00" in text:
        raise InvalidTopicNameError(topic)