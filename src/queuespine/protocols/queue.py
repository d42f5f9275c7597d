"""Message queue protocol.

Defines the one contract every backend satisfies, the canonical
:class:`Message` and :class:`QueueInfo` types, and the argument checks all
backends share so they fail the same way.

Example:
    >>> from queuespine.protocols.queue import Message
    >>> msg = Message(message_id="msg-1", body=b'{"a": 1}', receipt="r-1")
    >>> msg.body
    b'{"a": 1}'
    >>> msg.attempt
    1
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable

from queuespine.core.exceptions import AcknowledgmentError, ArgumentError


@dataclass
class Message:
    """A message delivered by :meth:`MessageQueue.receive`.

    ``receipt`` is an opaque, per-delivery token. Its meaning depends on the
    backend (SQS receipt handle, Kafka pending-table id, AMQP delivery tag)
    and it is only valid on the queue instance that produced it.

    Example:
        >>> from queuespine.protocols.queue import Message
        >>> m = Message(
        ...     message_id="m123",
        ...     body=b"payload",
        ...     attributes={"priority": "high"},
        ...     receipt="42",
        ...     attempt=2,
        ... )
        >>> m.attributes["priority"]
        'high'
        >>> m.attempt
        2
    """

    message_id: str
    body: bytes
    attributes: dict[str, str] = field(default_factory=dict)
    receipt: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    attempt: int = 1


@dataclass
class QueueInfo:
    """Best-effort queue metadata.

    Counts a backend cannot report stay ``None``. ``in_flight_count`` is the
    number of received but unacknowledged messages (SQS "not visible"), and
    ``delayed_count`` the number not yet deliverable because of a delay.

    Example:
        >>> from queuespine.protocols.queue import QueueInfo
        >>> info = QueueInfo(name="orders", approximate_count=42)
        >>> info.created_at is None
        True
    """

    name: str
    approximate_count: int = 0
    created_at: datetime | None = None
    consumer_count: int | None = None
    in_flight_count: int | None = None
    delayed_count: int | None = None


@runtime_checkable
class MessageQueue(Protocol):
    """Message queue protocol."""

    async def initialize(self) -> None:
        """Open connections. Connection failures raise TransportError."""
        ...

    async def send(
        self,
        destination: str,
        body: bytes,
        attributes: Mapping[str, str] | None = None,
    ) -> str:
        """Send one message. Returns the backend's message ID."""
        ...

    async def receive(
        self,
        source: str,
        max_messages: int,
        wait_time: float,
    ) -> list[Message]:
        """Receive up to ``max_messages`` within ``wait_time`` seconds."""
        ...

    async def ack(self, message: Message) -> None:
        """Mark a message as processed."""
        ...

    async def nack(self, message: Message) -> None:
        """Hand a message back for redelivery."""
        ...

    async def get_info(self, name: str) -> QueueInfo:
        """Read queue metadata."""
        ...

    async def close(self) -> None:
        """Release every held connection."""
        ...


# --- Argument checks shared by all backends ---


def validate_send_args(
    destination: str,
    body: bytes,
    attributes: Mapping[str, Any] | None,
) -> dict[str, str]:
    """Check ``send`` arguments and return the attributes as a plain dict.

    Attribute keys and values must both be ``str``. Nothing is coerced.

    Example:
        >>> from queuespine.protocols.queue import validate_send_args
        >>> validate_send_args("q1", b"x", {"p": "x"})
        {'p': 'x'}
        >>> validate_send_args("q1", b"x", {"p": 1})  # doctest: +IGNORE_EXCEPTION_DETAIL
        Traceback (most recent call last):
        ArgumentError: attribute 'p' must be a string, got int
    """
    if not destination:
        raise ArgumentError("destination is required")
    if not isinstance(body, (bytes, bytearray, memoryview)):
        raise ArgumentError(f"body must be bytes, got {type(body).__name__}")
    if len(body) == 0:
        raise ArgumentError("body is required")

    checked: dict[str, str] = {}
    for key, value in (attributes or {}).items():
        if not isinstance(key, str):
            raise ArgumentError(f"attribute name {key!r} must be a string")
        if not isinstance(value, str):
            raise ArgumentError(
                f"attribute {key!r} must be a string, got {type(value).__name__}"
            )
        checked[key] = value
    return checked


def validate_receive_args(source: str, max_messages: int, wait_time: float) -> None:
    """Check ``receive`` arguments.

    Example:
        >>> from queuespine.protocols.queue import validate_receive_args
        >>> validate_receive_args("q1", 0, 5)  # doctest: +IGNORE_EXCEPTION_DETAIL
        Traceback (most recent call last):
        ArgumentError: max_messages must be greater than 0
    """
    if not source:
        raise ArgumentError("source is required")
    if max_messages <= 0:
        raise ArgumentError("max_messages must be greater than 0")
    if wait_time < 0:
        raise ArgumentError("wait_time must not be negative")


def require_receipt(message: Message) -> str:
    """Return the message receipt or raise AcknowledgmentError if it is empty."""
    if not message.receipt:
        raise AcknowledgmentError(f"message {message.message_id!r} has no receipt")
    return message.receipt
