"""
queuespine - One async client contract for SQS, Kafka and RabbitMQ.

queuespine puts three message brokers with different delivery and
acknowledgment models behind a single protocol:

- SQS: receipt handles and visibility timeouts
- Kafka: partition offsets and consumer-group commits
- RabbitMQ: per-channel delivery tags

Every backend offers send / receive / ack / nack / get_info / close, with
at-least-once delivery. Where a broker cannot honour part of the contract
natively (Kafka has no per-message nack) the backend says so in its docs
instead of pretending.

Quick Start:
    >>> from queuespine import QueueConfig, create_queue
    >>> queue = await create_queue(QueueConfig(type="sqs", region="us-east-1"))
    >>> await queue.send(queue_url, b'{"a": 1}', {"p": "x"})
    >>> queue.set_queue_url(queue_url)
    >>> for message in await queue.receive(queue_url, 10, 5):
    ...     await queue.ack(message)
    >>> await queue.close()
"""

from queuespine.core.config import Settings, get_settings
from queuespine.core.exceptions import (
    AcknowledgmentError,
    ArgumentError,
    CloseError,
    ConfigurationError,
    QueueSpineError,
    TransportError,
)
from queuespine.protocols.queue import Message, MessageQueue, QueueInfo
from queuespine.queue.config import QueueConfig, QueueType
from queuespine.queue.factory import build_queue, close_all, create_queue, queue_from_env

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Contract
    "Message",
    "MessageQueue",
    "QueueInfo",
    # Configuration
    "QueueConfig",
    "QueueType",
    "Settings",
    "get_settings",
    # Factory
    "build_queue",
    "close_all",
    "create_queue",
    "queue_from_env",
    # Errors
    "AcknowledgmentError",
    "ArgumentError",
    "CloseError",
    "ConfigurationError",
    "QueueSpineError",
    "TransportError",
]
