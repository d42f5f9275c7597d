"""Protocol definitions."""

from queuespine.protocols.queue import (
    Message,
    MessageQueue,
    QueueInfo,
    require_receipt,
    validate_receive_args,
    validate_send_args,
)

__all__ = [
    "Message",
    "MessageQueue",
    "QueueInfo",
    "require_receipt",
    "validate_receive_args",
    "validate_send_args",
]
