"""Core: settings, exceptions and logging setup."""

from queuespine.core.config import Settings, get_settings
from queuespine.core.exceptions import (
    AcknowledgmentError,
    ArgumentError,
    CloseError,
    ConfigurationError,
    QueueSpineError,
    TransportError,
)
from queuespine.core.logging import configure_logging

__all__ = [
    "AcknowledgmentError",
    "ArgumentError",
    "CloseError",
    "ConfigurationError",
    "QueueSpineError",
    "Settings",
    "TransportError",
    "configure_logging",
    "get_settings",
]
