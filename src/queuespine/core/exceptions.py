"""Custom exceptions.

queuespine uses a small hierarchy of exceptions so callers can tell apart
bad configuration, bad call arguments, broker failures and acknowledgment
failures:

Example:
    >>> from queuespine.core.exceptions import AcknowledgmentError, TransportError
    >>> isinstance(TransportError("broker down"), QueueSpineError)
    True
    >>> try:
    ...     raise AcknowledgmentError("missing receipt")
    ... except QueueSpineError as e:
    ...     print(f"Caught: {type(e).__name__}")
    Caught: AcknowledgmentError
"""

from __future__ import annotations


class QueueSpineError(Exception):
    """Base exception for queuespine.

    Example:
        >>> from queuespine.core.exceptions import QueueSpineError
        >>> e = QueueSpineError("something went wrong")
        >>> str(e)
        'something went wrong'
    """


class ConfigurationError(QueueSpineError):
    """Configuration is invalid. Raised before any I/O happens.

    Example:
        >>> from queuespine.core.exceptions import ConfigurationError
        >>> raise ConfigurationError("region is required")  # doctest: +IGNORE_EXCEPTION_DETAIL
        Traceback (most recent call last):
        ConfigurationError: region is required
    """


class ArgumentError(QueueSpineError):
    """A call received an invalid argument (empty body, bad batch size...).

    Example:
        >>> from queuespine.core.exceptions import ArgumentError
        >>> raise ArgumentError("body is required")  # doctest: +IGNORE_EXCEPTION_DETAIL
        Traceback (most recent call last):
        ArgumentError: body is required
    """


class TransportError(QueueSpineError):
    """Talking to the broker failed (connect, publish, fetch, metadata).

    Example:
        >>> from queuespine.core.exceptions import TransportError
        >>> raise TransportError("connection refused")  # doctest: +IGNORE_EXCEPTION_DETAIL
        Traceback (most recent call last):
        TransportError: connection refused
    """


class CloseError(TransportError):
    """One or more resources failed to close.

    Every resource gets a release attempt; the failures are collected here.

    Example:
        >>> from queuespine.core.exceptions import CloseError
        >>> err = CloseError([RuntimeError("reader"), RuntimeError("writer")])
        >>> len(err.errors)
        2
        >>> str(err)
        'failed to close 2 resource(s): reader; writer'
    """

    def __init__(self, errors: list[BaseException]) -> None:
        self.errors = list(errors)
        details = "; ".join(str(e) for e in self.errors)
        super().__init__(f"failed to close {len(self.errors)} resource(s): {details}")


class AcknowledgmentError(QueueSpineError):
    """Acknowledging or rejecting a message failed.

    Kept apart from send/receive failures so a caller can decide whether
    the message should be treated as processed.

    Example:
        >>> from queuespine.core.exceptions import AcknowledgmentError
        >>> raise AcknowledgmentError("receipt is required")  # doctest: +IGNORE_EXCEPTION_DETAIL
        Traceback (most recent call last):
        AcknowledgmentError: receipt is required
    """
