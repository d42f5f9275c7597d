"""Amazon SQS message queue backend.

SQS acknowledges by deleting a message through its receipt handle, and hands
a message back by resetting its visibility timeout to zero. Receive requests
are capped by the service (10 messages, 20 seconds of long polling); larger
values are clamped so callers can stay backend-agnostic.

Example:
    >>> from queuespine.queue.sqs import SQSQueue
    >>> queue = SQSQueue(region="us-east-1")
    >>> await queue.initialize()
    >>> await queue.send(queue_url, b'{"a": 1}', {"p": "x"})
    >>> queue.set_queue_url(queue_url)
    >>> for message in await queue.receive(queue_url, 10, 5):
    ...     await queue.ack(message)

Note:
    SQS message objects do not carry their queue URL, so ``ack``/``nack``
    need :meth:`SQSQueue.set_queue_url` first.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from queuespine.core.exceptions import (
    AcknowledgmentError,
    ArgumentError,
    CloseError,
    ConfigurationError,
    TransportError,
)
from queuespine.protocols.queue import (
    Message,
    QueueInfo,
    require_receipt,
    validate_receive_args,
    validate_send_args,
)

logger = logging.getLogger(__name__)

MAX_MESSAGES = 10
MAX_WAIT_SECONDS = 20
MAX_BATCH_SIZE = 10

_AWS_ERRORS = (BotoCoreError, ClientError)


class SQSQueue:
    """SQS backend of the MessageQueue protocol.

    Args:
        region: AWS region name.
        endpoint_url: Custom endpoint (LocalStack, ElasticMQ).
        access_key_id: Static access key; the default credential chain is
            used unless both keys are given.
        secret_access_key: Static secret key.
        queue_url: Queue used by ``ack``/``nack``; see :meth:`set_queue_url`.
        dlq_url: Dead-letter queue read by :meth:`get_dlq_info`.
    """

    def __init__(
        self,
        region: str,
        endpoint_url: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        queue_url: str | None = None,
        dlq_url: str | None = None,
    ) -> None:
        self._region = region
        self._endpoint_url = endpoint_url
        self._access_key_id = access_key_id
        self._secret_access_key = secret_access_key
        self._queue_url = queue_url
        self._dlq_url = dlq_url
        self._client: Any = None
        self._exit_stack: contextlib.AsyncExitStack | None = None
        self._closed = False

    @property
    def queue_url(self) -> str | None:
        return self._queue_url

    def set_queue_url(self, url: str) -> None:
        """Register the queue that ``ack``/``nack`` operate on."""
        if not url:
            raise ArgumentError("queue URL is required")
        self._queue_url = url

    async def initialize(self) -> None:
        """Create the SQS client and keep it open until :meth:`close`."""
        if self._client is not None:
            return

        session_kwargs: dict[str, Any] = {"region_name": self._region}
        if self._access_key_id and self._secret_access_key:
            session_kwargs["aws_access_key_id"] = self._access_key_id
            session_kwargs["aws_secret_access_key"] = self._secret_access_key

        client_kwargs: dict[str, Any] = {"region_name": self._region}
        if self._endpoint_url:
            client_kwargs["endpoint_url"] = self._endpoint_url
            logger.info(f"Using custom SQS endpoint {self._endpoint_url}")

        stack = contextlib.AsyncExitStack()
        try:
            session = aioboto3.Session(**session_kwargs)
            self._client = await stack.enter_async_context(
                session.client("sqs", **client_kwargs)
            )
        except _AWS_ERRORS as e:
            await stack.aclose()
            raise TransportError(f"failed to create SQS client: {e}") from e

        self._exit_stack = stack
        self._closed = False
        logger.info(f"SQS client initialized (region={self._region})")

    async def close(self) -> None:
        """Close the SQS client."""
        if self._closed:
            return
        self._closed = True

        errors: list[BaseException] = []
        if self._exit_stack is not None:
            try:
                await self._exit_stack.aclose()
            except Exception as e:
                errors.append(e)
        self._exit_stack = None
        self._client = None

        if errors:
            raise CloseError(errors)
        logger.info("SQS client closed")

    # --- Send ---

    async def send(
        self,
        destination: str,
        body: bytes,
        attributes: Mapping[str, str] | None = None,
    ) -> str:
        """Send one message to the queue at ``destination`` (a queue URL).

        Returns:
            The SQS MessageId.
        """
        attrs = validate_send_args(destination, body, attributes)
        client = self._require_client()

        params: dict[str, Any] = {
            "QueueUrl": destination,
            "MessageBody": _decode_body(body),
        }
        if attrs:
            params["MessageAttributes"] = _to_message_attributes(attrs)

        try:
            response = await client.send_message(**params)
        except _AWS_ERRORS as e:
            logger.error(f"Failed to send message to SQS: {e}")
            raise TransportError(f"failed to send message: {e}") from e

        message_id = response.get("MessageId", "")
        logger.debug(f"Message {message_id} sent to SQS")
        return message_id

    async def send_batch(
        self,
        destination: str,
        entries: Sequence[tuple[bytes, Mapping[str, str] | None]],
    ) -> list[str]:
        """Send up to 10 ``(body, attributes)`` pairs in one request.

        Returns:
            MessageIds in the order of ``entries``.

        Raises:
            ArgumentError: Empty batch, more than 10 entries or a bad entry.
            TransportError: The request failed or any entry was rejected.
        """
        if not entries:
            raise ArgumentError("batch must contain at least one message")
        if len(entries) > MAX_BATCH_SIZE:
            raise ArgumentError(f"batch size cannot exceed {MAX_BATCH_SIZE} messages")

        request_entries = []
        for i, (body, attributes) in enumerate(entries):
            attrs = validate_send_args(destination, body, attributes)
            entry: dict[str, Any] = {"Id": f"msg-{i}", "MessageBody": _decode_body(body)}
            if attrs:
                entry["MessageAttributes"] = _to_message_attributes(attrs)
            request_entries.append(entry)

        client = self._require_client()
        try:
            response = await client.send_message_batch(
                QueueUrl=destination, Entries=request_entries
            )
        except _AWS_ERRORS as e:
            logger.error(f"Failed to send batch to SQS: {e}")
            raise TransportError(f"failed to send batch messages: {e}") from e

        failed = response.get("Failed") or []
        if failed:
            for item in failed:
                logger.error(
                    f"Message send failed: id={item.get('Id')} code={item.get('Code')} "
                    f"message={item.get('Message')}"
                )
            ids = ", ".join(str(item.get("Id")) for item in failed)
            raise TransportError(f"failed to send {len(failed)} messages: {ids}")

        by_id = {item["Id"]: item.get("MessageId", "") for item in response.get("Successful", [])}
        logger.debug(f"Batch of {len(request_entries)} messages sent to SQS")
        return [by_id.get(entry["Id"], "") for entry in request_entries]

    # --- Receive ---

    async def receive(
        self,
        source: str,
        max_messages: int,
        wait_time: float,
    ) -> list[Message]:
        """Long-poll ``source`` once.

        ``max_messages`` above 10 and ``wait_time`` above 20 seconds are
        clamped to the SQS limits.
        """
        validate_receive_args(source, max_messages, wait_time)
        client = self._require_client()

        if max_messages > MAX_MESSAGES:
            logger.warning(f"Clamping max_messages {max_messages} to {MAX_MESSAGES}")
            max_messages = MAX_MESSAGES
        wait_seconds = int(wait_time)
        if wait_seconds > MAX_WAIT_SECONDS:
            logger.warning(f"Clamping wait_time {wait_time}s to {MAX_WAIT_SECONDS}s")
            wait_seconds = MAX_WAIT_SECONDS

        try:
            response = await client.receive_message(
                QueueUrl=source,
                MaxNumberOfMessages=max_messages,
                WaitTimeSeconds=wait_seconds,
                MessageAttributeNames=["All"],
                AttributeNames=["All"],
            )
        except _AWS_ERRORS as e:
            logger.error(f"Failed to receive messages from SQS: {e}")
            raise TransportError(f"failed to receive messages: {e}") from e

        messages = []
        for raw in response.get("Messages") or []:
            if not raw.get("ReceiptHandle"):
                logger.warning(f"Skipping SQS message {raw.get('MessageId')} without receipt handle")
                continue
            messages.append(_to_message(raw))
        logger.debug(f"Received {len(messages)} messages from SQS")
        return messages

    # --- Acknowledgment ---

    async def ack(self, message: Message) -> None:
        """Delete the message by its receipt handle."""
        receipt = require_receipt(message)
        queue_url = self._require_queue_url()
        client = self._require_client()

        try:
            await client.delete_message(QueueUrl=queue_url, ReceiptHandle=receipt)
        except _AWS_ERRORS as e:
            logger.error(f"Failed to delete message from SQS: {e}")
            raise AcknowledgmentError(f"failed to delete message: {e}") from e

        logger.debug(f"Message {message.message_id} deleted from SQS")

    async def ack_batch(self, messages: Sequence[Message]) -> None:
        """Delete up to 10 messages in one request."""
        if not messages:
            return
        if len(messages) > MAX_BATCH_SIZE:
            raise ArgumentError(f"batch size cannot exceed {MAX_BATCH_SIZE} messages")

        entries = [
            {"Id": f"msg-{i}", "ReceiptHandle": require_receipt(m)}
            for i, m in enumerate(messages)
        ]
        queue_url = self._require_queue_url()
        client = self._require_client()

        try:
            response = await client.delete_message_batch(QueueUrl=queue_url, Entries=entries)
        except _AWS_ERRORS as e:
            logger.error(f"Failed to delete batch from SQS: {e}")
            raise AcknowledgmentError(f"failed to delete batch messages: {e}") from e

        failed = response.get("Failed") or []
        if failed:
            for item in failed:
                logger.error(
                    f"Message deletion failed: id={item.get('Id')} code={item.get('Code')} "
                    f"message={item.get('Message')}"
                )
            raise AcknowledgmentError(f"failed to delete {len(failed)} messages")

        logger.debug(f"Batch of {len(entries)} messages deleted from SQS")

    async def nack(self, message: Message) -> None:
        """Make the message visible again right away."""
        receipt = require_receipt(message)
        queue_url = self._require_queue_url()
        client = self._require_client()

        try:
            await client.change_message_visibility(
                QueueUrl=queue_url,
                ReceiptHandle=receipt,
                VisibilityTimeout=0,
            )
        except _AWS_ERRORS as e:
            logger.error(f"Failed to change message visibility: {e}")
            raise AcknowledgmentError(f"failed to change message visibility: {e}") from e

        logger.debug(f"Message {message.message_id} made visible again")

    # --- Metadata ---

    async def get_info(self, name: str) -> QueueInfo:
        """Read message counts and creation time of a queue URL.

        Fills ``approximate_count`` (visible), ``in_flight_count`` (received,
        not yet deleted) and ``delayed_count``.
        """
        if not name:
            raise ArgumentError("queue name is required")

        attrs = await self._get_attributes(
            name,
            [
                "ApproximateNumberOfMessages",
                "ApproximateNumberOfMessagesNotVisible",
                "ApproximateNumberOfMessagesDelayed",
                "CreatedTimestamp",
            ],
        )
        created = attrs.get("CreatedTimestamp")
        return QueueInfo(
            name=name,
            approximate_count=_to_int(attrs.get("ApproximateNumberOfMessages")),
            created_at=datetime.fromtimestamp(int(created), UTC) if created else None,
            in_flight_count=_to_int(attrs.get("ApproximateNumberOfMessagesNotVisible")),
            delayed_count=_to_int(attrs.get("ApproximateNumberOfMessagesDelayed")),
        )

    async def get_dlq_info(self) -> QueueInfo:
        """Read the approximate message count of the dead-letter queue.

        Raises:
            ConfigurationError: No dead-letter queue URL was configured.
        """
        if not self._dlq_url:
            raise ConfigurationError("dead-letter queue URL not configured")

        attrs = await self._get_attributes(self._dlq_url, ["ApproximateNumberOfMessages"])
        return QueueInfo(
            name=self._dlq_url,
            approximate_count=_to_int(attrs.get("ApproximateNumberOfMessages")),
        )

    # --- Internals ---

    def _require_client(self) -> Any:
        if self._closed:
            raise TransportError("queue is closed")
        if self._client is None:
            raise TransportError("queue is not initialized")
        return self._client

    async def _get_attributes(self, queue_url: str, names: list[str]) -> dict[str, str]:
        client = self._require_client()
        try:
            response = await client.get_queue_attributes(QueueUrl=queue_url, AttributeNames=names)
        except _AWS_ERRORS as e:
            logger.error(f"Failed to get queue attributes: {e}")
            raise TransportError(f"failed to get queue attributes: {e}") from e
        return response.get("Attributes") or {}

    def _require_queue_url(self) -> str:
        if not self._queue_url:
            raise AcknowledgmentError("queue URL not set; call set_queue_url() first")
        return self._queue_url


def _decode_body(body: bytes) -> str:
    try:
        return bytes(body).decode("utf-8")
    except UnicodeDecodeError as e:
        raise ArgumentError("SQS message body must be valid UTF-8") from e


def _to_message_attributes(attributes: Mapping[str, str]) -> dict[str, dict[str, str]]:
    return {
        key: {"DataType": "String", "StringValue": value}
        for key, value in attributes.items()
    }


def _to_message(raw: dict[str, Any]) -> Message:
    attributes = {
        key: value["StringValue"]
        for key, value in (raw.get("MessageAttributes") or {}).items()
        if "StringValue" in value
    }
    system = raw.get("Attributes") or {}
    sent = system.get("SentTimestamp")

    return Message(
        message_id=raw.get("MessageId", ""),
        body=raw.get("Body", "").encode("utf-8"),
        attributes=attributes,
        receipt=raw["ReceiptHandle"],
        timestamp=datetime.fromtimestamp(int(sent) / 1000, UTC) if sent else datetime.now(UTC),
        attempt=max(_to_int(system.get("ApproximateReceiveCount")), 1),
    )


def _to_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0
