"""Apache Kafka message queue backend.

Kafka tracks consumption per partition with committed offsets; it has no
notion of acknowledging or rejecting one message. This backend keeps a
pending table of records handed out by :meth:`KafkaQueue.receive`, keyed by
a synthetic receipt id:

- ``ack`` commits the record's offset, then drops the entry. Commits are
  serialized and a partition's committed offset never moves backwards, so
  acking records out of order is safe.
- ``nack`` drops the entry without committing.

Known limitations:
    ``nack`` is an approximation. The record is not put back on the topic;
    an uncommitted offset is only delivered again after the consumer group
    rebalances or restarts from its last committed offset. Committing offset
    N of a partition also covers every earlier offset of that partition, so
    a later ``ack`` can commit past a record that was nacked before it.

    Pending entries never expire. A caller that never acks or nacks keeps the
    entry for the life of the instance.

Example:
    >>> from queuespine.queue.kafka import KafkaQueue
    >>> queue = KafkaQueue(brokers=["localhost:9092"], consumer_group="workers")
    >>> await queue.initialize()
    >>> await queue.send("events", b'{"event": "user_created"}')
    >>> for message in await queue.receive("events", 10, 5):
    ...     await queue.ack(message)
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import threading
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer, TopicPartition
from aiokafka.errors import KafkaError

from queuespine.core.exceptions import (
    AcknowledgmentError,
    ArgumentError,
    CloseError,
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


class KafkaQueue:
    """Kafka backend of the MessageQueue protocol.

    The writer is started by :meth:`initialize`. The reader is started on
    the first :meth:`receive` and stays bound to that topic and to the
    consumer group current at that moment.

    Args:
        brokers: Bootstrap servers, e.g. ``["localhost:9092"]``.
        consumer_group: Consumer group used by the reader.
    """

    def __init__(self, brokers: list[str], consumer_group: str = "queuespine") -> None:
        self._brokers = list(brokers)
        self._consumer_group = consumer_group
        self._writer: AIOKafkaProducer | None = None
        self._reader: AIOKafkaConsumer | None = None
        self._reader_topic: str | None = None
        self._reader_lock = asyncio.Lock()

        # receipt -> ConsumerRecord, shared with ack/nack callers
        self._pending: dict[str, Any] = {}
        self._receipts = itertools.count(1)
        self._lock = threading.Lock()
        # partition -> highest committed offset; commits only move forward
        self._committed: dict[TopicPartition, int] = {}
        self._commit_lock = asyncio.Lock()
        self._closed = False

    @property
    def consumer_group(self) -> str:
        return self._consumer_group

    def set_consumer_group(self, group: str) -> None:
        """Choose the consumer group. Only allowed before the first receive."""
        if not group:
            raise ArgumentError("consumer group is required")
        if self._reader is not None:
            raise ArgumentError(
                f"reader already started with group {self._consumer_group!r}"
            )
        self._consumer_group = group

    async def initialize(self) -> None:
        """Start the writer."""
        if self._writer is not None:
            return

        writer = AIOKafkaProducer(bootstrap_servers=self._brokers, acks="all")
        try:
            await writer.start()
        except KafkaError as e:
            await writer.stop()
            raise TransportError(f"failed to connect to kafka brokers: {e}") from e

        self._writer = writer
        self._closed = False
        logger.info(f"Kafka writer started (brokers={','.join(self._brokers)})")

    async def close(self) -> None:
        """Stop reader and writer, attempting both even if one fails."""
        if self._closed:
            return
        self._closed = True

        errors: list[BaseException] = []
        for name, client in (("reader", self._reader), ("writer", self._writer)):
            if client is None:
                continue
            try:
                await client.stop()
            except Exception as e:
                logger.warning(f"Failed to stop kafka {name}: {e}")
                errors.append(e)
        self._reader = None
        self._writer = None

        if errors:
            raise CloseError(errors)
        logger.info("Kafka queue closed")

    # --- Send ---

    async def send(
        self,
        destination: str,
        body: bytes,
        attributes: Mapping[str, str] | None = None,
    ) -> str:
        """Write one record to topic ``destination`` and wait for the broker.

        Returns:
            ``"<topic>-<partition>-<offset>"`` of the written record.
        """
        attrs = validate_send_args(destination, body, attributes)
        writer = self._require_writer()
        headers = [(key, value.encode("utf-8")) for key, value in attrs.items()]

        try:
            metadata = await writer.send_and_wait(
                destination, value=bytes(body), headers=headers or None
            )
        except KafkaError as e:
            logger.error(f"Failed to write message to kafka: {e}")
            raise TransportError(f"failed to send message: {e}") from e

        message_id = f"{metadata.topic}-{metadata.partition}-{metadata.offset}"
        logger.debug(f"Message {message_id} written to kafka")
        return message_id

    # --- Receive ---

    async def receive(
        self,
        source: str,
        max_messages: int,
        wait_time: float,
    ) -> list[Message]:
        """Fetch up to ``max_messages`` records from topic ``source``.

        Stops at ``max_messages`` or when ``wait_time`` seconds have passed;
        running out of time is not an error.
        """
        validate_receive_args(source, max_messages, wait_time)
        self._require_writer()
        reader = await self._ensure_reader(source)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + wait_time
        messages: list[Message] = []

        try:
            while len(messages) < max_messages:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                try:
                    record = await asyncio.wait_for(reader.getone(), timeout=remaining)
                except TimeoutError:
                    break
                except KafkaError as e:
                    logger.error(f"Failed to fetch message from kafka: {e}")
                    self._discard(m.receipt for m in messages)
                    raise TransportError(f"failed to fetch message: {e}") from e

                messages.append(self._track(record))
        except asyncio.CancelledError:
            self._discard(m.receipt for m in messages)
            raise

        logger.debug(f"Received {len(messages)} messages from kafka topic {source}")
        return messages

    # --- Acknowledgment ---

    async def ack(self, message: Message) -> None:
        """Commit the record's offset, then forget it.

        The committed offset of a partition never moves backwards. Acking a
        record below the partition's committed offset only drops its entry.
        """
        receipt = require_receipt(message)
        with self._lock:
            record = self._pending.get(receipt)
        if record is None:
            raise AcknowledgmentError(f"unknown receipt {receipt!r}")

        reader = self._reader
        if reader is None:
            raise AcknowledgmentError("reader is not running")

        partition = TopicPartition(record.topic, record.partition)
        target = record.offset + 1

        # Serialized so concurrent acks cannot land out of order at the broker
        async with self._commit_lock:
            with self._lock:
                committed = self._committed.get(partition, -1)
            if target > committed:
                try:
                    await reader.commit({partition: target})
                except KafkaError as e:
                    logger.error(f"Failed to commit kafka offset: {e}")
                    raise AcknowledgmentError(f"failed to commit message: {e}") from e
                with self._lock:
                    self._committed[partition] = target
                logger.debug(f"Committed {record.topic}-{record.partition}-{record.offset}")
            else:
                logger.debug(
                    f"Offset {record.offset} of {record.topic}-{record.partition} "
                    f"already covered by commit {committed}"
                )

        with self._lock:
            self._pending.pop(receipt, None)

    async def nack(self, message: Message) -> None:
        """Forget the record without committing its offset."""
        receipt = require_receipt(message)
        with self._lock:
            record = self._pending.pop(receipt, None)
        if record is None:
            raise AcknowledgmentError(f"unknown receipt {receipt!r}")
        logger.debug(
            f"Discarded {record.topic}-{record.partition}-{record.offset} without commit"
        )

    # --- Metadata ---

    async def get_info(self, name: str) -> QueueInfo:
        """Return placeholder metadata.

        An accurate count needs an admin connection, which this backend does
        not hold.
        """
        if not name:
            raise ArgumentError("topic name is required")
        return QueueInfo(name=name, approximate_count=0, created_at=None)

    def pending_count(self) -> int:
        """Return the number of received but unacknowledged records."""
        with self._lock:
            return len(self._pending)

    # --- Internals ---

    def _require_writer(self) -> AIOKafkaProducer:
        if self._closed:
            raise TransportError("queue is closed")
        if self._writer is None:
            raise TransportError("queue is not initialized")
        return self._writer

    async def _ensure_reader(self, topic: str) -> AIOKafkaConsumer:
        async with self._reader_lock:
            if self._reader is not None:
                if topic != self._reader_topic:
                    raise ArgumentError(
                        f"reader is bound to topic {self._reader_topic!r}, not {topic!r}"
                    )
                return self._reader

            reader = AIOKafkaConsumer(
                topic,
                bootstrap_servers=self._brokers,
                group_id=self._consumer_group,
                enable_auto_commit=False,
                auto_offset_reset="earliest",
            )
            try:
                await reader.start()
            except KafkaError as e:
                await reader.stop()
                raise TransportError(f"failed to start kafka reader: {e}") from e

            self._reader = reader
            self._reader_topic = topic
            logger.info(f"Kafka reader started (topic={topic}, group={self._consumer_group})")
            return reader

    def _track(self, record: Any) -> Message:
        with self._lock:
            receipt = str(next(self._receipts))
            self._pending[receipt] = record
        return _to_message(record, receipt)

    def _discard(self, receipts: Any) -> None:
        with self._lock:
            for receipt in receipts:
                self._pending.pop(receipt, None)


def _to_message(record: Any, receipt: str) -> Message:
    attributes: dict[str, str] = {}
    for key, value in record.headers or ():
        try:
            attributes[key] = value.decode("utf-8") if value is not None else ""
        except (AttributeError, UnicodeDecodeError):
            logger.debug(f"Skipping non UTF-8 header {key!r}")

    timestamp = (
        datetime.fromtimestamp(record.timestamp / 1000, UTC)
        if record.timestamp and record.timestamp > 0
        else datetime.now(UTC)
    )
    return Message(
        message_id=f"{record.topic}-{record.partition}-{record.offset}",
        body=record.value or b"",
        attributes=attributes,
        receipt=receipt,
        timestamp=timestamp,
    )
