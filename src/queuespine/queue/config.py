"""Backend configuration.

:class:`QueueConfig` is a tagged union: ``type`` selects the backend and
decides which connection field is required.

Example:
    >>> from queuespine.queue.config import QueueConfig, QueueType
    >>> cfg = QueueConfig(type=QueueType.KAFKA, brokers=["localhost:9092"])
    >>> cfg.validate()
    >>> QueueConfig(type="kafka").validate()  # doctest: +IGNORE_EXCEPTION_DETAIL
    Traceback (most recent call last):
    ConfigurationError: brokers is required for kafka queue
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from queuespine.core.exceptions import ConfigurationError


class QueueType(str, Enum):
    """Supported backends.

    Example:
        >>> QueueType.SQS.value
        'sqs'
        >>> [t.value for t in QueueType]
        ['sqs', 'kafka', 'rabbitmq']
    """

    SQS = "sqs"  # Cloud queue, receipt handle + visibility timeout
    KAFKA = "kafka"  # Log broker, partition/offset commit
    RABBITMQ = "rabbitmq"  # AMQP 0-9-1, delivery tag ack/nack


@dataclass
class QueueConfig:
    """Connection settings for one backend instance.

    Attributes:
        type: Backend selector (``QueueType`` or its string value).
        region: AWS region (sqs).
        brokers: Bootstrap servers (kafka).
        url: AMQP URL (rabbitmq).
        max_retries: Reserved for a future retry policy; unused by backends.
        timeout: Reserved for a future retry policy; unused by backends.
        endpoint_url: Custom SQS endpoint, e.g. LocalStack.
        access_key_id: Static AWS credentials, used only together with
            ``secret_access_key``.
        secret_access_key: See ``access_key_id``.
        dlq_url: SQS dead-letter queue URL, read by ``get_dlq_info``.
        consumer_group: Initial Kafka consumer group.
    """

    type: QueueType | str
    region: str = ""
    brokers: list[str] = field(default_factory=list)
    url: str = ""
    max_retries: int = 3
    timeout: float = 30.0

    endpoint_url: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None
    dlq_url: str | None = None
    consumer_group: str = "queuespine"

    @property
    def queue_type(self) -> QueueType:
        """The validated backend type.

        Example:
            >>> QueueConfig(type="sqs", region="us-east-1").queue_type
            <QueueType.SQS: 'sqs'>
        """
        try:
            return QueueType(self.type)
        except ValueError:
            raise ConfigurationError(f"unsupported queue type: {self.type}") from None

    def validate(self) -> None:
        """Check that exactly the fields required by ``type`` are present.

        Raises:
            ConfigurationError: Missing required field or unsupported type.

        Example:
            >>> QueueConfig(type="sqs", region="us-east-1").validate()
            >>> QueueConfig(type="redis").validate()  # doctest: +IGNORE_EXCEPTION_DETAIL
            Traceback (most recent call last):
            ConfigurationError: unsupported queue type: redis
        """
        queue_type = self.queue_type

        if queue_type is QueueType.SQS:
            if not self.region:
                raise ConfigurationError("region is required for sqs queue")
        elif queue_type is QueueType.KAFKA:
            if not self.brokers or not all(self.brokers):
                raise ConfigurationError("brokers is required for kafka queue")
        elif queue_type is QueueType.RABBITMQ:
            if not self.url:
                raise ConfigurationError("url is required for rabbitmq queue")
