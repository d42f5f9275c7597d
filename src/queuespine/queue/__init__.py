"""Message queue backends.

Backends import their client library on first use, so only the libraries of
the backends you actually create need to be importable.

Quick Start:
    from queuespine.queue import QueueConfig, create_queue

    queue = await create_queue(QueueConfig(type="kafka", brokers=["localhost:9092"]))
    try:
        await queue.send("events", b"hello")
        for message in await queue.receive("events", 10, 5):
            await queue.ack(message)
    finally:
        await queue.close()

Backends:
    sqs       SQSQueue        (aioboto3)
    kafka     KafkaQueue      (aiokafka)
    rabbitmq  RabbitMQQueue   (aio-pika)
"""

from queuespine.queue.config import QueueConfig, QueueType
from queuespine.queue.factory import build_queue, close_all, create_queue, queue_from_env

__all__ = [
    "QueueConfig",
    "QueueType",
    "build_queue",
    "close_all",
    "create_queue",
    "queue_from_env",
]
