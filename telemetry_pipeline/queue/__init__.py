"""Colas del pipeline y bucle consumidor.

Modules:
- base: QueueItem + interfaz MessageQueue
- memory: cola en memoria (tests / ejecución local)
- redis_streams: cola sobre Redis Streams consumer groups
- dead_letter: DLQ para elementos que agotan sus entregas
- consumer: bucle poll → procesar → ack
"""

from .base import MessageQueue, QueueItem
from .consumer import ConsumerConfig, ConsumerStats, QueueConsumer
from .dead_letter import DeadLetterQueue
from .memory import InMemoryQueue
from .redis_streams import RedisStreamQueue

__all__ = [
    "ConsumerConfig",
    "ConsumerStats",
    "DeadLetterQueue",
    "InMemoryQueue",
    "MessageQueue",
    "QueueConsumer",
    "QueueItem",
    "RedisStreamQueue",
]
