"""Dead Letter Queue para elementos que no se pudieron procesar.

Política: un elemento que falla y ya alcanzó `max_receive_count` entregas
se copia a la DLQ con metadata del error y se confirma en la cola origen.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Optional

from .base import MessageQueue, QueueItem

logger = logging.getLogger(__name__)


@dataclass
class DLQEntry:
    """Entrada en la Dead Letter Queue."""
    payload: str
    error: str
    error_type: str
    source: str
    receive_count: int
    timestamp: float
    msg_id: Optional[str] = None

    def to_json(self) -> str:
        return json.dumps(
            {
                "payload": self.payload,
                "error": self.error,
                "error_type": self.error_type,
                "source": self.source,
                "receive_count": self.receive_count,
                "timestamp": self.timestamp,
                "msg_id": self.msg_id,
            }
        )


class DeadLetterQueue:
    """Envía elementos fallidos a una cola aparte para análisis posterior."""

    def __init__(self, target: MessageQueue):
        self._target = target
        self._total_sent = 0

    @property
    def stats(self) -> dict:
        return {"target": self._target.name, "total_sent": self._total_sent}

    def send(self, item: QueueItem, error: BaseException, source: str) -> str:
        """Publica el elemento en la DLQ. Propaga errores de transporte."""
        entry = DLQEntry(
            payload=item.body[:10000],
            error=str(error)[:1000],
            error_type=type(error).__name__,
            source=source,
            receive_count=item.receive_count,
            timestamp=time.time(),
            msg_id=item.message_id,
        )
        dlq_id = self._target.publish(entry.to_json())
        self._total_sent += 1
        logger.warning(
            "DLQ_SENT source=%s msg_id=%s receives=%d error_type=%s dlq_id=%s",
            source, item.message_id, item.receive_count, entry.error_type, dlq_id,
        )
        return dlq_id
