"""Bucle consumidor compartido por Evaluator y Dispatcher.

Cada iteración:
1. poll(max_batch, wait): vacío es un resultado normal
2. procesa cada elemento aislado (un fallo no bloquea al resto del batch)
3. ack_batch con los tokens de los elementos que terminaron sin error

Los tokens de elementos fallidos se retienen: la cola los reentrega al
vencer el plazo de visibilidad (at-least-once).

Uso:
    consumer = QueueConsumer("evaluator", intake_queue, evaluator.handle)
    consumer.run()               # hasta consumer.stop()
    consumer.run(max_iterations=3)
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from ..errors import MalformedItemError
from .base import MessageQueue, QueueItem
from .dead_letter import DeadLetterQueue

logger = logging.getLogger(__name__)

ItemHandler = Callable[[QueueItem], None]


@dataclass
class ConsumerConfig:
    """Configuración del bucle consumidor."""
    max_batch: int = 10
    wait_seconds: float = 20.0
    error_backoff_seconds: float = 5.0
    # 0 disables dead-lettering: failed items are redelivered forever.
    max_receive_count: int = 5


@dataclass
class ConsumerStats:
    """Estadísticas del consumidor."""
    iterations: int = 0
    polls: int = 0
    empty_polls: int = 0
    poll_errors: int = 0
    ack_errors: int = 0
    items_processed: int = 0
    items_failed: int = 0
    items_dead_lettered: int = 0
    last_batch_size: int = 0
    last_poll_at: Optional[float] = None


class QueueConsumer:
    """Consumidor de una cola con entrega at-least-once."""

    def __init__(
        self,
        name: str,
        queue: MessageQueue,
        handler: ItemHandler,
        config: Optional[ConsumerConfig] = None,
        dead_letter: Optional[DeadLetterQueue] = None,
    ):
        self.name = name
        self._queue = queue
        self._handler = handler
        self._config = config or ConsumerConfig()
        self._dead_letter = dead_letter
        self._stop = threading.Event()
        self._stats = ConsumerStats()

        logger.info(
            "QueueConsumer initialized: stage=%s queue=%s batch_size=%d wait=%.1fs max_receives=%d",
            name,
            queue.name,
            self._config.max_batch,
            self._config.wait_seconds,
            self._config.max_receive_count,
        )

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def stop(self) -> None:
        """Pide la parada; el batch en curso termina antes de salir."""
        self._stop.set()

    def run(self, max_iterations: Optional[int] = None) -> ConsumerStats:
        """Bucle principal. Devuelve al pedir stop() o al agotar `max_iterations`."""
        logger.info("QueueConsumer started: stage=%s", self.name)
        done = 0
        while not self._stop.is_set():
            if max_iterations is not None and done >= max_iterations:
                break
            self.run_once()
            done += 1
        logger.info(
            "QueueConsumer stopped: stage=%s iterations=%d processed=%d failed=%d",
            self.name, done, self._stats.items_processed, self._stats.items_failed,
        )
        return self._stats

    def run_once(self) -> int:
        """Una iteración poll → procesar → ack. Devuelve elementos confirmados."""
        self._stats.iterations += 1
        try:
            items = self._queue.poll(self._config.max_batch, self._config.wait_seconds)
        except Exception as e:
            self._stats.poll_errors += 1
            logger.error(
                "poll_failed stage=%s err=%s backoff=%.1fs",
                self.name, e, self._config.error_backoff_seconds,
            )
            # Backoff on error; stop() interrupts the wait.
            self._stop.wait(self._config.error_backoff_seconds)
            return 0

        self._stats.polls += 1
        self._stats.last_poll_at = time.time()
        self._stats.last_batch_size = len(items)
        if not items:
            self._stats.empty_polls += 1
            logger.debug("poll_empty stage=%s", self.name)
            return 0

        completed: List[str] = []
        for item in items:
            if self._process(item):
                completed.append(item.receipt)

        return self._ack(completed, len(items))

    def _process(self, item: QueueItem) -> bool:
        try:
            self._handler(item)
            self._stats.items_processed += 1
            return True
        except MalformedItemError as e:
            logger.error(
                "item_malformed stage=%s msg_id=%s receives=%d err=%s",
                self.name, item.message_id, item.receive_count, e,
            )
            error: Exception = e
        except Exception as e:
            logger.exception(
                "item_failed stage=%s msg_id=%s receives=%d err=%s",
                self.name, item.message_id, item.receive_count, e,
            )
            error = e

        self._stats.items_failed += 1
        return self._maybe_dead_letter(item, error)

    def _maybe_dead_letter(self, item: QueueItem, error: Exception) -> bool:
        """True si el elemento se movió a la DLQ (y por tanto se confirma)."""
        limit = self._config.max_receive_count
        if self._dead_letter is None or limit <= 0 or item.receive_count < limit:
            return False
        try:
            self._dead_letter.send(item, error, source=self.name)
        except Exception as e:
            logger.error(
                "dlq_send_failed stage=%s msg_id=%s err=%s", self.name, item.message_id, e
            )
            return False
        self._stats.items_dead_lettered += 1
        return True

    def _ack(self, receipts: List[str], batch_size: int) -> int:
        if not receipts:
            logger.warning("batch_unacked stage=%s size=%d", self.name, batch_size)
            return 0
        try:
            acked = self._queue.ack_batch(receipts)
        except Exception as e:
            # Items reappear after the visibility deadline and are reprocessed.
            self._stats.ack_errors += 1
            logger.error("ack_failed stage=%s count=%d err=%s", self.name, len(receipts), e)
            return 0
        logger.info(
            "batch_acked stage=%s acked=%d withheld=%d",
            self.name, acked, batch_size - len(receipts),
        )
        return acked

    def get_stats(self) -> dict:
        """Estadísticas del consumidor."""
        s = self._stats
        return {
            "stage": self.name,
            "running": not self._stop.is_set(),
            "iterations": s.iterations,
            "polls": s.polls,
            "empty_polls": s.empty_polls,
            "poll_errors": s.poll_errors,
            "ack_errors": s.ack_errors,
            "items_processed": s.items_processed,
            "items_failed": s.items_failed,
            "items_dead_lettered": s.items_dead_lettered,
            "last_batch_size": s.last_batch_size,
            "last_poll_at": s.last_poll_at,
            "dead_letter": self._dead_letter.stats if self._dead_letter else None,
        }
