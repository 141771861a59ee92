from __future__ import annotations

import threading
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from .base import MessageQueue, QueueItem


@dataclass
class _Entry:
    body: str
    enqueued_at: float
    visible_at: float
    receive_count: int = 0
    receipt: Optional[str] = None


class InMemoryQueue(MessageQueue):
    """Cola en memoria con la misma semántica que la de Redis.

    - Entrega at-least-once: un elemento no confirmado reaparece al vencer
      su plazo de visibilidad.
    - Varios consumidores pueden competir (lock interno).
    - `clock` es inyectable para que los tests controlen el tiempo.
    """

    def __init__(
        self,
        name: str = "memory",
        visibility_timeout: float = 30.0,
        retention_seconds: float = 86400.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self._visibility_timeout = float(visibility_timeout)
        self._retention = float(retention_seconds)
        self._clock = clock
        self._entries: "OrderedDict[str, _Entry]" = OrderedDict()
        self._receipts: Dict[str, str] = {}
        self._cond = threading.Condition()

    def publish(self, body: str) -> str:  # type: ignore[override]
        now = self._clock()
        message_id = uuid.uuid4().hex
        with self._cond:
            self._entries[message_id] = _Entry(body=body, enqueued_at=now, visible_at=now)
            self._cond.notify_all()
        return message_id

    def poll(self, max_batch: int, wait: float) -> List[QueueItem]:  # type: ignore[override]
        deadline = time.monotonic() + max(0.0, wait)
        with self._cond:
            while True:
                items = self._take_visible(max_batch)
                remaining = deadline - time.monotonic()
                if items or remaining <= 0:
                    return items
                self._cond.wait(timeout=remaining)

    def ack_batch(self, receipts: Sequence[str]) -> int:  # type: ignore[override]
        acked = 0
        with self._cond:
            for receipt in receipts:
                message_id = self._receipts.pop(receipt, None)
                if message_id is None:
                    continue
                entry = self._entries.get(message_id)
                # A receipt from an earlier delivery no longer owns the entry.
                if entry is None or entry.receipt != receipt:
                    continue
                del self._entries[message_id]
                acked += 1
        return acked

    def __len__(self) -> int:
        with self._cond:
            return len(self._entries)

    def visible_count(self) -> int:
        now = self._clock()
        with self._cond:
            return sum(1 for e in self._entries.values() if e.visible_at <= now)

    def _take_visible(self, max_batch: int) -> List[QueueItem]:
        now = self._clock()
        self._expire(now)
        items: List[QueueItem] = []
        for message_id, entry in self._entries.items():
            if len(items) >= max_batch:
                break
            if entry.visible_at > now:
                continue
            if entry.receipt is not None:
                self._receipts.pop(entry.receipt, None)
            entry.receive_count += 1
            entry.receipt = f"{message_id}:{uuid.uuid4().hex}"
            entry.visible_at = now + self._visibility_timeout
            self._receipts[entry.receipt] = message_id
            items.append(
                QueueItem(
                    message_id=message_id,
                    receipt=entry.receipt,
                    body=entry.body,
                    receive_count=entry.receive_count,
                )
            )
        return items

    def _expire(self, now: float) -> None:
        cutoff = now - self._retention
        expired = [mid for mid, e in self._entries.items() if e.enqueued_at < cutoff]
        for message_id in expired:
            entry = self._entries.pop(message_id)
            if entry.receipt is not None:
                self._receipts.pop(entry.receipt, None)
