"""Cola at-least-once sobre Redis Streams (consumer groups).

Mapeo del contrato de cola:
- poll      -> XAUTOCLAIM (recupera elementos con plazo vencido) + XREADGROUP
- ack_batch -> XPENDING (valida la entrega) + XACK + XDEL en un pipeline
- retención -> XADD ... MINID ~ (ahora - retention)

El plazo de visibilidad es el min-idle-time de XAUTOCLAIM: un elemento
entregado y no confirmado en ese tiempo vuelve a estar disponible para
cualquier consumidor del grupo.

El receipt es `{msg_id}:{entrega}`. Solo confirma si el elemento sigue
pendiente con ese mismo número de entregas: tras una reentrega, el token
de la entrega anterior ya no confirma nada.
"""

from __future__ import annotations

import logging
import os
import socket
import time
import uuid
from typing import Any, List, Optional, Sequence, Tuple

import redis

from ..errors import TransportError
from .base import MessageQueue, QueueItem

logger = logging.getLogger(__name__)

BODY_FIELD = "body"


def _decode(value: Any) -> Any:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def default_consumer_name() -> str:
    return f"{socket.gethostname()}-{os.getpid()}-{uuid.uuid4().hex[:6]}"


def _split_receipt(receipt: str) -> Optional[Tuple[str, int]]:
    msg_id, sep, count = receipt.rpartition(":")
    if not sep or not count.isdigit():
        logger.warning("[QUEUE] Malformed receipt: %r", receipt)
        return None
    return msg_id, int(count)


class RedisStreamQueue(MessageQueue):
    """Cola de una etapa del pipeline respaldada por un stream de Redis."""

    def __init__(
        self,
        client: "redis.Redis",
        stream: str,
        group: str = "pipeline",
        consumer: Optional[str] = None,
        visibility_timeout: float = 30.0,
        retention_seconds: int = 86400,
    ):
        self.name = stream
        self._redis = client
        self._stream = stream
        self._group = group
        self._consumer = consumer or default_consumer_name()
        self._visibility_ms = int(visibility_timeout * 1000)
        self._retention_ms = int(retention_seconds * 1000)

    def ensure_group(self) -> None:
        """Crea el stream y el consumer group si no existen."""
        try:
            self._redis.xgroup_create(self._stream, self._group, id="0", mkstream=True)
            logger.info("[QUEUE] Created group stream=%s group=%s", self._stream, self._group)
        except redis.ResponseError as e:
            if "BUSYGROUP" not in str(e):
                raise
            logger.debug("[QUEUE] Group exists stream=%s group=%s", self._stream, self._group)

    def publish(self, body: str) -> str:  # type: ignore[override]
        min_id = f"{max(0, int(time.time() * 1000) - self._retention_ms)}-0"
        msg_id = self._redis.xadd(
            self._stream,
            {BODY_FIELD: body},
            minid=min_id,
            approximate=True,
        )
        return _decode(msg_id)

    def poll(self, max_batch: int, wait: float) -> List[QueueItem]:  # type: ignore[override]
        try:
            return self._poll(max_batch, wait)
        except redis.RedisError as e:
            raise TransportError(f"poll failed on {self._stream}: {e}") from e

    def _poll(self, max_batch: int, wait: float) -> List[QueueItem]:
        items = self._reclaim_expired(max_batch)
        remaining = max_batch - len(items)
        if remaining <= 0:
            return items

        # BLOCK 0 means forever in Redis; never block when items are already in hand.
        block_ms = int(wait * 1000) if wait > 0 and not items else None
        response = self._redis.xreadgroup(
            self._group,
            self._consumer,
            {self._stream: ">"},
            count=remaining,
            block=block_ms,
        )
        for _stream, entries in response or []:
            for msg_id, fields in entries:
                items.append(self._to_item(msg_id, fields, receive_count=1))
        return items

    def ack_batch(self, receipts: Sequence[str]) -> int:  # type: ignore[override]
        deliveries = [d for d in (_split_receipt(r) for r in receipts) if d is not None]
        if not deliveries:
            return 0
        try:
            msg_ids = self._current_deliveries(deliveries)
            if not msg_ids:
                logger.warning(
                    "[QUEUE] Stale receipts ignored stream=%s count=%d", self._stream, len(deliveries)
                )
                return 0
            pipe = self._redis.pipeline()
            pipe.xack(self._stream, self._group, *msg_ids)
            pipe.xdel(self._stream, *msg_ids)
            acked, _deleted = pipe.execute()
        except redis.RedisError as e:
            raise TransportError(f"ack failed on {self._stream}: {e}") from e
        return int(acked)

    def _current_deliveries(self, deliveries: List[Tuple[str, int]]) -> List[str]:
        """Ids cuyo receipt corresponde a la entrega pendiente actual."""
        pipe = self._redis.pipeline()
        for msg_id, _count in deliveries:
            pipe.xpending_range(self._stream, self._group, min=msg_id, max=msg_id, count=1)
        pending = pipe.execute()
        current: List[str] = []
        for (msg_id, count), entries in zip(deliveries, pending):
            if entries and int(entries[0].get("times_delivered", 0)) == count:
                current.append(msg_id)
        return current

    def _reclaim_expired(self, max_batch: int) -> List[QueueItem]:
        response = self._redis.xautoclaim(
            self._stream,
            self._group,
            self._consumer,
            min_idle_time=self._visibility_ms,
            start_id="0-0",
            count=max_batch,
        )
        # Redis 6.2 returns [next, entries]; 7.x adds deleted ids.
        entries = response[1] if response and len(response) > 1 else []
        items: List[QueueItem] = []
        orphans: List[str] = []
        for msg_id, fields in entries:
            msg_id = _decode(msg_id)
            if not fields:
                orphans.append(msg_id)
                continue
            items.append(self._to_item(msg_id, fields, self._delivery_count(msg_id)))
        if orphans:
            # Trimmed by retention while pending; nothing left to deliver.
            self._redis.xack(self._stream, self._group, *orphans)
        if items:
            logger.info(
                "[QUEUE] Reclaimed %d expired item(s) stream=%s", len(items), self._stream
            )
        return items

    def _delivery_count(self, msg_id: str) -> int:
        pending = self._redis.xpending_range(
            self._stream, self._group, min=msg_id, max=msg_id, count=1
        )
        if not pending:
            return 1
        return int(pending[0].get("times_delivered", 1))

    def _to_item(self, msg_id: Any, fields: Any, receive_count: int) -> QueueItem:
        msg_id = _decode(msg_id)
        data = {_decode(k): _decode(v) for k, v in (fields or {}).items()}
        body = data.get(BODY_FIELD)
        if body is None:
            logger.warning("[QUEUE] Entry without body stream=%s id=%s", self._stream, msg_id)
            body = ""
        return QueueItem(
            message_id=msg_id,
            receipt=f"{msg_id}:{receive_count}",
            body=body,
            receive_count=receive_count,
        )
