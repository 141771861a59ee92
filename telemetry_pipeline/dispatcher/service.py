"""Dispatcher: ejecuta las acciones de cada EvaluationEvent.

Reglas de persistencia:
- RECORD             → fila en readings
- NOTIFY_WARNING/_CRITICAL → fila en alerts + notificación best-effort
- REQUEST_ADJUSTMENT → fila en alerts + petición PENDING en actions
- RECORD_TREND       → fila en alerts (TREND_ANOMALY, sin umbral)

Un evento genera como mucho una fila en alerts: la primera acción que la
necesita la inserta y las siguientes la reutilizan.

Las acciones de un evento se ejecutan en orden dentro de una transacción.
Si un INSERT falla, el evento queda sin confirmar y se reentrega. Las
notificaciones salen después del commit, solo para alertas persistidas.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Protocol

from sqlalchemy.engine import Connection, Engine

from ..domain.models import (
    Action,
    AlertRecord,
    CorrectionRequest,
    EvaluationEvent,
    utc_now,
)
from ..errors import MalformedItemError
from ..evaluator.rules import threshold_used
from ..queue.base import QueueItem
from ..storage import repository as repo

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify(self, event: EvaluationEvent) -> bool:
        ...


@dataclass
class DispatchResult:
    readings: int = 0
    alerts: int = 0
    corrections: int = 0
    notifications_attempted: int = 0
    notifications_sent: int = 0
    actions: List[Action] = field(default_factory=list)


class Dispatcher:
    def __init__(
        self,
        engine: Engine,
        notifier: Notifier,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._engine = engine
        self._notifier = notifier
        self._clock = clock

    def handle(self, item: QueueItem) -> None:
        event = EvaluationEvent.from_json(item.body)
        self.dispatch(event)

    def dispatch(self, event: EvaluationEvent) -> DispatchResult:
        result = DispatchResult()
        pending_notifications = 0

        with self._engine.begin() as conn:
            for action in event.actions:
                if action == Action.RECORD:
                    repo.insert_reading(conn, event.reading, recorded_at=self._clock())
                    result.readings += 1
                elif action in (Action.NOTIFY_WARNING, Action.NOTIFY_CRITICAL):
                    self._ensure_alert(conn, event, action, result)
                    pending_notifications += 1
                elif action == Action.REQUEST_ADJUSTMENT:
                    self._ensure_alert(conn, event, action, result)
                    self._store_correction(conn, event)
                    result.corrections += 1
                elif action == Action.RECORD_TREND:
                    self._ensure_alert(conn, event, action, result)
                result.actions.append(action)

        for _ in range(pending_notifications):
            result.notifications_attempted += 1
            if self._send(event):
                result.notifications_sent += 1

        logger.info(
            "event_dispatched entity=%s class=%s readings=%d alerts=%d corrections=%d notified=%d/%d",
            event.reading.entity_id,
            event.classification.value,
            result.readings,
            result.alerts,
            result.corrections,
            result.notifications_sent,
            result.notifications_attempted,
        )
        return result

    def _ensure_alert(
        self, conn: Connection, event: EvaluationEvent, action: Action, result: DispatchResult
    ) -> None:
        # Una fila de alerta por evento; acciones posteriores la reutilizan.
        if result.alerts:
            return
        self._store_alert(conn, event, action)
        result.alerts += 1

    def _store_alert(self, conn: Connection, event: EvaluationEvent, action: Action) -> None:
        reading = event.reading
        limit = threshold_used(event.classification, event.thresholds)
        message = event.message or (
            f"{event.classification.value} | {reading.entity_id}_{reading.sensor_id} | "
            f"{reading.value} > {limit} threshold"
        )
        repo.insert_alert(
            conn,
            AlertRecord(
                entity_id=reading.entity_id,
                value=reading.value,
                threshold_used=limit,
                classification=event.classification,
                action_taken=action,
                message=message,
                created_at=self._clock(),
            ),
        )

    def _store_correction(self, conn: Connection, event: EvaluationEvent) -> None:
        if event.thresholds is None:
            raise MalformedItemError("REQUEST_ADJUSTMENT requires thresholds with a target value")
        repo.insert_correction(
            conn,
            CorrectionRequest(
                entity_id=event.reading.entity_id,
                current_value=event.reading.value,
                target_value=event.thresholds.target,
                created_at=self._clock(),
            ),
        )

    def _send(self, event: EvaluationEvent) -> bool:
        try:
            return self._notifier.notify(event)
        except Exception as e:
            logger.error("[NOTIFY] Notifier error entity=%s err=%s", event.reading.entity_id, e)
            return False
