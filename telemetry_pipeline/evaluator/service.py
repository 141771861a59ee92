"""Evaluator: Reading de la cola de ingesta → eventos en la cola de resultados.

Por cada lectura publica un evento ordinario y, si el histórico muestra
tendencia ascendente, un evento TREND_ANOMALY adicional.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List

from ..domain.models import EvaluationEvent, Reading, Thresholds, utc_now
from ..queue.base import MessageQueue, QueueItem
from .rules import actions_for, classify, describe
from .thresholds import ThresholdResolver
from .trend import TrendDetector

logger = logging.getLogger(__name__)


class Evaluator:
    def __init__(
        self,
        thresholds: ThresholdResolver,
        trend: TrendDetector,
        outcome_queue: MessageQueue,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._thresholds = thresholds
        self._trend = trend
        self._outcome = outcome_queue
        self._clock = clock

    def resolve_thresholds(self, entity_id: str) -> Thresholds:
        return self._thresholds.resolve(entity_id)

    def evaluate(self, reading: Reading) -> EvaluationEvent:
        """Evento ordinario de la lectura (sin publicar)."""
        thresholds = self.resolve_thresholds(reading.entity_id)
        classification = classify(reading.value, thresholds)
        return EvaluationEvent(
            reading=reading,
            classification=classification,
            actions=actions_for(classification),
            thresholds=thresholds,
            message=describe(reading, classification, thresholds),
            produced_at=self._clock(),
        )

    def process(self, reading: Reading) -> List[EvaluationEvent]:
        """Evalúa y publica 1 o 2 eventos.

        Si la consulta de tendencia falla después de publicar el evento
        ordinario, la excepción se propaga y la lectura se reentrega; el
        evento ya publicado no se retira.
        """
        event = self.evaluate(reading)
        self._publish(event)
        published = [event]

        trend_event = self._trend.detect(reading.entity_id, now=self._clock())
        if trend_event is not None:
            self._publish(trend_event)
            published.append(trend_event)
        return published

    def handle(self, item: QueueItem) -> None:
        reading = Reading.from_json(item.body)
        self.process(reading)

    def _publish(self, event: EvaluationEvent) -> None:
        msg_id = self._outcome.publish(event.to_json())
        logger.info(
            "event_published type=%s entity=%s class=%s actions=%s msg_id=%s",
            event.event_type.value,
            event.reading.entity_id,
            event.classification.value,
            ",".join(a.value for a in event.actions),
            msg_id,
        )
