"""Detector de tendencia ascendente sobre el histórico reciente.

Heurística, no modelo estadístico: responde "¿la entidad se está
calentando de forma persistente y por un margen relevante?" usando solo
las últimas `max_samples` lecturas dentro de la ventana.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..domain.models import Classification, EvaluationEvent, Reading, utc_now
from ..storage.repository import HistoryRow
from .rules import actions_for

logger = logging.getLogger(__name__)


class HistorySource(Protocol):
    def recent(
        self,
        entity_id: str,
        window_minutes: int,
        limit: int,
        now: Optional[datetime] = None,
    ) -> Sequence[HistoryRow]:
        ...


@dataclass(frozen=True)
class TrendConfig:
    window_minutes: int = 5
    max_samples: int = 5
    min_samples: int = 3
    min_rising_steps: int = 2
    min_total_increase: float = 2.0


def count_rising_steps(values_newest_first: Sequence[float]) -> int:
    """Pares adyacentes (más nuevo, más viejo) donde el nuevo es mayor."""
    return sum(
        1
        for newer, older in zip(values_newest_first, values_newest_first[1:])
        if newer > older
    )


def rising_increase(values_newest_first: Sequence[float], config: TrendConfig) -> Optional[float]:
    """Incremento total si la muestra cumple la regla de tendencia, si no None."""
    if len(values_newest_first) < config.min_samples:
        return None
    if count_rising_steps(values_newest_first) < config.min_rising_steps:
        return None
    increase = values_newest_first[0] - values_newest_first[-1]
    if increase > config.min_total_increase:
        return increase
    return None


def detect_trend(
    history: HistorySource,
    entity_id: str,
    window_minutes: int = 5,
    max_samples: int = 5,
    min_samples: int = 3,
    min_rising_steps: int = 2,
    min_total_increase: float = 2.0,
    now: Optional[datetime] = None,
) -> Optional[EvaluationEvent]:
    """Evento TREND_ANOMALY para la entidad, o None si no hay tendencia."""
    config = TrendConfig(
        window_minutes=window_minutes,
        max_samples=max_samples,
        min_samples=min_samples,
        min_rising_steps=min_rising_steps,
        min_total_increase=min_total_increase,
    )
    now = now or utc_now()
    rows = list(history.recent(entity_id, config.window_minutes, config.max_samples, now=now))
    increase = rising_increase([r.value for r in rows], config)
    if increase is None:
        return None

    newest = rows[0]
    logger.info(
        "trend_detected entity=%s samples=%d increase=%.2f window=%dmin",
        entity_id, len(rows), increase, config.window_minutes,
    )
    return EvaluationEvent(
        reading=Reading(
            entity_id=entity_id,
            sensor_id=newest.sensor_id or f"{entity_id}_default_sensor",
            value=newest.value,
            observed_at=newest.observed_at,
        ),
        classification=Classification.TREND_ANOMALY,
        actions=actions_for(Classification.TREND_ANOMALY),
        thresholds=None,
        message=f"Temperature rising: +{increase:.1f} in {config.window_minutes} min",
        produced_at=now,
    )


class TrendDetector:
    """detect_trend con la configuración fijada al construir."""

    def __init__(self, history: HistorySource, config: Optional[TrendConfig] = None):
        self._history = history
        self._config = config or TrendConfig()

    def detect(self, entity_id: str, now: Optional[datetime] = None) -> Optional[EvaluationEvent]:
        c = self._config
        return detect_trend(
            self._history,
            entity_id,
            window_minutes=c.window_minutes,
            max_samples=c.max_samples,
            min_samples=c.min_samples,
            min_rising_steps=c.min_rising_steps,
            min_total_increase=c.min_total_increase,
            now=now,
        )
