"""Reglas de negocio de evaluación.

Funciones puras: sin I/O, mismo input → mismo output.
"""

from __future__ import annotations

from typing import Dict, Optional, Tuple

from ..domain.models import Action, Classification, Reading, Thresholds

_ACTIONS: Dict[Classification, Tuple[Action, ...]] = {
    Classification.CRITICAL: (Action.RECORD, Action.REQUEST_ADJUSTMENT, Action.NOTIFY_CRITICAL),
    Classification.WARNING: (Action.RECORD, Action.NOTIFY_WARNING),
    Classification.NORMAL: (Action.RECORD,),
    Classification.TREND_ANOMALY: (Action.RECORD_TREND,),
}


def classify(value: float, thresholds: Thresholds) -> Classification:
    """Severidad de un valor. Empates van a la severidad menor (> estricto)."""
    if value > thresholds.critical:
        return Classification.CRITICAL
    if value > thresholds.warning:
        return Classification.WARNING
    return Classification.NORMAL


def actions_for(classification: Classification) -> Tuple[Action, ...]:
    """Lista ordenada de acciones. Total: toda clasificación tiene al menos una."""
    return _ACTIONS[classification]


def threshold_used(classification: Classification, thresholds: Optional[Thresholds]) -> Optional[float]:
    if thresholds is None:
        return None
    if classification == Classification.CRITICAL:
        return thresholds.critical
    if classification == Classification.WARNING:
        return thresholds.warning
    return None


def describe(reading: Reading, classification: Classification, thresholds: Thresholds) -> str:
    label = f"{reading.entity_id}_{reading.sensor_id}"
    limit = threshold_used(classification, thresholds)
    if limit is None:
        return f"{classification.value} | {label} | {reading.value} <= {thresholds.warning} threshold"
    return f"{classification.value} | {label} | {reading.value} > {limit} threshold"
