"""Modelos de dominio del pipeline.

Este es el contrato que fluye por las dos colas:
Gateway → intake (Reading) → Evaluator → outcome (EvaluationEvent) → Dispatcher
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from ..errors import MalformedItemError


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    """Convierte un ISO-8601 (con o sin 'Z') a datetime UTC."""
    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, str) and value.strip():
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            ts = datetime.fromisoformat(raw)
        except ValueError as e:
            raise MalformedItemError(f"invalid timestamp: {value!r}") from e
    else:
        raise MalformedItemError(f"invalid timestamp: {value!r}")

    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def parse_number(value: Any, name: str) -> float:
    if isinstance(value, bool) or value is None:
        raise MalformedItemError(f"invalid {name}: {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise MalformedItemError(f"invalid {name}: {value!r}") from e
    if not math.isfinite(number):
        raise MalformedItemError(f"invalid {name}: {value!r}")
    return number


def _format_ts(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).isoformat()


def _require(data: Dict[str, Any], key: str) -> Any:
    if key not in data or data[key] is None:
        raise MalformedItemError(f"missing field: {key}")
    return data[key]


class Classification(Enum):
    """Severidad derivada de una lectura."""

    NORMAL = "NORMAL"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"
    TREND_ANOMALY = "TREND_ANOMALY"


class Action(Enum):
    """Operaciones que el Dispatcher ejecuta por evento."""

    RECORD = "RECORD"
    NOTIFY_WARNING = "NOTIFY_WARNING"
    NOTIFY_CRITICAL = "NOTIFY_CRITICAL"
    REQUEST_ADJUSTMENT = "REQUEST_ADJUSTMENT"
    RECORD_TREND = "RECORD_TREND"


class EventType(Enum):
    READING_EVALUATED = "READING_EVALUATED"
    TREND_ANOMALY = "TREND_ANOMALY"


@dataclass(frozen=True)
class Reading:
    """Lectura de un sensor de una entidad (barco). Inmutable."""

    entity_id: str
    sensor_id: str
    value: float
    observed_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entity_id": self.entity_id,
            "sensor_id": self.sensor_id,
            "value": self.value,
            "observed_at": _format_ts(self.observed_at),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Any) -> "Reading":
        if not isinstance(data, dict):
            raise MalformedItemError("reading must be a JSON object")
        entity_id = str(_require(data, "entity_id")).strip()
        if not entity_id:
            raise MalformedItemError("missing field: entity_id")
        sensor_id = data.get("sensor_id") or f"{entity_id}_default_sensor"
        return cls(
            entity_id=entity_id,
            sensor_id=str(sensor_id),
            value=parse_number(_require(data, "value"), "value"),
            observed_at=parse_timestamp(_require(data, "observed_at")),
        )

    @classmethod
    def from_json(cls, body: str) -> "Reading":
        return cls.from_dict(_loads(body))


@dataclass(frozen=True)
class Thresholds:
    """Umbrales de una entidad: warning < critical, target = valor deseado."""

    warning: float
    critical: float
    target: float

    def to_dict(self) -> Dict[str, float]:
        return {"warning": self.warning, "critical": self.critical, "target": self.target}

    @classmethod
    def from_dict(cls, data: Any) -> "Thresholds":
        if not isinstance(data, dict):
            raise MalformedItemError("thresholds must be a JSON object")
        return cls(
            warning=parse_number(_require(data, "warning"), "warning"),
            critical=parse_number(_require(data, "critical"), "critical"),
            target=parse_number(_require(data, "target"), "target"),
        )


@dataclass(frozen=True)
class EvaluationEvent:
    """Resultado de evaluar una lectura, junto con la lectura evaluada.

    Los eventos de tendencia no llevan umbrales (thresholds=None).
    """

    reading: Reading
    classification: Classification
    actions: Tuple[Action, ...]
    thresholds: Optional[Thresholds] = None
    message: str = ""
    produced_at: datetime = field(default_factory=utc_now)

    @property
    def event_type(self) -> EventType:
        if self.classification == Classification.TREND_ANOMALY:
            return EventType.TREND_ANOMALY
        return EventType.READING_EVALUATED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "reading": self.reading.to_dict(),
            "classification": self.classification.value,
            "thresholds": self.thresholds.to_dict() if self.thresholds else None,
            "actions": [a.value for a in self.actions],
            "message": self.message,
            "produced_at": _format_ts(self.produced_at),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Any) -> "EvaluationEvent":
        if not isinstance(data, dict):
            raise MalformedItemError("event must be a JSON object")
        try:
            classification = Classification(_require(data, "classification"))
            actions = tuple(Action(a) for a in _require(data, "actions"))
        except (ValueError, TypeError) as e:
            raise MalformedItemError(f"invalid event: {e}") from e
        if not actions:
            raise MalformedItemError("event without actions")

        raw_thresholds = data.get("thresholds")
        return cls(
            reading=Reading.from_dict(_require(data, "reading")),
            classification=classification,
            actions=actions,
            thresholds=Thresholds.from_dict(raw_thresholds) if raw_thresholds else None,
            message=str(data.get("message") or ""),
            produced_at=parse_timestamp(_require(data, "produced_at")),
        )

    @classmethod
    def from_json(cls, body: str) -> "EvaluationEvent":
        return cls.from_dict(_loads(body))


@dataclass(frozen=True)
class AlertRecord:
    """Fila de la tabla alerts."""

    entity_id: str
    value: float
    threshold_used: Optional[float]
    classification: Classification
    action_taken: Action
    message: str
    created_at: datetime


@dataclass(frozen=True)
class CorrectionRequest:
    """Fila de la tabla actions (petición de ajuste pendiente)."""

    entity_id: str
    current_value: float
    target_value: float
    created_at: datetime
    action_type: str = "ADJUST_TEMPERATURE"
    status: str = "PENDING"


def _loads(body: Any) -> Any:
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    try:
        return json.loads(body)
    except (TypeError, ValueError) as e:
        raise MalformedItemError(f"invalid JSON body: {e}") from e
