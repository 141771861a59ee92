"""Operaciones de BD del pipeline.

Todas las consultas están centralizadas aquí. Sin lógica de negocio.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection, Engine

from ..domain.models import AlertRecord, CorrectionRequest, Reading, utc_now
from .schema import actions, alerts, readings


@dataclass(frozen=True)
class HistoryRow:
    entity_id: str
    sensor_id: Optional[str]
    value: float
    observed_at: datetime


def _as_utc(ts: datetime) -> datetime:
    # SQLite devuelve datetimes naive; se guardan siempre en UTC.
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def insert_reading(conn: Connection, reading: Reading, recorded_at: datetime) -> None:
    conn.execute(
        readings.insert().values(
            entity_id=reading.entity_id,
            sensor_id=reading.sensor_id,
            value=reading.value,
            observed_at=reading.observed_at,
            recorded_at=recorded_at,
        )
    )


def insert_alert(conn: Connection, alert: AlertRecord) -> None:
    conn.execute(
        alerts.insert().values(
            entity_id=alert.entity_id,
            value=alert.value,
            threshold_used=alert.threshold_used,
            classification=alert.classification.value,
            action_taken=alert.action_taken.value,
            message=alert.message,
            created_at=alert.created_at,
            resolved=False,
        )
    )


def insert_correction(conn: Connection, request: CorrectionRequest) -> None:
    conn.execute(
        actions.insert().values(
            entity_id=request.entity_id,
            action_type=request.action_type,
            current_value=request.current_value,
            target_value=request.target_value,
            status=request.status,
            created_at=request.created_at,
        )
    )


def load_recent_readings(
    conn: Connection, entity_id: str, since: datetime, limit: int
) -> List[HistoryRow]:
    """Lecturas de la entidad posteriores a `since`, más recientes primero."""
    rows = conn.execute(
        select(readings.c.entity_id, readings.c.sensor_id, readings.c.value, readings.c.observed_at)
        .where(readings.c.entity_id == entity_id)
        .where(readings.c.observed_at > since)
        .order_by(readings.c.observed_at.desc(), readings.c.id.desc())
        .limit(limit)
    ).fetchall()
    return [
        HistoryRow(
            entity_id=r[0],
            sensor_id=r[1],
            value=float(r[2]),
            observed_at=_as_utc(r[3]),
        )
        for r in rows
        if r[2] is not None
    ]


class HistoryReader:
    """Lectura acotada del histórico para el detector de tendencia."""

    def __init__(self, engine: Engine):
        self._engine = engine

    def recent(
        self,
        entity_id: str,
        window_minutes: int,
        limit: int,
        now: Optional[datetime] = None,
    ) -> List[HistoryRow]:
        since = (now or utc_now()) - timedelta(minutes=window_minutes)
        with self._engine.connect() as conn:
            return load_recent_readings(conn, entity_id, since, limit)
