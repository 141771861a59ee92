"""Esquema de la base de datos del pipeline.

Tablas:
- readings: todas las lecturas (auditoría + consultas de tendencia)
- alerts: WARNING, CRITICAL y TREND_ANOMALY
- actions: peticiones de ajuste pendientes
- entity_configs: umbrales sembrados por entidad

Todas las escrituras del pipeline son INSERT; los duplicados por
reentrega quedan como filas duplicadas.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    select,
)
from sqlalchemy.engine import Engine

from ..domain.models import utc_now

logger = logging.getLogger(__name__)

metadata = MetaData()


def _value_column(name: str, nullable: bool = True) -> Column:
    return Column(name, Numeric(7, 2, asdecimal=False), nullable=nullable)


readings = Table(
    "readings",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("entity_id", String(50), nullable=False),
    Column("sensor_id", String(50)),
    _value_column("value", nullable=False),
    Column("observed_at", DateTime(timezone=True), nullable=False),
    Column("recorded_at", DateTime(timezone=True), nullable=False, default=utc_now),
    Index("idx_readings_entity_observed", "entity_id", "observed_at"),
    Index("idx_readings_observed", "observed_at"),
)

alerts = Table(
    "alerts",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("entity_id", String(50), nullable=False),
    _value_column("value", nullable=False),
    _value_column("threshold_used"),
    Column("classification", String(20), nullable=False),
    Column("action_taken", String(50)),
    Column("message", Text),
    Column("created_at", DateTime(timezone=True), nullable=False, default=utc_now),
    Column("resolved", Boolean, nullable=False, default=False),
    Column("resolved_at", DateTime(timezone=True)),
    Index("idx_alerts_entity_created", "entity_id", "created_at"),
    Index("idx_alerts_classification", "classification"),
    Index("idx_alerts_resolved", "resolved"),
)

actions = Table(
    "actions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("entity_id", String(50), nullable=False),
    Column("action_type", String(50), nullable=False),
    _value_column("current_value"),
    _value_column("target_value"),
    Column("status", String(20), nullable=False, default="PENDING"),
    Column("created_at", DateTime(timezone=True), nullable=False, default=utc_now),
    Column("executed_at", DateTime(timezone=True)),
    Index("idx_actions_entity_status", "entity_id", "status"),
)

entity_configs = Table(
    "entity_configs",
    metadata,
    Column("entity_id", String(50), primary_key=True),
    _value_column("warning_threshold"),
    _value_column("critical_threshold"),
    _value_column("target_value"),
    Column("notification_email", String(255)),
    Column("active", Boolean, nullable=False, default=True),
    Column("updated_at", DateTime(timezone=True), nullable=False, default=utc_now),
)


def ensure_schema(engine: Engine) -> None:
    """Crea tablas e índices si no existen. Seguro de llamar varias veces."""
    logger.info("[DB] Ensuring schema exists")
    metadata.create_all(engine, checkfirst=True)
    logger.info("[DB] Schema ready: %s", ", ".join(sorted(metadata.tables)))


def seed_entity_configs(engine: Engine, seed: Dict[str, Any]) -> int:
    """Inserta la configuración por entidad del seed; omite las existentes."""
    inserted = 0
    with engine.begin() as conn:
        existing = {row[0] for row in conn.execute(select(entity_configs.c.entity_id))}
        for ship in seed.get("ships", []):
            entity_id = str(ship["ship_id"])
            if entity_id in existing:
                continue
            thresholds = ship.get("thresholds", {})
            conn.execute(
                entity_configs.insert().values(
                    entity_id=entity_id,
                    warning_threshold=thresholds.get("warning"),
                    critical_threshold=thresholds.get("critical"),
                    target_value=thresholds.get("target"),
                    notification_email=ship.get("notification_email"),
                )
            )
            existing.add(entity_id)
            inserted += 1
            logger.info("[DB] %s configured", entity_id)
    return inserted
