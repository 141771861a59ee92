"""Fixtures compartidas.

- engine: SQLite en memoria con el esquema creado (StaticPool: una sola conexión)
- threshold_client: MagicMock de Redis respaldado por un dict
- queue_clock: reloj controlable para InMemoryQueue
"""

from datetime import datetime, timezone
from typing import Any, Dict, List
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.pool import StaticPool

from telemetry_pipeline.domain.models import Thresholds
from telemetry_pipeline.queue import InMemoryQueue
from telemetry_pipeline.storage import ensure_schema
from telemetry_pipeline.storage.schema import metadata

NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class QueueClock:
    """Reloj monotónico manual para controlar la visibilidad."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    ensure_schema(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def count_rows(engine):
    """Devuelve una función que cuenta filas de una tabla."""

    def _count(table_name: str) -> int:
        table = metadata.tables[table_name]
        with engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(table)).scalar_one()

    return _count


@pytest.fixture
def fetch_rows(engine):
    def _fetch(table_name: str) -> List[Dict[str, Any]]:
        table = metadata.tables[table_name]
        with engine.connect() as conn:
            return [dict(r._mapping) for r in conn.execute(select(table))]

    return _fetch


@pytest.fixture
def queue_clock() -> QueueClock:
    return QueueClock()


@pytest.fixture
def make_queue(queue_clock):
    def _make(name: str = "intake", visibility_timeout: float = 30.0) -> InMemoryQueue:
        return InMemoryQueue(
            name,
            visibility_timeout=visibility_timeout,
            retention_seconds=3600,
            clock=queue_clock,
        )

    return _make


@pytest.fixture
def threshold_store() -> Dict[str, str]:
    """Claves threshold:* tal como estarían en Redis."""
    return {
        "threshold:ship_1:warning": "-10",
        "threshold:ship_1:critical": "-5",
        "threshold:ship_1:target": "-18",
    }


@pytest.fixture
def threshold_client(threshold_store):
    client = MagicMock()
    client.mget.side_effect = lambda keys: [threshold_store.get(k) for k in keys]
    return client


@pytest.fixture
def default_thresholds() -> Thresholds:
    return Thresholds(warning=-10.0, critical=-5.0, target=-18.0)
